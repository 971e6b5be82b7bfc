"""
Transcription Router
Transcript, best-moment and full-pipeline endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..models.clip import ShortsGenerationResponse
from ..models.moment import MomentDescriptor
from ..models.transcription import TranscriptionResult, VideoUrlRequest
from ..services.shorts_service import (
    PHASE_EXTRACTION,
    PHASE_TRANSCRIPTION,
    ShortsService,
    get_shorts_service,
)
from ..utils.logger import get_logger

router = APIRouter(prefix="/api/transcription", tags=["transcription"])
logger = get_logger()


class TranscribeAndExtractResponse(BaseModel):
    """Transcript together with the moments found in it"""
    success: bool
    text: str = ""
    moments: List[MomentDescriptor] = Field(default_factory=list)
    error_message: Optional[str] = None
    failed_phase: Optional[str] = None


@router.post("/transcribe", response_model=TranscriptionResult)
async def transcribe_video(request: VideoUrlRequest, service: ShortsService = Depends(get_shorts_service)):
    logger.info(f"Received transcription request for URL: {request.youtube_url}")
    result = await service.transcriber.transcribe(request.youtube_url)
    if not result.success:
        return JSONResponse(status_code=400, content=result.model_dump(mode="json"))
    return result


@router.post("/transcribe-and-extract", response_model=TranscribeAndExtractResponse)
async def transcribe_and_extract(request: VideoUrlRequest, service: ShortsService = Depends(get_shorts_service)):
    """Transcribe the video, then ask the model for its best moments."""
    transcript = await service.transcriber.transcribe(request.youtube_url)
    if not transcript.success:
        result = TranscribeAndExtractResponse(
            success=False,
            error_message=transcript.error_message,
            failed_phase=PHASE_TRANSCRIPTION
        )
        return JSONResponse(status_code=400, content=result.model_dump(mode="json", by_alias=True))

    extracted = await service.extractor.extract_moments(transcript.text)
    if not extracted.success:
        result = TranscribeAndExtractResponse(
            success=False,
            text=transcript.text,
            error_message=extracted.error_message,
            failed_phase=PHASE_EXTRACTION
        )
        return JSONResponse(status_code=400, content=result.model_dump(mode="json", by_alias=True))

    return TranscribeAndExtractResponse(success=True, text=transcript.text, moments=extracted.moments)


@router.post("/transcribe-extract-create", response_model=ShortsGenerationResponse)
async def transcribe_extract_create(request: VideoUrlRequest, service: ShortsService = Depends(get_shorts_service)):
    """Run the whole pipeline and render every moment found."""
    result = await service.run_pipeline(request.youtube_url, request.aspect_ratio)
    if not result.success:
        return JSONResponse(status_code=400, content=result.model_dump(mode="json"))
    return result
