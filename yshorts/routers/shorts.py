"""
Shorts Router
Preview/commit endpoints and byte serving for rendered clips
"""

from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, JSONResponse

from ..config import get_settings
from ..models.clip import (
    CreateShortsRequest,
    GenerateSelectedShortsRequest,
    QuickPreviewRequest,
    ShortsGenerationResponse,
)
from ..services.shorts_service import ShortsService, get_shorts_service
from ..utils.logger import get_logger

router = APIRouter(prefix=get_settings().api_prefix, tags=["shorts"])
logger = get_logger()


def _respond(result: ShortsGenerationResponse):
    if not result.success:
        return JSONResponse(status_code=400, content=result.model_dump(mode="json"))
    return result


@router.post("/create", response_model=ShortsGenerationResponse)
async def create_shorts(request: CreateShortsRequest, service: ShortsService = Depends(get_shorts_service)):
    """Download the video and return unrendered previews for its best moments."""
    logger.info(f"Received request to create shorts for URL: {request.youtube_url}")
    result = await service.create_previews(request.youtube_url, request.best_moments, request.aspect_ratio)
    return _respond(result)


@router.post("/generate", response_model=ShortsGenerationResponse)
async def generate_selected_shorts(
    request: GenerateSelectedShortsRequest,
    service: ShortsService = Depends(get_shorts_service)
):
    """Render the previews the client selected."""
    result = await service.generate_selected(request.source_video_path, request.selected_shorts)
    return _respond(result)


@router.post("/create-and-render", response_model=ShortsGenerationResponse)
async def create_and_render_shorts(
    request: CreateShortsRequest,
    service: ShortsService = Depends(get_shorts_service)
):
    """Download, plan and render every valid moment in one request."""
    result = await service.create_shorts(request.youtube_url, request.best_moments, request.aspect_ratio)
    return _respond(result)


@router.post("/quick-preview", response_model=ShortsGenerationResponse)
async def quick_preview(request: QuickPreviewRequest, service: ShortsService = Depends(get_shorts_service)):
    """Render a throwaway clip for a single moment."""
    result = await service.render_quick_preview(request.source_video_path, request.moment, request.aspect_ratio)
    return _respond(result)


@router.get("/download/{folder}/{filename}")
async def download_short(folder: str, filename: str, service: ShortsService = Depends(get_shorts_service)):
    path = service.workspace.resolve_existing(folder, filename)
    return FileResponse(str(path), media_type="video/mp4", filename=filename)


@router.get("/preview/{folder}/{filename}")
async def preview_short(folder: str, filename: str, service: ShortsService = Depends(get_shorts_service)):
    """Inline playback; FileResponse answers Range requests."""
    path = service.workspace.resolve_existing(folder, filename)
    return FileResponse(str(path), media_type="video/mp4")


@router.get("/thumbnail/{folder}/{filename}")
async def get_thumbnail(folder: str, filename: str, service: ShortsService = Depends(get_shorts_service)):
    path = service.workspace.resolve_existing(folder, filename)
    return FileResponse(str(path), media_type="image/jpeg")


@router.get("/quick/{filename}")
async def get_quick_preview(filename: str, service: ShortsService = Depends(get_shorts_service)):
    path = service.workspace.resolve_preview(filename)
    return FileResponse(str(path), media_type="video/mp4")


@router.get("/folder/{folder}", response_model=List[str])
async def list_folder(folder: str, service: ShortsService = Depends(get_shorts_service)):
    """File names stored in a session folder."""
    session = service.workspace.open_session(folder)
    return sorted(p.name for p in session.output_dir.iterdir() if p.is_file())
