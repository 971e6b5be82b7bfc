"""
Transcription Data Models
Results returned by the transcription and moment-extraction collaborators
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .moment import AspectRatio, MomentDescriptor


class VideoUrlRequest(BaseModel):
    """Request model for the transcription endpoints"""
    youtube_url: str = Field(min_length=1)
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE


class TranscriptionResult(BaseModel):
    """Transcript text or the reason it could not be produced"""
    success: bool
    text: str = ""
    error_message: Optional[str] = None


class MomentsResult(BaseModel):
    """Best moments or the reason they could not be extracted"""
    success: bool
    moments: List[MomentDescriptor] = Field(default_factory=list)
    error_message: Optional[str] = None
