"""
Clip Data Models
Planned, previewed and rendered short clips
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .moment import AspectRatio, MomentDescriptor


@dataclass(frozen=True)
class ClipPlan:
    """Validated, renderable time range derived from a moment (internal only)"""
    index: int
    start_offset: float
    duration: float
    aspect_ratio: AspectRatio
    source_path: Path
    planned_file_name: str
    planned_thumbnail_name: str
    session_id: str
    content: str = ""

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.duration


class ShortClip(BaseModel):
    """Client-facing clip; a preview until is_generated is True"""
    id: int
    title: str = ""
    duration: str = ""
    thumbnail_url: str = ""
    download_url: str = ""
    preview_url: str = ""
    file_path: str = ""
    file_name: str = ""
    thumbnail_path: str = ""
    aspect_ratio: str = AspectRatio.LANDSCAPE.label
    start_seconds: float = 0
    end_seconds: float = 0
    content: str = ""
    is_generated: bool = False


class ShortClipGenerationRequest(ShortClip):
    """A preview sent back by the client to be rendered; timing fields are mandatory"""
    start_seconds: float = Field(ge=0)
    end_seconds: float = Field(gt=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_seconds <= self.start_seconds:
            raise ValueError("end_seconds must be greater than start_seconds")
        return self


class CreateShortsRequest(BaseModel):
    """Request model for previewing (or rendering) shorts from best moments"""
    youtube_url: str = Field(min_length=1)
    best_moments: List[MomentDescriptor] = Field(min_length=1)
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE


class GenerateSelectedShortsRequest(BaseModel):
    """Request model for materializing selected previews"""
    source_video_path: str = Field(min_length=1)
    selected_shorts: List[ShortClipGenerationRequest] = Field(min_length=1)


class QuickPreviewRequest(BaseModel):
    """Request model for a throwaway single-moment render"""
    source_video_path: str = Field(min_length=1)
    moment: MomentDescriptor
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE


class ShortsGenerationResponse(BaseModel):
    """Structured result of every facade operation"""
    success: bool
    error_message: Optional[str] = None
    failed_phase: Optional[str] = None
    shorts: List[ShortClip] = Field(default_factory=list)
    output_directory: Optional[str] = None
    source_video_path: Optional[str] = None
    folder_name: Optional[str] = None
    folder_path: Optional[str] = None
