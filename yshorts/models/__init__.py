"""Models package initialization"""
from .moment import AspectRatio, MomentDescriptor, parse_aspect_ratio
from .clip import (
    ClipPlan,
    ShortClip,
    ShortClipGenerationRequest,
    CreateShortsRequest,
    GenerateSelectedShortsRequest,
    QuickPreviewRequest,
    ShortsGenerationResponse
)
from .transcription import VideoUrlRequest, TranscriptionResult, MomentsResult

__all__ = [
    "AspectRatio",
    "MomentDescriptor",
    "parse_aspect_ratio",
    "ClipPlan",
    "ShortClip",
    "ShortClipGenerationRequest",
    "CreateShortsRequest",
    "GenerateSelectedShortsRequest",
    "QuickPreviewRequest",
    "ShortsGenerationResponse",
    "VideoUrlRequest",
    "TranscriptionResult",
    "MomentsResult"
]
