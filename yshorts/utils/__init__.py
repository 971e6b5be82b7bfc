"""Utils package initialization"""
from .logger import setup_logger, get_logger
from .exceptions import (
    YShortsError,
    InvalidReferenceError,
    InvalidAspectRatioError,
    ParseError,
    DownloadError,
    NoStreamsError,
    TranscodeError,
    TranscoderNotFoundError,
    ClipRenderError,
    NotFoundError,
    CollaboratorError
)
from .retry import retry_async, compute_delay

__all__ = [
    "setup_logger",
    "get_logger",
    "YShortsError",
    "InvalidReferenceError",
    "InvalidAspectRatioError",
    "ParseError",
    "DownloadError",
    "NoStreamsError",
    "TranscodeError",
    "TranscoderNotFoundError",
    "ClipRenderError",
    "NotFoundError",
    "CollaboratorError",
    "retry_async",
    "compute_delay"
]
