"""Services package initialization"""
from .transcoder import Transcoder, FFmpegCommand, CutMode
from .workspace import WorkspaceManager, Session
from .clip_planner import ClipPlanner
from .clip_generator import ClipGenerator
from .downloader import VideoDownloader, SourceReference, parse_source_reference
from .transcription import TranscriptionService
from .moment_extractor import MomentExtractor
from .shorts_service import ShortsService, get_shorts_service

__all__ = [
    "Transcoder",
    "FFmpegCommand",
    "CutMode",
    "WorkspaceManager",
    "Session",
    "ClipPlanner",
    "ClipGenerator",
    "VideoDownloader",
    "SourceReference",
    "parse_source_reference",
    "TranscriptionService",
    "MomentExtractor",
    "ShortsService",
    "get_shorts_service"
]
