"""
Custom Exceptions for YShorts
Structured error handling with recovery hints
"""

from typing import Optional, Dict, Any


class YShortsError(Exception):
    """Base exception for all YShorts errors"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        recoverable: bool = False,
        recovery_hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to JSON-serializable dict"""
        return {
            "error": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
            "details": self.details
        }


# ============================================================================
# Input Errors
# ============================================================================

class InvalidReferenceError(YShortsError):
    """Source video reference could not be parsed"""

    def __init__(self, source_ref: str, reason: str = "Unrecognized video URL or id"):
        super().__init__(
            message=f"Invalid video reference '{source_ref}': {reason}",
            code="INVALID_REFERENCE",
            recoverable=True,
            recovery_hint="Provide a YouTube URL, an 11-character video id or a direct http(s) media URL.",
            details={"source_ref": source_ref}
        )


class InvalidAspectRatioError(YShortsError):
    """Aspect ratio outside the supported set"""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Unsupported aspect ratio: {value!r}",
            code="INVALID_ASPECT_RATIO",
            recoverable=True,
            recovery_hint="Use 0 (Landscape 16:9), 1 (Portrait 9:16) or 2 (Square 1:1).",
            details={"value": repr(value)}
        )


class ParseError(YShortsError):
    """Moment timestamp could not be parsed"""

    def __init__(self, value: str, reason: str = "Invalid timestamp"):
        super().__init__(
            message=f"{reason}: {value!r}",
            code="PARSE_ERROR",
            recoverable=True,
            recovery_hint="Timestamps must look like MM:SS, e.g. 01:05.",
            details={"value": value}
        )


# ============================================================================
# Download Errors
# ============================================================================

class DownloadError(YShortsError):
    """All acquisition strategies for a source video failed"""

    def __init__(self, message: str, url: Optional[str] = None, retryable: bool = True, **kwargs):
        super().__init__(
            message=message,
            code="DOWNLOAD_ERROR",
            recoverable=True,
            recovery_hint="Check if the video URL is valid and accessible. Try again or use a different video.",
            details={"url": url, **kwargs}
        )
        self.retryable = retryable


class NoStreamsError(DownloadError):
    """The source exposes no downloadable video stream at all"""

    def __init__(self, url: str):
        super().__init__(
            message=f"No video streams available for {url}",
            url=url,
            retryable=False
        )
        self.code = "NO_STREAMS"


# ============================================================================
# Transcoding Errors
# ============================================================================

class TranscodeError(YShortsError):
    """External transcoding process exited with a non-zero status"""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
        command: Optional[str] = None
    ):
        stderr_tail = stderr[-500:] if stderr else ""
        super().__init__(
            message=message,
            code="TRANSCODE_ERROR",
            recoverable=True,
            recovery_hint="Check the source file isn't corrupted. The ffmpeg output is included in details.",
            details={"exit_code": exit_code, "stderr": stderr_tail, "command": command}
        )
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class TranscoderNotFoundError(YShortsError):
    """Required transcoding tool is not installed"""

    def __init__(self, binary: str):
        super().__init__(
            message=f"Required transcoding tool not found: {binary}",
            code="TRANSCODER_NOT_FOUND",
            recoverable=False,
            recovery_hint="Install FFmpeg (https://ffmpeg.org/download.html) and make sure it is in PATH.",
            details={"binary": binary}
        )


class ClipRenderError(YShortsError):
    """A single clip could not be rendered by any strategy"""

    def __init__(self, index: int, message: str, **kwargs):
        super().__init__(
            message=f"Clip {index}: {message}",
            code="CLIP_RENDER_ERROR",
            recoverable=True,
            recovery_hint="Try a different time range or aspect ratio for this clip.",
            details={"index": index, **kwargs}
        )
        self.index = index


# ============================================================================
# Serving Errors
# ============================================================================

class NotFoundError(YShortsError):
    """Requested file does not exist in the session workspace"""

    def __init__(self, path: str):
        super().__init__(
            message=f"File not found: {path}",
            code="NOT_FOUND",
            recoverable=False,
            recovery_hint="The clip may not have been generated yet or was cleaned up.",
            details={"path": path}
        )


# ============================================================================
# Collaborator Errors
# ============================================================================

class CollaboratorError(YShortsError):
    """Transcription or moment-extraction service failure"""

    def __init__(self, service: str, message: str, **kwargs):
        super().__init__(
            message=f"{service}: {message}",
            code="COLLABORATOR_ERROR",
            recoverable=True,
            recovery_hint=f"Check the {service} API key configuration. The service may be temporarily unavailable.",
            details={"service": service, **kwargs}
        )
