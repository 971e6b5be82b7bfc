"""
Transcoder Adapter
FFmpeg-based clip cutting, aspect-ratio framing, thumbnails and stream muxing
"""

import asyncio
import json
import math
import os
import re
import shlex
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..config import Settings, get_settings
from ..models.moment import AspectRatio
from ..utils.exceptions import TranscodeError, TranscoderNotFoundError
from ..utils.logger import get_logger
from ..utils.process import run_process

logger = get_logger()

PathLike = Union[str, Path]

# Output frame size per aspect ratio (width, height)
ASPECT_GEOMETRY = {
    AspectRatio.LANDSCAPE: (1920, 1080),
    AspectRatio.PORTRAIT: (1080, 1920),
    AspectRatio.SQUARE: (1080, 1080),
}

_FILTER_PATTERN = re.compile(r"^[A-Za-z0-9_=:,.()/*+\-]+$")
_URL_PATTERN = re.compile(r"^https?://[^\s]+$", re.IGNORECASE)


class CutMode(str, Enum):
    """How a clip is cut from its source"""
    STREAM_COPY = "stream_copy"  # copy codec streams, fast but seek-limited
    RE_ENCODE = "re_encode"      # full video re-encode, slow but robust


def aspect_filter(aspect_ratio: AspectRatio) -> str:
    """Scale down to fit the target frame, then pad with the content centered."""
    width, height = ASPECT_GEOMETRY[aspect_ratio]
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
    )


class FFmpegCommand:
    """
    Argument-list builder for ffmpeg/ffprobe.

    Paths become absolute so they can never be read as options or protocol
    prefixes, URLs are limited to http(s), and numbers must be finite and
    non-negative. The result is passed to exec directly, never to a shell.
    """

    def __init__(self, binary: str, probe: bool = False):
        self._args: List[str] = [binary, "-hide_banner"]
        if not probe:
            self._args.extend(["-nostdin", "-y"])

    @staticmethod
    def safe_path(path: PathLike) -> str:
        text = os.fspath(path)
        if not text or "\x00" in text:
            raise ValueError(f"Invalid file path: {text!r}")
        return os.path.abspath(text)

    @staticmethod
    def safe_url(url: str) -> str:
        if "\x00" in url or not _URL_PATTERN.match(url):
            raise ValueError(f"Only http(s) URLs can be used as input: {url!r}")
        return url

    @staticmethod
    def safe_seconds(value: float) -> str:
        number = float(value)
        if not math.isfinite(number) or number < 0:
            raise ValueError(f"Invalid time value: {value!r}")
        return f"{number:.3f}"

    def flag(self, *flags: str) -> "FFmpegCommand":
        self._args.extend(flags)
        return self

    def option(self, name: str, value: str) -> "FFmpegCommand":
        self._args.extend([name, str(value)])
        return self

    def seconds(self, name: str, value: float) -> "FFmpegCommand":
        return self.option(name, self.safe_seconds(value))

    def video_filter(self, graph: str) -> "FFmpegCommand":
        if not _FILTER_PATTERN.match(graph):
            raise ValueError(f"Unsupported filter graph: {graph!r}")
        return self.option("-vf", graph)

    def input(self, path: PathLike) -> "FFmpegCommand":
        return self.option("-i", self.safe_path(path))

    def input_url(self, url: str) -> "FFmpegCommand":
        return self.option("-i", self.safe_url(url))

    def target(self, path: PathLike) -> "FFmpegCommand":
        """Trailing positional path: the output for ffmpeg, the input for ffprobe."""
        self._args.append(self.safe_path(path))
        return self

    output = target

    def build(self) -> List[str]:
        return list(self._args)


class Transcoder:
    """Thin async wrapper over ffmpeg; retry and fallback policy belong to callers"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.ffmpeg_binary = self.settings.ffmpeg_binary
        self.ffprobe_binary = self.settings.ffprobe_binary
        self.timeout = self.settings.transcode_timeout_seconds

    async def check_available(self) -> bool:
        """Verify FFmpeg is available"""
        try:
            result = await run_process([self.ffmpeg_binary, "-version"], timeout=30)
        except FileNotFoundError:
            logger.error("FFmpeg not installed. Please install FFmpeg.")
            return False
        if result.returncode != 0:
            logger.error(f"FFmpeg check failed: {result.stderr[-200:]}")
            return False
        logger.info("FFmpeg available")
        return True

    async def _execute(self, cmd: List[str], label: str) -> str:
        """Run a built command, mapping every failure onto the transcoder errors."""
        command_line = shlex.join(cmd)
        logger.debug(f"FFmpeg command: {command_line}")

        try:
            result = await run_process(cmd, timeout=self.timeout)
        except FileNotFoundError:
            logger.error(f"Required transcoding tool not found: {cmd[0]}")
            raise TranscoderNotFoundError(cmd[0]) from None
        except asyncio.TimeoutError:
            logger.error(f"{label} timed out after {self.timeout}s, process killed")
            raise TranscodeError(
                f"{label} timed out after {self.timeout}s",
                command=command_line
            ) from None

        if result.returncode != 0:
            logger.error(f"{label} failed (exit {result.returncode}): {result.stderr[-500:]}")
            raise TranscodeError(
                f"{label} failed with exit code {result.returncode}",
                exit_code=result.returncode,
                stderr=result.stderr,
                command=command_line
            )
        return result.stdout

    @staticmethod
    def _ensure_output(path: Path, label: str):
        if not path.exists() or path.stat().st_size == 0:
            raise TranscodeError(f"{label} produced no output at {path}")

    async def cut(
        self,
        input_path: PathLike,
        output_path: PathLike,
        start: float,
        duration: float,
        aspect_filter: Optional[str],
        mode: CutMode
    ) -> Path:
        """
        Cut ``duration`` seconds starting at ``start`` into ``output_path``.

        STREAM_COPY copies the existing codec streams and therefore cannot apply
        ``aspect_filter``; RE_ENCODE encodes H.264/AAC with the configured preset.
        """
        if duration <= 0:
            raise ValueError(f"Clip duration must be positive, got {duration}")
        if mode == CutMode.STREAM_COPY and aspect_filter:
            raise ValueError("Stream copy cannot apply a filter graph")

        output = Path(output_path)
        cmd = (
            FFmpegCommand(self.ffmpeg_binary)
            .seconds("-ss", start)
            .input(input_path)
            .seconds("-t", duration)
            .flag("-map", "0:v:0", "-map", "0:a:0?")
        )

        if mode == CutMode.STREAM_COPY:
            cmd.flag("-c", "copy", "-avoid_negative_ts", "make_zero")
        else:
            if aspect_filter:
                cmd.video_filter(aspect_filter)
            cmd.option("-c:v", self.settings.video_codec)
            cmd.option("-preset", self.settings.video_preset)
            cmd.option("-crf", str(self.settings.video_crf))
            cmd.flag("-pix_fmt", "yuv420p", "-c:a", "aac")
            cmd.option("-b:a", self.settings.audio_bitrate)

        cmd.flag("-movflags", "+faststart").output(output)

        await self._execute(cmd.build(), f"Cut ({mode.value})")
        self._ensure_output(output, "Cut")
        return output

    async def thumbnail(
        self,
        input_path: PathLike,
        output_path: PathLike,
        at_offset: float,
        aspect_filter: Optional[str]
    ) -> Path:
        """Extract exactly one frame at ``at_offset`` using the clip's geometry."""
        output = Path(output_path)
        cmd = (
            FFmpegCommand(self.ffmpeg_binary)
            .seconds("-ss", at_offset)
            .input(input_path)
            .flag("-frames:v", "1")
        )
        if aspect_filter:
            cmd.video_filter(aspect_filter)
        cmd.flag("-q:v", "2").output(output)

        await self._execute(cmd.build(), "Thumbnail")
        self._ensure_output(output, "Thumbnail")
        return output

    async def mux(self, video_input: PathLike, audio_input: PathLike, output_path: PathLike) -> Path:
        """Combine separately downloaded video and audio streams into one mp4."""
        output = Path(output_path)
        cmd = (
            FFmpegCommand(self.ffmpeg_binary)
            .input(video_input)
            .input(audio_input)
            .flag("-map", "0:v:0", "-map", "1:a:0", "-c:v", "copy", "-c:a", "aac")
            .option("-b:a", self.settings.audio_bitrate)
            .flag("-movflags", "+faststart")
            .output(output)
        )

        logger.info("Muxing video and audio streams")
        await self._execute(cmd.build(), "Mux")
        self._ensure_output(output, "Mux")
        return output

    async def ingest(self, url: str, output_path: PathLike) -> Path:
        """Read a remote media URL directly and stream-copy it into an mp4."""
        output = Path(output_path)
        cmd = (
            FFmpegCommand(self.ffmpeg_binary)
            .input_url(url)
            .flag("-map", "0:v:0", "-map", "0:a:0?", "-c", "copy", "-movflags", "+faststart")
            .output(output)
        )

        await self._execute(cmd.build(), "Ingest")
        self._ensure_output(output, "Ingest")
        return output

    async def probe_dimensions(self, input_path: PathLike) -> Tuple[int, int]:
        """Width and height of the first video stream."""
        cmd = (
            FFmpegCommand(self.ffprobe_binary, probe=True)
            .flag("-v", "error", "-select_streams", "v:0")
            .flag("-show_entries", "stream=width,height", "-of", "json")
            .target(input_path)
        )

        stdout = await self._execute(cmd.build(), "Probe")
        try:
            stream = json.loads(stdout)["streams"][0]
            return int(stream["width"]), int(stream["height"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TranscodeError(f"Probe returned no video stream for {input_path}: {e}") from None
