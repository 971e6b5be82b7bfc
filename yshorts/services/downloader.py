"""
Video Downloader Service
Fetches source videos with yt-dlp, falling back to the yt-dlp CLI and to ffmpeg
"""

import asyncio
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import yt_dlp

from ..config import Settings, get_settings
from ..utils.exceptions import (
    DownloadError,
    InvalidReferenceError,
    NoStreamsError,
    TranscoderNotFoundError,
    YShortsError,
)
from ..utils.logger import get_logger
from ..utils.process import run_process
from ..utils.retry import retry_async
from .transcoder import Transcoder

logger = get_logger()

_YOUTUBE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_YOUTUBE_HOSTS = ("youtube.com", "youtube-nocookie.com")
_YOUTUBE_PATH_PREFIXES = ("shorts", "embed", "live", "v")


@dataclass(frozen=True)
class SourceReference:
    """Canonical form of a source video reference"""
    video_id: str
    url: str
    is_youtube: bool


def parse_source_reference(source_ref: str) -> SourceReference:
    """
    Resolve a YouTube URL, bare video id or direct http(s) media URL.

    Raises InvalidReferenceError without doing any I/O.
    """
    text = (source_ref or "").strip()
    if not text:
        raise InvalidReferenceError(source_ref, "Empty reference")

    if _YOUTUBE_ID.match(text):
        return SourceReference(text, f"https://www.youtube.com/watch?v={text}", True)

    if "://" not in text and (text.startswith("youtu") or text.startswith("www.")):
        text = f"https://{text}"

    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidReferenceError(source_ref)

    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    video_id = None
    if host == "youtu.be" or host.endswith(".youtu.be"):
        video_id = segments[0] if segments else ""
    elif any(host == h or host.endswith("." + h) for h in _YOUTUBE_HOSTS):
        if segments[:1] == ["watch"]:
            video_id = parse_qs(parsed.query).get("v", [None])[0]
        elif len(segments) >= 2 and segments[0] in _YOUTUBE_PATH_PREFIXES:
            video_id = segments[1]
        if not video_id or not _YOUTUBE_ID.match(video_id):
            raise InvalidReferenceError(source_ref, "No video id in YouTube URL")

    if video_id is not None:
        if not _YOUTUBE_ID.match(video_id):
            raise InvalidReferenceError(source_ref, "No video id in YouTube URL")
        return SourceReference(video_id, f"https://www.youtube.com/watch?v={video_id}", True)

    stem = Path(parsed.path).stem if segments else host
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", stem).strip("-_")[:40] or "media"
    digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:8]
    return SourceReference(f"{slug}_{digest}", text, False)


@dataclass
class FormatSelection:
    """Streams chosen from a yt-dlp format manifest"""
    muxed: Optional[Dict[str, Any]] = None
    video: Optional[Dict[str, Any]] = None
    audio: Optional[Dict[str, Any]] = None


def _has(fmt: Dict[str, Any], codec_key: str) -> bool:
    # None means the codec is unknown; only "none" marks the stream as absent
    return fmt.get(codec_key) != "none"


def _video_rank(fmt: Dict[str, Any]):
    return (fmt.get("height") or 0, fmt.get("ext") == "mp4", fmt.get("tbr") or 0)


def _audio_rank(fmt: Dict[str, Any]):
    return (fmt.get("abr") or fmt.get("tbr") or 0, fmt.get("ext") == "m4a")


def _best_video(candidates: List[Dict[str, Any]], max_height: int) -> Optional[Dict[str, Any]]:
    if not candidates:
        return None
    capped = [f for f in candidates if (f.get("height") or 0) <= max_height]
    return max(capped or candidates, key=_video_rank)


def select_formats(formats: List[Dict[str, Any]], max_height: int = 1080) -> FormatSelection:
    """
    Pick the best combined audio+video format, or failing that the best
    video-only and audio-only formats. Heights above ``max_height`` are only
    used when nothing smaller exists.
    """
    muxed = [f for f in formats if _has(f, "vcodec") and _has(f, "acodec")]
    video_only = [f for f in formats if _has(f, "vcodec") and not _has(f, "acodec")]
    audio_only = [f for f in formats if _has(f, "acodec") and not _has(f, "vcodec")]

    if muxed:
        return FormatSelection(muxed=_best_video(muxed, max_height))

    return FormatSelection(
        video=_best_video(video_only, max_height),
        audio=max(audio_only, key=_audio_rank) if audio_only else None
    )


class VideoDownloader:
    """Resolves a source reference to one local media file"""

    def __init__(self, transcoder: Transcoder, settings: Optional[Settings] = None):
        self.transcoder = transcoder
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(self, source_ref: Union[str, SourceReference], scratch_dir: Union[str, Path]) -> Path:
        """
        Download ``source_ref`` to ``<scratch_dir>/<video_id>.mp4``.

        Each attempt tries the yt-dlp library, then the yt-dlp CLI, then ffmpeg
        on the raw URL. Attempts are retried with linear backoff; an attempt whose
        primary strategy found no streams is final.
        """
        ref = source_ref if isinstance(source_ref, SourceReference) else parse_source_reference(source_ref)
        scratch = Path(scratch_dir)
        scratch.mkdir(parents=True, exist_ok=True)
        output_path = scratch / f"{ref.video_id}.mp4"

        logger.info(f"Starting download: {ref.url}")

        attempt = retry_async(
            max_attempts=self.settings.download_max_attempts,
            base_delay=self.settings.download_backoff_seconds,
            max_delay=self.settings.download_backoff_cap_seconds,
            backoff="linear",
            retryable_exceptions=(DownloadError,),
            giveup=lambda e: not e.retryable,
            on_retry=lambda e, n: self._cleanup_partials(scratch, ref.video_id)
        )(self._attempt)

        try:
            path = await attempt(ref, output_path)
        except DownloadError:
            self._cleanup_partials(scratch, ref.video_id)
            raise

        logger.info(f"Video downloaded: {path.name} ({path.stat().st_size / 1e6:.1f} MB)")
        return path

    async def fetch_audio(self, source_ref: Union[str, SourceReference], scratch_dir: Union[str, Path]) -> Path:
        """Download the best audio-only stream, for transcription."""
        ref = source_ref if isinstance(source_ref, SourceReference) else parse_source_reference(source_ref)
        scratch = Path(scratch_dir)
        scratch.mkdir(parents=True, exist_ok=True)
        stem = f"{ref.video_id}_audio"

        @retry_async(
            max_attempts=self.settings.download_max_attempts,
            base_delay=self.settings.download_backoff_seconds,
            max_delay=self.settings.download_backoff_cap_seconds,
            backoff="linear",
            retryable_exceptions=(DownloadError,),
            on_retry=lambda e, n: self._cleanup_partials(scratch, stem)
        )
        async def download_audio() -> Path:
            opts = self._ydl_options(str(scratch / f"{stem}.%(ext)s"), "bestaudio/best")
            try:
                info = await self._run_ydl(ref.url, opts, download=True)
            except yt_dlp.utils.YoutubeDLError as e:
                raise DownloadError(f"Audio download failed: {e}", url=ref.url) from e
            path = self._downloaded_path(info, scratch, stem)
            if path is None:
                raise DownloadError("Audio download produced no file", url=ref.url)
            return path

        logger.info(f"Downloading audio: {ref.url}")
        return await download_audio()

    # ------------------------------------------------------------------
    # Attempt / strategies
    # ------------------------------------------------------------------

    async def _attempt(self, ref: SourceReference, output_path: Path) -> Path:
        strategies = [
            ("yt-dlp library", self._fetch_with_library),
            ("yt-dlp cli", self._fetch_with_cli),
            ("ffmpeg direct", self._fetch_direct),
        ]
        errors: List[str] = []
        deterministic = False

        for name, strategy in strategies:
            self._cleanup_partials(output_path.parent, ref.video_id)
            try:
                path = await strategy(ref, output_path)
            except NoStreamsError as e:
                if name == strategies[0][0]:
                    deterministic = True
                errors.append(f"{name}: {e.message}")
            except TranscoderNotFoundError as e:
                deterministic = True
                errors.append(f"{name}: {e.message}")
            except (YShortsError, yt_dlp.utils.YoutubeDLError, OSError, ValueError) as e:
                errors.append(f"{name}: {getattr(e, 'message', None) or e}")
            else:
                if path.is_file() and path.stat().st_size > 0:
                    logger.info(f"Download succeeded via {name}")
                    return path
                errors.append(f"{name}: produced no output")

            logger.warning(f"Download strategy '{name}' failed: {errors[-1][:200]}")

        raise DownloadError(
            f"All download strategies failed for {ref.url}",
            url=ref.url,
            retryable=not deterministic,
            errors=errors
        )

    async def _fetch_with_library(self, ref: SourceReference, output_path: Path) -> Path:
        """Strategy A: yt-dlp as a library with explicit stream selection."""
        info = await self._run_ydl(ref.url, self._ydl_options(None, None), download=False)
        if info is None:
            raise NoStreamsError(ref.url)

        selection = select_formats(info.get("formats") or [], self.settings.max_video_height)

        if selection.muxed:
            logger.info(f"Downloading muxed stream: {selection.muxed.get('format_id')} "
                        f"({selection.muxed.get('height')}p)")
            await self._download_format(ref.url, selection.muxed["format_id"], output_path)
            return output_path

        if not selection.video:
            raise NoStreamsError(ref.url)

        if not selection.audio:
            logger.warning("No audio streams found, downloading video only")
            await self._download_format(ref.url, selection.video["format_id"], output_path)
            return output_path

        scratch = output_path.parent
        video_path = scratch / f"{ref.video_id}_video.{selection.video.get('ext') or 'mp4'}"
        audio_path = scratch / f"{ref.video_id}_audio.{selection.audio.get('ext') or 'm4a'}"

        logger.info(f"Downloading video stream: {selection.video.get('format_id')} "
                    f"({selection.video.get('height')}p)")
        await self._download_format(ref.url, selection.video["format_id"], video_path)
        logger.info(f"Downloading audio stream: {selection.audio.get('format_id')}")
        await self._download_format(ref.url, selection.audio["format_id"], audio_path)

        try:
            await self.transcoder.mux(video_path, audio_path, output_path)
        finally:
            video_path.unlink(missing_ok=True)
            audio_path.unlink(missing_ok=True)
        return output_path

    async def _fetch_with_cli(self, ref: SourceReference, output_path: Path) -> Path:
        """Strategy B: the yt-dlp program, merging the best streams to mp4."""
        height = self.settings.max_video_height
        cmd = [
            self.settings.ytdlp_binary,
            "--no-playlist", "--no-progress", "--force-overwrites",
            "-f", f"bv*[height<={height}]+ba/b[height<={height}]/bv*+ba/b",
            "--merge-output-format", "mp4",
            "-o", str(output_path),
            "--", ref.url,
        ]
        try:
            result = await run_process(cmd, timeout=self.settings.download_timeout_seconds)
        except FileNotFoundError:
            raise DownloadError(f"{self.settings.ytdlp_binary} is not installed", url=ref.url) from None
        except asyncio.TimeoutError:
            raise DownloadError("yt-dlp timed out", url=ref.url) from None

        if result.returncode != 0:
            raise DownloadError(
                f"yt-dlp exited with code {result.returncode}: {result.stderr[-300:].strip()}",
                url=ref.url
            )
        return output_path

    async def _fetch_direct(self, ref: SourceReference, output_path: Path) -> Path:
        """Strategy C: hand the raw URL to ffmpeg."""
        return await self.transcoder.ingest(ref.url, output_path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ydl_options(self, outtmpl: Optional[str], fmt: Optional[str]) -> Dict[str, Any]:
        opts: Dict[str, Any] = {
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "noplaylist": True,
            "overwrites": True,
        }
        if outtmpl:
            opts["outtmpl"] = outtmpl
        if fmt:
            opts["format"] = fmt
        return opts

    async def _run_ydl(self, url: str, opts: Dict[str, Any], download: bool) -> Optional[Dict[str, Any]]:
        """Run yt-dlp in the thread pool to avoid blocking the event loop."""
        def do_extract():
            with yt_dlp.YoutubeDL(opts) as ydl:
                return ydl.extract_info(url, download=download)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, do_extract)

    async def _download_format(self, url: str, format_id: str, path: Path):
        opts = self._ydl_options(str(path), format_id)
        await self._run_ydl(url, opts, download=True)
        if not path.is_file():
            raise DownloadError(f"Format {format_id} was not written to {path.name}", url=url)

    @staticmethod
    def _downloaded_path(info: Optional[Dict[str, Any]], scratch: Path, stem: str) -> Optional[Path]:
        if info:
            for item in info.get("requested_downloads") or []:
                filepath = item.get("filepath")
                if filepath and Path(filepath).is_file():
                    return Path(filepath)
        matches = sorted(p for p in scratch.glob(f"{stem}.*") if not p.name.endswith(".part"))
        return matches[0] if matches else None

    @staticmethod
    def _cleanup_partials(scratch: Path, stem: str):
        """Remove files left behind by an interrupted attempt."""
        for path in scratch.glob(f"{stem}*"):
            try:
                if path.is_file():
                    path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove partial file {path}: {e}")
