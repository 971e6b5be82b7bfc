"""Shared fixtures: throwaway workspaces and in-memory stand-ins for ffmpeg and yt-dlp."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set, Tuple

import pytest

from yshorts.config import Settings
from yshorts.services.clip_generator import ClipGenerator
from yshorts.services.shorts_service import ShortsService
from yshorts.services.transcoder import CutMode
from yshorts.services.workspace import WorkspaceManager
from yshorts.utils.exceptions import DownloadError, TranscodeError

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5)


class FakeTranscoder:
    """Records every call and writes small placeholder files instead of running ffmpeg."""

    def __init__(self, dimensions: Optional[Tuple[int, int]] = (1280, 720)):
        self.dimensions = dimensions
        self.fail_outputs: Set[str] = set()
        self.fail_modes: Set[CutMode] = set()
        self.fail_thumbnails = False
        self.cuts: List[Tuple[str, CutMode, float, float]] = []
        self.thumbnails: List[str] = []

    async def probe_dimensions(self, input_path):
        if self.dimensions is None:
            raise TranscodeError("Probe failed", exit_code=1)
        return self.dimensions

    async def cut(self, input_path, output_path, start, duration, aspect_filter, mode):
        output = Path(output_path)
        self.cuts.append((output.name, mode, start, duration))
        if output.name in self.fail_outputs or mode in self.fail_modes:
            output.write_bytes(b"partial")
            raise TranscodeError(f"Cut ({mode.value}) failed", exit_code=1, stderr="Invalid data found")
        output.write_bytes(f"{mode.value}:{start}:{duration}".encode())
        return output

    async def thumbnail(self, input_path, output_path, at_offset, aspect_filter):
        output = Path(output_path)
        self.thumbnails.append(output.name)
        if self.fail_thumbnails:
            raise TranscodeError("Thumbnail failed", exit_code=1)
        output.write_bytes(b"jpeg")
        return output


class FakeDownloader:
    """Writes a placeholder source file, or raises the configured error."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[str] = []

    async def fetch(self, source_ref, scratch_dir):
        self.calls.append(source_ref.url)
        if self.error is not None:
            raise self.error
        path = Path(scratch_dir) / f"{source_ref.video_id}.mp4"
        path.write_bytes(b"source video")
        return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        output_dir=str(tmp_path / "output"),
        temp_dir=str(tmp_path / "temp"),
        api_prefix="/api/shorts",
        download_backoff_seconds=0,
        download_backoff_cap_seconds=0,
        transcription_poll_interval=0.01,
    )


@pytest.fixture
def workspace(settings: Settings) -> WorkspaceManager:
    return WorkspaceManager(settings.output_dir, settings.temp_dir, settings.api_prefix, clock=lambda: FIXED_NOW)


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def generator(transcoder: FakeTranscoder, workspace: WorkspaceManager) -> ClipGenerator:
    return ClipGenerator(transcoder, workspace)


@pytest.fixture
def service(workspace, downloader, generator, settings) -> ShortsService:
    return ShortsService(workspace=workspace, downloader=downloader, generator=generator, settings=settings)


@pytest.fixture
def failing_downloader() -> FakeDownloader:
    return FakeDownloader(DownloadError("All download strategies failed", url="https://example.com"))
