"""Tests for source reference parsing, format selection and the download fallback chain."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from yshorts.services.downloader import (
    SourceReference,
    VideoDownloader,
    parse_source_reference,
    select_formats,
)
from yshorts.utils.exceptions import (
    DownloadError,
    InvalidReferenceError,
    NoStreamsError,
    TranscodeError,
    TranscoderNotFoundError,
)

VIDEO_ID = "dQw4w9WgXcQ"


@pytest.mark.parametrize(
    "value",
    [
        VIDEO_ID,
        f"https://www.youtube.com/watch?v={VIDEO_ID}",
        f"https://youtube.com/watch?v={VIDEO_ID}&t=42s",
        f"https://m.youtube.com/watch?v={VIDEO_ID}",
        f"https://youtu.be/{VIDEO_ID}?si=abc",
        f"youtu.be/{VIDEO_ID}",
        f"https://www.youtube.com/shorts/{VIDEO_ID}",
        f"https://www.youtube.com/embed/{VIDEO_ID}",
    ],
)
def test_parse_youtube_references(value: str) -> None:
    ref = parse_source_reference(value)
    assert ref == SourceReference(VIDEO_ID, f"https://www.youtube.com/watch?v={VIDEO_ID}", True)


@pytest.mark.parametrize(
    "value",
    ["", "   ", "not a url", "ftp://example.com/video.mp4", "https://www.youtube.com/watch", "https://youtu.be/"],
)
def test_parse_rejects_bad_references(value: str) -> None:
    with pytest.raises(InvalidReferenceError):
        parse_source_reference(value)


def test_parse_direct_media_url() -> None:
    ref = parse_source_reference("https://cdn.example.com/media/My Talk.mp4")

    assert ref.is_youtube is False
    assert ref.url == "https://cdn.example.com/media/My Talk.mp4"
    assert ref.video_id.startswith("My-Talk_")
    assert ref == parse_source_reference("https://cdn.example.com/media/My Talk.mp4")


def test_select_prefers_muxed_under_height_cap() -> None:
    formats = [
        {"format_id": "18", "vcodec": "avc1", "acodec": "mp4a", "height": 360, "ext": "mp4"},
        {"format_id": "22", "vcodec": "avc1", "acodec": "mp4a", "height": 720, "ext": "mp4"},
        {"format_id": "99", "vcodec": "avc1", "acodec": "mp4a", "height": 2160, "ext": "mp4"},
        {"format_id": "137", "vcodec": "avc1", "acodec": "none", "height": 1080, "ext": "mp4"},
    ]
    selection = select_formats(formats, max_height=1080)

    assert selection.muxed["format_id"] == "22"
    assert selection.video is None


def test_select_splits_video_and_audio() -> None:
    formats = [
        {"format_id": "137", "vcodec": "avc1", "acodec": "none", "height": 1080, "ext": "mp4"},
        {"format_id": "136", "vcodec": "avc1", "acodec": "none", "height": 720, "ext": "mp4"},
        {"format_id": "140", "vcodec": "none", "acodec": "mp4a", "abr": 128, "ext": "m4a"},
        {"format_id": "139", "vcodec": "none", "acodec": "mp4a", "abr": 48, "ext": "m4a"},
    ]
    selection = select_formats(formats)

    assert selection.muxed is None
    assert selection.video["format_id"] == "137"
    assert selection.audio["format_id"] == "140"


def test_select_with_no_video_streams() -> None:
    selection = select_formats([{"format_id": "140", "vcodec": "none", "acodec": "mp4a"}])
    assert selection.muxed is None and selection.video is None


def test_select_treats_unknown_codecs_as_muxed() -> None:
    selection = select_formats([{"format_id": "mp4", "ext": "mp4", "vcodec": None, "acodec": None}])

    assert selection.muxed["format_id"] == "mp4"


def test_select_with_missing_audio_codec_field() -> None:
    selection = select_formats([
        {"format_id": "hls-720", "ext": "mp4", "vcodec": "avc1", "height": 720},
        {"format_id": "audio", "ext": "m4a", "vcodec": "none", "acodec": "mp4a"},
    ])

    assert selection.muxed["format_id"] == "hls-720"


def _downloader(settings, **strategies) -> VideoDownloader:
    downloader = VideoDownloader(transcoder=AsyncMock(), settings=settings)
    downloader._fetch_with_library = strategies.get("library", AsyncMock(side_effect=DownloadError("library failed")))
    downloader._fetch_with_cli = strategies.get("cli", AsyncMock(side_effect=DownloadError("cli failed")))
    downloader._fetch_direct = strategies.get("direct", AsyncMock(side_effect=TranscodeError("ffmpeg failed")))
    return downloader


def _writes_output(ref, output_path: Path) -> Path:
    output_path.write_bytes(b"video")
    return output_path


@pytest.mark.asyncio
async def test_fetch_uses_first_successful_strategy(settings, tmp_path: Path) -> None:
    cli = AsyncMock(side_effect=_writes_output)
    direct = AsyncMock()
    downloader = _downloader(settings, cli=cli, direct=direct)

    path = await downloader.fetch(VIDEO_ID, tmp_path)

    assert path == tmp_path / f"{VIDEO_ID}.mp4"
    assert path.read_bytes() == b"video"
    direct.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_retries_until_a_strategy_succeeds(settings, tmp_path: Path) -> None:
    attempts = []

    async def direct_strategy(ref, output_path):
        attempts.append(output_path)
        if len(attempts) < 3:
            raise TranscodeError("Ingest failed", exit_code=1)
        return _writes_output(ref, output_path)

    library = AsyncMock(side_effect=DownloadError("library failed"))
    downloader = _downloader(settings, library=library, direct=direct_strategy)

    path = await downloader.fetch(VIDEO_ID, tmp_path)

    assert path.is_file()
    assert library.await_count == 3


@pytest.mark.asyncio
async def test_fetch_gives_up_after_max_attempts(settings, tmp_path: Path) -> None:
    library = AsyncMock(side_effect=DownloadError("library failed"))
    downloader = _downloader(settings, library=library)

    with pytest.raises(DownloadError) as exc_info:
        await downloader.fetch(VIDEO_ID, tmp_path)

    assert library.await_count == settings.download_max_attempts == 5
    assert len(exc_info.value.details["errors"]) == 3
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_no_streams_is_not_retried(settings, tmp_path: Path) -> None:
    library = AsyncMock(side_effect=NoStreamsError(f"https://www.youtube.com/watch?v={VIDEO_ID}"))
    cli = AsyncMock(side_effect=DownloadError("cli failed"))
    downloader = _downloader(settings, library=library, cli=cli)

    with pytest.raises(DownloadError) as exc_info:
        await downloader.fetch(VIDEO_ID, tmp_path)

    assert exc_info.value.retryable is False
    assert library.await_count == 1
    assert cli.await_count == 1


@pytest.mark.asyncio
async def test_missing_transcoder_is_not_retried(settings, tmp_path: Path) -> None:
    library = AsyncMock(side_effect=DownloadError("library failed"))
    direct = AsyncMock(side_effect=TranscoderNotFoundError("ffmpeg"))
    downloader = _downloader(settings, library=library, direct=direct)

    with pytest.raises(DownloadError) as exc_info:
        await downloader.fetch(VIDEO_ID, tmp_path)

    assert library.await_count == 1
    assert any("Required transcoding tool not found" in e for e in exc_info.value.details["errors"])


@pytest.mark.asyncio
async def test_partial_files_are_removed_between_strategies(settings, tmp_path: Path) -> None:
    async def leaves_partial(ref, output_path):
        (output_path.parent / f"{VIDEO_ID}.mp4.part").write_bytes(b"half")
        raise DownloadError("interrupted")

    seen = []

    async def cli(ref, output_path):
        seen.extend(p.name for p in output_path.parent.iterdir())
        return _writes_output(ref, output_path)

    downloader = _downloader(settings, library=leaves_partial, cli=cli)

    await downloader.fetch(VIDEO_ID, tmp_path)

    assert seen == []


@pytest.mark.asyncio
async def test_empty_output_counts_as_failure(settings, tmp_path: Path) -> None:
    async def empty(ref, output_path):
        output_path.write_bytes(b"")
        return output_path

    direct = AsyncMock(side_effect=_writes_output)
    downloader = _downloader(settings, library=empty, direct=direct)

    path = await downloader.fetch(VIDEO_ID, tmp_path)

    assert path.stat().st_size > 0
    direct.assert_awaited_once()
