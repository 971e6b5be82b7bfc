"""Tests for the ffmpeg command builder and transcoder error mapping."""

import asyncio
import json
import os
from pathlib import Path
from typing import List

import pytest

from yshorts.models.moment import AspectRatio
from yshorts.services import transcoder as transcoder_module
from yshorts.services.transcoder import CutMode, FFmpegCommand, Transcoder, aspect_filter
from yshorts.utils.exceptions import TranscodeError, TranscoderNotFoundError
from yshorts.utils.process import ProcessResult


class RecordingRunner:
    """Stands in for run_process: records argv and writes the trailing output path."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "", write_output: bool = True):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.write_output = write_output
        self.calls: List[List[str]] = []

    async def __call__(self, args, timeout=None):
        self.calls.append(list(args))
        if self.write_output and self.returncode == 0:
            Path(args[-1]).write_bytes(b"media")
        return ProcessResult(self.returncode, self.stdout, self.stderr)


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> RecordingRunner:
    recorder = RecordingRunner()
    monkeypatch.setattr(transcoder_module, "run_process", recorder)
    return recorder


def test_aspect_filter_geometry() -> None:
    assert aspect_filter(AspectRatio.PORTRAIT) == (
        "scale=1080:1920:force_original_aspect_ratio=decrease,pad=1080:1920:(ow-iw)/2:(oh-ih)/2"
    )
    assert "1920:1080" in aspect_filter(AspectRatio.LANDSCAPE)
    assert "1080:1080" in aspect_filter(AspectRatio.SQUARE)


def test_command_builder_makes_paths_absolute() -> None:
    cmd = FFmpegCommand("ffmpeg").input("-evil.mp4").output("out.mp4").build()

    assert cmd[:4] == ["ffmpeg", "-hide_banner", "-nostdin", "-y"]
    assert cmd[5] == os.path.abspath("-evil.mp4")
    assert cmd[-1] == os.path.abspath("out.mp4")


def test_probe_command_has_no_output_flags() -> None:
    cmd = FFmpegCommand("ffprobe", probe=True).target("in.mp4").build()
    assert cmd == ["ffprobe", "-hide_banner", os.path.abspath("in.mp4")]


@pytest.mark.parametrize("value", [-1, float("nan"), float("inf")])
def test_command_builder_rejects_bad_numbers(value: float) -> None:
    with pytest.raises(ValueError):
        FFmpegCommand("ffmpeg").seconds("-ss", value)


def test_command_builder_formats_seconds() -> None:
    assert FFmpegCommand("ffmpeg").seconds("-ss", 5).build()[-2:] == ["-ss", "5.000"]


@pytest.mark.parametrize("url", ["file:///etc/passwd", "concat:a.mp4|b.mp4", "https://a b", "ftp://host/x"])
def test_command_builder_rejects_non_http_urls(url: str) -> None:
    with pytest.raises(ValueError):
        FFmpegCommand("ffmpeg").input_url(url)


def test_command_builder_rejects_bad_paths_and_filters() -> None:
    with pytest.raises(ValueError):
        FFmpegCommand("ffmpeg").input("bad\x00name.mp4")
    with pytest.raises(ValueError):
        FFmpegCommand("ffmpeg").video_filter("scale=1:1;movie=/etc/passwd")


@pytest.mark.asyncio
async def test_cut_re_encode_arguments(runner: RecordingRunner, settings, tmp_path: Path) -> None:
    output = tmp_path / "short_1_Portrait.mp4"

    result = await Transcoder(settings).cut(
        tmp_path / "source.mp4", output, 5, 10, aspect_filter(AspectRatio.PORTRAIT), CutMode.RE_ENCODE
    )

    assert result == output
    args = runner.calls[0]
    assert args[args.index("-ss") + 1] == "5.000"
    assert args[args.index("-t") + 1] == "10.000"
    assert args[args.index("-vf") + 1] == aspect_filter(AspectRatio.PORTRAIT)
    assert args[args.index("-c:v") + 1] == "libx264"
    assert args[args.index("-c:a") + 1] == "aac"
    assert args.index("-ss") < args.index("-i")
    assert args[-1] == str(output)


@pytest.mark.asyncio
async def test_cut_stream_copy_arguments(runner: RecordingRunner, settings, tmp_path: Path) -> None:
    await Transcoder(settings).cut(tmp_path / "in.mp4", tmp_path / "out.mp4", 0, 3, None, CutMode.STREAM_COPY)

    args = runner.calls[0]
    assert args[args.index("-c") + 1] == "copy"
    assert "-vf" not in args


@pytest.mark.asyncio
async def test_cut_rejects_filter_with_stream_copy(runner: RecordingRunner, settings, tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await Transcoder(settings).cut(
            tmp_path / "in.mp4", tmp_path / "out.mp4", 0, 3, aspect_filter(AspectRatio.SQUARE), CutMode.STREAM_COPY
        )
    with pytest.raises(ValueError):
        await Transcoder(settings).cut(tmp_path / "in.mp4", tmp_path / "out.mp4", 0, 0, None, CutMode.RE_ENCODE)
    assert runner.calls == []


@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_stderr(monkeypatch: pytest.MonkeyPatch, settings, tmp_path: Path) -> None:
    stderr = "x" * 1000 + "moov atom not found"
    monkeypatch.setattr(transcoder_module, "run_process", RecordingRunner(returncode=1, stderr=stderr))

    with pytest.raises(TranscodeError) as exc_info:
        await Transcoder(settings).cut(tmp_path / "in.mp4", tmp_path / "out.mp4", 0, 3, None, CutMode.RE_ENCODE)

    assert exc_info.value.exit_code == 1
    assert exc_info.value.stderr_tail.endswith("moov atom not found")
    assert len(exc_info.value.stderr_tail) == 500


@pytest.mark.asyncio
async def test_missing_output_is_a_failure(monkeypatch: pytest.MonkeyPatch, settings, tmp_path: Path) -> None:
    monkeypatch.setattr(transcoder_module, "run_process", RecordingRunner(write_output=False))

    with pytest.raises(TranscodeError):
        await Transcoder(settings).thumbnail(tmp_path / "in.mp4", tmp_path / "t.jpg", 1, None)


@pytest.mark.asyncio
async def test_missing_binary_raises_not_found(monkeypatch: pytest.MonkeyPatch, settings, tmp_path: Path) -> None:
    async def missing(args, timeout=None):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(transcoder_module, "run_process", missing)

    with pytest.raises(TranscoderNotFoundError) as exc_info:
        await Transcoder(settings).mux(tmp_path / "v.mp4", tmp_path / "a.m4a", tmp_path / "out.mp4")
    assert "Required transcoding tool not found" in exc_info.value.message
    assert await Transcoder(settings).check_available() is False


@pytest.mark.asyncio
async def test_timeout_maps_to_transcode_error(monkeypatch: pytest.MonkeyPatch, settings, tmp_path: Path) -> None:
    async def slow(args, timeout=None):
        raise asyncio.TimeoutError()

    monkeypatch.setattr(transcoder_module, "run_process", slow)

    with pytest.raises(TranscodeError, match="timed out"):
        await Transcoder(settings).ingest("https://cdn.example.com/v.mp4", tmp_path / "out.mp4")


@pytest.mark.asyncio
async def test_probe_dimensions(monkeypatch: pytest.MonkeyPatch, settings, tmp_path: Path) -> None:
    payload = json.dumps({"streams": [{"width": 1920, "height": 1080}]})
    runner = RecordingRunner(stdout=payload, write_output=False)
    monkeypatch.setattr(transcoder_module, "run_process", runner)

    assert await Transcoder(settings).probe_dimensions(tmp_path / "in.mp4") == (1920, 1080)
    assert runner.calls[0][0] == "ffprobe"

    runner.stdout = json.dumps({"streams": []})
    with pytest.raises(TranscodeError):
        await Transcoder(settings).probe_dimensions(tmp_path / "in.mp4")
