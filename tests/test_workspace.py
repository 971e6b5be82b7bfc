"""Tests for session folders, file naming and stale scratch cleanup."""

import os
from datetime import timedelta
from pathlib import Path

import pytest

from yshorts.models.moment import AspectRatio
from yshorts.services.workspace import (
    WorkspaceManager,
    clip_file_name,
    source_file_name,
    thumbnail_file_name,
)
from yshorts.utils.exceptions import NotFoundError

from .conftest import FIXED_NOW


def test_file_names() -> None:
    assert clip_file_name(2, AspectRatio.PORTRAIT) == "short_2_Portrait.mp4"
    assert thumbnail_file_name(1, AspectRatio.SQUARE) == "thumbnail_1_Square.jpg"
    assert source_file_name("dQw4w9WgXcQ") == "source_dQw4w9WgXcQ.mp4"


def test_new_session_creates_both_folders(workspace: WorkspaceManager) -> None:
    session = workspace.new_session("dQw4w9WgXcQ")

    assert session.id == "dQw4w9WgXcQ_20240102_030405"
    assert session.output_dir == workspace.output_root / session.id
    assert session.output_dir.is_dir()
    assert session.scratch_dir.is_dir()


def test_concurrent_sessions_in_same_second_get_distinct_ids(workspace: WorkspaceManager) -> None:
    ids = [workspace.new_session("abc").id for _ in range(3)]

    assert ids == ["abc_20240102_030405", "abc_20240102_030405_2", "abc_20240102_030405_3"]
    assert len({workspace.output_root / i for i in ids}) == 3


def test_new_session_rejects_unsafe_source_id(workspace: WorkspaceManager) -> None:
    with pytest.raises(ValueError):
        workspace.new_session("../etc")


def test_path_for_rejects_traversal(workspace: WorkspaceManager) -> None:
    with pytest.raises(ValueError):
        workspace.path_for("sid", "../secret.txt")
    with pytest.raises(ValueError):
        workspace.path_for("..", "short_1_Landscape.mp4")


def test_urls(workspace: WorkspaceManager) -> None:
    assert workspace.public_url_for("sid", "short_1_Landscape.mp4") == "/api/shorts/download/sid/short_1_Landscape.mp4"
    assert workspace.public_url_for("sid", "t.jpg", "thumbnail") == "/api/shorts/thumbnail/sid/t.jpg"
    assert workspace.folder_url_for("sid") == "/api/shorts/folder/sid"


def test_session_for_file_and_open_session(workspace: WorkspaceManager) -> None:
    session = workspace.new_session("abc")
    source = session.output_dir / "source_abc.mp4"
    source.write_bytes(b"video")

    assert workspace.session_for_file(source).id == session.id
    assert workspace.open_session(session.id).output_dir == session.output_dir


def test_session_for_file_outside_workspace(workspace: WorkspaceManager, tmp_path: Path) -> None:
    stray = tmp_path / "elsewhere.mp4"
    stray.write_bytes(b"video")

    with pytest.raises(NotFoundError):
        workspace.session_for_file(stray)
    with pytest.raises(NotFoundError):
        workspace.session_for_file(workspace.output_root / "missing" / "source.mp4")


def test_resolve_existing(workspace: WorkspaceManager) -> None:
    session = workspace.new_session("abc")
    clip = session.output_dir / "short_1_Landscape.mp4"
    clip.write_bytes(b"clip")

    assert workspace.resolve_existing(session.id, clip.name) == clip
    with pytest.raises(NotFoundError):
        workspace.resolve_existing(session.id, "short_2_Landscape.mp4")
    with pytest.raises(NotFoundError):
        workspace.resolve_existing(session.id, "../../x")


def test_resolve_preview(workspace: WorkspaceManager) -> None:
    preview = workspace.preview_dir / "preview_abc.mp4"
    preview.write_bytes(b"clip")

    assert workspace.resolve_preview("preview_abc.mp4") == preview
    with pytest.raises(NotFoundError):
        workspace.resolve_preview("preview_missing.mp4")


def test_reap_stale_removes_only_old_files(workspace: WorkspaceManager) -> None:
    base = workspace.preview_dir
    old = base / "old.mp4"
    fresh = base / "fresh.mp4"
    nested = base / "nested"
    nested.mkdir()
    old_nested = nested / "old.jpg"
    for path in (old, fresh, old_nested):
        path.write_bytes(b"x")

    old_time = (FIXED_NOW - timedelta(hours=2)).timestamp()
    os.utime(old, (old_time, old_time))
    os.utime(old_nested, (old_time, old_time))
    os.utime(fresh, (FIXED_NOW.timestamp(), FIXED_NOW.timestamp()))

    assert workspace.reap_stale(base, older_than=timedelta(hours=1)) == 2
    assert not old.exists()
    assert not old_nested.exists()
    assert fresh.exists()


def test_reap_stale_missing_base(workspace: WorkspaceManager, tmp_path: Path) -> None:
    assert workspace.reap_stale(tmp_path / "nope") == 0


def test_sessions_at_different_times_do_not_collide(tmp_path: Path) -> None:
    times = iter([FIXED_NOW, FIXED_NOW + timedelta(seconds=1)])
    manager = WorkspaceManager(tmp_path / "out", tmp_path / "tmp", "/api/shorts", clock=lambda: next(times))

    first = manager.new_session("abc")
    second = manager.new_session("abc")

    assert first.id == "abc_20240102_030405"
    assert second.id == "abc_20240102_030406"
    assert first.output_dir != second.output_dir


def test_discard_session_removes_both_folders(workspace: WorkspaceManager) -> None:
    session = workspace.new_session("abc")
    (session.scratch_dir / "abc.mp4.part").write_bytes(b"half")

    workspace.discard_session(session)

    assert not session.output_dir.exists()
    assert not session.scratch_dir.exists()
    workspace.discard_session(session)
