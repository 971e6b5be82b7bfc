"""
Workspace Manager
Per-session folders, deterministic file names and stale scratch cleanup
"""

import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import get_settings
from ..models.moment import AspectRatio
from ..utils.exceptions import NotFoundError
from ..utils.logger import get_logger

logger = get_logger()

PREVIEWS_FOLDER = "previews"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class Session:
    """Directory scope owning every file produced for one source video run"""
    id: str
    scratch_dir: Path
    output_dir: Path


def clip_file_name(index: int, aspect_ratio: AspectRatio) -> str:
    return f"short_{index}_{aspect_ratio.label}.mp4"


def thumbnail_file_name(index: int, aspect_ratio: AspectRatio) -> str:
    return f"thumbnail_{index}_{aspect_ratio.label}.jpg"


def source_file_name(video_id: str) -> str:
    return f"source_{video_id}.mp4"


def _check_name(name: str, kind: str) -> str:
    if not name or not _NAME_PATTERN.match(name) or ".." in name:
        raise ValueError(f"Invalid {kind}: {name!r}")
    return name


class WorkspaceManager:
    """Allocates session folders under the output and scratch roots"""

    def __init__(
        self,
        output_root: Optional[Union[str, Path]] = None,
        scratch_root: Optional[Union[str, Path]] = None,
        api_prefix: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        settings = get_settings()
        self.output_root = Path(output_root or settings.output_dir).resolve()
        self.scratch_root = Path(scratch_root or settings.temp_dir).resolve()
        self.api_prefix = api_prefix or settings.api_prefix
        self.clock = clock or datetime.now

        self.output_root.mkdir(parents=True, exist_ok=True)
        self.scratch_root.mkdir(parents=True, exist_ok=True)

    @property
    def preview_dir(self) -> Path:
        """Shared scratch area for throwaway single-moment previews"""
        path = self.scratch_root / PREVIEWS_FOLDER
        path.mkdir(parents=True, exist_ok=True)
        return path

    def new_session(self, source_id: str) -> Session:
        """
        Create the scratch and output folders for a new run.

        The id is ``<source_id>_<YYYYMMDD_HHmmss>``. Creating the output folder is
        the claim on the id: if another session for the same source already took it
        within the same second, a numeric suffix is appended.
        """
        _check_name(source_id, "source id")
        base_id = f"{source_id}_{self.clock().strftime('%Y%m%d_%H%M%S')}"

        session_id = base_id
        suffix = 1
        while True:
            output_dir = self.output_root / session_id
            try:
                output_dir.mkdir(parents=True, exist_ok=False)
                break
            except FileExistsError:
                suffix += 1
                session_id = f"{base_id}_{suffix}"

        scratch_dir = self.scratch_root / session_id
        scratch_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Created session {session_id}")
        return Session(id=session_id, scratch_dir=scratch_dir, output_dir=output_dir)

    def discard_session(self, session: Session):
        """Remove both folders of a session that produced nothing usable."""
        for folder in (session.output_dir, session.scratch_dir):
            try:
                shutil.rmtree(folder)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove session folder {folder}: {e}")
        logger.info(f"Discarded session {session.id}")

    def open_session(self, session_id: str) -> Session:
        """Reattach to an existing session folder."""
        try:
            output_dir = self.output_root / _check_name(session_id, "session id")
        except ValueError:
            raise NotFoundError(session_id) from None
        if not output_dir.is_dir():
            raise NotFoundError(str(output_dir))

        scratch_dir = self.scratch_root / session_id
        scratch_dir.mkdir(parents=True, exist_ok=True)
        return Session(id=session_id, scratch_dir=scratch_dir, output_dir=output_dir)

    def session_for_file(self, file_path: Union[str, Path]) -> Session:
        """Session owning ``file_path``, which must sit directly in a session folder."""
        path = Path(file_path).resolve()
        if path.parent.parent != self.output_root or not path.is_file():
            raise NotFoundError(str(file_path))
        return self.open_session(path.parent.name)

    def path_for(self, session_id: str, file_name: str) -> Path:
        """Absolute path of a session file (no I/O)."""
        return (
            self.output_root
            / _check_name(session_id, "session id")
            / _check_name(file_name, "file name")
        )

    def public_url_for(self, session_id: str, file_name: str, route: str = "download") -> str:
        """Web path the byte-serving routes expose for a session file (no I/O)."""
        _check_name(session_id, "session id")
        _check_name(file_name, "file name")
        return f"{self.api_prefix}/{route}/{session_id}/{file_name}"

    def folder_url_for(self, session_id: str) -> str:
        return f"{self.api_prefix}/folder/{_check_name(session_id, 'session id')}"

    def resolve_existing(self, session_id: str, file_name: str) -> Path:
        """Path of an existing session file for serving; NotFoundError otherwise."""
        try:
            path = self.path_for(session_id, file_name)
        except ValueError:
            raise NotFoundError(f"{session_id}/{file_name}") from None
        if not path.is_file():
            raise NotFoundError(f"{session_id}/{file_name}")
        return path

    def resolve_preview(self, file_name: str) -> Path:
        """Path of an existing quick preview file; NotFoundError otherwise."""
        try:
            path = self.preview_dir / _check_name(file_name, "file name")
        except ValueError:
            raise NotFoundError(file_name) from None
        if not path.is_file():
            raise NotFoundError(file_name)
        return path

    def reap_stale(
        self,
        base_scratch_dir: Optional[Union[str, Path]] = None,
        older_than: timedelta = timedelta(hours=1)
    ) -> int:
        """
        Delete files under ``base_scratch_dir`` last written more than ``older_than`` ago.

        Returns the number of files removed. A file that cannot be deleted is logged
        and skipped.
        """
        base = Path(base_scratch_dir) if base_scratch_dir else self.preview_dir
        if not base.is_dir():
            return 0

        cutoff = (self.clock() - older_than).timestamp()
        removed = 0
        for path in base.rglob("*"):
            try:
                if not path.is_file() or path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove stale file {path}: {e}")

        if removed:
            logger.info(f"Reaped {removed} stale files from {base}")
        return removed
