"""
Clip Planner
Turns best moments into validated time ranges without touching the transcoder
"""

import re
from pathlib import Path
from typing import Iterable, List, Union

from ..models.clip import ClipPlan, ShortClip
from ..models.moment import AspectRatio, MomentDescriptor
from ..utils.exceptions import ParseError
from ..utils.logger import get_logger
from .workspace import WorkspaceManager, clip_file_name, thumbnail_file_name

logger = get_logger()

# Moments carry "MM:SS"; an hour field is always prepended before parsing
HOUR_PREFIX = "00:"

_NUMBER = r"\d+(?:\.\d+)?"
_FIELD = re.compile(r"^\d+$")


def parse_timestamp(value: str) -> float:
    """
    Parse a moment timestamp into seconds.

    ``"00:" + value`` must read as ``H:MM:SS`` (seconds may be fractional). Four
    fields read as ``D:HH:MM:SS``, so an ``HH:MM:SS`` moment works as well. Minutes
    and seconds must stay below 60, hours below 24 when days are given.
    """
    if not isinstance(value, str) or not value.strip():
        raise ParseError(str(value), "Empty timestamp")

    parts = (HOUR_PREFIX + value.strip()).split(":")
    if len(parts) not in (3, 4):
        raise ParseError(value)

    *whole, seconds_text = parts
    if not all(_FIELD.match(p) for p in whole) or not re.fullmatch(_NUMBER, seconds_text):
        raise ParseError(value)

    seconds = float(seconds_text)
    numbers = [int(p) for p in whole]
    minutes = numbers[-1]
    hours = numbers[-2]
    days = numbers[0] if len(numbers) == 3 else 0

    if minutes >= 60 or seconds >= 60 or (len(numbers) == 3 and hours >= 24):
        raise ParseError(value, "Timestamp field out of range")

    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: float) -> str:
    """Format seconds as MM:SS"""
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def clip_title(index: int, content: str) -> str:
    return f"Short {index}: {content[:50]}..."


class ClipPlanner:
    """Pure, fast planning step behind the preview response"""

    def __init__(self, workspace: WorkspaceManager):
        self.workspace = workspace

    def plan(
        self,
        source_path: Union[str, Path],
        moments: Iterable[MomentDescriptor],
        aspect_ratio: AspectRatio,
        session_id: str
    ) -> List[ClipPlan]:
        """
        One ClipPlan per valid moment, in input order.

        Invalid moments are logged and skipped. Ordinals are dense over the
        surviving moments: the n-th valid moment is clip n, however many
        moments before it were skipped.
        """
        moments = list(moments)
        plans: List[ClipPlan] = []

        for position, moment in enumerate(moments, start=1):
            try:
                start = parse_timestamp(moment.start_timestamp)
                end = parse_timestamp(moment.end_timestamp)
            except ParseError as e:
                logger.warning(f"Skipping moment {position}: {e.message}")
                continue

            if end <= start:
                logger.warning(
                    f"Skipping moment {position}: end {moment.end_timestamp} "
                    f"is not after start {moment.start_timestamp}"
                )
                continue

            index = len(plans) + 1
            plans.append(ClipPlan(
                index=index,
                start_offset=start,
                duration=end - start,
                aspect_ratio=aspect_ratio,
                source_path=Path(source_path),
                planned_file_name=clip_file_name(index, aspect_ratio),
                planned_thumbnail_name=thumbnail_file_name(index, aspect_ratio),
                session_id=session_id,
                content=moment.content
            ))

        logger.info(f"Planned {len(plans)} of {len(moments)} moments")
        return plans

    def to_preview(self, plan: ClipPlan) -> ShortClip:
        """Client-facing metadata for a plan that has not been rendered yet."""
        return ShortClip(
            id=plan.index,
            title=clip_title(plan.index, plan.content),
            duration=format_duration(plan.duration),
            file_path=str(self.workspace.path_for(plan.session_id, plan.planned_file_name)),
            file_name=plan.planned_file_name,
            thumbnail_path="",
            thumbnail_url="",
            download_url=self.workspace.public_url_for(plan.session_id, plan.planned_file_name, "download"),
            preview_url=self.workspace.public_url_for(plan.session_id, plan.planned_file_name, "preview"),
            aspect_ratio=plan.aspect_ratio.label,
            start_seconds=plan.start_offset,
            end_seconds=plan.end_offset,
            content=plan.content,
            is_generated=False
        )
