"""
Moment Data Models
Best moments produced by the extraction collaborator and the aspect ratios clips render at
"""

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..utils.exceptions import InvalidAspectRatioError


class AspectRatio(IntEnum):
    """Output framing; the integer values are the wire format"""
    LANDSCAPE = 0  # 16:9
    PORTRAIT = 1   # 9:16
    SQUARE = 2     # 1:1

    @property
    def label(self) -> str:
        """Name used in file names and client payloads, e.g. ``Landscape``"""
        return self.name.capitalize()


def parse_aspect_ratio(value: Any) -> AspectRatio:
    """Accept an AspectRatio, its wire integer or its label; reject anything else."""
    if isinstance(value, AspectRatio):
        return value
    if isinstance(value, bool):
        raise InvalidAspectRatioError(value)
    if isinstance(value, int):
        try:
            return AspectRatio(value)
        except ValueError:
            raise InvalidAspectRatioError(value) from None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_aspect_ratio(int(text))
        for member in AspectRatio:
            if member.label.lower() == text.lower():
                return member
    raise InvalidAspectRatioError(value)


class MomentDescriptor(BaseModel):
    """A highlight identified in the transcript; immutable once received"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content: str = ""
    start_timestamp: str = Field(default="", alias="startTimestamp", description="MM:SS")
    end_timestamp: str = Field(default="", alias="endTimestamp", description="MM:SS")
    reason: str = ""
