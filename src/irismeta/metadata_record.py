"""
The resolved, in-memory metadata of one eye photo.

Numeric fields are stored as numbers, but what gets persisted to XMP is their
canonical string form, so formatting and parsing live here next to the
fields they serve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class RightLeft(Enum):
    """Which eye a photo shows."""

    RIGHT = "right"
    LEFT = "left"

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["RightLeft"]:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized in ("right", "r"):
            return cls.RIGHT
        if normalized in ("left", "l"):
            return cls.LEFT
        return None


class Orientation(Enum):
    """EXIF orientation codes plus a sentinel for "no orientation stored"."""

    UNDEFINED = "undefined"
    NORMAL = 1
    FLIP_HORIZONTAL = 2
    ROTATE_180 = 3
    FLIP_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90 = 6
    TRANSVERSE = 7
    ROTATE_270 = 8

    @classmethod
    def from_code(cls, code) -> "Orientation":
        """Map an EXIF code to an Orientation; unknown codes are UNDEFINED."""
        if code is None:
            return cls.UNDEFINED
        try:
            return cls(int(code))
        except (ValueError, TypeError):
            return cls.UNDEFINED

    @property
    def code(self) -> Optional[int]:
        return None if self is Orientation.UNDEFINED else self.value


def format_float(value: Optional[float]) -> Optional[str]:
    """Canonical string form of a float: shortest round-trip decimal."""
    if value is None:
        return None
    return repr(float(value))


def format_int(value: Optional[int]) -> Optional[str]:
    if value is None:
        return None
    return str(int(value))


def parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError:
        logger.debug(f"Ignoring unparseable float value {value!r}")
        return None


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        pass
    # Tolerate "12.0" written by other tools
    number = parse_float(value)
    if number is not None and number.is_integer():
        return int(number)
    logger.debug(f"Ignoring unparseable integer value {value!r}")
    return None


# Field name -> kind of value, for the fields persisted as XMP strings.
FLOAT_FIELDS = (
    "x_center",
    "y_center",
    "overlay_scale_factor",
    "x_position",
    "y_position",
    "zoom_factor",
    "brightness",
    "contrast",
    "saturation",
    "pupil_size",
    "pupil_x_offset",
    "pupil_y_offset",
)
INT_FIELDS = ("color_temperature", "overlay_color", "flags")
TEXT_FIELDS = ("title", "description", "subject", "comment", "person")


@dataclass
class MetadataRecord:
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    comment: Optional[str] = None
    person: Optional[str] = None

    x_center: Optional[float] = None
    y_center: Optional[float] = None
    overlay_scale_factor: Optional[float] = None
    x_position: Optional[float] = None
    y_position: Optional[float] = None
    zoom_factor: Optional[float] = None
    brightness: Optional[float] = None
    contrast: Optional[float] = None
    saturation: Optional[float] = None
    color_temperature: Optional[int] = None
    overlay_color: Optional[int] = None
    pupil_size: Optional[float] = None
    pupil_x_offset: Optional[float] = None
    pupil_y_offset: Optional[float] = None

    right_left: Optional[RightLeft] = None
    flags: Optional[int] = None
    organize_date: Optional[date] = None
    orientation: Orientation = Orientation.UNDEFINED

    def string_value(self, name: str) -> Optional[str]:
        """Return the canonical string form of a text, numeric or enum field."""
        value = getattr(self, name)
        if name in FLOAT_FIELDS:
            return format_float(value)
        if name in INT_FIELDS:
            return format_int(value)
        if name == "right_left":
            return value.value if value is not None else None
        if name in TEXT_FIELDS:
            return value
        raise KeyError(f"{name} has no string form")

    def set_string_value(self, name: str, value: Optional[str]) -> None:
        """Set a field from its string form; unparseable strings leave it unset."""
        if name in FLOAT_FIELDS:
            setattr(self, name, parse_float(value))
        elif name in INT_FIELDS:
            setattr(self, name, parse_int(value))
        elif name == "right_left":
            setattr(self, name, RightLeft.from_string(value))
        elif name in TEXT_FIELDS:
            setattr(self, name, value)
        else:
            raise KeyError(f"{name} has no string form")

    def has_flag(self, flag: int) -> bool:
        return bool((self.flags or 0) & flag)

    def set_flag(self, flag: int, enabled: bool = True) -> None:
        current = self.flags or 0
        self.flags = current | flag if enabled else current & ~flag

    def is_empty(self) -> bool:
        """True if no field carries a value."""
        return all(
            getattr(self, f.name) is None
            for f in fields(self)
            if f.name != "orientation"
        ) and self.orientation is Orientation.UNDEFINED
