"""
XMP field store

Field-level access to the XMP properties of a photo as exiv2 exposes them: a
flat dict of keys such as ``Xmp.iris.zoomFactor`` or ``Xmp.dc.title``, with
Lang Alt values as ``{'lang="x-default"': text}`` dicts, arrays as lists and
structures flattened into ``Parent/ns:Field`` paths.

exiv2 parses and serializes the packet. The store only records which
properties the application replaced, so properties written by other software
are never part of the change set.
"""

import re
import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from irismeta.app_settings import XMP_PREFIX

logger = logging.getLogger(__name__)

XmpData = Dict[str, Any]

X_DEFAULT = 'lang="x-default"'
SUBJECT_SEPARATOR = ", "

DC_TITLE = "Xmp.dc.title"
DC_DESCRIPTION = "Xmp.dc.description"
DC_SUBJECT = "Xmp.dc.subject"
EXIF_USER_COMMENT = "Xmp.exif.UserComment"
MP_REGION_INFO = "Xmp.MP.RegionInfo"
MP_REGIONS = f"{MP_REGION_INFO}/MPRI:Regions"

# exiv2 writes arrays and structures as a marker value followed by the items
BAG_MARKER = 'type="Bag"'
STRUCT_MARKER = 'type="Struct"'

_PERSON_KEY = re.compile(
    r"^Xmp\.MP\.RegionInfo/MPRI:Regions\[\d+\]/MPReg:PersonDisplayName$"
)


class XmpItem(Enum):
    """Proprietary XMP fields; the value is the property name in XMP_NAMESPACE."""

    TITLE = "title"
    DESCRIPTION = "description"
    SUBJECT = "subject"
    COMMENT = "comment"
    PERSON = "person"
    X_CENTER = "xCenter"
    Y_CENTER = "yCenter"
    OVERLAY_SCALE_FACTOR = "overlayScaleFactor"
    X_POSITION = "xPosition"
    Y_POSITION = "yPosition"
    ZOOM_FACTOR = "zoomFactor"
    ORGANIZE_DATE = "organizeDate"
    RIGHT_LEFT = "rightLeft"
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    COLOR_TEMPERATURE = "colorTemperature"
    OVERLAY_COLOR = "overlayColor"
    PUPIL_SIZE = "pupilSize"
    PUPIL_X_OFFSET = "pupilXOffset"
    PUPIL_Y_OFFSET = "pupilYOffset"
    FLAGS = "flags"

    @property
    def key(self) -> str:
        """The exiv2 key of the property."""
        return f"Xmp.{XMP_PREFIX}.{self.value}"


def _is_marker(text: str) -> bool:
    return text.startswith("type=")


def _plain_text(value: Any) -> Optional[str]:
    """Text of a simple, Lang Alt or array value; None for structure markers."""
    if value is None:
        return None
    if isinstance(value, dict):
        if X_DEFAULT in value:
            return value[X_DEFAULT]
        return next(iter(value.values()), None)
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else None
    text = str(value)
    return None if _is_marker(text) else text


def _is_under(key: str, root: str) -> bool:
    return key == root or key.startswith((f"{root}/", f"{root}["))


class XmpStore:
    """
    Read and modify the metadata fields of one photo's XMP properties.

    Empty strings are treated like None: setting either removes the property.
    """

    def __init__(self, xmp_data: Optional[XmpData] = None):
        """
        Args:
            xmp_data: The properties as returned by pyexiv2's read_xmp(), or
                None for a photo without XMP
        """
        self._original: XmpData = dict(xmp_data or {})
        self._data: XmpData = dict(self._original)
        self._replaced_roots: List[str] = []

    @classmethod
    def parse(cls, xmp_data: Optional[XmpData]) -> "XmpStore":
        return cls(xmp_data)

    def _keys_under(self, data: XmpData, root: str) -> List[str]:
        return [key for key in data if _is_under(key, root)]

    def _replace(self, root: str, entries: XmpData) -> None:
        """Replace the property root, including everything nested in it."""
        for key in self._keys_under(self._data, root):
            del self._data[key]
        self._data.update(entries)
        if root not in self._replaced_roots:
            self._replaced_roots.append(root)

    def _get_text(self, key: str) -> Optional[str]:
        return _plain_text(self._data.get(key))

    def _set_text(self, key: str, value: Optional[str]) -> None:
        self._replace(key, {key: value} if value else {})

    def _set_lang_alt(self, key: str, value: Optional[str]) -> None:
        self._replace(key, {key: {X_DEFAULT: value}} if value else {})

    def _array_items(self, key: str) -> List[str]:
        value = self._data.get(key)
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        if isinstance(value, str) and not _is_marker(value):
            return [value]
        item_key = re.compile(re.escape(key) + r"\[\d+\]$")
        return [str(item) for name, item in self._data.items() if item_key.match(name)]

    # --- proprietary fields ---

    def get(self, item: XmpItem) -> Optional[str]:
        return self._get_text(item.key)

    def set(self, item: XmpItem, value: Optional[str]) -> None:
        self._set_text(item.key, value)

    def get_int(self, item: XmpItem) -> Optional[int]:
        value = self.get(item)
        if value is None or value.strip() == "":
            return None
        try:
            return int(value)
        except ValueError:
            logger.debug(f"XMP item {item.value} is not an integer: {value!r}")
            return None

    def set_int(self, item: XmpItem, value: Optional[int]) -> None:
        self.set(item, None if value is None else str(int(value)))

    def get_date(self, item: XmpItem) -> Optional[date]:
        """Read a date; a time part (XMP DateTime) is dropped."""
        value = self.get(item)
        if not value:
            return None
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.debug(f"XMP item {item.value} is not a date: {value!r}")
            return None

    def set_date(self, item: XmpItem, value: Optional[date]) -> None:
        self.set(item, None if value is None else value.isoformat())

    def custom_items(self) -> Dict[XmpItem, str]:
        """All proprietary fields that are present."""
        result = {}
        for item in XmpItem:
            value = self.get(item)
            if value is not None:
                result[item] = value
        return result

    # --- standard fields ---

    def dc_title(self) -> Optional[str]:
        return self._get_text(DC_TITLE)

    def set_dc_title(self, value: Optional[str]) -> None:
        self._set_lang_alt(DC_TITLE, value)

    def dc_description(self) -> Optional[str]:
        return self._get_text(DC_DESCRIPTION)

    def set_dc_description(self, value: Optional[str]) -> None:
        self._set_lang_alt(DC_DESCRIPTION, value)

    def dc_subject(self) -> Optional[str]:
        """The subject bag, items joined with ", "."""
        items = [item for item in self._array_items(DC_SUBJECT) if item]
        return SUBJECT_SEPARATOR.join(items) if items else None

    def set_dc_subject(self, value: Optional[str]) -> None:
        entries = {DC_SUBJECT: BAG_MARKER, f"{DC_SUBJECT}[1]": value} if value else {}
        self._replace(DC_SUBJECT, entries)

    def user_comment(self) -> Optional[str]:
        return self._get_text(EXIF_USER_COMMENT)

    def set_user_comment(self, value: Optional[str]) -> None:
        self._set_lang_alt(EXIF_USER_COMMENT, value)

    def microsoft_person(self) -> Optional[str]:
        """The first PersonDisplayName of the Microsoft Photo region info."""
        for key, value in self._data.items():
            if _PERSON_KEY.match(key) and isinstance(value, str) and value.strip():
                return value
        return None

    def set_microsoft_person(self, value: Optional[str]) -> None:
        """Replace the region info by a single region naming the person."""
        entries = {}
        if value:
            entries = {
                MP_REGION_INFO: STRUCT_MARKER,
                MP_REGIONS: BAG_MARKER,
                f"{MP_REGIONS}[1]": STRUCT_MARKER,
                f"{MP_REGIONS}[1]/MPReg:PersonDisplayName": value,
            }
        self._replace(MP_REGION_INFO, entries)

    # --- change set ---

    def changes(self) -> XmpData:
        """
        Return the pyexiv2 modify_xmp() argument that turns the properties the
        store was parsed from into the current ones.

        None deletes a key. A replaced property is written again as a whole,
        parent keys before the keys nested in them.
        """
        result: XmpData = {}
        for root in self._replaced_roots:
            current = self._keys_under(self._data, root)
            for key in self._keys_under(self._original, root):
                if key not in current:
                    result[key] = None
            for key in current:
                result[key] = self._data[key]
        return result
