"""
Precedence merge of the three metadata stores into one MetadataRecord.

The text fields exist in up to three places: the proprietary XMP fields, the
standard Dublin-Core/vendor XMP fields and the EXIF tags. Which one wins is
decided by PASSES, applied in order to every rule of FIELD_RULES. All other
fields exist only in the proprietary store.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from irismeta.app_settings import WritePolicy
from irismeta.exif_reader import ExifTextFields
from irismeta.metadata_record import MetadataRecord, Orientation
from irismeta.xmp_store import XmpItem, XmpStore

logger = logging.getLogger(__name__)


class Source(Enum):
    CUSTOM = "custom"  # proprietary XMP fields
    STANDARD = "standard"  # Dublin-Core and vendor XMP fields
    EXIF = "exif"


class Mode(Enum):
    FILL = "fill"  # only set fields that are still empty
    OVERRIDE_IF_EXIF_ALLOWED = "override_if_exif_allowed"  # FILL unless EXIF is authoritative


PASSES = (
    (Source.CUSTOM, Mode.FILL),
    (Source.STANDARD, Mode.FILL),
    (Source.EXIF, Mode.OVERRIDE_IF_EXIF_ALLOWED),
    (Source.CUSTOM, Mode.FILL),
)


@dataclass(frozen=True)
class FieldRule:
    field: str
    item: XmpItem
    standard: Optional[Callable[[XmpStore], Optional[str]]] = None
    exif: Optional[Callable[[ExifTextFields], Optional[str]]] = None

    def value_from(self, source: Source, xmp_store: XmpStore,
                   exif_fields: Optional[ExifTextFields]) -> Optional[str]:
        if source is Source.CUSTOM:
            return xmp_store.get(self.item)
        if source is Source.STANDARD:
            return self.standard(xmp_store) if self.standard else None
        if exif_fields is None or self.exif is None:
            return None
        return self.exif(exif_fields)


# EXIF text is read trimmed (see exif_reader._clean), so blanks around an
# EXIF-authoritative title, comment or subject do not survive a write and read.
FIELD_RULES = (
    FieldRule("title", XmpItem.TITLE, XmpStore.dc_title, lambda e: e.title),
    FieldRule("description", XmpItem.DESCRIPTION, XmpStore.dc_description),
    FieldRule("subject", XmpItem.SUBJECT, XmpStore.dc_subject, lambda e: e.subject),
    FieldRule("person", XmpItem.PERSON, XmpStore.microsoft_person),
    FieldRule("comment", XmpItem.COMMENT, XmpStore.user_comment, lambda e: e.comment),
)

# Record field -> proprietary item for the fields stored only there
CUSTOM_FIELD_ITEMS = (
    ("x_center", XmpItem.X_CENTER),
    ("y_center", XmpItem.Y_CENTER),
    ("overlay_scale_factor", XmpItem.OVERLAY_SCALE_FACTOR),
    ("x_position", XmpItem.X_POSITION),
    ("y_position", XmpItem.Y_POSITION),
    ("zoom_factor", XmpItem.ZOOM_FACTOR),
    ("brightness", XmpItem.BRIGHTNESS),
    ("contrast", XmpItem.CONTRAST),
    ("saturation", XmpItem.SATURATION),
    ("color_temperature", XmpItem.COLOR_TEMPERATURE),
    ("overlay_color", XmpItem.OVERLAY_COLOR),
    ("pupil_size", XmpItem.PUPIL_SIZE),
    ("pupil_x_offset", XmpItem.PUPIL_X_OFFSET),
    ("pupil_y_offset", XmpItem.PUPIL_Y_OFFSET),
    ("right_left", XmpItem.RIGHT_LEFT),
    ("flags", XmpItem.FLAGS),
)


def _is_empty(value: Optional[str]) -> bool:
    return value is None or value == ""


class MetadataMerger:
    """Builds a MetadataRecord from the parsed stores of one file."""

    @staticmethod
    def merge(
        xmp_store: XmpStore,
        exif_fields: Optional[ExifTextFields],
        write_policy: WritePolicy,
        orientation: Orientation = Orientation.UNDEFINED,
    ) -> MetadataRecord:
        """
        Resolve every field of the record.

        Args:
            xmp_store: The parsed XMP packet (an empty store if the file has none)
            exif_fields: The EXIF text fields, or None if there is no EXIF block
            write_policy: With XMP_AND_EXIF, non-empty EXIF values override XMP
            orientation: Orientation read from the binary tag block
        """
        record = MetadataRecord()
        exif_authoritative = write_policy.allows_exif_changes

        for source, mode in PASSES:
            override = mode is Mode.OVERRIDE_IF_EXIF_ALLOWED and exif_authoritative
            for rule in FIELD_RULES:
                value = rule.value_from(source, xmp_store, exif_fields)
                if _is_empty(value):
                    continue
                if override or _is_empty(getattr(record, rule.field)):
                    setattr(record, rule.field, value)

        for field_name, item in CUSTOM_FIELD_ITEMS:
            record.set_string_value(field_name, xmp_store.get(item))
        record.organize_date = xmp_store.get_date(XmpItem.ORGANIZE_DATE)
        record.orientation = orientation

        logger.debug(f"Merged metadata (policy {write_policy.name}): {record}")
        return record
