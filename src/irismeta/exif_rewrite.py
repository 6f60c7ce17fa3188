"""
EXIF rewrite strategies.

LOSSLESS lets exiv2 edit the tags in an in-memory copy of the file, which
keeps every unrelated tag, maker note and APPn segment byte-for-byte.
LOSSY rebuilds the whole EXIF APP1 segment with piexif; tags piexif does not
understand may get lost, but it also copes with blocks exiv2 refuses to
write back.
"""

import io
import logging
from typing import Any, Callable, Dict, NamedTuple, Optional

import piexif
import piexif.helper

from irismeta.exif_reader import decode_ascii, decode_user_comment, decode_xp
from irismeta.metadata_record import MetadataRecord
from irismeta.pyexiv2_wrapper import PyExiv2Error, PyExiv2Operations
from irismeta.segment_rewriter import RewriteStrategy

logger = logging.getLogger(__name__)


class ExifTag(NamedTuple):
    tag_id: int
    ifd: str  # piexif IFD name
    key: str  # exiv2 key
    kind: str  # "ascii", "xp", "comment" or "short"


IMAGE_DESCRIPTION = ExifTag(
    piexif.ImageIFD.ImageDescription, "0th", "Exif.Image.ImageDescription", "ascii"
)
XP_TITLE = ExifTag(piexif.ImageIFD.XPTitle, "0th", "Exif.Image.XPTitle", "xp")
XP_COMMENT = ExifTag(piexif.ImageIFD.XPComment, "0th", "Exif.Image.XPComment", "xp")
XP_SUBJECT = ExifTag(piexif.ImageIFD.XPSubject, "0th", "Exif.Image.XPSubject", "xp")
USER_COMMENT = ExifTag(
    piexif.ExifIFD.UserComment, "Exif", "Exif.Photo.UserComment", "comment"
)
ORIENTATION = ExifTag(piexif.ImageIFD.Orientation, "0th", "Exif.Image.Orientation", "short")

# Record field -> tags it is written to
FIELD_TAGS = (
    ("title", (XP_TITLE, IMAGE_DESCRIPTION)),
    ("comment", (XP_COMMENT, USER_COMMENT)),
    ("subject", (XP_SUBJECT,)),
)

ExifUpdates = Dict[ExifTag, Any]


def build_exif_updates(record: MetadataRecord) -> ExifUpdates:
    """Collect the tag values to write for a record. Unset fields are skipped."""
    updates: ExifUpdates = {}
    for field_name, tags in FIELD_TAGS:
        value = getattr(record, field_name)
        if not value:
            continue
        for tag in tags:
            updates[tag] = value
    if record.orientation.code is not None:
        updates[ORIENTATION] = record.orientation.code
    return updates


def _xp_bytes(text: str) -> bytes:
    return text.encode("utf-16-le") + b"\x00\x00"


def _is_ascii(text: str) -> bool:
    try:
        text.encode("ascii")
        return True
    except UnicodeEncodeError:
        return False


def _exiv2_value(tag: ExifTag, value: Any) -> str:
    """
    Value in the string syntax pyexiv2 accepts for the tag.

    pyexiv2 encodes the Exif.Image.XP* tags to UCS-2 itself, so they are passed
    as plain text.
    """
    if tag.kind == "comment":
        charset = "Ascii" if _is_ascii(value) else "Unicode"
        return f"charset={charset} {value}"
    return str(value)


def _piexif_value(tag: ExifTag, value: Any) -> Any:
    if tag.kind == "xp":
        return _xp_bytes(value)
    if tag.kind == "comment":
        encoding = "ascii" if _is_ascii(value) else "unicode"
        return piexif.helper.UserComment.dump(value, encoding=encoding)
    if tag.kind == "ascii":
        return value.encode("utf-8")
    return int(value)


def _stored_value(exif_dict: Dict[str, Any], tag: ExifTag) -> Any:
    raw = (exif_dict.get(tag.ifd) or {}).get(tag.tag_id)
    if tag.kind == "xp":
        return decode_xp(raw)
    if tag.kind == "comment":
        return decode_user_comment(raw)
    if tag.kind == "ascii":
        return decode_ascii(raw)
    if isinstance(raw, (tuple, list)):
        raw = raw[0] if raw else None
    return raw


def _expected_value(tag: ExifTag, value: Any) -> Any:
    if tag.kind == "short":
        return int(value)
    return value.strip() or None


def verify_updates(data: bytes, updates: ExifUpdates) -> None:
    """
    Read the tags back from data and compare them with updates.

    Raises:
        PyExiv2Error: If a tag was not stored as requested
    """
    exif_dict = piexif.load(data)
    for tag, value in updates.items():
        stored = _stored_value(exif_dict, tag)
        if stored != _expected_value(tag, value):
            raise PyExiv2Error(f"{tag.key} was stored as {stored!r}")


def rewrite_exif_lossless(data: bytes, updates: ExifUpdates) -> bytes:
    """Apply updates to the JPEG data through exiv2 and check the result."""
    changes = {tag.key: _exiv2_value(tag, value) for tag, value in updates.items()}
    new_data = PyExiv2Operations.modify_exif_bytes(data, changes)
    verify_updates(new_data, updates)
    return new_data


def rewrite_exif_lossy(data: bytes, updates: ExifUpdates) -> bytes:
    """Rebuild the EXIF segment of the JPEG data with piexif."""
    exif_dict = piexif.load(data)
    for tag, value in updates.items():
        ifd = exif_dict.setdefault(tag.ifd, {})
        ifd.pop(tag.tag_id, None)
        ifd[tag.tag_id] = _piexif_value(tag, value)
    exif_bytes = piexif.dump(exif_dict)
    output = io.BytesIO()
    piexif.insert(exif_bytes, data, output)
    return output.getvalue()


def exif_mutation(updates: ExifUpdates) -> Callable[[bytes, RewriteStrategy], bytes]:
    """Mutation for AtomicSegmentRewriter applying updates with the given strategy."""

    def mutate(data: bytes, strategy: RewriteStrategy) -> bytes:
        if strategy is RewriteStrategy.LOSSLESS:
            return rewrite_exif_lossless(data, updates)
        logger.debug(f"Rebuilding EXIF segment with piexif ({len(updates)} tags)")
        return rewrite_exif_lossy(data, updates)

    return mutate


def describe_updates(updates: ExifUpdates) -> Optional[str]:
    if not updates:
        return None
    return ", ".join(tag.key.rsplit(".", 1)[-1] for tag in updates)
