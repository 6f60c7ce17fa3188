"""
Read access to the binary EXIF/TIFF tag block.

Orientation is read through exiv2 (pyexiv2) like everywhere else in the
application; piexif is used where the raw tag values are needed, since it
hands out the undecoded bytes of the Windows XP text tags and of the EXIF
user comment.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

import piexif

from irismeta.errors import MetadataUnreadableError
from irismeta.metadata_record import Orientation
from irismeta.pyexiv2_wrapper import PyExiv2Error, PyExiv2Operations

logger = logging.getLogger(__name__)

# IFDs in the order they are stored/enumerated
IFD_NAMES = ("0th", "Exif", "GPS", "Interop", "1st")

TAG_IMAGE_DESCRIPTION = piexif.ImageIFD.ImageDescription  # 270
TAG_ORIENTATION = piexif.ImageIFD.Orientation  # 274
TAG_DATE_TIME = piexif.ImageIFD.DateTime  # 306
TAG_XP_COMMENT = piexif.ImageIFD.XPComment  # 40092
TAG_XP_SUBJECT = piexif.ImageIFD.XPSubject  # 40095
TAG_USER_COMMENT = piexif.ExifIFD.UserComment  # 37510

_USER_COMMENT_ASCII = b"ASCII\x00\x00\x00"
_USER_COMMENT_UNICODE = b"UNICODE\x00"
_USER_COMMENT_JIS = b"JIS\x00\x00\x00\x00\x00"


@dataclass
class ExifTextFields:
    """The EXIF values that compete with the XMP text fields."""

    title: Optional[str] = None
    comment: Optional[str] = None
    subject: Optional[str] = None


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int):
        return bytes([value])
    return bytes(value)


def _clean(text: str) -> Optional[str]:
    text = text.replace("\x00", "").strip()
    return text or None


def decode_ascii(value: Any) -> Optional[str]:
    """Decode an ASCII-typed tag. UTF-8 written by other tools is accepted."""
    if value is None:
        return None
    return _clean(_to_bytes(value).decode("utf-8", errors="replace"))


def decode_xp(value: Any) -> Optional[str]:
    """Decode a Windows XP tag (UCS-2 little endian in a BYTE array)."""
    if value is None:
        return None
    raw = _to_bytes(value)
    if len(raw) % 2:
        raw = raw[:-1]
    return _clean(raw.decode("utf-16-le", errors="replace"))


def decode_user_comment(value: Any) -> Optional[str]:
    """Decode an EXIF UserComment including its 8-byte character code."""
    if value is None:
        return None
    raw = _to_bytes(value)
    prefix, body = raw[:8], raw[8:]
    if prefix == _USER_COMMENT_UNICODE:
        if body.startswith((b"\xff\xfe", b"\xfe\xff")):
            return _clean(body.decode("utf-16", errors="replace"))
        # No BOM: the first character of a Latin text betrays the byte order
        big_endian = len(body) >= 2 and body[0] == 0 and body[1] != 0
        encoding = "utf-16-be" if big_endian else "utf-16-le"
        if len(body) % 2:
            body = body[:-1]
        return _clean(body.decode(encoding, errors="replace"))
    if prefix == _USER_COMMENT_JIS:
        return _clean(body.decode("shift_jis", errors="replace"))
    if prefix == _USER_COMMENT_ASCII or prefix == b"\x00" * 8:
        return _clean(body.decode("utf-8", errors="replace"))
    # No character code at all
    return _clean(raw.decode("utf-8", errors="replace"))


def _load_exif_dict(image_path: str) -> Dict[str, Any]:
    """
    Load the raw EXIF IFDs of a JPEG (wrapped TIFF block) or bare TIFF file.

    Raises:
        MetadataUnreadableError: If the file has no readable binary metadata
    """
    try:
        return piexif.load(image_path)
    except FileNotFoundError:
        raise
    except Exception as e:
        raise MetadataUnreadableError(
            f"Cannot parse EXIF of {os.path.basename(image_path)}: {e}"
        ) from e


def _has_fields(exif_dict: Dict[str, Any]) -> bool:
    return any(exif_dict.get(name) for name in IFD_NAMES)


class BinaryTagReader:
    """Lookups against the EXIF/TIFF tag block of one file."""

    @staticmethod
    def read_orientation(image_path: str) -> Orientation:
        """
        Return the orientation of the image.

        The standard tag is read first; if it is missing, IFD0 tag 274 is read
        again as a raw short, which catches files whose orientation entry was
        written with a non-standard type. The raw lookup is also used when exiv2
        cannot open the file. Any parse failure yields UNDEFINED.
        """
        try:
            code = PyExiv2Operations.get_orientation(image_path)
        except PyExiv2Error as e:
            logger.warning(
                f"Could not read orientation from {os.path.basename(image_path)}: {e}"
            )
            code = None
        if code is not None:
            return Orientation.from_code(code)

        try:
            raw = _load_exif_dict(image_path).get("0th", {}).get(TAG_ORIENTATION)
        except (MetadataUnreadableError, OSError) as e:
            logger.debug(
                f"Legacy orientation lookup failed for {os.path.basename(image_path)}: {e}"
            )
            return Orientation.UNDEFINED
        if isinstance(raw, (tuple, list)):
            raw = raw[0] if raw else None
        return Orientation.from_code(raw)

    @staticmethod
    def read_text_fields(image_path: str) -> Optional[ExifTextFields]:
        """
        Return title, comment and subject stored in EXIF.

        The XP comment takes precedence over the standard user comment when
        both are non-empty.

        Returns:
            The fields, or None if the file carries no EXIF block

        Raises:
            MetadataUnreadableError: If an EXIF block exists but cannot be parsed
        """
        exif_dict = _load_exif_dict(image_path)
        if not _has_fields(exif_dict):
            return None

        ifd0 = exif_dict.get("0th") or {}
        exif_ifd = exif_dict.get("Exif") or {}
        try:
            comment = decode_xp(ifd0.get(TAG_XP_COMMENT)) or decode_user_comment(
                exif_ifd.get(TAG_USER_COMMENT)
            )
            return ExifTextFields(
                title=decode_ascii(ifd0.get(TAG_IMAGE_DESCRIPTION)),
                comment=comment,
                subject=decode_xp(ifd0.get(TAG_XP_SUBJECT)),
            )
        except (TypeError, ValueError) as e:
            raise MetadataUnreadableError(
                f"Bad EXIF text value in {os.path.basename(image_path)}: {e}"
            ) from e

    @staticmethod
    def read_all_fields(image_path: str) -> Iterator[Tuple[int, Any]]:
        """
        Yield (tag id, raw value) for every EXIF field of the file.

        The block is only loaded once iteration starts; the iterator is
        single-pass.
        """
        exif_dict = _load_exif_dict(image_path)
        for ifd_name in IFD_NAMES:
            for tag_id, value in (exif_dict.get(ifd_name) or {}).items():
                yield tag_id, value

    @staticmethod
    def read_exif_date(image_path: str) -> Optional[str]:
        """Return the IFD0 DateTime string, or None."""
        exif_dict = _load_exif_dict(image_path)
        return decode_ascii((exif_dict.get("0th") or {}).get(TAG_DATE_TIME))

    @staticmethod
    def log_all_fields(image_path: str) -> int:
        """Log every EXIF field at INFO level. Returns the number of fields."""
        try:
            exif_dict = _load_exif_dict(image_path)
        except MetadataUnreadableError as e:
            logger.warning(str(e))
            return 0

        count = 0
        for ifd_name in IFD_NAMES:
            tag_names = piexif.TAGS.get("Image" if ifd_name in ("0th", "1st") else ifd_name, {})
            for tag_id, value in (exif_dict.get(ifd_name) or {}).items():
                name = tag_names.get(tag_id, {}).get("name", hex(tag_id))
                logger.info(f"[{ifd_name}] {tag_id} {name} = {value!r}")
                count += 1
        return count
