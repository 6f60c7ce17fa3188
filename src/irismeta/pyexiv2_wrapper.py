"""
PyExiv2 Abstraction Layer

This module provides a safe, centralized interface for all pyexiv2 operations.
It ensures proper initialization, serializes access to exiv2 (which is not
thread-safe) and gives all callers consistent error handling.

Images can be opened from a path (read-only use in this package) or from
in-memory JPEG bytes, which is how the XMP and lossless EXIF rewrites work:
the file is never modified in place by exiv2.

exiv2 reports a metadata block it cannot decode through its error log, and
pyexiv2 turns that into an exception when the image is opened. Opening with
tolerate_damage=True mutes the log for the open, so the intact blocks are
still loaded and the damaged one reads as empty.
"""

import os
import logging
import threading
from typing import Any, Callable, Dict, Optional, Union
from contextlib import ExitStack, contextmanager

import piexif

# Import our initialization module first
from irismeta.pyexiv2_init import ensure_pyexiv2_initialized

ensure_pyexiv2_initialized()
import pyexiv2  # noqa: E402  # Must be after initialization

from irismeta.app_settings import PYEXIV2_LOG_LEVEL, PYEXIV2_MUTE_LOG_LEVEL  # noqa: E402

logger = logging.getLogger(__name__)

# Global lock to guard all pyexiv2 operations for thread safety
_PYEXIV2_LOCK = threading.Lock()

_EXIF_IFD_NAMES = ("0th", "Exif", "GPS", "Interop", "1st")


class PyExiv2Error(Exception):
    """Custom exception for pyexiv2-related errors."""

    pass


class PyExiv2ImageWrapper:
    """
    Safe wrapper for pyexiv2.Image / pyexiv2.ImageData operations.

    Pass a path to open a file, or bytes to work on an in-memory copy whose
    result is available through get_bytes().
    """

    def __init__(
        self,
        source: Union[str, bytes],
        encoding: str = "utf-8",
        tolerate_damage: bool = False,
    ):
        """
        Initialize the wrapper.

        Args:
            source: Path to the image file, or the complete image as bytes
            encoding: Encoding to use for metadata operations
            tolerate_damage: Open even if a metadata block cannot be decoded
        """
        self.source = source
        self.encoding = encoding
        self.tolerate_damage = tolerate_damage
        self._img = None

    @property
    def is_in_memory(self) -> bool:
        return isinstance(self.source, (bytes, bytearray))

    def __enter__(self):
        """Context manager entry."""
        ensure_pyexiv2_initialized()

        # Acquire the global lock and create the image
        self._lock = _PYEXIV2_LOCK
        self._lock.acquire()
        try:
            if self.tolerate_damage:
                pyexiv2.set_log_level(PYEXIV2_MUTE_LOG_LEVEL)
            try:
                if self.is_in_memory:
                    self._img = pyexiv2.ImageData(bytes(self.source))
                else:
                    self._img = pyexiv2.Image(self.source, encoding=self.encoding)
            finally:
                if self.tolerate_damage:
                    pyexiv2.set_log_level(PYEXIV2_LOG_LEVEL)
            return self
        except Exception:
            self._lock.release()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        try:
            if self._img is not None:
                self._img.close()
        finally:
            self._img = None
            self._lock.release()

    def _require_open(self):
        if self._img is None:
            raise PyExiv2Error("Image not opened")
        return self._img

    def get_mime_type(self) -> str:
        """Get image MIME type as sniffed by exiv2."""
        return self._require_open().get_mime_type()

    def read_exif(self) -> Optional[Dict[str, Any]]:
        """Read EXIF metadata."""
        return self._require_open().read_exif()

    def read_xmp(self) -> Optional[Dict[str, Any]]:
        """Read XMP metadata."""
        return self._require_open().read_xmp()

    def read_raw_xmp(self) -> str:
        """Read the XMP packet as exiv2 found it in the file."""
        return self._require_open().read_raw_xmp()

    def modify_exif(self, exif_dict: Dict[str, Any]) -> None:
        """Modify EXIF metadata. A value of None deletes the tag."""
        self._require_open().modify_exif(exif_dict)

    def modify_xmp(self, xmp_dict: Dict[str, Any]) -> None:
        """Modify XMP metadata. A value of None deletes the property."""
        self._require_open().modify_xmp(xmp_dict)

    def get_bytes(self) -> bytes:
        """Return the (modified) image bytes. Only valid for in-memory images."""
        img = self._require_open()
        if not self.is_in_memory:
            raise PyExiv2Error("get_bytes() requires an in-memory image")
        return img.get_bytes()


@contextmanager
def safe_pyexiv2_image(
    source: Union[str, bytes], encoding: str = "utf-8", tolerate_damage: bool = False
):
    """
    Context manager for safe pyexiv2 operations.

    Args:
        source: Path to the image file, or the image bytes
        encoding: Encoding to use for metadata operations
        tolerate_damage: Open even if a metadata block cannot be decoded

    Yields:
        PyExiv2ImageWrapper: Safe wrapper for pyexiv2 operations

    Example:
        with safe_pyexiv2_image(image_path) as img:
            exif_data = img.read_exif()
    """
    wrapper = PyExiv2ImageWrapper(source, encoding, tolerate_damage)
    with wrapper as img:
        yield img


def _packet_is_damaged(img: PyExiv2ImageWrapper) -> bool:
    """True if the file has an XMP packet exiv2 could not decode."""
    return not img.read_xmp() and bool(img.read_raw_xmp().strip("\x00 \r\n\t"))


def _exif_was_dropped(img: PyExiv2ImageWrapper, image_data: bytes) -> bool:
    """True if exiv2 lost an EXIF block that the file carries."""
    if img.read_exif():
        return False
    try:
        exif_dict = piexif.load(image_data)
    except Exception:
        return True
    return any(exif_dict.get(name) for name in _EXIF_IFD_NAMES)


class PyExiv2Operations:
    """
    High-level operations using pyexiv2.

    This class provides the metadata operations the reader and writer need,
    with built-in error handling and logging.
    """

    @staticmethod
    def get_mime_type(image_path: str) -> str:
        """
        Get the MIME type exiv2 detects from the file content.

        The type comes from the file signature, so a damaged metadata block
        does not hide it.

        Raises:
            PyExiv2Error: If exiv2 cannot open the file as an image
        """
        try:
            with safe_pyexiv2_image(image_path, tolerate_damage=True) as img:
                return img.get_mime_type()
        except Exception as e:
            logger.debug(
                f"Could not detect MIME type of {os.path.basename(image_path)}: {e}"
            )
            raise PyExiv2Error(f"MIME type detection failed: {e}") from e

    @staticmethod
    def get_orientation(image_path: str) -> Optional[int]:
        """
        Get the EXIF orientation value.

        Returns:
            EXIF orientation value, or None if the tag is absent

        Raises:
            PyExiv2Error: If the metadata cannot be read
        """
        try:
            with safe_pyexiv2_image(image_path) as img:
                exif_data = img.read_exif() or {}
        except Exception as e:
            raise PyExiv2Error(f"EXIF read failed: {e}") from e
        orientation = exif_data.get("Exif.Image.Orientation")
        if orientation is None or str(orientation).strip() == "":
            return None
        try:
            return int(str(orientation).split()[0])
        except ValueError as e:
            raise PyExiv2Error(f"Bad orientation value {orientation!r}") from e

    @staticmethod
    def read_xmp(source: Union[str, bytes]) -> Dict[str, Any]:
        """
        Get the XMP properties of an image.

        A damaged EXIF block does not prevent reading the XMP properties.

        Raises:
            PyExiv2Error: If the XMP packet cannot be decoded or the image
                cannot be opened at all
        """
        try:
            with safe_pyexiv2_image(source) as img:
                return img.read_xmp() or {}
        except Exception as e:
            open_error = e

        logger.debug(f"Strict metadata read failed, retrying tolerantly: {open_error}")
        try:
            with safe_pyexiv2_image(source, tolerate_damage=True) as img:
                if _packet_is_damaged(img):
                    raise PyExiv2Error(f"XMP packet cannot be decoded: {open_error}")
                return img.read_xmp() or {}
        except PyExiv2Error:
            raise
        except Exception as e:
            raise PyExiv2Error(f"XMP read failed: {e}") from e

    @staticmethod
    def read_raw_xmp(image_path: str) -> str:
        """
        Get the XMP packet text, even if exiv2 cannot decode it.

        Raises:
            PyExiv2Error: If exiv2 cannot open the file as an image
        """
        try:
            with safe_pyexiv2_image(image_path, tolerate_damage=True) as img:
                return img.read_raw_xmp()
        except Exception as e:
            raise PyExiv2Error(f"XMP read failed: {e}") from e

    @staticmethod
    def modify_xmp_bytes(
        image_data: bytes,
        changes_for: Callable[[Dict[str, Any]], Dict[str, Any]],
    ) -> bytes:
        """
        Apply XMP changes to in-memory JPEG bytes and return the new bytes.

        An XMP packet exiv2 cannot decode is handed to changes_for as empty and
        replaced, unless another metadata block of the file is damaged too.

        Args:
            image_data: Complete JPEG file content
            changes_for: Called with the current XMP properties, returns the
                changes for modify_xmp (None deletes a property)

        Raises:
            PyExiv2Error: If exiv2 fails to parse or write the metadata
        """
        try:
            with ExitStack() as stack:
                try:
                    img = stack.enter_context(safe_pyexiv2_image(image_data))
                except Exception as open_error:
                    img = stack.enter_context(
                        safe_pyexiv2_image(image_data, tolerate_damage=True)
                    )
                    if not _packet_is_damaged(img) or _exif_was_dropped(img, image_data):
                        raise PyExiv2Error(f"Cannot open image: {open_error}") from open_error
                    logger.warning(f"Replacing XMP packet exiv2 cannot decode: {open_error}")
                    current = {}
                else:
                    current = img.read_xmp() or {}
                img.modify_xmp(changes_for(current))
                return img.get_bytes()
        except PyExiv2Error:
            raise
        except Exception as e:
            logger.debug(f"In-memory XMP modification failed: {e}")
            raise PyExiv2Error(f"XMP modification failed: {e}") from e

    @staticmethod
    def modify_exif_bytes(image_data: bytes, changes: Dict[str, Any]) -> bytes:
        """
        Apply EXIF changes to in-memory JPEG bytes and return the new bytes.

        exiv2 drops the old value of every changed tag before writing the new
        one and keeps all other EXIF, XMP and APPn data intact.

        Args:
            image_data: Complete JPEG file content
            changes: pyexiv2 EXIF keys mapped to their new values

        Raises:
            PyExiv2Error: If exiv2 fails to parse or write the metadata
        """
        try:
            with safe_pyexiv2_image(image_data) as img:
                img.modify_exif(changes)
                return img.get_bytes()
        except Exception as e:
            logger.debug(f"In-memory EXIF modification failed: {e}")
            raise PyExiv2Error(f"EXIF modification failed: {e}") from e


# Initialize on module import
ensure_pyexiv2_initialized()
