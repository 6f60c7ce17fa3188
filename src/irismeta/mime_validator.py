import os
import logging
import mimetypes
from typing import Optional

from PIL import Image, UnidentifiedImageError

from irismeta.errors import NotJpegError
from irismeta.pyexiv2_wrapper import PyExiv2Error, PyExiv2Operations

logger = logging.getLogger(__name__)

JPEG_MIME_TYPE = "image/jpeg"


def _sniff_with_pillow(image_path: str) -> Optional[str]:
    """MIME type from the image signature, without decoding any metadata."""
    try:
        with Image.open(image_path) as img:
            return Image.MIME.get(img.format)
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Pillow cannot identify {os.path.basename(image_path)}: {e}")
        return None


class MimeValidator:
    """Confirms that a file is really a JPEG before its metadata is touched."""

    @staticmethod
    def detect_mime_type(image_path: str) -> Optional[str]:
        """
        Return the content type of image_path, or None if it is no image.

        exiv2 is asked first. If it cannot open the file, for example because
        a metadata segment is structurally broken, Pillow identifies the
        format instead.
        """
        try:
            return PyExiv2Operations.get_mime_type(image_path)
        except PyExiv2Error as e:
            logger.debug(f"Falling back to Pillow for {os.path.basename(image_path)}: {e}")
        return _sniff_with_pillow(image_path)

    @staticmethod
    def validate(image_path: str) -> None:
        """
        Check both the extension and the sniffed content type of image_path.

        Raises:
            FileNotFoundError: If image_path is not an existing file
            NotJpegError: If either check does not resolve to image/jpeg
        """
        if not image_path:
            raise FileNotFoundError("No image passed for JPEG validation")

        _, ext = os.path.splitext(image_path)
        if not ext or ext == ".":
            raise NotJpegError(image_path, "", "File has no valid extension")

        extension = ext[1:]
        mime_from_extension, _ = mimetypes.guess_type(f"file.{extension}")
        if mime_from_extension != JPEG_MIME_TYPE:
            raise NotJpegError(image_path, extension, "Bad extension")

        if not os.path.isfile(image_path):
            raise FileNotFoundError(f"No such file: {image_path}")

        detected = MimeValidator.detect_mime_type(image_path)
        if detected != JPEG_MIME_TYPE:
            raise NotJpegError(image_path, detected or "unknown", "Bad MIME type")

        logger.debug(f"Validated JPEG: {os.path.basename(image_path)}")
