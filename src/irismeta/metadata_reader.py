import os
import logging
from typing import Optional

from irismeta.app_settings import WritePolicy
from irismeta.exif_reader import BinaryTagReader, ExifTextFields
from irismeta.metadata_merger import MetadataMerger
from irismeta.metadata_record import MetadataRecord
from irismeta.mime_validator import MimeValidator
from irismeta.pyexiv2_wrapper import PyExiv2Error, PyExiv2Operations
from irismeta.xmp_store import XmpStore

logger = logging.getLogger(__name__)


class MetadataReader:
    """
    Reads the merged metadata record of a JPEG file.

    Only validation errors abort a read. A corrupt XMP packet or EXIF block is
    logged and treated as absent, so a damaged file still yields a record.
    """

    @staticmethod
    def read(image_path: str, write_policy: WritePolicy) -> MetadataRecord:
        """
        Raises:
            FileNotFoundError: If image_path does not exist
            NotJpegError: If image_path is not a JPEG file
        """
        MimeValidator.validate(image_path)

        xmp_store = MetadataReader._load_xmp_store(image_path)
        exif_fields = MetadataReader._load_exif_fields(image_path)
        orientation = BinaryTagReader.read_orientation(image_path)

        return MetadataMerger.merge(xmp_store, exif_fields, write_policy, orientation)

    @staticmethod
    def _load_xmp_store(image_path: str) -> XmpStore:
        try:
            return XmpStore.parse(PyExiv2Operations.read_xmp(image_path))
        except PyExiv2Error as e:
            logger.warning(
                f"Ignoring unreadable XMP of {os.path.basename(image_path)}: {e}"
            )
            return XmpStore()

    @staticmethod
    def _load_exif_fields(image_path: str) -> Optional[ExifTextFields]:
        try:
            return BinaryTagReader.read_text_fields(image_path)
        except Exception as e:
            logger.warning(
                f"Ignoring unreadable EXIF of {os.path.basename(image_path)}: {e}"
            )
            return None

    @staticmethod
    def log_xmp_packet(image_path: str) -> Optional[str]:
        """Log the raw XMP packet at INFO level and return it."""
        try:
            packet = PyExiv2Operations.read_raw_xmp(image_path)
        except PyExiv2Error as e:
            logger.warning(f"Cannot read XMP of {os.path.basename(image_path)}: {e}")
            return None
        if not packet.strip("\x00 \r\n\t"):
            logger.info(f"{os.path.basename(image_path)} has no XMP packet")
            return None
        logger.info(f"XMP packet of {os.path.basename(image_path)}:\n{packet}")
        return packet
