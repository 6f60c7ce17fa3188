import os
import logging
from typing import Callable, Optional

from irismeta.app_settings import WritePolicy
from irismeta.errors import ExifStorageError, MetadataWriteError
from irismeta.exif_rewrite import build_exif_updates, describe_updates, exif_mutation
from irismeta.metadata_merger import CUSTOM_FIELD_ITEMS, FIELD_RULES
from irismeta.metadata_record import MetadataRecord
from irismeta.mime_validator import MimeValidator
from irismeta.pyexiv2_wrapper import PyExiv2Error, PyExiv2Operations
from irismeta.segment_rewriter import AtomicSegmentRewriter, Mutation, RewriteStrategy, SegmentKind
from irismeta.xmp_store import XmpItem, XmpStore

logger = logging.getLogger(__name__)


def xmp_mutation(update: Callable[[XmpStore], None]) -> Mutation:
    """
    Mutation for AtomicSegmentRewriter that edits the XMP properties of a JPEG.

    Properties not touched by update, including foreign namespaces, are kept.
    A packet exiv2 cannot decode is replaced by a new one.
    """

    def changes_for(current):
        xmp_store = XmpStore.parse(current)
        update(xmp_store)
        return xmp_store.changes()

    def mutate(data: bytes, strategy: RewriteStrategy) -> bytes:
        try:
            return PyExiv2Operations.modify_xmp_bytes(data, changes_for)
        except PyExiv2Error as e:
            raise MetadataWriteError(f"Cannot store XMP properties: {e}") from e

    return mutate


def apply_record_to_xmp(xmp_store: XmpStore, record: MetadataRecord, include_standard: bool) -> None:
    """Copy the record into the store. Unset fields remove their property."""
    for rule in FIELD_RULES:
        xmp_store.set(rule.item, getattr(record, rule.field))
    for field_name, item in CUSTOM_FIELD_ITEMS:
        xmp_store.set(item, record.string_value(field_name))
    xmp_store.set_date(XmpItem.ORGANIZE_DATE, record.organize_date)

    if include_standard:
        xmp_store.set_dc_title(record.title)
        xmp_store.set_dc_description(record.description)
        xmp_store.set_dc_subject(record.subject)
        xmp_store.set_user_comment(record.comment)
        xmp_store.set_microsoft_person(record.person)


class MetadataWriteOrchestrator:
    """Writes a MetadataRecord back to a JPEG file according to a write policy."""

    def __init__(self, rewriter: Optional[AtomicSegmentRewriter] = None):
        self.rewriter = rewriter or AtomicSegmentRewriter()

    def write(self, image_path: str, record: MetadataRecord, write_policy: WritePolicy) -> None:
        """
        Store record in image_path.

        The XMP packet is rewritten first and stays written even if the EXIF
        step fails afterwards.

        Raises:
            FileNotFoundError: If image_path does not exist
            NotJpegError: If image_path is not a JPEG file
            WriteFailedError: If the XMP rewrite could not be committed
            MetadataWriteError: If the XMP packet cannot be stored in the file
            ExifStorageError: If the EXIF rewrite failed
        """
        if not write_policy.allows_jpeg_changes:
            logger.debug(f"Write policy {write_policy.name}: not touching {image_path}")
            return

        MimeValidator.validate(image_path)
        filename = os.path.basename(image_path)
        exif_allowed = write_policy.allows_exif_changes

        self.rewriter.rewrite_segment(
            image_path,
            SegmentKind.XMP,
            xmp_mutation(lambda store: apply_record_to_xmp(store, record, exif_allowed)),
        )
        logger.info(f"Stored XMP metadata of {filename}")

        if not exif_allowed:
            return

        updates = build_exif_updates(record)
        try:
            self.rewriter.rewrite_segment(image_path, SegmentKind.EXIF, exif_mutation(updates))
        except Exception as e:
            logger.error(f"Failed to store EXIF metadata of {filename}: {e}", exc_info=True)
            raise ExifStorageError(f"Failed to store EXIF data in {image_path}: {e}") from e
        logger.info(f"Stored EXIF metadata of {filename} ({describe_updates(updates) or 'no tags'})")
