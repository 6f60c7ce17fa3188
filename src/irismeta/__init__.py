# JPEG metadata package

from .pyexiv2_init import ensure_pyexiv2_initialized

from .app_settings import (
    WritePolicy,
    get_write_policy,
    set_write_policy,
    DEFAULT_WRITE_POLICY,
    WRITE_POLICY_KEY,
)
from .errors import (
    MetadataError,
    NotJpegError,
    MetadataUnreadableError,
    MetadataWriteError,
    WriteFailedError,
    ExifStorageError,
)
from .metadata_record import MetadataRecord, Orientation, RightLeft
from .mime_validator import MimeValidator
from .xmp_store import XmpItem, XmpStore
from .exif_reader import BinaryTagReader, ExifTextFields
from .metadata_merger import MetadataMerger
from .segment_rewriter import AtomicSegmentRewriter, RewriteStrategy, SegmentKind
from .metadata_reader import MetadataReader
from .metadata_writer import MetadataWriteOrchestrator

__all__ = [
    "ensure_pyexiv2_initialized",
    # app_settings
    "WritePolicy",
    "get_write_policy",
    "set_write_policy",
    "DEFAULT_WRITE_POLICY",
    "WRITE_POLICY_KEY",
    # errors
    "MetadataError",
    "NotJpegError",
    "MetadataUnreadableError",
    "MetadataWriteError",
    "WriteFailedError",
    "ExifStorageError",
    # record
    "MetadataRecord",
    "Orientation",
    "RightLeft",
    # stores and readers
    "MimeValidator",
    "XmpItem",
    "XmpStore",
    "BinaryTagReader",
    "ExifTextFields",
    "MetadataMerger",
    "MetadataReader",
    # writing
    "AtomicSegmentRewriter",
    "RewriteStrategy",
    "SegmentKind",
    "MetadataWriteOrchestrator",
]
