"""
Exception classes for the metadata subsystem.

Read-side parse problems are absorbed by the reader; validation and write
failures always reach the caller.
"""

from typing import Optional


class MetadataError(Exception):
    """Base exception for all metadata errors."""

    pass


class NotJpegError(MetadataError):
    """The file failed extension or content-type validation."""

    def __init__(self, path: str, detected: str, reason: str):
        self.path = path
        self.detected = detected
        super().__init__(
            f"{reason} {detected} - can handle metadata only for image/jpeg ({path})"
        )


class MetadataUnreadableError(MetadataError):
    """A metadata block is present but cannot be parsed."""

    pass


class MetadataWriteError(MetadataError):
    """exiv2 could not write a metadata segment into the file."""

    pass


class WriteFailedError(MetadataError):
    """Writing the temp file or renaming it over the original failed.

    Both paths are kept so that the caller can attempt a manual recovery.
    """

    def __init__(self, source: str, destination: str, detail: Optional[str] = None):
        self.source = source
        self.destination = destination
        message = f"Failed to rename file {source} to {destination}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ExifStorageError(MetadataError):
    """The EXIF rewrite failed. A preceding XMP update is not rolled back."""

    pass
