"""
Crash-safe replacement of a metadata segment.

The rewritten file is always produced on a sibling temp path and only moved
over the original once it has been completely written, so other readers see
either the old or the new file, never a partial one.
"""

import os
import logging
from enum import Enum
from typing import Callable

from irismeta.app_settings import MAX_WRITE_ATTEMPTS
from irismeta.errors import WriteFailedError
from irismeta.file_ops import FileOperations

logger = logging.getLogger(__name__)


class SegmentKind(Enum):
    XMP = "xmp"
    EXIF = "exif"


class RewriteStrategy(Enum):
    LOSSLESS = "lossless"  # edits the segment, every other byte is kept
    LOSSY = "lossy"  # rebuilds the segment, unknown sub-fields may be dropped


# Strategies in the order they are tried
STRATEGIES = {
    SegmentKind.XMP: (RewriteStrategy.LOSSLESS,),
    SegmentKind.EXIF: (RewriteStrategy.LOSSLESS, RewriteStrategy.LOSSY),
}

Mutation = Callable[[bytes, RewriteStrategy], bytes]


class AtomicSegmentRewriter:
    """Rewrites one segment of a file through a temp file and an atomic rename."""

    def __init__(self, max_attempts: int = MAX_WRITE_ATTEMPTS):
        self.max_attempts = max_attempts

    def rewrite_segment(self, file_path: str, kind: SegmentKind, mutation: Mutation) -> None:
        """
        Replace file_path by the output of mutation.

        Args:
            file_path: The file to rewrite
            kind: Which segment is rewritten; selects the strategies to try
            mutation: Called with the complete file content and a strategy,
                returns the complete new file content

        Raises:
            WriteFailedError: If the temp file cannot be written, stays empty,
                or cannot be moved over file_path. The original is untouched.
            Exception: Whatever the last strategy of the mutation raises
        """
        filename = os.path.basename(file_path)
        temp_path = FileOperations.temp_path_for(file_path)

        deleted, message = FileOperations.delete_file(temp_path)
        if not deleted:
            logger.warning(f"Could not remove stale temp file for {filename}: {message}")

        with open(file_path, "rb") as handle:
            original = handle.read()

        size = 0
        for attempt in range(1, self.max_attempts + 1):
            new_data = self._apply_mutation(original, kind, mutation, filename)
            try:
                size = FileOperations.write_file(temp_path, new_data)
            except OSError as e:
                raise WriteFailedError(temp_path, file_path, str(e)) from e
            if size > 0:
                break
            logger.warning(
                f"Temp file for {filename} is empty after attempt {attempt}/{self.max_attempts}"
            )

        if size == 0:
            FileOperations.delete_file(temp_path)
            raise WriteFailedError(temp_path, file_path, "temp file is empty")

        replaced, message = FileOperations.replace_file(temp_path, file_path)
        if not replaced:
            raise WriteFailedError(temp_path, file_path, message)
        logger.debug(f"Rewrote {kind.value} segment of {filename} ({size} bytes)")

    @staticmethod
    def _apply_mutation(data: bytes, kind: SegmentKind, mutation: Mutation, filename: str) -> bytes:
        strategies = STRATEGIES[kind]
        for strategy, fallback in zip(strategies, strategies[1:]):
            try:
                return mutation(data, strategy)
            except Exception as e:
                logger.warning(
                    f"{strategy.value} {kind.value} rewrite of {filename} failed, "
                    f"falling back to {fallback.value}: {e}"
                )
        return mutation(data, strategies[-1])
