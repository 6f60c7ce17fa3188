import os
import logging
from typing import Tuple

from irismeta.app_settings import TEMP_FILE_SUFFIX

logger = logging.getLogger(__name__)


class FileOperations:
    """Handles the file system side of a segment rewrite."""

    @staticmethod
    def temp_path_for(file_path: str) -> str:
        """Return the sibling temp path used while rewriting file_path."""
        return f"{file_path}{TEMP_FILE_SUFFIX}"

    @staticmethod
    def delete_file(file_path: str) -> Tuple[bool, str]:
        """
        Deletes a file if it exists.

        Returns:
            tuple: (bool, str) indicating success and a message.
        """
        if not os.path.exists(file_path):
            return True, "File does not exist."
        try:
            os.remove(file_path)
            logger.debug(f"Deleted '{os.path.basename(file_path)}'.")
            return True, "File deleted."
        except OSError as e:
            error_msg = f"Error deleting file '{os.path.basename(file_path)}': {e}"
            logger.warning(error_msg)
            return False, error_msg

    @staticmethod
    def write_file(file_path: str, data: bytes) -> int:
        """
        Writes data to file_path through a buffered file object.

        The file is flushed to disk and closed before returning, also when
        writing fails.

        Returns:
            int: The size of the file on disk after closing it.
        """
        with open(file_path, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        return os.path.getsize(file_path)

    @staticmethod
    def replace_file(source_path: str, destination_path: str) -> Tuple[bool, str]:
        """
        Atomically replaces the destination file with the source file.

        A rename, not a copy: readers see either the old or the new file.

        Args:
            source_path (str): The path to the source file (e.g., a temporary file).
            destination_path (str): The path to the destination file to be replaced.

        Returns:
            tuple: (bool, str) indicating success and a message.
        """
        if not os.path.isfile(source_path):
            return False, f"Source file not found: {source_path}"
        try:
            os.replace(source_path, destination_path)
            logger.debug(
                f"Replaced '{os.path.basename(destination_path)}' with '{os.path.basename(source_path)}'."
            )
            return True, "File replaced successfully."
        except OSError as e:
            error_msg = (
                f"Error replacing file '{os.path.basename(destination_path)}': {e}"
            )
            logger.error(error_msg, exc_info=True)
            return False, error_msg
