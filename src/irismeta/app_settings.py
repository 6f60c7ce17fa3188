"""
Application Settings Module
Persistent metadata settings (QSettings) and the constants shared by the
metadata reader and writer.
"""

from enum import Enum
from PyQt6.QtCore import QSettings


class WritePolicy(Enum):
    """
    How far the application may modify a photo's JPEG file.

    - NO_CHANGES: The file is never touched
    - XMP_ONLY: Only the XMP packet is rewritten, EXIF stays as found
    - XMP_AND_EXIF: XMP and EXIF are rewritten; EXIF is authoritative for the
      title, comment and subject fields
    """

    NO_CHANGES = 0
    XMP_ONLY = 1
    XMP_AND_EXIF = 2

    @classmethod
    def from_value(cls, value) -> "WritePolicy":
        """Convert a stored value (int or numeric string) to a WritePolicy, defaulting to XMP_ONLY."""
        try:
            return cls(int(value))
        except (ValueError, TypeError):
            return cls.XMP_ONLY

    @property
    def allows_jpeg_changes(self) -> bool:
        return self.value > 0

    @property
    def allows_exif_changes(self) -> bool:
        return self is WritePolicy.XMP_AND_EXIF


# --- Settings Constants ---

# Settings organization and application name
SETTINGS_ORGANIZATION = "IrisMeta"
SETTINGS_APPLICATION = "IrisMeta"

# Settings keys
WRITE_POLICY_KEY = "Metadata/WritePolicy"  # One of WritePolicy values (0-2)

# Default values
DEFAULT_WRITE_POLICY = WritePolicy.XMP_ONLY  # Never touch EXIF unless asked to

# --- XMP Constants ---
XMP_NAMESPACE = "http://ns.irismeta.org/photo/1.0/"  # Proprietary field namespace
XMP_PREFIX = "iris"  # Prefix registered for XMP_NAMESPACE

# --- File Operation Constants ---
TEMP_FILE_SUFFIX = ".tmp"  # Sibling temp file used while rewriting a segment
MAX_WRITE_ATTEMPTS = 2  # Attempts when the temp file comes out empty

# --- exiv2 Constants ---
PYEXIV2_LOG_LEVEL = 3  # 0 debug .. 4 mute; 3 keeps exiv2 errors only
PYEXIV2_MUTE_LOG_LEVEL = 4  # Used while opening files with a damaged metadata block


def _get_settings() -> QSettings:
    """Get a QSettings instance with the application's organization and name."""
    return QSettings(SETTINGS_ORGANIZATION, SETTINGS_APPLICATION)


# --- Write Policy ---
def get_write_policy() -> WritePolicy:
    """Gets the configured metadata write policy."""
    settings = _get_settings()
    value = settings.value(WRITE_POLICY_KEY, DEFAULT_WRITE_POLICY.value, type=int)
    return WritePolicy.from_value(value)


def set_write_policy(policy: WritePolicy):
    """Sets the metadata write policy."""
    settings = _get_settings()
    settings.setValue(WRITE_POLICY_KEY, policy.value)
