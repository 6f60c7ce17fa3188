"""
PyExiv2 initialization module.

Loads pyexiv2 once per process, lowers exiv2's own console logging and
registers the proprietary XMP namespace so that exiv2 keeps the proprietary
properties when it re-encodes an XMP packet during an EXIF rewrite.

pyexiv2 must be imported before any Qt module (app_settings pulls in
QtCore), otherwise Windows builds can crash on DLL conflicts.
"""

import sys
import logging
import threading

import pyexiv2  # Must be loaded before app_settings imports Qt

# Qt modules that were loaded ahead of pyexiv2
_QT_MODULES_AT_IMPORT = [
    name for name in sys.modules.keys() if name.startswith(("PyQt", "PySide", "Qt"))
]

from irismeta.app_settings import PYEXIV2_LOG_LEVEL, XMP_NAMESPACE, XMP_PREFIX  # noqa: E402

logger = logging.getLogger(__name__)

# Global flag to track if pyexiv2 has been safely initialized
_PYEXIV2_INITIALIZED = False
_INIT_LOCK = threading.Lock()


def _register_namespaces() -> None:
    """Register the proprietary XMP namespace with exiv2."""
    try:
        pyexiv2.registerNs(XMP_NAMESPACE, XMP_PREFIX)
        logger.debug(f"Registered XMP namespace {XMP_PREFIX}={XMP_NAMESPACE}")
    except Exception as e:
        # exiv2 refuses a second registration of the same prefix
        logger.debug(f"XMP namespace {XMP_PREFIX} not registered: {e}")


def ensure_pyexiv2_initialized():
    """
    Ensure pyexiv2 is configured for this process.
    This function is idempotent and safe to call multiple times.
    """
    global _PYEXIV2_INITIALIZED

    with _INIT_LOCK:
        if _PYEXIV2_INITIALIZED:
            return

        try:
            qt_modules = _QT_MODULES_AT_IMPORT
            if qt_modules:
                logger.warning(
                    f"Qt modules already imported before pyexiv2 initialization: {qt_modules}. "
                    "This may cause DLL conflicts on Windows."
                )

            try:
                pyexiv2.set_log_level(PYEXIV2_LOG_LEVEL)
            except Exception as level_error:
                logger.debug(f"Could not set exiv2 log level: {level_error}")

            _register_namespaces()

            _PYEXIV2_INITIALIZED = True
            logger.debug("pyexiv2 successfully initialized")

        except Exception as e:
            logger.error(f"Failed to initialize pyexiv2: {e}")
            # Log and continue; the first real pyexiv2 call reports the problem
            logger.warning("Continuing without pyexiv2 configuration")
            _PYEXIV2_INITIALIZED = True  # Mark as "initialized" to prevent repeated attempts


# Initialize immediately when this module is imported
ensure_pyexiv2_initialized()
