import pyexiv2  # noqa: F401  # Must be first to avoid Windows crash with pyexiv2

import threading
from unittest.mock import patch

import irismeta.pyexiv2_init
from irismeta.app_settings import PYEXIV2_LOG_LEVEL, XMP_NAMESPACE, XMP_PREFIX
from irismeta.pyexiv2_init import ensure_pyexiv2_initialized


class TestPyExiv2Init:
    """Test cases for PyExiv2 initialization module."""

    def test_ensure_pyexiv2_initialized_idempotent(self):
        """Test that ensure_pyexiv2_initialized can be called multiple times safely."""
        ensure_pyexiv2_initialized()
        ensure_pyexiv2_initialized()
        ensure_pyexiv2_initialized()

        assert irismeta.pyexiv2_init._PYEXIV2_INITIALIZED is True

    def test_ensure_pyexiv2_initialized_thread_safety(self):
        """Test that initialization is thread-safe."""
        results = []
        errors = []

        def init_worker():
            try:
                ensure_pyexiv2_initialized()
                results.append(True)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=init_worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 5
        assert len(errors) == 0


class TestInitializationSteps:
    def setup_method(self):
        self.original_flag = irismeta.pyexiv2_init._PYEXIV2_INITIALIZED
        irismeta.pyexiv2_init._PYEXIV2_INITIALIZED = False

    def teardown_method(self):
        irismeta.pyexiv2_init._PYEXIV2_INITIALIZED = self.original_flag

    def test_sets_log_level_and_registers_namespace(self):
        with patch("irismeta.pyexiv2_init.pyexiv2.set_log_level") as set_level, patch(
            "irismeta.pyexiv2_init.pyexiv2.registerNs"
        ) as register:
            ensure_pyexiv2_initialized()

        set_level.assert_called_once_with(PYEXIV2_LOG_LEVEL)
        register.assert_called_once_with(XMP_NAMESPACE, XMP_PREFIX)
        assert irismeta.pyexiv2_init._PYEXIV2_INITIALIZED is True

    def test_qt_modules_warning(self, caplog):
        """A warning is logged if Qt modules were imported before pyexiv2."""
        with patch(
            "irismeta.pyexiv2_init._QT_MODULES_AT_IMPORT",
            ["PyQt6.QtCore", "PyQt6.QtWidgets"],
        ):
            ensure_pyexiv2_initialized()

        assert "Qt modules already imported" in caplog.text
        assert "PyQt6.QtCore" in caplog.text

    def test_duplicate_namespace_is_tolerated(self):
        with patch(
            "irismeta.pyexiv2_init.pyexiv2.registerNs",
            side_effect=RuntimeError("prefix already registered"),
        ), patch("irismeta.pyexiv2_init.logger") as mock_logger:
            ensure_pyexiv2_initialized()

            mock_logger.debug.assert_called()
        assert irismeta.pyexiv2_init._PYEXIV2_INITIALIZED is True
