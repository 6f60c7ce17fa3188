import pyexiv2  # noqa: F401  # Must be first to avoid Windows crash with pyexiv2

import logging
from unittest.mock import patch

import pytest

from irismeta.__main__ import build_parser, main
from irismeta.app_settings import WritePolicy


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)


def test_parser_rejects_unknown_policy():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["photo.jpg", "--policy", "5"])


def test_prints_resolved_record(exif_jpeg, capsys):
    assert main([exif_jpeg, "--policy", "2"]) == 0
    out = capsys.readouterr().out
    assert "title: Left Eye" in out
    assert "comment: Dilated pupil" in out
    assert "orientation: 6" in out
    assert "zoom_factor" not in out


def test_policy_defaults_to_saved_setting(exif_jpeg, capsys):
    with patch(
        "irismeta.__main__.get_write_policy", return_value=WritePolicy.NO_CHANGES
    ) as get_policy:
        assert main([exif_jpeg]) == 0
    get_policy.assert_called_once_with()
    assert "title: Left Eye" in capsys.readouterr().out


def test_dump_options(exif_jpeg):
    with patch("irismeta.__main__.BinaryTagReader.log_all_fields") as log_fields, patch(
        "irismeta.__main__.MetadataReader.log_xmp_packet"
    ) as log_packet:
        assert main([exif_jpeg, "--policy", "1", "--dump-exif", "--dump-xmp"]) == 0
    log_fields.assert_called_once_with(exif_jpeg)
    log_packet.assert_called_once_with(exif_jpeg)


def test_not_a_jpeg(tmp_path, capsys):
    path = tmp_path / "notes.txt"
    path.write_text("hello")
    assert main([str(path), "--policy", "1"]) == 1
    assert capsys.readouterr().out == ""


def test_debug_sets_root_level(plain_jpeg):
    main([plain_jpeg, "--policy", "1", "--debug"])
    assert logging.getLogger().level == logging.DEBUG
