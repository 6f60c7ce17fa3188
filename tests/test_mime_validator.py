import pyexiv2  # noqa: F401  # Must be first to avoid Windows crash with pyexiv2

import struct
from unittest.mock import patch

import pytest
from PIL import Image, UnidentifiedImageError

from conftest import save_jpeg
from irismeta.errors import NotJpegError
from irismeta.mime_validator import MimeValidator
from irismeta.pyexiv2_wrapper import PyExiv2Error


def test_valid_jpeg(plain_jpeg):
    MimeValidator.validate(plain_jpeg)


@pytest.mark.parametrize("name", ["upper.JPG", "long.jpeg", "mixed.JPEG"])
def test_extension_case_and_variants(tmp_path, name):
    MimeValidator.validate(save_jpeg(tmp_path / name))


def test_empty_path():
    with pytest.raises(FileNotFoundError):
        MimeValidator.validate("")


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        MimeValidator.validate(str(tmp_path / "missing.jpg"))


def test_no_extension(tmp_path):
    path = save_jpeg(tmp_path / "photo")
    with pytest.raises(NotJpegError, match="no valid extension"):
        MimeValidator.validate(path)


def test_wrong_extension_with_jpeg_content(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGB", (8, 8)).save(path, format="JPEG")
    with pytest.raises(NotJpegError) as exc_info:
        MimeValidator.validate(str(path))
    assert exc_info.value.detected == "png"
    assert "can handle metadata only for image/jpeg" in str(exc_info.value)


def test_png_content_with_jpeg_extension(tmp_path):
    path = tmp_path / "disguised.jpg"
    Image.new("RGB", (8, 8)).save(path, format="PNG")
    with pytest.raises(NotJpegError) as exc_info:
        MimeValidator.validate(str(path))
    assert exc_info.value.detected == "image/png"


def test_unreadable_content(tmp_path):
    path = tmp_path / "garbage.jpg"
    path.write_bytes(b"definitely not an image")
    with pytest.raises(NotJpegError) as exc_info:
        MimeValidator.validate(str(path))
    assert exc_info.value.detected == "unknown"


def test_exiv2_failure_falls_back_to_pillow(plain_jpeg):
    with patch(
        "irismeta.mime_validator.PyExiv2Operations.get_mime_type",
        side_effect=PyExiv2Error("boom"),
    ) as exiv2_sniff:
        MimeValidator.validate(plain_jpeg)
    assert exiv2_sniff.call_count == 1


def test_both_sniffers_failing_is_not_jpeg(plain_jpeg):
    with patch(
        "irismeta.mime_validator.PyExiv2Operations.get_mime_type",
        side_effect=PyExiv2Error("boom"),
    ), patch(
        "irismeta.mime_validator.Image.open", side_effect=UnidentifiedImageError("no")
    ):
        with pytest.raises(NotJpegError) as exc_info:
            MimeValidator.validate(plain_jpeg)
    assert exc_info.value.detected == "unknown"


@pytest.mark.parametrize(
    "payload",
    [
        b"http://ns.adobe.com/xap/1.0/\x00<x:xmpmeta><broken",
        b"Exif\x00\x00MM\x00\x2a\x00\x00\x00\x08\x7f\xff",
    ],
)
def test_damaged_metadata_segment_is_still_jpeg(plain_jpeg, payload):
    with open(plain_jpeg, "rb") as handle:
        data = handle.read()
    segment = b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload
    with open(plain_jpeg, "wb") as handle:
        handle.write(data[:2] + segment + data[2:])

    assert MimeValidator.detect_mime_type(plain_jpeg) == "image/jpeg"
    MimeValidator.validate(plain_jpeg)


def test_validation_does_not_modify_file(plain_jpeg):
    with open(plain_jpeg, "rb") as handle:
        before = handle.read()
    MimeValidator.validate(plain_jpeg)
    with open(plain_jpeg, "rb") as handle:
        assert handle.read() == before
