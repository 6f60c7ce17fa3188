import pyexiv2  # noqa: F401  # Must be first to avoid Windows crash with pyexiv2

import piexif
import piexif.helper
import pytest
from PIL import Image


def save_jpeg(path, exif_dict=None, size=(16, 12), color=(180, 40, 40)):
    """Write a small JPEG, optionally with an EXIF block built by piexif."""
    img = Image.new("RGB", size, color=color)
    if exif_dict is None:
        img.save(path, format="JPEG", quality=85)
    else:
        img.save(path, format="JPEG", quality=85, exif=piexif.dump(exif_dict))
    return str(path)


def exif_dict_with(ifd0=None, exif=None):
    return {
        "0th": dict(ifd0 or {}),
        "Exif": dict(exif or {}),
        "GPS": {},
        "Interop": {},
        "1st": {},
        "thumbnail": None,
    }


def xp(text):
    return text.encode("utf-16-le") + b"\x00\x00"


@pytest.fixture
def plain_jpeg(tmp_path):
    """A JPEG without EXIF and XMP."""
    return save_jpeg(tmp_path / "plain.jpg")


@pytest.fixture
def exif_jpeg(tmp_path):
    """A JPEG whose EXIF block carries title, comment, subject and orientation."""
    exif_dict = exif_dict_with(
        ifd0={
            piexif.ImageIFD.ImageDescription: b"Left Eye",
            piexif.ImageIFD.XPTitle: xp("Left Eye"),
            piexif.ImageIFD.XPComment: xp("Dilated pupil"),
            piexif.ImageIFD.XPSubject: xp("Iris"),
            piexif.ImageIFD.Orientation: 6,
            piexif.ImageIFD.DateTime: b"2024:03:01 10:20:30",
        },
        exif={
            piexif.ExifIFD.UserComment: piexif.helper.UserComment.dump(
                "Plain comment", encoding="ascii"
            ),
        },
    )
    return save_jpeg(tmp_path / "exif.jpg", exif_dict)
