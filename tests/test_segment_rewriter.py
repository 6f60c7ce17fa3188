import pyexiv2  # noqa: F401  # Must be first to avoid Windows crash with pyexiv2

import os
import logging
from unittest.mock import patch

import pytest

from irismeta.errors import WriteFailedError
from irismeta.file_ops import FileOperations
from irismeta.mime_validator import MimeValidator
from irismeta.segment_rewriter import AtomicSegmentRewriter, RewriteStrategy, SegmentKind


def _read(path):
    with open(path, "rb") as handle:
        return handle.read()


class RecordingMutation:
    """Mutation stub recording the strategies it was called with."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    def __call__(self, data, strategy):
        self.calls.append(strategy)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result(data) if callable(result) else result


def _append_comment(data):
    # A COM segment right after SOI
    return data[:2] + b"\xff\xfe\x00\x06test" + data[2:]


class TestRewriteSegment:
    def test_replaces_file_and_removes_temp(self, plain_jpeg):
        original = _read(plain_jpeg)
        mutation = RecordingMutation([_append_comment])

        AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.XMP, mutation)

        assert _read(plain_jpeg) == _append_comment(original)
        assert mutation.calls == [RewriteStrategy.LOSSLESS]
        assert not os.path.exists(FileOperations.temp_path_for(plain_jpeg))

    def test_stale_temp_file_is_replaced(self, plain_jpeg):
        temp_path = FileOperations.temp_path_for(plain_jpeg)
        with open(temp_path, "wb") as handle:
            handle.write(b"stale leftovers")

        AtomicSegmentRewriter().rewrite_segment(
            plain_jpeg, SegmentKind.XMP, RecordingMutation([_append_comment])
        )

        assert not os.path.exists(temp_path)
        assert b"stale" not in _read(plain_jpeg)
        MimeValidator.validate(plain_jpeg)

    def test_lossless_failure_falls_back_once(self, plain_jpeg, caplog):
        mutation = RecordingMutation([RuntimeError("exiv2 failed"), _append_comment])

        with caplog.at_level(logging.WARNING):
            AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.EXIF, mutation)

        assert mutation.calls == [RewriteStrategy.LOSSLESS, RewriteStrategy.LOSSY]
        assert "lossless exif rewrite of plain.jpg failed, falling back to lossy" in caplog.text
        assert os.path.getsize(plain_jpeg) > 0
        MimeValidator.validate(plain_jpeg)

    def test_xmp_has_no_fallback(self, plain_jpeg, caplog):
        original = _read(plain_jpeg)
        mutation = RecordingMutation([RuntimeError("bad packet"), _append_comment])

        with caplog.at_level(logging.WARNING), pytest.raises(RuntimeError, match="bad packet"):
            AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.XMP, mutation)

        assert mutation.calls == [RewriteStrategy.LOSSLESS]
        assert _read(plain_jpeg) == original
        assert "falling back" not in caplog.text

    def test_lossy_failure_propagates(self, plain_jpeg):
        original = _read(plain_jpeg)
        mutation = RecordingMutation([RuntimeError("lossless"), ValueError("lossy")])

        with pytest.raises(ValueError, match="lossy"):
            AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.EXIF, mutation)

        assert _read(plain_jpeg) == original

    def test_empty_temp_file_is_retried(self, plain_jpeg):
        original = _read(plain_jpeg)
        mutation = RecordingMutation([b"", _append_comment])

        AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.XMP, mutation)

        assert len(mutation.calls) == 2
        assert _read(plain_jpeg) == _append_comment(original)

    def test_empty_after_last_attempt_keeps_original(self, plain_jpeg):
        original = _read(plain_jpeg)
        mutation = RecordingMutation([b"", b"", b""])

        with pytest.raises(WriteFailedError) as exc_info:
            AtomicSegmentRewriter().rewrite_segment(plain_jpeg, SegmentKind.XMP, mutation)

        assert len(mutation.calls) == 2
        assert exc_info.value.destination == plain_jpeg
        assert _read(plain_jpeg) == original
        assert not os.path.exists(FileOperations.temp_path_for(plain_jpeg))

    def test_failed_move_keeps_original_and_temp(self, plain_jpeg):
        original = _read(plain_jpeg)
        temp_path = FileOperations.temp_path_for(plain_jpeg)

        with patch("irismeta.file_ops.os.replace", side_effect=OSError("device busy")):
            with pytest.raises(WriteFailedError) as exc_info:
                AtomicSegmentRewriter().rewrite_segment(
                    plain_jpeg, SegmentKind.XMP, RecordingMutation([_append_comment])
                )

        assert exc_info.value.source == temp_path
        assert exc_info.value.destination == plain_jpeg
        assert "Failed to rename file" in str(exc_info.value)
        assert _read(plain_jpeg) == original
        assert _read(temp_path) == _append_comment(original)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AtomicSegmentRewriter().rewrite_segment(
                str(tmp_path / "gone.jpg"), SegmentKind.XMP, RecordingMutation([b"x"])
            )


class TestFileOperations:
    def test_write_file_returns_size(self, tmp_path):
        path = str(tmp_path / "out.bin")
        assert FileOperations.write_file(path, b"12345") == 5

    def test_delete_missing_file(self, tmp_path):
        ok, _ = FileOperations.delete_file(str(tmp_path / "none"))
        assert ok

    def test_replace_missing_source(self, tmp_path):
        ok, message = FileOperations.replace_file(
            str(tmp_path / "none"), str(tmp_path / "target")
        )
        assert not ok
        assert "not found" in message
