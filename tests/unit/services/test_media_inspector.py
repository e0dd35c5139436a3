"""
Unit tests for media inspection.
"""

from datetime import UTC, datetime

import pytest

from pairgallery.error_handling import MediaProcessingError, ValidationError
from pairgallery.models.records import MEDIA_TYPE_PHOTO, MEDIA_TYPE_VIDEO
from pairgallery.services.media_inspector import MediaInspector
from tests.conftest import TestDataFactory


class TestMediaInspector:
    """Test cases for MediaInspector."""

    def setup_method(self):
        self.inspector = MediaInspector(max_file_size=10_000)

    @pytest.mark.parametrize(
        "filename,mime_type,expected",
        [
            ("a.jpg", None, MEDIA_TYPE_PHOTO),
            ("a.HEIC", None, MEDIA_TYPE_PHOTO),
            ("clip.mov", None, MEDIA_TYPE_VIDEO),
            ("blob", "video/mp4", MEDIA_TYPE_VIDEO),
            ("blob", "image/png", MEDIA_TYPE_PHOTO),
        ],
    )
    def test_classify(self, filename, mime_type, expected):
        assert self.inspector.classify(filename, mime_type) == expected

    def test_classify_rejects_other_files(self):
        with pytest.raises(ValidationError) as exc_info:
            self.inspector.classify("notes.pdf")

        assert exc_info.value.code == "unsupported_format"

    def test_guess_mime_type(self):
        assert self.inspector.guess_mime_type("a.heic") == "image/heic"
        assert self.inspector.guess_mime_type("a.jpg") == "image/jpeg"
        assert self.inspector.guess_mime_type("mystery") == "application/octet-stream"

    def test_size_limits(self):
        with pytest.raises(ValidationError) as too_small:
            self.inspector.validate_file_size(b"x" * 10, "a.jpg")
        with pytest.raises(ValidationError) as too_large:
            self.inspector.validate_file_size(b"x" * 20_000, "a.jpg")

        assert too_small.value.code == "file_too_small"
        assert too_large.value.code == "file_too_large"

    def test_inspect_photo(self):
        data = TestDataFactory.create_jpeg_bytes(size=(32, 24))

        info = self.inspector.inspect(data, "a.jpg")

        assert info.media_type == MEDIA_TYPE_PHOTO
        assert info.mime_type == "image/jpeg"
        assert (info.width, info.height) == (32, 24)
        assert info.file_size == len(data)
        assert info.captured_at is None

    def test_inspect_reads_exif_date(self):
        data = TestDataFactory.create_jpeg_bytes(exif_date="2023:07:14 09:30:00")

        info = self.inspector.inspect(data, "a.jpg", "image/jpeg")

        assert info.captured_at == datetime(2023, 7, 14, 9, 30, tzinfo=UTC)

    def test_inspect_video_skips_decoding(self):
        info = self.inspector.inspect(b"\x00" * 500, "clip.mp4")

        assert info.is_video
        assert info.width is None

    def test_corrupt_photo(self):
        with pytest.raises(MediaProcessingError) as exc_info:
            self.inspector.inspect(b"\xff\xd8" + b"x" * 300, "a.jpg")

        assert exc_info.value.code == "image_validation_failed"

    def test_unreadable_exif(self):
        assert self.inspector.extract_exif_date(b"not an image") is None
