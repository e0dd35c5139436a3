"""Media inspection before upload: type, size limits, photo validation and EXIF dates."""

import io
import mimetypes
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image, UnidentifiedImageError

from ..config import get_env
from ..error_handling import MediaProcessingError, ValidationError
from ..logging_config import get_logger, log_performance
from ..models.records import MEDIA_TYPE_PHOTO, MEDIA_TYPE_VIDEO

try:
    from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

    register_heif_opener()
    HEIF_AVAILABLE = True
except ImportError:
    HEIF_AVAILABLE = False

logger = get_logger(__name__)


@dataclass(frozen=True)
class MediaInfo:
    """What the inspector learned about a file."""

    filename: str
    media_type: str
    mime_type: str
    file_size: int
    width: int | None = None
    height: int | None = None
    captured_at: datetime | None = None

    @property
    def is_video(self) -> bool:
        return self.media_type == MEDIA_TYPE_VIDEO


class MediaInspector:
    """Validates photos and videos picked for upload."""

    PHOTO_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif"}
    VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".webm", ".3gp"}
    HEIF_EXTENSIONS = {".heic", ".heif"}

    # EXIF date tags in priority order
    EXIF_DATE_TAGS = [
        "DateTimeOriginal",
        "DateTime",
        "DateTimeDigitized",
    ]

    def __init__(self, max_file_size: int | None = None, min_file_size: int | None = None) -> None:
        self.max_file_size = max_file_size or int(get_env("MAX_FILE_SIZE", 50 * 1024 * 1024, int))
        self.min_file_size = min_file_size if min_file_size is not None else int(get_env("MIN_FILE_SIZE", 100, int))

    def guess_mime_type(self, filename: str) -> str:
        extension = Path(filename).suffix.lower()
        if extension in self.HEIF_EXTENSIONS:
            return "image/heic"
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or "application/octet-stream"

    def classify(self, filename: str, mime_type: str | None = None) -> str:
        """
        Decide whether a file is a photo or a video.

        Raises:
            ValidationError: If the file is neither
        """
        mime_type = (mime_type or self.guess_mime_type(filename)).lower()
        extension = Path(filename).suffix.lower()

        if mime_type.startswith("video/") or extension in self.VIDEO_EXTENSIONS:
            return MEDIA_TYPE_VIDEO
        if mime_type.startswith("image/") or extension in self.PHOTO_EXTENSIONS:
            if extension in self.HEIF_EXTENSIONS and not HEIF_AVAILABLE:
                logger.warning("heic_format_unsupported", filename=filename, install_command="pip install pillow-heif")
            return MEDIA_TYPE_PHOTO

        raise ValidationError(
            f"Unsupported file type for '{filename}' ({mime_type})",
            code="unsupported_format",
            user_message=f"'{filename}' is not a photo or video.",
            details={"filename": filename, "mime_type": mime_type, "extension": extension},
        )

    def validate_file_size(self, data: bytes, filename: str) -> None:
        """
        Check the file against the configured size limits.

        Raises:
            ValidationError: If the file is too small or too large
        """
        file_size = len(data)

        if file_size < self.min_file_size:
            raise ValidationError(
                f"File '{filename}' is too small ({file_size} bytes). Minimum size: {self.min_file_size} bytes",
                code="file_too_small",
                user_message=f"'{filename}' is too small to be a valid file.",
                details={"filename": filename, "file_size": file_size, "min_size": self.min_file_size},
            )

        if file_size > self.max_file_size:
            max_size_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                f"File '{filename}' is too large ({file_size / (1024 * 1024):.1f}MB). Maximum size: {max_size_mb:.0f}MB",
                code="file_too_large",
                user_message=f"'{filename}' is larger than {max_size_mb:.0f}MB.",
                details={"filename": filename, "file_size": file_size, "max_size": self.max_file_size},
            )

    def extract_exif_date(self, data: bytes) -> datetime | None:
        """
        Extract the capture date from EXIF data.

        Returns:
            The capture date as UTC, or None when absent or unreadable
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                exif_data = dict(image.getexif())
        except (UnidentifiedImageError, OSError) as e:
            logger.debug("exif_read_failed", error=str(e))
            return None

        if not exif_data:
            return None

        for tag_name in self.EXIF_DATE_TAGS:
            date_value = self._get_exif_date_by_name(exif_data, tag_name)
            if date_value:
                return date_value
        return None

    def _get_exif_date_by_name(self, exif_data: dict[Any, Any], tag_name: str) -> datetime | None:
        tag_id = next((tag for tag, name in ExifTags.TAGS.items() if name == tag_name), None)
        if tag_id is None:
            return None

        date_string = exif_data.get(tag_id)
        if not date_string:
            return None

        try:
            # EXIF format: "YYYY:MM:DD HH:MM:SS"
            return datetime.strptime(str(date_string), "%Y:%m:%d %H:%M:%S").replace(tzinfo=UTC)
        except ValueError:
            logger.debug("exif_date_parse_failed", tag_name=tag_name, date_string=str(date_string))
            return None

    def inspect(self, data: bytes, filename: str, mime_type: str | None = None) -> MediaInfo:
        """
        Validate a file and collect what the upload record needs.

        Raises:
            ValidationError: If the type or size is not acceptable
            MediaProcessingError: If a photo cannot be decoded
        """
        start_time = datetime.now()
        mime_type = mime_type or self.guess_mime_type(filename)
        media_type = self.classify(filename, mime_type)
        self.validate_file_size(data, filename)

        if media_type == MEDIA_TYPE_VIDEO:
            return MediaInfo(filename=filename, media_type=media_type, mime_type=mime_type, file_size=len(data))

        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise MediaProcessingError(
                f"Invalid or corrupted image file '{filename}': {e}",
                code="image_validation_failed",
                user_message=f"'{filename}' is damaged or not a valid image.",
                details={"filename": filename, "file_size": len(data)},
                original_exception=e,
            ) from e

        info = MediaInfo(
            filename=filename,
            media_type=media_type,
            mime_type=mime_type,
            file_size=len(data),
            width=width,
            height=height,
            captured_at=self.extract_exif_date(data),
        )

        duration = (datetime.now() - start_time).total_seconds()
        log_performance("inspect_media", duration, filename=filename, file_size=len(data), media_type=media_type)
        return info


_media_inspector: MediaInspector | None = None


def get_media_inspector() -> MediaInspector:
    """Get the global media inspector instance."""
    global _media_inspector
    if _media_inspector is None:
        _media_inspector = MediaInspector()
    return _media_inspector
