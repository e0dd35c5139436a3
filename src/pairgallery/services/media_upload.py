"""
Media upload to the hosted CDNs.

Uploads go to ImageKit while its storage usage is under the configured
budget, and to Cloudinary (through a relay endpoint that holds the API
secret) once the budget is used up or when an ImageKit upload fails. In
development without any provider configured, files are written to a local
directory instead.
"""

import asyncio
import base64
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import requests

from ..config import (
    get_cloudinary_relay_url,
    get_imagekit_auth_endpoint,
    get_imagekit_limit_gb,
    get_imagekit_public_key,
    get_imagekit_upload_url,
    get_imagekit_usage_endpoint,
    get_upload_timeout_seconds,
    is_development,
)
from ..error_handling import UploadError
from ..logging_config import get_logger, log_performance

logger = get_logger(__name__)

STORAGE_IMAGEKIT = "imagekit"
STORAGE_CLOUDINARY = "cloudinary"
STORAGE_LOCAL = "local"


class UploadProgress:
    """Helper class for tracking upload progress."""

    def __init__(self, total_bytes: int, filename: str = ""):
        self.total_bytes = total_bytes
        self.uploaded_bytes = 0
        self.filename = filename
        self.start_time = datetime.now()
        self.status = "pending"
        self.provider: str | None = None

    def update(self, uploaded_bytes: int, status: str = "uploading") -> None:
        """Update progress information."""
        self.uploaded_bytes = uploaded_bytes
        self.status = status

    @property
    def progress_percentage(self) -> float:
        """Get progress as percentage."""
        if self.total_bytes == 0:
            return 0.0
        percentage = (self.uploaded_bytes / self.total_bytes) * 100
        return max(0.0, min(100.0, percentage))

    @property
    def elapsed_time(self) -> timedelta:
        return datetime.now() - self.start_time

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "total_bytes": self.total_bytes,
            "uploaded_bytes": self.uploaded_bytes,
            "progress_percentage": self.progress_percentage,
            "status": self.status,
            "provider": self.provider,
            "elapsed_seconds": self.elapsed_time.total_seconds(),
        }


ProgressCallback = Callable[[UploadProgress], None]


@dataclass(frozen=True)
class UploadResult:
    """Public URL of an uploaded file and the provider that holds it."""

    url: str
    storage_type: str


def _response_message(response: requests.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or fallback)
    return fallback


class ImageKitUploader:
    """Signed multipart upload to ImageKit."""

    storage_type = STORAGE_IMAGEKIT

    def __init__(
        self,
        public_key: str,
        auth_endpoint: str,
        upload_url: str,
        session: requests.Session | None = None,
        timeout: float = 120.0,
    ):
        self.public_key = public_key
        self.auth_endpoint = auth_endpoint
        self.upload_url = upload_url
        self._session = session or requests.Session()
        self.timeout = timeout

    def fetch_signature(self) -> dict[str, Any]:
        """
        Get a one-time upload signature from the auth endpoint.

        Raises:
            UploadError: If no valid ``signature``/``expire``/``token`` is returned
        """
        try:
            response = self._session.get(self.auth_endpoint, timeout=self.timeout)
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UploadError(
                f"ImageKit signature request failed: {e}", code="imagekit_signature_failed", original_exception=e
            ) from e

        complete = isinstance(body, dict) and all(body.get(key) for key in ("signature", "expire", "token"))
        if not response.ok or not complete:
            raise UploadError(
                _response_message(response, "ImageKit signature missing"),
                code="imagekit_signature_failed",
                details={"status": response.status_code},
            )
        return body

    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        """
        Upload a file and return its CDN URL.

        Raises:
            UploadError: With the provider's message on failure
        """
        signature = self.fetch_signature()
        form = {
            "fileName": filename,
            "publicKey": self.public_key,
            "signature": signature["signature"],
            "expire": str(signature["expire"]),
            "token": signature["token"],
        }

        try:
            response = self._session.post(
                self.upload_url,
                data=form,
                files={"file": (filename, data, mime_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"ImageKit upload failed: {e}", code="imagekit_upload_failed", original_exception=e) from e

        message = _response_message(response, "ImageKit upload failed")
        if not response.ok:
            raise UploadError(message, code="imagekit_upload_failed", details={"status": response.status_code})

        try:
            body = response.json()
        except ValueError as e:
            raise UploadError(
                "ImageKit returned an unreadable response",
                code="imagekit_upload_failed",
                details={"status": response.status_code},
                original_exception=e,
            ) from e

        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise UploadError("ImageKit response did not include a URL", code="imagekit_upload_failed")
        return url


class CloudinaryRelayUploader:
    """Upload through a relay endpoint that forwards base64 data URIs to Cloudinary."""

    storage_type = STORAGE_CLOUDINARY

    def __init__(self, relay_url: str, session: requests.Session | None = None, timeout: float = 120.0):
        self.relay_url = relay_url
        self._session = session or requests.Session()
        self.timeout = timeout

    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        file_base64 = base64.b64encode(data).decode("ascii")
        try:
            response = self._session.post(
                self.relay_url,
                json={"fileBase64": f"data:{mime_type};base64,{file_base64}"},
                timeout=self.timeout,
            )
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UploadError(
                f"Cloudinary upload failed: {e}", code="cloudinary_upload_failed", original_exception=e
            ) from e

        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise UploadError(
                _response_message(response, "Cloudinary upload failed"),
                code="cloudinary_upload_failed",
                details={"status": response.status_code, "filename": filename},
            )
        return url


class LocalFileUploader:
    """Writes files to a local directory; development only."""

    storage_type = STORAGE_LOCAL

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / f"{uuid.uuid4().hex}_{Path(filename).name or 'upload'}"
        target.write_bytes(data)
        return target.resolve().as_uri()


class MediaUploadService:
    """
    Picks a provider and uploads a file.

    Args:
        imagekit: ImageKit uploader, or None when not configured
        cloudinary: Cloudinary relay uploader, or None when not configured
        usage_endpoint: Endpoint returning ``{"totalGB": ...}`` for ImageKit
        limit_gb: ImageKit budget; at or above it uploads go to Cloudinary
        local: Local uploader used when no remote provider is configured
    """

    def __init__(
        self,
        imagekit: ImageKitUploader | None = None,
        cloudinary: CloudinaryRelayUploader | None = None,
        usage_endpoint: str | None = None,
        limit_gb: float = 19.0,
        local: LocalFileUploader | None = None,
        session: requests.Session | None = None,
    ):
        self.imagekit = imagekit
        self.cloudinary = cloudinary
        self.usage_endpoint = usage_endpoint
        self.limit_gb = limit_gb
        self.local = local
        self._session = session or requests.Session()

    def imagekit_has_capacity(self) -> bool:
        """Check ImageKit usage against the budget; unknown usage counts as full."""
        if self.imagekit is None:
            return False
        if not self.usage_endpoint:
            return True

        try:
            usage = self._session.get(self.usage_endpoint, timeout=10).json()
            total_gb = float(usage.get("totalGB"))
        except (requests.RequestException, ValueError, TypeError, AttributeError) as e:
            logger.warning("imagekit_usage_unavailable", error=str(e))
            return False

        has_capacity = total_gb < self.limit_gb
        logger.info("imagekit_usage_checked", total_gb=total_gb, limit_gb=self.limit_gb, use_imagekit=has_capacity)
        return has_capacity

    def _upload_sync(self, data: bytes, filename: str, mime_type: str, progress: UploadProgress) -> UploadResult:
        if self.imagekit is None and self.cloudinary is None:
            if self.local is None:
                raise UploadError("No media upload provider is configured", code="upload_not_configured")
            progress.provider = STORAGE_LOCAL
            return UploadResult(self.local.upload(data, filename, mime_type), STORAGE_LOCAL)

        if self.imagekit is not None and self.imagekit_has_capacity():
            progress.provider = STORAGE_IMAGEKIT
            try:
                return UploadResult(self.imagekit.upload(data, filename, mime_type), STORAGE_IMAGEKIT)
            except UploadError as e:
                if self.cloudinary is None:
                    raise
                logger.warning("imagekit_upload_fallback", filename=filename, error=str(e))

        if self.cloudinary is None:
            raise UploadError("ImageKit is over its storage limit and Cloudinary is not configured", code="no_provider")

        progress.provider = STORAGE_CLOUDINARY
        return UploadResult(self.cloudinary.upload(data, filename, mime_type), STORAGE_CLOUDINARY)

    async def upload(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """
        Upload a file to the current provider.

        Raises:
            UploadError: If every applicable provider failed
        """
        progress = UploadProgress(len(data), filename)

        def report(uploaded: int, status: str) -> None:
            progress.update(uploaded, status)
            if on_progress is not None:
                on_progress(progress)

        report(0, "uploading")
        start_time = datetime.now()
        try:
            result = await asyncio.to_thread(self._upload_sync, data, filename, mime_type, progress)
        except Exception:
            report(0, "failed")
            raise

        report(len(data), "completed")
        log_performance(
            "media_upload",
            (datetime.now() - start_time).total_seconds(),
            filename=filename,
            file_size=len(data),
            storage_type=result.storage_type,
        )
        return result


_media_upload_service: MediaUploadService | None = None


def create_media_upload_service() -> MediaUploadService:
    """Build the upload service from configuration."""
    timeout = get_upload_timeout_seconds()

    imagekit = None
    public_key = get_imagekit_public_key()
    auth_endpoint = get_imagekit_auth_endpoint()
    if public_key and auth_endpoint:
        imagekit = ImageKitUploader(public_key, auth_endpoint, get_imagekit_upload_url(), timeout=timeout)

    relay_url = get_cloudinary_relay_url()
    cloudinary = CloudinaryRelayUploader(relay_url, timeout=timeout) if relay_url else None

    local = None
    if imagekit is None and cloudinary is None and is_development():
        local = LocalFileUploader(Path.home() / ".pairgallery" / "media")
        logger.info("local_media_storage_enabled", directory=str(local.directory))

    return MediaUploadService(
        imagekit=imagekit,
        cloudinary=cloudinary,
        usage_endpoint=get_imagekit_usage_endpoint(),
        limit_gb=get_imagekit_limit_gb(),
        local=local,
    )


def get_media_upload_service() -> MediaUploadService:
    """Get the global media upload service instance."""
    global _media_upload_service
    if _media_upload_service is None:
        _media_upload_service = create_media_upload_service()
    return _media_upload_service
