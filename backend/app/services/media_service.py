"""
ContactBook Backend — Media Storage
=====================================

What:  Stores contact photos and returns a durable URL for them.
Why:   Contacts only keep a URL; where the bytes live is a deployment choice
       (MEDIA_BACKEND=local for development, cloudinary in production).
How:   `MediaStorage.store()` validates the upload, then hands the bytes to
       the backend-specific `_put()`.
Who:   ContactService on create/update when a photo is attached.

Validation (cheapest check first):
    1. Extension:  .png .jpg .jpeg .gif .webp
    2. Size:       non-empty and ≤ MAX_UPLOAD_SIZE
    3. MIME type:  libmagic inspects the header bytes; the detected type must
                   be an allowed image AND agree with the extension
                   (a renamed .exe, or a .png holding a JPEG, is rejected)

Backends:
    LocalMediaStorage   storage_root/YYYY/MM/DD/<uuid>.<ext>, served by
                        GET /files/{path}
    CloudinaryStorage   Cloudinary upload API, folder CLOUDINARY_FOLDER,
                        retried with tenacity, failures → UpstreamError
"""

import asyncio
import io
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import magic

from app.config import Settings
from app.exceptions import UpstreamError, ValidationError
from app.services.retry_policy import upstream_retrying

# Detected MIME type → extensions a file of that type may carry
ALLOWED_MIME_TYPES = {
    "image/png": (".png",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}

ALLOWED_EXTENSIONS = {ext for exts in ALLOWED_MIME_TYPES.values() for ext in exts}


def detect_mime_type(content: bytes) -> str:
    """MIME type of `content` according to libmagic (e.g. "image/png")."""
    return magic.from_buffer(content, mime=True)


class MediaStorage(ABC):
    """
    Contract:
        - store() returns a URL that stays valid after the request ends
        - invalid input raises ValidationError before anything is written
        - backend failures surface as UpstreamError
    """

    name: str = "abstract"

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)

    def validate(self, filename: str, content: bytes) -> str:
        """
        Run all upload checks.

        Returns:
            Normalized extension (lowercase, with dot)
        Raises:
            ValidationError: field="photo"
        """
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="photo",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )

        if not content:
            raise ValidationError(message="Uploaded file is empty", field="photo")

        max_size = self.settings.max_upload_size
        if len(content) > max_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_size / (1024 * 1024):.0f}MB.",
                field="photo",
                context={"max_size": max_size, "actual_size": len(content)},
            )

        try:
            mime_type = detect_mime_type(content)
        except magic.MagicException as e:
            self.logger.error("MIME type detection failed: %s", e)
            raise ValidationError(
                message="Could not verify file type",
                field="photo",
                context={"error": str(e)},
            ) from e

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=f"File content type '{mime_type}' is not a supported image",
                field="photo",
                context={"detected_mime": mime_type, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        if ext not in ALLOWED_MIME_TYPES[mime_type]:
            raise ValidationError(
                message=f"File extension '{ext}' does not match its content ({mime_type})",
                field="photo",
                context={"extension": ext, "detected_mime": mime_type},
            )
        return ext

    async def store(self, filename: str, content: bytes) -> str:
        """Validate then persist an image, returning its URL."""
        ext = self.validate(filename, content)
        return await self._put(content, ext)

    @abstractmethod
    async def _put(self, content: bytes, extension: str) -> str:
        """Persist already-validated bytes and return the URL."""
        ...


class LocalMediaStorage(MediaStorage):
    """
    Date-organized files on local disk.

    Directory Structure:
        storage/
        └── 2024/
            └── 01/
                └── 15/
                    ├── a1b2c3d4-5678.jpg
                    └── e5f6g7h8-9012.png
    """

    name = "local"

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        super().__init__(settings, logger)
        self.storage_root = Path(settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.logger.info("LocalMediaStorage initialized with storage_root=%s", self.storage_root)

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def _put(self, content: bytes, extension: str) -> str:
        absolute_path, relative_path = self._generate_storage_path(extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            self.logger.error("Failed to store file at %s: %s", absolute_path, e)
            raise UpstreamError(
                service="storage",
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            ) from e

        self.logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return f"{self.settings.media_base_url.rstrip('/')}/files/{relative_path}"

    def resolve(self, relative_path: str) -> Optional[Path]:
        """
        Map a /files/{path} request onto disk.

        Returns None for anything outside storage_root (../ traversal) or
        that is not an existing regular file.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root) or not candidate.is_file():
            return None
        return candidate


class CloudinaryStorage(MediaStorage):
    """Uploads to Cloudinary; the SDK is synchronous so calls run on a worker thread."""

    name = "cloudinary"

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        super().__init__(settings, logger)
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )
        self.logger.info(
            "CloudinaryStorage configured: cloud=%s folder=%s",
            settings.cloudinary_cloud_name,
            settings.cloudinary_folder,
        )

    def _upload(self, content: bytes) -> dict:
        return cloudinary.uploader.upload(
            io.BytesIO(content),
            resource_type="image",
            folder=self.settings.cloudinary_folder,
            public_id=str(uuid.uuid4()),
            overwrite=False,
            timeout=30,
        )

    async def _put(self, content: bytes, extension: str) -> str:
        try:
            async for attempt in upstream_retrying(
                self.settings, self.logger, (cloudinary.exceptions.Error, OSError)
            ):
                with attempt:
                    result = await asyncio.to_thread(self._upload, content)
        except (cloudinary.exceptions.Error, OSError) as e:
            self.logger.error("Cloudinary upload failed after retries: %s", e)
            raise UpstreamError(
                service="cloudinary",
                message="Image upload failed, please try again later.",
                context={"error_type": type(e).__name__},
            ) from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise UpstreamError(
                service="cloudinary",
                message="Image upload failed, please try again later.",
                context={"reason": "no url in response"},
            )
        self.logger.info(
            "Cloudinary upload completed: public_id=%s bytes=%s",
            result.get("public_id"),
            result.get("bytes"),
        )
        return url


def build_media_storage(settings: Settings) -> MediaStorage:
    """Pick the backend named by MEDIA_BACKEND."""
    if settings.media_backend == "cloudinary":
        return CloudinaryStorage(settings)
    return LocalMediaStorage(settings)
