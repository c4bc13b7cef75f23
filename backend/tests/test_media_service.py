"""
ContactBook Backend — Media Storage Unit Tests
================================================

What:  Upload validation (extension, size, libmagic MIME type), local storage
       and the Cloudinary adapter's error translation.
How:   LocalMediaStorage writes to pytest's tmp_path. The Cloudinary SDK call
       is patched out; no network access.

Test Strategy:
    ✅ Allowed extensions, case-insensitive
    ✅ Rejected extensions, empty and oversized files
    ✅ MIME check catches renamed non-images and mismatched extensions
    ✅ Local store/resolve round trip and traversal refusal
    ✅ Cloudinary failure → UpstreamError after retries
"""

from unittest.mock import patch

import cloudinary.exceptions
import pytest

from app.exceptions import UpstreamError, ValidationError
from app.services.media_service import (
    CloudinaryStorage,
    LocalMediaStorage,
    build_media_storage,
    detect_mime_type,
)
from helpers import settings_for

# Minimal but well-formed headers: enough for libmagic to name the format
PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
    b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
)
JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 16
GIF = b"GIF89a\x01\x00\x01\x00\x00\x00\x00" + b"\x00" * 16
WEBP = b"RIFF\x24\x00\x00\x00WEBPVP8 \x18\x00\x00\x00\x30\x01\x00\x9d\x01\x2a\x01\x00\x01\x00" + b"\x00" * 16


class TestMimeDetection:
    @pytest.mark.parametrize(
        "content, mime",
        [(PNG, "image/png"), (JPEG, "image/jpeg"), (GIF, "image/gif"), (WEBP, "image/webp")],
    )
    def test_known_formats(self, content, mime):
        assert detect_mime_type(content) == mime

    def test_text_is_not_an_image(self):
        assert not detect_mime_type(b"just some plain text here").startswith("image/")


class TestValidation:
    @pytest.fixture(autouse=True)
    def _storage(self, tmp_path):
        self.storage = LocalMediaStorage(
            settings_for(storage_root=str(tmp_path), max_upload_size=1_048_576)
        )

    @pytest.mark.parametrize("filename", ["photo.jpg", "photo.JPEG", "photo.Png", "photo.webp"])
    def test_allowed_extensions(self, filename):
        content = JPEG if "jp" in filename.lower() else PNG
        if filename.lower().endswith(".webp"):
            content = WEBP
        assert self.storage.validate(filename, content) == "." + filename.rsplit(".", 1)[1].lower()

    @pytest.mark.parametrize("filename", ["document.pdf", "malware.exe", "noextension", ""])
    def test_rejected_extensions(self, filename):
        with pytest.raises(ValidationError, match="not supported"):
            self.storage.validate(filename, PNG)

    def test_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.storage.validate("photo.png", b"")

    def test_size_boundary(self):
        at_limit = PNG + b"\x00" * (1_048_576 - len(PNG))
        self.storage.validate("photo.png", at_limit)

        with pytest.raises(ValidationError, match="exceeds maximum of 1MB") as exc:
            self.storage.validate("photo.png", at_limit + b"\x00")
        assert exc.value.context["actual_size"] == 1_048_577

    def test_renamed_text_file(self):
        with pytest.raises(ValidationError, match="not a supported image") as exc:
            self.storage.validate("photo.png", b"just some text pretending")
        assert exc.value.field == "photo"

    def test_extension_must_match_content(self):
        with pytest.raises(ValidationError, match="does not match") as exc:
            self.storage.validate("photo.png", JPEG)
        assert exc.value.context["extension"] == ".png"
        assert exc.value.context["detected_mime"] == "image/jpeg"


class TestLocalMediaStorage:
    @pytest.mark.asyncio
    async def test_store_writes_file_and_returns_url(self, tmp_path):
        storage = LocalMediaStorage(
            settings_for(storage_root=str(tmp_path), media_base_url="http://api.test/")
        )
        url = await storage.store("portrait.PNG", PNG)

        assert url.startswith("http://api.test/files/")
        assert url.endswith(".png")
        relative = url.split("/files/", 1)[1]
        path = storage.resolve(relative)
        assert path is not None
        assert path.read_bytes() == PNG

    @pytest.mark.asyncio
    async def test_invalid_upload_writes_nothing(self, tmp_path):
        storage = LocalMediaStorage(settings_for(storage_root=str(tmp_path)))
        with pytest.raises(ValidationError):
            await storage.store("portrait.png", b"nope")
        assert list(tmp_path.rglob("*.*")) == []

    @pytest.mark.asyncio
    async def test_disk_failure_is_upstream_error(self, tmp_path):
        storage = LocalMediaStorage(settings_for(storage_root=str(tmp_path)))
        with patch("app.services.media_service.aiofiles.open", side_effect=OSError("disk full")):
            with pytest.raises(UpstreamError) as exc:
                await storage.store("portrait.png", PNG)
        assert exc.value.service == "storage"

    def test_resolve_refuses_traversal(self, tmp_path):
        root = tmp_path / "storage"
        storage = LocalMediaStorage(settings_for(storage_root=str(root)))
        (tmp_path / "secret.txt").write_text("top secret")

        assert storage.resolve("../secret.txt") is None
        assert storage.resolve("2024/01/01/missing.png") is None


class TestCloudinaryStorage:
    def _storage(self, tmp_path):
        return CloudinaryStorage(
            settings_for(
                storage_root=str(tmp_path),
                media_backend="cloudinary",
                cloudinary_cloud_name="demo",
                cloudinary_api_key="key",
                cloudinary_api_secret="secret",
            )
        )

    def test_factory_picks_backend(self, tmp_path):
        assert isinstance(self._storage(tmp_path), CloudinaryStorage)
        assert isinstance(
            build_media_storage(settings_for(storage_root=str(tmp_path))), LocalMediaStorage
        )

    @pytest.mark.asyncio
    async def test_upload_returns_secure_url(self, tmp_path):
        storage = self._storage(tmp_path)
        result = {"secure_url": "https://res.cloudinary.com/demo/image/upload/x.png", "public_id": "x"}
        with patch("app.services.media_service.cloudinary.uploader.upload", return_value=result) as upload:
            url = await storage.store("portrait.png", PNG)

        assert url == result["secure_url"]
        assert upload.call_args.kwargs["resource_type"] == "image"

    @pytest.mark.asyncio
    async def test_upload_failure_retries_then_raises(self, tmp_path):
        storage = self._storage(tmp_path)
        with patch(
            "app.services.media_service.cloudinary.uploader.upload",
            side_effect=cloudinary.exceptions.Error("boom"),
        ) as upload:
            with pytest.raises(UpstreamError) as exc:
                await storage.store("portrait.png", PNG)

        assert exc.value.service == "cloudinary"
        assert upload.call_count == 2  # retry_max_attempts in test settings

    @pytest.mark.asyncio
    async def test_bad_input_never_reaches_cloudinary(self, tmp_path):
        storage = self._storage(tmp_path)
        with patch("app.services.media_service.cloudinary.uploader.upload") as upload:
            with pytest.raises(ValidationError):
                await storage.store("portrait.gif", b"GIF? no")
        upload.assert_not_called()
