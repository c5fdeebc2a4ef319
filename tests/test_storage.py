"""Tests for avatar validation and the two storage backends."""
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from google.api_core import exceptions as gcs_exceptions

from app.errors import InvalidInput
from app.utils.storage import check_storage, save_avatar, validate_avatar

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TestValidateAvatar:
    def test_accepts_image(self, settings):
        assert validate_avatar(PNG_BYTES, "image/png", settings) == "image/png"

    def test_strips_parameters(self, settings):
        assert validate_avatar(PNG_BYTES, "Image/JPEG; charset=binary", settings) == "image/jpeg"

    @pytest.mark.parametrize("content_type", [None, "", "text/plain", "application/pdf"])
    def test_rejects_non_image(self, settings, content_type):
        with pytest.raises(InvalidInput) as exc:
            validate_avatar(PNG_BYTES, content_type, settings)
        assert exc.value.message == "Avatar must be an image"

    @pytest.mark.parametrize("content_type", ["image/svg+xml", "image/x-icon", "image/tiff"])
    def test_rejects_unlisted_image_types(self, settings, content_type):
        with pytest.raises(InvalidInput) as exc:
            validate_avatar(PNG_BYTES, content_type, settings)
        assert exc.value.message == "Unsupported image type"

    def test_rejects_empty(self, settings):
        with pytest.raises(InvalidInput) as exc:
            validate_avatar(b"", "image/png", settings)
        assert exc.value.message == "Avatar file is empty"

    def test_rejects_oversized(self, settings):
        small = settings.model_copy(update={"MAX_AVATAR_BYTES": 8})
        with pytest.raises(InvalidInput) as exc:
            validate_avatar(PNG_BYTES, "image/png", small)
        assert exc.value.message == "Avatar file too large"


class TestLocalStorage:
    async def test_save_writes_file(self, settings):
        url = await save_avatar(PNG_BYTES, "face.png", "image/png", settings)

        assert url.startswith("/uploads/")
        name = url.rsplit("/", 1)[1]
        assert name.endswith(".png")
        assert (Path(settings.UPLOAD_DIR) / name).read_bytes() == PNG_BYTES

    async def test_extension_from_content_type(self, settings):
        url = await save_avatar(PNG_BYTES, None, "image/webp", settings)
        assert url.endswith(".webp")

    async def test_client_filename_does_not_pick_extension(self, settings):
        url = await save_avatar(b"<script>alert(1)</script>", "x.html", "image/png", settings)

        assert url.endswith(".png")
        assert [p.suffix for p in Path(settings.UPLOAD_DIR).iterdir()] == [".png"]

    async def test_unique_names(self, settings):
        first = await save_avatar(PNG_BYTES, "a.png", "image/png", settings)
        second = await save_avatar(PNG_BYTES, "a.png", "image/png", settings)
        assert first != second

    def test_check_storage_local(self, settings):
        Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
        assert check_storage(settings) == "local"

    def test_check_storage_missing_dir(self, settings, tmp_path):
        missing = settings.model_copy(update={"UPLOAD_DIR": str(tmp_path / "nope")})
        with pytest.raises(RuntimeError):
            check_storage(missing)


class TestGCSStorage:
    @pytest.fixture
    def gcs_settings(self, settings):
        return settings.model_copy(update={"GCS_BUCKET_NAME": "cupid-avatars"})

    async def test_save_uploads_blob(self, gcs_settings):
        bucket = MagicMock()
        blob = bucket.blob.return_value
        blob.public_url = "https://storage.googleapis.com/cupid-avatars/avatars/x.png"

        with patch("app.utils.storage.get_bucket", return_value=bucket):
            url = await save_avatar(PNG_BYTES, "face.png", "image/png", gcs_settings)

        assert url == blob.public_url
        path = bucket.blob.call_args.args[0]
        assert path.startswith("avatars/")
        assert path.endswith(".png")
        blob.upload_from_string.assert_called_once_with(PNG_BYTES, content_type="image/png")

    def test_check_storage_bucket_present(self, gcs_settings):
        bucket = MagicMock()
        bucket.exists.return_value = True
        with patch("app.utils.storage.get_bucket", return_value=bucket):
            assert check_storage(gcs_settings) == "gcs"

    def test_check_storage_bucket_missing(self, gcs_settings):
        bucket = MagicMock()
        bucket.exists.return_value = False
        with patch("app.utils.storage.get_bucket", return_value=bucket):
            with pytest.raises(RuntimeError):
                check_storage(gcs_settings)

    async def test_transient_error_is_retried(self, gcs_settings):
        bucket = MagicMock()
        blob = bucket.blob.return_value
        blob.public_url = "https://storage.googleapis.com/cupid-avatars/avatars/y.png"
        blob.upload_from_string.side_effect = [
            gcs_exceptions.ServiceUnavailable("backend busy"),
            None,
        ]

        with patch("app.utils.storage.get_bucket", return_value=bucket):
            url = await save_avatar(PNG_BYTES, "face.png", "image/png", gcs_settings)

        assert url == blob.public_url
        assert blob.upload_from_string.call_count == 2

    async def test_permanent_error_is_not_retried(self, gcs_settings):
        bucket = MagicMock()
        bucket.blob.return_value.upload_from_string.side_effect = gcs_exceptions.Forbidden("denied")

        with patch("app.utils.storage.get_bucket", return_value=bucket):
            with pytest.raises(gcs_exceptions.Forbidden):
                await save_avatar(PNG_BYTES, "face.png", "image/png", gcs_settings)

        assert bucket.blob.return_value.upload_from_string.call_count == 1
