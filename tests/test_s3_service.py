"""
Tests for photo validation, compression and the S3 blob store
"""
import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from findr.core.config import Settings
from findr.errors import CollaboratorError, ImageValidationError
from findr.utils.s3_service import S3BlobStore, compress_image, validate_image


def png_bytes(width=64, height=32):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def client_error(operation):
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)


class TestValidateImage:

    def test_accepts_supported_image(self):
        validate_image(png_bytes(), "photo.PNG", "image/png")

    def test_rejects_empty(self):
        with pytest.raises(ImageValidationError):
            validate_image(b"", "photo.png")

    def test_rejects_oversized(self):
        with pytest.raises(ImageValidationError) as exc:
            validate_image(b"x" * 11, "photo.png", max_bytes=10)

        assert "limit" in str(exc.value)

    @pytest.mark.parametrize("filename", ["notes.txt", "archive", "photo.tiff"])
    def test_rejects_extension(self, filename):
        with pytest.raises(ImageValidationError):
            validate_image(b"data", filename)

    def test_rejects_non_image_content_type(self):
        with pytest.raises(ImageValidationError):
            validate_image(b"data", "photo.jpg", "application/pdf")


class TestCompressImage:

    def test_wide_images_are_scaled_down(self):
        buffer, ext, mime = compress_image(png_bytes(2800, 1000))

        img = Image.open(buffer)
        assert img.size == (1400, 500)
        assert mime == f"image/{'jpeg' if ext == 'jpg' else ext}"

    def test_small_images_keep_their_size(self):
        buffer, _, _ = compress_image(png_bytes(64, 32))
        assert Image.open(buffer).size == (64, 32)

    def test_unreadable_data(self):
        with pytest.raises(ImageValidationError):
            compress_image(b"definitely not an image")


class TestS3BlobStore:

    def test_upload_returns_key(self):
        client = MagicMock()
        store = S3BlobStore(client, "reports-bucket")

        key = store.upload(png_bytes(), "image/png", "wallet.png")

        assert key.startswith("report_images/")
        args, kwargs = client.upload_fileobj.call_args
        assert args[1] == "reports-bucket"
        assert args[2] == key
        assert kwargs["ExtraArgs"]["Metadata"] == {"original-name": "wallet.png"}

    def test_upload_validates_first(self):
        client = MagicMock()
        store = S3BlobStore(client, "reports-bucket", max_bytes=10)

        with pytest.raises(ImageValidationError):
            store.upload(png_bytes(), "image/png", "wallet.png")

        client.upload_fileobj.assert_not_called()

    def test_upload_failure_is_relayed(self):
        client = MagicMock()
        client.upload_fileobj.side_effect = client_error("PutObject")
        store = S3BlobStore(client, "reports-bucket")

        with pytest.raises(CollaboratorError) as exc:
            store.upload(png_bytes(), "image/png", "wallet.png")

        assert "AccessDenied" in str(exc.value)

    def test_delete(self):
        client = MagicMock()
        S3BlobStore(client, "reports-bucket").delete("report_images/a.webp")

        client.delete_object.assert_called_once_with(Bucket="reports-bucket", Key="report_images/a.webp")

    def test_delete_failure_is_relayed(self):
        client = MagicMock()
        client.delete_object.side_effect = client_error("DeleteObject")

        with pytest.raises(CollaboratorError):
            S3BlobStore(client, "reports-bucket").delete("report_images/a.webp")

    def test_url_for(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed.example/a"
        store = S3BlobStore(client, "reports-bucket")

        assert store.url_for("report_images/a.webp") == "https://signed.example/a"
        assert store.url_for(None) is None

    def test_url_failure_gives_none(self):
        client = MagicMock()
        client.generate_presigned_url.side_effect = client_error("GetObject")

        assert S3BlobStore(client, "reports-bucket").url_for("report_images/a.webp") is None


class TestSettings:

    def test_r2_endpoint_from_account(self):
        settings = Settings(cloudflare_account_id="acct")
        assert settings.blob_endpoint_url == "https://acct.r2.cloudflarestorage.com"

    def test_explicit_endpoint_wins(self):
        settings = Settings(cloudflare_account_id="acct", s3_endpoint_url="http://localhost:9000")
        assert settings.blob_endpoint_url == "http://localhost:9000"

    def test_upload_limit(self):
        assert Settings(max_upload_size_mb=2).max_upload_bytes == 2 * 1024 * 1024
