import io
import logging
import os
import uuid
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from findr.core.config import Settings
from findr.errors import CollaboratorError, ImageValidationError

logger = logging.getLogger(__name__)

FOLDER = "report_images"
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp"}
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


def validate_image(data: bytes, filename: str, content_type: Optional[str] = None, max_bytes: int = DEFAULT_MAX_BYTES):
    if not data:
        raise ImageValidationError("Image file is empty")

    if len(data) > max_bytes:
        raise ImageValidationError(f"Image exceeds {max_bytes // (1024 * 1024)}MB limit")

    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ImageValidationError(f"Unsupported file extension: {ext or 'none'}")

    if content_type and not content_type.startswith("image/"):
        raise ImageValidationError(f"Unsupported content type: {content_type}")


def compress_image(data: bytes, max_width=1400, quality=80) -> Tuple[io.BytesIO, str, str]:
    try:
        img = Image.open(io.BytesIO(data))
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ImageValidationError("File is not a readable image") from e

    # Resize while keeping aspect ratio
    w, h = img.size
    if w > max_width:
        new_height = int(h * (max_width / w))
        img = img.resize((max_width, new_height), Image.LANCZOS)

    # Try WebP first
    buffer = io.BytesIO()

    try:
        img.save(buffer, format="WEBP", quality=quality, method=6)
        ext = "webp"
        mime = "image/webp"
    except (KeyError, OSError) as e:
        logger.warning("WebP encoding failed, falling back to JPEG: %s", e)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        ext = "jpg"
        mime = "image/jpeg"

    buffer.seek(0)
    return buffer, ext, mime


def create_s3_client(settings: Settings):
    return boto3.client(
        service_name="s3",
        endpoint_url=settings.blob_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name="auto",
    )


class S3BlobStore:
    """Report photos in an S3 compatible bucket. References are object keys."""

    def __init__(self, client, bucket: str, max_bytes: int = DEFAULT_MAX_BYTES):
        self.client = client
        self.bucket = bucket
        self.max_bytes = max_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStore":
        return cls(create_s3_client(settings), settings.r2_bucket, settings.max_upload_bytes)

    def upload(self, data: bytes, content_type: Optional[str], filename: str) -> str:
        validate_image(data, filename, content_type, self.max_bytes)

        buffer, ext, mime = compress_image(data)
        key = f"{FOLDER}/{uuid.uuid4()}.{ext}"

        try:
            self.client.upload_fileobj(
                buffer,
                self.bucket,
                key,
                ExtraArgs={
                    "ContentType": mime,
                    "Metadata": {"original-name": os.path.basename(filename)},
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload of %s to bucket %s failed: %s", key, self.bucket, e)
            raise CollaboratorError("image upload", e) from e

        logger.info("Uploaded image %s (%d bytes in)", key, len(data))
        return key

    def delete(self, reference: str):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=reference)
        except (BotoCoreError, ClientError) as e:
            logger.error("Deleting object %s failed: %s", reference, e)
            raise CollaboratorError("image delete", e) from e

    def url_for(self, reference: Optional[str], expires_in=3600) -> Optional[str]:
        if not reference:
            return None

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": reference},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Could not sign URL for %s: %s", reference, e)
            return None
