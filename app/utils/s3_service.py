import os
import io
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
from PIL import Image, UnidentifiedImageError
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.utils.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


def _bucket():
    return os.getenv("R2_BUCKET")


@lru_cache(maxsize=1)
def get_s3_client():
    return boto3.client(
        service_name="s3",
        endpoint_url=f"https://{os.getenv('CLOUDFLARE_ACCOUNT_ID')}.r2.cloudflarestorage.com",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name="auto",
    )


def compress_image(data: bytes, max_width=1400, quality=80):
    try:
        img = Image.open(io.BytesIO(data))
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError):
        raise ValidationError("Uploaded file is not an image")

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
    except (OSError, KeyError) as e:
        logger.warning("WebP encoding failed, falling back to JPEG: %s", e)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        ext = "jpg"

    buffer.seek(0)
    return buffer, ext


def upload_to_s3(buffer: io.BytesIO, ext: str, original_name: str, folder: str = "uploads"):
    base = os.path.splitext(os.path.basename(original_name or "photo"))[0]

    ts = int(datetime.now(timezone.utc).timestamp())
    key = f"{folder}/{base}-{ts}.{ext}"

    try:
        get_s3_client().upload_fileobj(buffer, _bucket(), key)
    except (BotoCoreError, ClientError) as e:
        logger.error("Photo upload failed for %s: %s", key, e)
        raise ExternalServiceError("Photo upload failed, try again")

    return key


def store_photo(data: bytes, original_name: str, folder: str) -> str:
    """Validate, compress and upload an image. Returns the stored key."""
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    buffer, ext = compress_image(data)
    return upload_to_s3(buffer, ext, original_name, folder=folder)


def generate_signed_url(key: Optional[str], expires_in=3600):
    if not key:
        return None

    try:
        return get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": _bucket(), "Key": key},
                ExpiresIn=expires_in
            )
    except (BotoCoreError, ClientError) as e:
        logger.warning("Error generating signed URL for %s: %s", key, e)
        return None


def delete_s3_object(key: Optional[str]):
    if not key:
        return

    try:
        get_s3_client().delete_object(Bucket=_bucket(), Key=key)
    except (BotoCoreError, ClientError) as e:
        logger.warning("Error deleting S3 object %s: %s", key, e)


def item_response(item) -> dict:
    # reporter phone is only released through the contact disclosure
    data = item.model_dump(exclude={"reporter_phone"})
    data["image"] = generate_signed_url(item.image)
    return data


def claim_response(claim) -> dict:
    data = claim.model_dump()
    data["item_photo"] = generate_signed_url(claim.item_photo)
    data["photo"] = generate_signed_url(claim.photo)
    return data


def get_all_urls(db_items: list):
    return [item_response(item) for item in db_items]
