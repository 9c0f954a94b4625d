import os
import io
import logging
from datetime import datetime, timezone
from functools import lru_cache
from PIL import Image
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lostlink import config

logger = logging.getLogger(__name__)

FOLDER = "uploads"


@lru_cache(maxsize=1)
def get_s3_client():
    return boto3.client(
        service_name="s3",
        endpoint_url=f"https://{config.CLOUDFLARE_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=config.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
        region_name="auto",
    )


def compress_image(data: bytes, max_width=1400, quality=80):
    img = Image.open(io.BytesIO(data))
    img = img.convert("RGB")

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
        logger.warning("WebP failed, falling back to JPEG: %s", e)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        ext = "jpg"

    buffer.seek(0)
    return buffer, ext


def shrink_for_analysis(data: bytes, max_side=1024) -> bytes:
    """JPEG copy small enough for an annotate request."""
    img = Image.open(io.BytesIO(data))
    img = img.convert("RGB")
    img.thumbnail((max_side, max_side), Image.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()


def upload_to_s3(buffer: io.BytesIO, ext: str, original_name: str):
    base = os.path.splitext(os.path.basename(original_name or "image"))[0]

    ts = int(datetime.now(timezone.utc).timestamp())
    key = f"{FOLDER}/{base}-{ts}.{ext}"

    get_s3_client().upload_fileobj(buffer, config.R2_BUCKET, key)

    return key


def download_from_s3(key: str) -> bytes:
    response = get_s3_client().get_object(Bucket=config.R2_BUCKET, Key=key)
    return response["Body"].read()


def generate_signed_url(key: str, expires_in=3600):
    try:
        return get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": config.R2_BUCKET, "Key": key},
                ExpiresIn=expires_in
            )
    except (BotoCoreError, ClientError) as e:
        logger.error("Error generating signed URL for %s: %s", key, e)
        return None


def delete_s3_object(key: str):
    try:
        get_s3_client().delete_object(Bucket=config.R2_BUCKET, Key=key)
    except (BotoCoreError, ClientError) as e:
        logger.error("Error deleting S3 object %s: %s", key, e)


def get_all_urls(db_items: list):
    items_response = []

    for item in db_items:
        data = item.model_dump()
        data["image"] = generate_signed_url(item.image)
        items_response.append(data)

    return items_response
