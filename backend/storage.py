import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from PIL import Image, UnidentifiedImageError
import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("AWS_REGION")
S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
S3_ACCESS_KEY = os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
S3_SECRET_KEY = os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")
S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL")
S3_PUBLIC_BASE_URL = os.environ.get("S3_PUBLIC_BASE_URL")

S3_CLIENT = None
if AWS_REGION and S3_BUCKET_NAME and S3_ACCESS_KEY and S3_SECRET_KEY:
    s3_config = Config(signature_version="s3v4", s3={"addressing_style": "virtual"})
    S3_CLIENT = boto3.client(
        "s3",
        region_name=AWS_REGION,
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        endpoint_url=S3_ENDPOINT_URL or f"https://s3.{AWS_REGION}.amazonaws.com",
        config=s3_config,
    )


def _require_client():
    if not S3_CLIENT or not S3_BUCKET_NAME or not AWS_REGION:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Storage not configured")
    return S3_CLIENT


def build_public_url(key: str) -> str:
    if S3_PUBLIC_BASE_URL:
        return f"{S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
    if not S3_BUCKET_NAME or not AWS_REGION:
        raise RuntimeError("S3 configuration missing")
    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"


def build_object_key(key_prefix: str, filename: str) -> str:
    extension = Path(filename or "").suffix.lower()
    return f"{key_prefix.strip('/')}/{uuid.uuid4().hex}{extension}"


def describe_media(local_path: Path, content_type: str) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "width": None,
        "height": None,
        "format": Path(local_path).suffix.lstrip(".").lower() or None,
        "size": Path(local_path).stat().st_size,
        "duration": None,
    }
    if content_type.startswith("image/"):
        try:
            with Image.open(local_path) as image:
                metadata["width"], metadata["height"] = image.size
                if image.format:
                    metadata["format"] = image.format.lower()
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Could not read image dimensions from %s: %s", local_path, exc)
    return metadata


def upload_media(local_path: Path, key_prefix: str, content_type: str, filename: Optional[str] = None) -> Dict[str, Any]:
    """Upload a staged file and return its public url, object key and media metadata."""
    client = _require_client()
    key = build_object_key(key_prefix, filename or Path(local_path).name)
    metadata = describe_media(local_path, content_type)

    try:
        client.upload_file(
            str(local_path),
            S3_BUCKET_NAME,
            key,
            ExtraArgs={"ContentType": content_type},
        )
    except Exception as exc:
        logger.error("S3 upload failed for %s: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload media to cloud storage") from exc

    logger.info("Uploaded %s (%s bytes)", key, metadata["size"])
    return {"url": build_public_url(key), "key": key, "metadata": metadata}


def delete_media(key: str) -> None:
    client = _require_client()
    try:
        client.delete_object(Bucket=S3_BUCKET_NAME, Key=key)
    except Exception as exc:
        logger.error("S3 delete failed for %s: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete media from cloud storage") from exc
    logger.info("Deleted %s from storage", key)
