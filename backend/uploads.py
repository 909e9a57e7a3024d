import logging
import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from fastapi import HTTPException, UploadFile, status

logger = logging.getLogger(__name__)

UPLOAD_TMP_DIR = Path(os.environ.get("UPLOAD_TMP_DIR") or tempfile.gettempdir()) / "uniconnect-uploads"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024

ALLOWED_MEDIA_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
]
ALLOWED_IMAGE_TYPES = [t for t in ALLOWED_MEDIA_TYPES if t.startswith("image/")]


@dataclass
class StagedFile:
    path: Path
    filename: str
    content_type: str
    size: int


def stage_upload(file: UploadFile, field_name: str, allowed_types: Optional[List[str]] = None) -> StagedFile:
    allowed_types = allowed_types or ALLOWED_MEDIA_TYPES
    content_type = (file.content_type or "").lower()
    if content_type not in allowed_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only images (JPEG, PNG, GIF, WebP) and videos (MP4, MPEG, MOV) are allowed.",
        )

    UPLOAD_TMP_DIR.mkdir(parents=True, exist_ok=True)
    extension = Path(file.filename or "").suffix.lower()
    path = UPLOAD_TMP_DIR / f"{field_name}-{uuid.uuid4().hex}{extension}"

    size = 0
    try:
        with path.open("wb") as out:
            while True:
                chunk = file.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > MAX_UPLOAD_BYTES:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
                    )
                out.write(chunk)
    except Exception:
        discard(path)
        raise

    return StagedFile(path=path, filename=file.filename or path.name, content_type=content_type, size=size)


def discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove staged upload %s: %s", path, exc)


@contextmanager
def staged_upload(file: UploadFile, field_name: str, allowed_types: Optional[List[str]] = None) -> Iterator[StagedFile]:
    """Stage an upload on local disk for the duration of the block, removing it afterwards."""
    staged = stage_upload(file, field_name, allowed_types)
    try:
        yield staged
    finally:
        discard(staged.path)


def clear_staging_dir() -> None:
    if UPLOAD_TMP_DIR.exists():
        shutil.rmtree(UPLOAD_TMP_DIR, ignore_errors=True)
