"""Complaint image uploads.

Images are validated in full (count, extension, size) before anything touches
the disk, then written under ``UPLOAD_DIR`` with random names and referenced as
``/uploads/<name>`` paths.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import UploadFile

from . import config
from .errors import ValidationFailed

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


def _extension(filename: str) -> str:
    name = os.path.basename(filename or "")
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


async def read_images(files: Optional[List[UploadFile]]) -> List[Tuple[str, bytes]]:
    files = [f for f in (files or []) if f is not None and f.filename]
    if len(files) > config.MAX_IMAGES:
        raise ValidationFailed(f"A complaint can carry at most {config.MAX_IMAGES} images")
    images = []
    for f in files:
        ext = _extension(f.filename)
        if ext not in config.ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationFailed("Only image files are allowed!")
        data = await f.read()
        if len(data) > config.MAX_IMAGE_BYTES:
            limit_mb = config.MAX_IMAGE_BYTES // (1024 * 1024)
            raise ValidationFailed(f"File too large. Maximum size is {limit_mb}MB")
        if not data:
            raise ValidationFailed(f"Empty file: {f.filename}")
        images.append((ext, data))
    return images


def store_images(images: List[Tuple[str, bytes]], upload_dir: Path = None) -> List[str]:
    upload_dir = Path(upload_dir or config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    try:
        for ext, data in images:
            name = f"{uuid.uuid4()}.{ext}"
            (upload_dir / name).write_bytes(data)
            paths.append(URL_PREFIX + name)
    except OSError:
        discard_images(paths, upload_dir)
        raise
    return paths


def discard_images(paths: List[str], upload_dir: Path = None) -> None:
    upload_dir = Path(upload_dir or config.UPLOAD_DIR)
    for p in paths:
        target = upload_dir / p[len(URL_PREFIX):]
        try:
            target.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove upload %s: %s", target, e)
