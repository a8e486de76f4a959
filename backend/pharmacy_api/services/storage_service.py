"""Local-disk storage for uploaded files (prescription scans, report attachments).

Files live under settings.UPLOAD_DIR/<subdir>/ and are referenced by the
relative URL /uploads/<subdir>/<name>, served by the static mount in main.py.
"""
import logging
import os
import secrets
import time
from pathlib import Path
from typing import Dict, FrozenSet, Tuple

from fastapi import UploadFile

from pharmacy_api.core.config import settings
from pharmacy_api.core.exceptions import InvalidFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

IMAGE_AND_PDF_TYPES: Dict[str, FrozenSet[str]] = {
    ".jpg": frozenset({"image/jpeg", "image/jpg"}),
    ".jpeg": frozenset({"image/jpeg", "image/jpg"}),
    ".png": frozenset({"image/png"}),
    ".pdf": frozenset({"application/pdf"}),
}

DOCUMENT_TYPES: Dict[str, FrozenSet[str]] = {
    **IMAGE_AND_PDF_TYPES,
    ".doc": frozenset({"application/msword"}),
    ".docx": frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}),
}


def _check_type(upload: UploadFile, allowed: Dict[str, FrozenSet[str]]) -> str:
    """Both the extension and the declared content type must be on the allow-list."""
    ext = Path(upload.filename or "").suffix.lower()
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if ext not in allowed or content_type not in allowed[ext]:
        kinds = ", ".join(sorted(e.lstrip(".").upper() for e in allowed))
        raise InvalidFile(f"Only {kinds} files are allowed")
    return ext


def save_upload(upload: UploadFile, subdir: str, prefix: str,
                allowed: Dict[str, FrozenSet[str]] = IMAGE_AND_PDF_TYPES) -> Tuple[Path, str]:
    """
    Validate and persist an uploaded file.

    Returns:
        (absolute path on disk, relative URL)

    Raises:
        InvalidFile: wrong type, or larger than settings.MAX_UPLOAD_SIZE_MB
    """
    ext = _check_type(upload, allowed)

    target_dir = Path(settings.UPLOAD_DIR) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
    target = target_dir / filename

    limit = settings.max_upload_bytes
    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > limit:
                    raise InvalidFile(f"File too large (max {settings.MAX_UPLOAD_SIZE_MB}MB)")
                out.write(chunk)
    except InvalidFile:
        discard(target)
        raise

    if written == 0:
        discard(target)
        raise InvalidFile("Uploaded file is empty")

    logger.info(f"Stored upload {filename} ({written} bytes) in {subdir}")
    return target, f"/uploads/{subdir}/{filename}"


def discard(path: Path) -> None:
    """Remove a stored file whose database row could not be written."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
