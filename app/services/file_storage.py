# app/services/file_storage.py
import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile
from slugify import slugify

from app.config import settings
from app.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

PDF_FOLDER = "pdfs"
THUMBNAIL_FOLDER = "thumbnails"
PDF_CONTENT_TYPE = "application/pdf"
CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    path: str        # relative to the upload root, "pdfs/<name>.pdf"
    file_size: int


def upload_root() -> Path:
    return Path(settings.upload_dir).resolve()


def ensure_dirs():
    for folder in (PDF_FOLDER, THUMBNAIL_FOLDER):
        os.makedirs(upload_root() / folder, exist_ok=True)


def resolve(path: str) -> Path:
    root = upload_root()
    full = (root / path).resolve()
    if root not in full.parents:
        raise InvalidRequestError("Invalid file path")
    return full


def save_pdf(file: UploadFile, title: str) -> StoredFile:
    if file.content_type != PDF_CONTENT_TYPE:
        raise InvalidRequestError("Only PDF files are allowed")

    ensure_dirs()
    limit = settings.max_upload_mb * 1024 * 1024
    filename = f"{slugify(title) or 'document'}_{int(time.time())}_{secrets.token_hex(4)}.pdf"
    relative = f"{PDF_FOLDER}/{filename}"
    target = resolve(relative)

    written = 0
    try:
        with open(target, "wb") as out:
            while chunk := file.file.read(CHUNK_SIZE):
                written += len(chunk)
                if written > limit:
                    raise InvalidRequestError(f"File exceeds {settings.max_upload_mb} MB limit")
                out.write(chunk)
    except InvalidRequestError:
        target.unlink(missing_ok=True)
        raise

    if written == 0:
        target.unlink(missing_ok=True)
        raise InvalidRequestError("No PDF file uploaded")

    logger.info(f"Stored {relative} ({written} bytes)")
    return StoredFile(path=relative, file_size=written)


def delete(path: str):
    target = resolve(path)
    if target.exists():
        target.unlink()
    else:
        logger.warning(f"Stored file {path} already missing")
