"""
Upload validation and temporary storage.
"""

import logging
import random
import time
from pathlib import Path

from fastapi import UploadFile

from ragapi.rag.exceptions import FileTooLargeError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".docx", ".doc", ".pptx", ".ppt", ".jpg", ".jpeg", ".png", ".txt"}
READ_CHUNK_SIZE = 1024 * 1024


def validate_extension(filename: str) -> str:
    """Return the lowercased extension, rejecting unsupported types."""
    extension = Path(filename).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileTypeError(extension)
    return extension


def unique_upload_name(extension: str, field_name: str = "document") -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{field_name}-{suffix}{extension}"


async def save_upload(upload: UploadFile, upload_dir: str, max_bytes: int) -> Path:
    """
    Validate an upload and write it to the upload directory.

    Args:
        upload: The multipart file
        upload_dir: Directory for temporary files, created on demand
        max_bytes: Size limit; larger uploads are rejected

    Returns:
        Path of the stored file

    Raises:
        UnsupportedFileTypeError: Extension is not allowed
        FileTooLargeError: Upload exceeds `max_bytes`
    """
    extension = validate_extension(upload.filename or "")

    directory = Path(upload_dir)
    if not directory.exists():
        logger.info(f"Creating uploads directory at {directory}")
        directory.mkdir(parents=True, exist_ok=True)

    target = directory / unique_upload_name(extension)
    written = 0
    try:
        with open(target, "wb") as f:
            while True:
                data = await upload.read(READ_CHUNK_SIZE)
                if not data:
                    break
                written += len(data)
                if written > max_bytes:
                    raise FileTooLargeError(max_bytes)
                f.write(data)
    except BaseException:
        target.unlink(missing_ok=True)
        raise

    return target
