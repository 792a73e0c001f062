"""
Upload validation for study material files.

Provides checks including:
- Empty file and file size limits
- Filename cleanup (no directory components, no null bytes)
- MIME sniffing when the client declares no useful type
"""

import logging
from pathlib import PureWindowsPath
from typing import Optional

import magic
from fastapi import HTTPException, UploadFile

from studyset.models.upload import UploadedFile

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB in bytes
GENERIC_MIME_TYPES = ("", "application/octet-stream")
MAX_FILENAME_LENGTH = 255


async def validate_upload(file: UploadFile, max_size: int = DEFAULT_MAX_FILE_SIZE) -> UploadedFile:
    """
    Validate an uploaded file and wrap it as an ``UploadedFile``.

    Args:
        file: FastAPI UploadFile instance from multipart/form-data
        max_size: Maximum accepted size in bytes

    Returns:
        UploadedFile with content, cleaned filename and best-known MIME type

    Raises:
        HTTPException: 400 for an empty file, 413 for a file that is too large
    """
    content = await file.read()

    if len(content) == 0:
        raise HTTPException(status_code=400, detail="File is empty")

    if len(content) > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
        )

    filename = sanitize_filename(file.filename or "")
    mime_type = resolve_mime_type(content, file.content_type)

    return UploadedFile(content=content, filename=filename, mime_type=mime_type)


def resolve_mime_type(content: bytes, declared: Optional[str]) -> str:
    """
    Return the declared MIME type, or sniff one with python-magic.

    Sniffing only happens when the declared type is missing or generic;
    a failed sniff keeps whatever was declared.
    """
    declared = (declared or "").strip().lower()
    if declared not in GENERIC_MIME_TYPES:
        return declared

    try:
        sniffed = magic.from_buffer(content, mime=True)
    except Exception as e:
        logger.warning("MIME sniffing failed: %s", e)
        return declared

    return (sniffed or declared).lower()


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client-supplied filename to a bare, printable base name.

    Args:
        filename: Original filename from upload

    Returns:
        Base filename with its extension preserved ("upload" when nothing is left)

    Notes:
        - Removes directory components (both / and \\ separators)
        - Removes null bytes and control characters
        - Keeps spaces and non-ASCII letters, since office titles reuse the name
        - Truncates to 255 characters, keeping the extension
    """
    # PureWindowsPath splits on both separators
    filename = PureWindowsPath(filename.replace("\0", "")).name

    filename = "".join(ch for ch in filename if ch.isprintable()).strip()

    if not filename or set(filename) <= {"."}:
        return "upload"

    if len(filename) > MAX_FILENAME_LENGTH:
        if "." in filename:
            stem, ext = filename.rsplit(".", 1)
            ext = ext[:16]
            filename = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            filename = filename[:MAX_FILENAME_LENGTH]

    return filename
