"""Upload format classifier.

Maps an upload's filename and declared MIME type to a ``ClassifiedFormat``.
Matching is case-insensitive and pure. Decision order:

1. PDF (extension or MIME) short-circuits everything else
2. Word documents (extension or MIME substring)
3. Presentations (extension or MIME substring)
4. Images (MIME substring allow-list)
5. Plain text (``text/*`` MIME or a text extension)
6. Anything else is UNKNOWN and gets a generic decode attempt downstream
"""

from pathlib import PurePath
from typing import Tuple

from studyset.models.upload import ClassifiedFormat, UploadedFile

WORD_EXTENSIONS: Tuple[str, ...] = ("doc", "docx")
WORD_MIME_MARKERS: Tuple[str, ...] = ("wordprocessingml", "msword")

PRESENTATION_EXTENSIONS: Tuple[str, ...] = ("ppt", "pptx")
PRESENTATION_MIME_MARKERS: Tuple[str, ...] = ("presentation", "ms-powerpoint")

# Subtypes of the supported image MIME types (image/png, image/jpeg, image/jpg, image/heic)
IMAGE_MIME_MARKERS: Tuple[str, ...] = ("png", "jpeg", "jpg", "heic")

TEXT_EXTENSIONS: Tuple[str, ...] = ("txt", "md", "markdown", "csv")

# Extensions accepted by the conversion endpoint
CONVERTIBLE_EXTENSIONS: Tuple[str, ...] = WORD_EXTENSIONS + PRESENTATION_EXTENSIONS + ("pdf",)


def _extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lstrip(".").lower()


def classify(filename: str, mime_type: str) -> ClassifiedFormat:
    """Classify an upload by filename extension and MIME type.

    Args:
        filename: Original filename (may be empty)
        mime_type: Declared MIME type (may be empty)

    Returns:
        ClassifiedFormat for the upload. Never raises.
    """
    ext = _extension(filename)
    mime = (mime_type or "").lower()

    if ext == "pdf" or "pdf" in mime:
        return ClassifiedFormat.PDF

    if ext in WORD_EXTENSIONS or any(marker in mime for marker in WORD_MIME_MARKERS):
        return ClassifiedFormat.OFFICE_WORD

    if ext in PRESENTATION_EXTENSIONS or any(marker in mime for marker in PRESENTATION_MIME_MARKERS):
        return ClassifiedFormat.OFFICE_PRESENTATION

    if any(marker in mime for marker in IMAGE_MIME_MARKERS):
        return ClassifiedFormat.IMAGE

    if mime.startswith("text/") or ext in TEXT_EXTENSIONS:
        return ClassifiedFormat.PLAIN_TEXT

    return ClassifiedFormat.UNKNOWN


def classify_upload(upload: UploadedFile) -> ClassifiedFormat:
    """Convenience wrapper for an ``UploadedFile``."""
    return classify(upload.filename, upload.mime_type)


def is_heic(filename: str, mime_type: str) -> bool:
    """True for HEIC images, detected by MIME or extension."""
    return "heic" in (mime_type or "").lower() or _extension(filename) == "heic"


def is_convertible(filename: str) -> bool:
    """True when the conversion endpoint accepts this filename."""
    return _extension(filename) in CONVERTIBLE_EXTENSIONS
