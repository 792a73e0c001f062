"""
Best-effort plain text extraction from uploaded bytes.

PDF text comes from the OpenDataLoader text layer (no OCR: scanned PDFs
yield an empty string). Images always yield an empty string because image
understanding belongs to the vision path. Everything else is decoded as
UTF-8. Extraction never raises; an empty result is the failure signal.
"""

import json
import logging
import os
import tempfile
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List

from opendataloader_pdf import convert

from studyset.models.upload import ClassifiedFormat
from studyset.services.format_classifier import classify

logger = logging.getLogger(__name__)


def is_insufficient(text: str, min_length: int = 50) -> bool:
    """True when extracted text is too short to be worth a model call."""
    return not text or len(text) < min_length


def _iter_elements(elements: Iterable[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    """Walk OpenDataLoader elements depth-first (nested ``kids`` included)."""
    for elem in elements:
        if not isinstance(elem, dict):
            continue
        yield elem
        kids = elem.get("kids")
        if isinstance(kids, list):
            yield from _iter_elements(kids)


def _page_text_from_json(json_data: Dict[str, Any]) -> str:
    """Concatenate element text page by page.

    Text items on a page are joined with spaces and each page is followed
    by a blank line.
    """
    elements = json_data.get("elements")
    if elements is None:
        elements = json_data.get("kids", [])

    pages: Dict[int, List[str]] = defaultdict(list)
    for elem in _iter_elements(elements):
        text = elem.get("text") or elem.get("content")
        if not isinstance(text, str) or not text.strip():
            continue
        page = elem.get("page", elem.get("page number", 1))
        try:
            page_number = int(page)
        except (TypeError, ValueError):
            page_number = 1
        pages[page_number].append(text)

    return "".join(" ".join(pages[number]) + "\n\n" for number in sorted(pages))


def extract_pdf_text(content: bytes) -> str:
    """Extract the text layer of a PDF with OpenDataLoader.

    Args:
        content: PDF bytes

    Returns:
        Concatenated page text ("" for image-only PDFs)

    Raises:
        ValueError: If OpenDataLoader cannot process the document
    """
    with tempfile.TemporaryDirectory(prefix="studyset_pdf_") as temp_dir:
        pdf_path = os.path.join(temp_dir, "document.pdf")
        with open(pdf_path, "wb") as f:
            f.write(content)

        try:
            convert(
                input_path=pdf_path,
                output_dir=temp_dir,
                format="json",
                quiet=True
            )

            json_path = os.path.join(temp_dir, "document.json")
            with open(json_path, "r", encoding="utf-8") as f:
                json_data = json.load(f)
        except Exception as e:
            raise ValueError(f"Failed to extract PDF text: {str(e)}") from e

    return _page_text_from_json(json_data)


def _decode_text(content: bytes) -> str:
    return content.decode("utf-8-sig")


def _no_text(content: bytes) -> str:
    return ""


# One entry per ClassifiedFormat; office formats only reach this table when a
# caller skipped conversion, in which case the generic decode applies.
_EXTRACTORS: Dict[ClassifiedFormat, Callable[[bytes], str]] = {
    ClassifiedFormat.PDF: extract_pdf_text,
    ClassifiedFormat.IMAGE: _no_text,
    ClassifiedFormat.PLAIN_TEXT: _decode_text,
    ClassifiedFormat.OFFICE_WORD: _decode_text,
    ClassifiedFormat.OFFICE_PRESENTATION: _decode_text,
    ClassifiedFormat.UNKNOWN: _decode_text,
}

_missing = set(ClassifiedFormat) - set(_EXTRACTORS)
if _missing:
    raise RuntimeError(f"No text extractor registered for: {sorted(m.value for m in _missing)}")


def extract_text(content: bytes, mime_type: str) -> str:
    """Extract plain text from uploaded bytes.

    Args:
        content: Raw bytes
        mime_type: Declared MIME type (selects the extraction strategy)

    Returns:
        Extracted text, possibly empty. Never raises.
    """
    fmt = classify("", mime_type)
    try:
        return _EXTRACTORS[fmt](content)
    except Exception as e:
        logger.warning("Text extraction failed for %s (%s): %s", mime_type or "unknown type", fmt.value, e)
        return ""
