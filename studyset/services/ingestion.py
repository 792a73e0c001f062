"""Classification -> conversion -> extraction for a single upload."""

import asyncio
import logging

from studyset.models.upload import ClassifiedFormat, UploadedFile
from studyset.services.format_classifier import classify_upload
from studyset.services.office_converter import LibreOfficeConverter
from studyset.services.text_extractor import extract_text

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


class DocumentIngestor:
    """Turn an upload into plain text.

    Office documents go through a PDF intermediate; conversion failures
    (``EngineUnavailableError``, ``ConversionFailedError``) propagate to the
    caller. Extraction itself never raises.
    """

    def __init__(self, converter: LibreOfficeConverter):
        self.converter = converter

    async def extract(self, upload: UploadedFile) -> str:
        fmt = classify_upload(upload)

        if fmt.is_office:
            converted = await self.converter.convert(
                upload.content, upload.filename, mime_type=upload.mime_type
            )
            content, mime_type = converted.content, PDF_MIME_TYPE
        elif fmt == ClassifiedFormat.PDF:
            # Classified by extension; make sure the extractor sees a PDF type
            content, mime_type = upload.content, PDF_MIME_TYPE
        else:
            content, mime_type = upload.content, upload.mime_type

        text = await asyncio.to_thread(extract_text, content, mime_type)
        logger.info(
            "Extracted %d characters from %s (%s)", len(text), upload.filename, fmt.value
        )
        return text
