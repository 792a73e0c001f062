"""
Office-to-PDF conversion endpoint.

Word and PowerPoint uploads are rendered to PDF by LibreOffice; PDFs are
returned unchanged. Engine and conversion failures are raised as typed
``PipelineError`` subclasses and rendered by the application handler.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile

from studyset.dependencies import Pipeline, get_pipeline
from studyset.errors import UnsupportedFormatError
from studyset.middleware.rate_limit import RATE_LIMITS, get_limiter
from studyset.services.file_validator import validate_upload
from studyset.services.format_classifier import classify_upload, is_convertible

router = APIRouter(prefix="/api", tags=["conversion"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


@router.post("/convert", response_class=Response)
@limiter.limit(RATE_LIMITS["convert"])  # type: ignore[untyped-decorator]
async def convert_document(
    request: Request,
    file: UploadFile = File(..., description="Document to convert (.doc, .docx, .ppt, .pptx or .pdf)"),
    target_format: str = Form("pdf", description="Output format; only 'pdf' is supported"),
    pipeline: Pipeline = Depends(get_pipeline),
) -> Response:
    """
    Convert an office document to PDF.

    Args:
        file: Uploaded document
        target_format: Requested output format

    Returns:
        200: PDF bytes with ``Content-Disposition: attachment; filename="<stem>.pdf"``
        400: Unsupported extension or target format
        413: File too large
        500: LibreOffice ran but the conversion failed
        503: LibreOffice is not installed (payload includes install instructions)
    """
    upload = await validate_upload(file, pipeline.settings.max_upload_size_bytes)

    # Rejected on the extension alone, before any conversion attempt
    if not is_convertible(upload.filename):
        raise UnsupportedFormatError(
            "Unsupported file type. Please upload a .doc, .docx, .ppt, .pptx, or .pdf file"
        )

    fmt = classify_upload(upload)
    converted = await pipeline.converter.convert(
        upload.content,
        upload.filename,
        target_format=target_format,
        mime_type=upload.mime_type,
    )

    logger.info(
        "Returning %s (%d bytes, passthrough=%s)",
        converted.filename,
        len(converted.content),
        converted.passthrough,
    )

    return Response(
        content=converted.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{converted.filename}"',
            "X-Format": fmt.value,
        },
    )
