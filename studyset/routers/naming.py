"""
Study set title endpoint.

Always answers with a usable name, even for rejected uploads. Any staged
image is deleted after the response has been sent, through the request's
background tasks.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from studyset.dependencies import Pipeline, get_pipeline
from studyset.middleware.rate_limit import RATE_LIMITS, get_limiter
from studyset.models.naming import NameResponse
from studyset.services.file_validator import validate_upload
from studyset.services.format_classifier import classify_upload

router = APIRouter(prefix="/api", tags=["naming"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


@router.post("/generate-name", response_model=NameResponse, response_model_exclude_none=True)
@limiter.limit(RATE_LIMITS["generate_name"])  # type: ignore[untyped-decorator]
async def generate_name(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Study material to name"),
    pipeline: Pipeline = Depends(get_pipeline),
) -> JSONResponse:
    """
    Generate a short title for an uploaded study material.

    Office documents are named after their filename; images go through the
    vision model; everything else through extracted text. Insufficient text
    or any model failure yields ``Study Set - <date>``.

    Returns:
        200: ``{"name": ...}``
        400/413: ``{"error": ..., "name": <fallback>}`` for an empty or oversized upload
        500: ``{"error": ..., "name": <fallback>}`` on an unexpected failure
    """
    try:
        upload = await validate_upload(file, pipeline.settings.max_upload_size_bytes)
    except HTTPException as e:
        logger.warning("Rejected upload %r for naming: %s", file.filename, e.detail)
        fallback = pipeline.title_generator.fallback()
        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.detail, "name": fallback.name},
            headers={"X-Title-Source": fallback.source},
        )

    cleanup = pipeline.cleanup_queue()
    background_tasks.add_task(cleanup.drain)

    try:
        fmt = classify_upload(upload)
        title = await pipeline.title_generator.generate(upload, cleanup)
    except Exception as e:
        logger.exception("Error in generate-name: %s", e)
        fallback = pipeline.title_generator.fallback()
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to generate name", "name": fallback.name},
            headers={"X-Title-Source": fallback.source},
            background=background_tasks,
        )

    return JSONResponse(
        content=NameResponse(name=title.name).model_dump(exclude_none=True),
        headers={"X-Title-Source": title.source, "X-Format": fmt.value},
        background=background_tasks,
    )
