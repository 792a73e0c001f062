"""
Quiz generation endpoint.

The source is, in order of precedence, an uploaded file, pasted ``content``
or the file attached to ``study_set_id``. Text sources are retried on
validation failures with progressively shorter content; model endpoint
failures abort at once. An image that cannot be staged is treated like
any other upload and goes through text extraction.
"""

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse

from studyset.db.study_sets import StudySetNotFoundError, load_study_set_upload
from studyset.dependencies import Pipeline, get_pipeline
from studyset.middleware.rate_limit import RATE_LIMITS, get_limiter
from studyset.models.quiz import QuizResponse
from studyset.models.upload import ClassifiedFormat, UploadedFile
from studyset.services.file_validator import validate_upload
from studyset.services.format_classifier import classify_upload

router = APIRouter(prefix="/api", tags=["quiz"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


def _resolve_count(num_questions: Optional[int], default: int, maximum: int) -> int:
    count = default if num_questions is None else num_questions
    if count < 1 or count > maximum:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"num_questions must be between 1 and {maximum} (got {count})",
        )
    return count


@router.post("/generate-quiz", response_model=QuizResponse)
@limiter.limit(RATE_LIMITS["generate_quiz"])  # type: ignore[untyped-decorator]
async def generate_quiz(
    request: Request,
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None, description="Study material to quiz on"),
    content: Optional[str] = Form(None, description="Plain text to quiz on"),
    study_set_id: Optional[str] = Form(None, description="Study set whose stored file is the source"),
    num_questions: Optional[int] = Form(None, description="Number of questions (default 5)"),
    pipeline: Pipeline = Depends(get_pipeline),
) -> JSONResponse:
    """
    Generate multiple-choice questions from study material.

    Returns:
        200: ``{"questions": [...], "count": n, "attempts": k}``
        400: No usable source, or ``num_questions`` out of range
        404: Unknown study set
        422: Model output failed validation on every attempt
        502: Model endpoint failure
    """
    settings = pipeline.settings
    count = _resolve_count(num_questions, settings.default_question_count, settings.max_question_count)

    upload: Optional[UploadedFile] = None
    text = ""

    if file is not None and file.filename:
        upload = await validate_upload(file, settings.max_upload_size_bytes)
    elif content and content.strip():
        text = content
    elif study_set_id:
        try:
            upload = await load_study_set_upload(
                pipeline.supabase_client, study_set_id, bucket=settings.files_bucket
            )
        except StudySetNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    headers = {}

    if upload is not None:
        fmt = classify_upload(upload)
        headers["X-Format"] = fmt.value

        if fmt == ClassifiedFormat.IMAGE:
            cleanup = pipeline.cleanup_queue()
            background_tasks.add_task(cleanup.drain)
            result = await pipeline.quiz_generator.generate_from_image(upload, count, cleanup)
            if result is not None:
                return _quiz_response(result, headers, background_tasks)
            logger.warning("Image staging failed for %s, continuing with text extraction", upload.filename)

        text = await pipeline.ingestor.extract(upload)

    if not text.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No content provided to generate quiz",
        )

    logger.info("Generating %d questions from %d characters", count, len(text))
    result = await pipeline.quiz_generator.generate_from_text(
        text, count, content_limits=settings.quiz_content_limits
    )
    return _quiz_response(result, headers, background_tasks)


def _quiz_response(
    result: QuizResponse, headers: dict, background_tasks: BackgroundTasks
) -> JSONResponse:
    headers["X-Quiz-Attempts"] = str(result.attempts)
    return JSONResponse(
        content=result.model_dump(mode="json"),
        headers=headers,
        background=background_tasks,
    )
