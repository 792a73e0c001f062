"""
Quiz generation with schema-validated structured output.

A single model call either yields a validated list of questions or raises:
``ModelCallError`` when the endpoint fails, ``QuizValidationError`` when the
reply does not meet the schema or the requested count. Only validation
failures are retried, each time with a shorter slice of the source text.
"""

import logging
from typing import List, Optional, Sequence

from google import genai
from google.genai import types

from studyset.errors import QuizValidationError
from studyset.models.quiz import (
    QuizGenerationPayload,
    QuizGenerationRequest,
    QuizQuestion,
    QuizResponse,
)
from studyset.models.upload import UploadedFile
from studyset.services.gemini_client import gemini_response_schema, generate_text
from studyset.services.object_stager import CleanupQueue, ObjectStager
from studyset.services.quiz_validator import validate_quiz_response

logger = logging.getLogger(__name__)

QUIZ_SYSTEM_INSTRUCTION = """You are a helpful assistant that creates educational quiz questions based on {source}.

*** CRITICAL INSTRUCTION: Create EXACTLY {count} multiple-choice questions. No more, no less. ***

Each question should:
- Be unique and test different aspects of the content
- Have exactly 4 answer options that are CLEARLY DISTINCT from each other
- Have ONLY ONE clearly correct answer - the other 3 should be clearly incorrect
- Ensure incorrect options are plausible but definitively wrong
- Be based on actual information in the {source}

Format each question with these fields:
- question: The question text
- options: Array of 4 possible answers (MUST be substantially different from each other)
- answer: The EXACT text of the correct option (must match one of the options exactly)
- explanation: Brief explanation of why the answer is correct AND why the other options are incorrect
- category: A topic category this question belongs to

DO NOT create duplicate questions or slight variations of the same question.
DO NOT include multiple correct answers or options that are variations of the same answer.

Your response must be a JSON object with a 'quiz_questions' array containing EXACTLY {count} questions."""

TEXT_QUIZ_PROMPT = """Create EXACTLY {count} unique multiple-choice questions based on this content:

{content}

This is a strict requirement - I need exactly {count} questions, no more and no less.
Make sure the 'answer' field contains the exact text of the correct option.
Focus only on the document's actual content - don't reference the file format or metadata."""

IMAGE_QUIZ_PROMPT = (
    "Create EXACTLY {count} unique multiple-choice questions about the study material shown "
    "in this image. Be specific about the visible content and make sure the 'answer' field "
    "contains the exact text of the correct option."
)


class QuizGenerator:
    """Generate quiz questions from text or a staged image.

    Args:
        client: Gemini API client
        stager: Object stager for image sources
        text_model: Model for text sources
        vision_model: Vision-capable model for image sources
    """

    def __init__(
        self,
        client: genai.Client,
        stager: ObjectStager,
        text_model: str = "gemini-2.5-flash",
        vision_model: str = "gemini-2.5-flash",
    ):
        self.client = client
        self.stager = stager
        self.text_model = text_model
        self.vision_model = vision_model

    def _config(self, count: int, source: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=QUIZ_SYSTEM_INSTRUCTION.format(count=count, source=source),
            response_mime_type="application/json",
            response_schema=gemini_response_schema(QuizGenerationPayload),
        )

    async def generate(self, request: QuizGenerationRequest) -> List[QuizQuestion]:
        """Make one model call and validate the reply.

        Raises:
            ModelCallError: Model endpoint failure
            QuizValidationError: Reply failed the schema or count contract
        """
        count = request.required_count

        if request.image_url:
            raw = await generate_text(
                self.client,
                self.vision_model,
                [
                    types.Part.from_uri(file_uri=request.image_url, mime_type=request.image_mime_type or "image/jpeg"),
                    IMAGE_QUIZ_PROMPT.format(count=count),
                ],
                self._config(count, source="the image content"),
            )
        else:
            raw = await generate_text(
                self.client,
                self.text_model,
                TEXT_QUIZ_PROMPT.format(count=count, content=request.source_text),
                self._config(count, source="document content"),
            )

        return validate_quiz_response(raw, count)

    async def generate_from_text(
        self,
        text: str,
        count: int,
        content_limits: Sequence[int] = (14000, 8000, 4000),
    ) -> QuizResponse:
        """Generate at least ``count`` questions, shrinking the source on validation failures.

        ``ModelCallError`` aborts immediately; ``QuizValidationError`` moves to
        the next (shorter) content limit and is re-raised after the last one.
        Questions beyond ``count`` are trimmed.
        """
        last_error: Optional[QuizValidationError] = None

        for attempt, limit in enumerate(content_limits, start=1):
            content = text[:limit]
            logger.info(
                "Quiz attempt %d/%d with content length %d", attempt, len(content_limits), len(content)
            )
            try:
                questions = await self.generate(
                    QuizGenerationRequest(source_text=content, required_count=count)
                )
            except QuizValidationError as e:
                logger.warning("Quiz attempt %d rejected: %s", attempt, e)
                last_error = e
                continue

            if len(questions) > count:
                logger.info("Got %d questions, trimming to %d as requested", len(questions), count)
            questions = questions[:count]
            return QuizResponse(questions=questions, count=len(questions), attempts=attempt)

        if last_error is None:
            raise ValueError("content_limits must contain at least one limit")
        raise last_error

    async def generate_from_image(
        self,
        upload: UploadedFile,
        count: int,
        cleanup: CleanupQueue,
    ) -> Optional[QuizResponse]:
        """Generate questions from an image via the vision model.

        Returns:
            QuizResponse, or None when the image could not be staged

        Raises:
            ModelCallError: Vision endpoint failure
            QuizValidationError: Reply failed the schema or count contract
        """
        url = await self.stager.stage(upload.content, upload.filename, upload.mime_type)
        if not url:
            logger.warning("Failed to upload image to storage; vision quiz unavailable")
            return None

        try:
            questions = await self.generate(
                QuizGenerationRequest(
                    required_count=count, image_url=url, image_mime_type=upload.mime_type or None
                )
            )
        finally:
            cleanup.schedule(url)

        questions = questions[:count]
        return QuizResponse(questions=questions, count=len(questions), attempts=1)
