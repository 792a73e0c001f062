"""
Study set title generation.

Routing by classification:

- Word/PowerPoint: the filename without its extension, no model call
- Images: stage the image, ask the vision model, fall back to the text path
- Everything else: extract text, ask the text model when there is enough of it

Title generation is total. Any failure (staging, extraction, model call)
ends in the dated fallback title.
"""

import asyncio
import logging
from datetime import date
from typing import Callable, Optional

from google import genai
from google.genai import types

from studyset.errors import ModelCallError
from studyset.models.naming import GeneratedTitle
from studyset.models.upload import ClassifiedFormat, UploadedFile
from studyset.services.format_classifier import classify_upload, is_heic
from studyset.services.gemini_client import generate_text
from studyset.services.ingestion import PDF_MIME_TYPE
from studyset.services.object_stager import CleanupQueue, ObjectStager
from studyset.services.text_extractor import extract_text, is_insufficient

logger = logging.getLogger(__name__)

_TITLE_RULES = """Create a brief (3-7 words) title for a study set based on the {source}.
The title should be specific enough to be informative but brief enough to be a good title.
Do NOT use the phrase "Study Set" or "Study Guide" in your title.
Respond with ONLY the title - no explanations, quotes, or extra text."""

TEXT_TITLE_INSTRUCTION = (
    "You are an assistant that generates concise and descriptive titles for study materials.\n"
    + _TITLE_RULES.format(source="document's content")
)

IMAGE_TITLE_INSTRUCTION = (
    "You are an assistant that generates concise and descriptive titles for study materials.\n"
    + _TITLE_RULES.format(source="image content")
)

IMAGE_TITLE_PROMPT = (
    "Generate a title based on this image content. The title should help a student "
    "remember what topic this image covers for studying. Be specific about the visible content."
)

QUOTE_CHARACTERS = "\"'“”‘’`"


def fallback_title(today: Optional[date] = None) -> str:
    """Deterministic dated title, e.g. ``Study Set - 10/19/2026``."""
    day = today or date.today()
    return f"Study Set - {day.month}/{day.day}/{day.year}"


def clean_title(raw: str) -> str:
    """Strip whitespace and surrounding quote characters from a model reply."""
    return raw.strip().strip(QUOTE_CHARACTERS).strip()


class TitleGenerator:
    """Produce a short title for an upload.

    Args:
        client: Gemini API client
        stager: Object stager used to expose images to the vision model
        text_model: Model for the text path
        vision_model: Vision-capable model for the image path
        min_text_length: Shorter extracted text skips the model call
        prompt_chars: Leading characters of text sent to the model
        today: Clock used for the fallback title
    """

    def __init__(
        self,
        client: genai.Client,
        stager: ObjectStager,
        text_model: str = "gemini-2.5-flash",
        vision_model: str = "gemini-2.5-flash",
        min_text_length: int = 50,
        prompt_chars: int = 1000,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.stager = stager
        self.text_model = text_model
        self.vision_model = vision_model
        self.min_text_length = min_text_length
        self.prompt_chars = prompt_chars
        self.today = today

    def fallback(self) -> GeneratedTitle:
        return GeneratedTitle(name=fallback_title(self.today()), source="fallback")

    async def generate(self, upload: UploadedFile, cleanup: CleanupQueue) -> GeneratedTitle:
        """Generate a title. Never raises.

        Args:
            upload: The uploaded file
            cleanup: Queue receiving the deletion of any staged image

        Returns:
            GeneratedTitle with a non-empty name
        """
        try:
            fmt = classify_upload(upload)
            logger.info("Generating name for %s (%s -> %s)", upload.filename, upload.mime_type, fmt.value)

            if fmt.is_office:
                name = upload.stem.strip()
                if name:
                    logger.info("Using original filename for office document: %r", name)
                    return GeneratedTitle(name=name, source="filename")
                return self.fallback()

            if fmt == ClassifiedFormat.IMAGE:
                if is_heic(upload.filename, upload.mime_type):
                    logger.info("HEIC file detected on server. Using as is (client should convert).")
                title = await self.title_from_image(upload, cleanup)
                if title is not None:
                    return title

            # Classified by extension; make sure the extractor sees a PDF type
            mime_type = PDF_MIME_TYPE if fmt == ClassifiedFormat.PDF else upload.mime_type
            text = await asyncio.to_thread(extract_text, upload.content, mime_type)
            return await self.title_from_text(text)
        except Exception as e:
            logger.exception("Error generating name for %s: %s", upload.filename, e)
            return self.fallback()

    async def title_from_text(self, text: str) -> GeneratedTitle:
        """Ask the text model for a title, or fall back when text is insufficient."""
        if is_insufficient(text, self.min_text_length):
            logger.info("Insufficient text content extracted (%d chars), using generic name", len(text or ""))
            return self.fallback()

        content_summary = text[: self.prompt_chars]
        try:
            raw = await generate_text(
                self.client,
                self.text_model,
                f"Generate a title based on this document content:\n\n{content_summary}",
                types.GenerateContentConfig(
                    system_instruction=TEXT_TITLE_INSTRUCTION,
                    temperature=0.7,
                ),
            )
        except ModelCallError as e:
            logger.error("Error generating name from text: %s", e)
            return self.fallback()

        name = clean_title(raw)
        if not name:
            logger.warning("Model returned an empty title, using generic name")
            return self.fallback()

        logger.info("Generated name: %r", name)
        return GeneratedTitle(name=name, source="text_model")

    async def title_from_image(
        self, upload: UploadedFile, cleanup: CleanupQueue
    ) -> Optional[GeneratedTitle]:
        """Ask the vision model for a title.

        Returns:
            GeneratedTitle, or None when staging or the model call fails
            (callers continue with the text path)
        """
        url = await self.stager.stage(upload.content, upload.filename, upload.mime_type)
        if not url:
            logger.warning("Failed to upload image to storage; vision naming unavailable")
            return None

        try:
            raw = await generate_text(
                self.client,
                self.vision_model,
                [
                    types.Part.from_uri(file_uri=url, mime_type=upload.mime_type or "image/jpeg"),
                    IMAGE_TITLE_PROMPT,
                ],
                types.GenerateContentConfig(
                    system_instruction=IMAGE_TITLE_INSTRUCTION,
                    temperature=0.7,
                ),
            )
        except ModelCallError as e:
            logger.error("Error processing image with vision model: %s", e)
            return None
        finally:
            cleanup.schedule(url)

        name = clean_title(raw)
        if not name:
            return None

        logger.info("Generated name from image: %r", name)
        return GeneratedTitle(name=name, source="vision_model")
