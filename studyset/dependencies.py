"""Explicitly constructed pipeline components.

Clients are built once per process (in the application lifespan) and passed
to each component, so every component's external dependencies are visible
in its constructor and can be replaced with fakes in tests via
``app.dependency_overrides[get_pipeline]``.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from google import genai
from supabase import Client

from studyset.config import Settings, get_settings
from studyset.db.supabase_client import create_supabase_client
from studyset.services.gemini_client import create_gemini_client
from studyset.services.ingestion import DocumentIngestor
from studyset.services.object_stager import CleanupQueue, CleanupStats, ObjectStager
from studyset.services.office_converter import LibreOfficeConverter, LibreOfficeProbe
from studyset.services.quiz_generator import QuizGenerator
from studyset.services.title_generator import TitleGenerator

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Process-wide component graph."""

    settings: Settings
    gemini_client: genai.Client
    supabase_client: Client
    stager: ObjectStager
    converter: LibreOfficeConverter
    ingestor: DocumentIngestor
    title_generator: TitleGenerator
    quiz_generator: QuizGenerator
    cleanup_stats: CleanupStats = field(default_factory=CleanupStats)

    def cleanup_queue(self) -> CleanupQueue:
        """A fresh per-request queue sharing the process-wide counters."""
        return CleanupQueue(self.stager, self.cleanup_stats)


def build_pipeline(
    settings: Optional[Settings] = None,
    gemini_client: Optional[genai.Client] = None,
    supabase_client: Optional[Client] = None,
) -> Pipeline:
    """Construct every component from settings and the two external clients."""
    settings = settings or get_settings()
    gemini_client = gemini_client or create_gemini_client(settings)
    supabase_client = supabase_client or create_supabase_client(settings)

    stager = ObjectStager(
        supabase_client,
        bucket=settings.materials_bucket,
        prefix=settings.temp_image_prefix,
        cache_control=settings.staged_cache_control,
    )
    converter = LibreOfficeConverter(
        LibreOfficeProbe(binary=settings.soffice_binary),
        binary=settings.soffice_binary,
        timeout=settings.conversion_timeout_seconds,
    )

    return Pipeline(
        settings=settings,
        gemini_client=gemini_client,
        supabase_client=supabase_client,
        stager=stager,
        converter=converter,
        ingestor=DocumentIngestor(converter),
        title_generator=TitleGenerator(
            gemini_client,
            stager,
            text_model=settings.text_model_name,
            vision_model=settings.vision_model_name,
            min_text_length=settings.min_text_length,
            prompt_chars=settings.title_prompt_chars,
        ),
        quiz_generator=QuizGenerator(
            gemini_client,
            stager,
            text_model=settings.text_model_name,
            vision_model=settings.vision_model_name,
        ),
    )


def get_pipeline(request: Request) -> Pipeline:
    """FastAPI dependency returning the pipeline built at startup."""
    pipeline: Optional[Pipeline] = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        # Lifespan did not run (e.g. a bare TestClient); build on first use
        logger.info("Pipeline not initialised at startup; building on first request")
        pipeline = build_pipeline()
        request.app.state.pipeline = pipeline
    return pipeline
