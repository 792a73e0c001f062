"""Shared fixtures: environment, fake clients and a wired-up pipeline."""

from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from studyset.config import Settings, get_settings
from studyset.dependencies import Pipeline
from studyset.services.ingestion import DocumentIngestor
from studyset.services.object_stager import CleanupQueue, CleanupStats, ObjectStager
from studyset.services.office_converter import LibreOfficeConverter
from studyset.services.quiz_generator import QuizGenerator
from studyset.services.title_generator import TitleGenerator

FIXED_DAY = date(2026, 10, 19)
FIXED_FALLBACK = "Study Set - 10/19/2026"
STAGED_URL = "https://test.supabase.co/storage/v1/object/public/study-materials/temp-images/temp_1_abcd1234.png"


@pytest.fixture(autouse=True)
def env(monkeypatch):
    """Minimal valid environment; settings cache cleared around each test."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-api-key")
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test-supabase-key")
    monkeypatch.delenv("TRUSTED_PROXIES", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def model_reply(text):
    """Fake generate_content response."""
    return SimpleNamespace(text=text)


@pytest.fixture
def gemini_client():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=model_reply("Cell Biology Basics"))
    return client


@pytest.fixture
def supabase_client():
    client = MagicMock()
    bucket = client.storage.from_.return_value
    bucket.upload.return_value = MagicMock()
    bucket.get_public_url.return_value = STAGED_URL
    bucket.remove.return_value = []
    return client


@pytest.fixture
def stager(supabase_client):
    return ObjectStager(supabase_client)


@pytest.fixture
def cleanup(stager):
    return CleanupQueue(stager, CleanupStats())


@pytest.fixture
def probe():
    fake = MagicMock()
    fake.probe = AsyncMock(return_value=True)
    return fake


@pytest.fixture
def converter(probe):
    return LibreOfficeConverter(probe)


@pytest.fixture
def title_generator(gemini_client, stager):
    return TitleGenerator(gemini_client, stager, today=lambda: FIXED_DAY)


@pytest.fixture
def quiz_generator(gemini_client, stager):
    return QuizGenerator(gemini_client, stager)


@pytest.fixture
def pipeline(gemini_client, supabase_client, stager, converter, title_generator, quiz_generator):
    return Pipeline(
        settings=Settings(),
        gemini_client=gemini_client,
        supabase_client=supabase_client,
        stager=stager,
        converter=converter,
        ingestor=DocumentIngestor(converter),
        title_generator=title_generator,
        quiz_generator=quiz_generator,
    )
