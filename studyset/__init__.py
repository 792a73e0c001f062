"""Study material ingestion service: classification, conversion, extraction and AI generation."""

__version__ = "1.0.0"
