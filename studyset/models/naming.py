"""Pydantic models for study set title generation."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

TitleSource = Literal["text_model", "vision_model", "filename", "fallback"]


class GeneratedTitle(BaseModel):
    """A study set title and the path that produced it."""

    name: str = Field(min_length=1, description="Short human-readable title")
    source: TitleSource = Field(description="Which naming path produced the title")


class NameResponse(BaseModel):
    """Body returned by POST /api/generate-name."""

    name: str
    error: Optional[str] = None
