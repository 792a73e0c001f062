"""Pydantic models describing an upload as it enters the pipeline."""

from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field


class ClassifiedFormat(str, Enum):
    """Handling strategy selected for an upload."""

    PLAIN_TEXT = "plain_text"
    PDF = "pdf"
    OFFICE_WORD = "office_word"
    OFFICE_PRESENTATION = "office_presentation"
    IMAGE = "image"
    UNKNOWN = "unknown"

    @property
    def is_office(self) -> bool:
        return self in (ClassifiedFormat.OFFICE_WORD, ClassifiedFormat.OFFICE_PRESENTATION)


class UploadedFile(BaseModel):
    """Immutable upload: raw bytes plus the metadata the client declared.

    Created at the request boundary and consumed once per pipeline run.
    """

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(repr=False, description="Raw file bytes")
    mime_type: str = Field(default="", description="Declared (or sniffed) MIME type")
    filename: str = Field(description="Original filename as uploaded")

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot, '' when absent."""
        return PurePath(self.filename).suffix.lstrip(".").lower()

    @property
    def stem(self) -> str:
        """Filename with its final extension stripped."""
        name = PurePath(self.filename).name
        if "." not in name:
            return name
        return name.rsplit(".", 1)[0]

    @property
    def size(self) -> int:
        return len(self.content)
