"""Pydantic model for the output of the office conversion service."""

from pydantic import BaseModel, ConfigDict, Field


class ConvertedDocument(BaseModel):
    """PDF bytes produced by (or passed through) the conversion service."""

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(repr=False, description="PDF bytes")
    filename: str = Field(description="Suggested download name, original stem + .pdf")
    passthrough: bool = Field(
        default=False,
        description="True when the input was already a PDF and returned unchanged"
    )
