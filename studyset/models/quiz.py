"""Pydantic models for quiz generation.

``QuizQuestion`` is the per-question contract the language model must meet.
The minimum question count is a per-request value, so the top-level response
model is built on demand by ``quiz_response_model``.
"""

from functools import lru_cache
from typing import List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, create_model, field_validator


class GeminiCompatibleModel(BaseModel):
    """Base model with Gemini API-compatible JSON schema.

    Gemini's API doesn't support additionalProperties in JSON schemas.
    This base class configures Pydantic to generate compatible schemas.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "additionalProperties": False
        }
    )


class QuizQuestion(GeminiCompatibleModel):
    """A single multiple-choice question.

    ``answer`` is only required to be present. Membership in ``options`` is
    not checked here (see DESIGN.md, open questions).
    """

    question: str = Field(description="The question text, should be unique and descriptive")
    options: List[str] = Field(description="Array of 4 possible answers as strings")
    answer: str = Field(
        description="The exact text of the correct option (must match one of the options exactly)"
    )
    category: str = Field(description="A category or topic that this question belongs to")
    explanation: Optional[str] = Field(
        default=None,
        description="Brief explanation of why the answer is correct"
    )
    related_material: Optional[str] = Field(
        default=None,
        description="Optional reference to the source material (e.g. an image URL)"
    )

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question must be non-empty text")
        return v


class QuizGenerationPayload(GeminiCompatibleModel):
    """Shape requested from the model via response_schema."""

    quiz_questions: List[QuizQuestion] = Field(description="Multiple-choice quiz questions")


class QuizGenerationRequest(BaseModel):
    """Source text plus the minimum number of questions to accept."""

    source_text: str = Field(default="", description="Extracted study material text")
    required_count: int = Field(ge=1, description="Minimum acceptable number of questions")
    image_url: Optional[str] = Field(
        default=None,
        description="Staged image URL; when set the vision model is used instead of source_text"
    )
    image_mime_type: Optional[str] = Field(default=None, description="MIME type of the staged image")


class QuizResponse(BaseModel):
    """Body returned by POST /api/generate-quiz."""

    questions: List[QuizQuestion]
    count: int
    attempts: int = Field(default=1, description="Model calls made before validation passed")


@lru_cache(maxsize=64)
def quiz_response_model(required_count: int) -> Type[BaseModel]:
    """Build a response model whose ``questions`` array has a minimum length.

    Args:
        required_count: Minimum number of questions (>= 1)

    Returns:
        A pydantic model class with a single ``questions`` field

    Raises:
        ValueError: If required_count is less than 1
    """
    if required_count < 1:
        raise ValueError(f"required_count must be >= 1 (got {required_count})")

    return create_model(
        f"QuizQuestionsResponseMin{required_count}",
        questions=(
            List[QuizQuestion],
            Field(
                min_length=required_count,
                description=(
                    f"Response must contain at least {required_count} questions "
                    "as requested by the user"
                ),
            ),
        ),
    )
