"""
Validation of structured quiz output from the language model.

The whole response is accepted or rejected as a unit: a single
``QuizValidationError`` lists every violated constraint (unparseable JSON,
missing questions array, too few questions, malformed question objects).
"""

import json
import logging
import re
from typing import Any, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from studyset.errors import QuizValidationError
from studyset.models.quiz import QuizQuestion, quiz_response_model

logger = logging.getLogger(__name__)

# Array keys accepted for the questions list, in preference order
QUESTION_ARRAY_KEYS = ("quiz_questions", "questions")

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

RawModelOutput = Union[str, bytes, dict, list]


def clean_json_response(response: str) -> str:
    """Remove markdown code fences and any preamble before the JSON value."""
    cleaned = _CODE_FENCE.sub("", response).strip()

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if starts and min(starts) > 0:
        cleaned = cleaned[min(starts):]

    return cleaned


def _questions_array(parsed: Any) -> Optional[List[Any]]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in QUESTION_ARRAY_KEYS:
            value = parsed.get(key)
            if isinstance(value, list):
                return value
    return None


def _format_error(error: Any) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    return f"{loc}: {error.get('msg', 'invalid value')}" if loc else error.get("msg", "invalid value")


def validate_quiz_response(
    raw_model_output: RawModelOutput,
    required_minimum_count: int,
) -> List[QuizQuestion]:
    """Validate model output against the question schema and count bound.

    Args:
        raw_model_output: Model reply as text, or an already-parsed JSON value
        required_minimum_count: Minimum number of questions to accept (>= 1)

    Returns:
        All questions, in the order the model produced them

    Raises:
        ValueError: If required_minimum_count is less than 1
        QuizValidationError: If any constraint fails (no partial acceptance)
    """
    response_model = quiz_response_model(required_minimum_count)

    parsed: Any = raw_model_output
    if isinstance(parsed, bytes):
        parsed = parsed.decode("utf-8", errors="replace")
    if isinstance(parsed, str):
        try:
            parsed = json.loads(clean_json_response(parsed))
        except json.JSONDecodeError as e:
            raise QuizValidationError(
                [f"response is not valid JSON: {e.msg}"],
                required_count=required_minimum_count,
            ) from e

    questions = _questions_array(parsed)
    if questions is None:
        raise QuizValidationError(
            ["response does not contain a questions array"],
            required_count=required_minimum_count,
        )

    failures: List[str] = []
    if len(questions) < required_minimum_count:
        failures.append(
            f"questions: Response must contain at least {required_minimum_count} questions "
            f"as requested by the user (got {len(questions)})"
        )

    try:
        validated = response_model.model_validate({"questions": questions})
    except PydanticValidationError as e:
        for error in e.errors():
            # The count bound is reported above with the actual number
            if error.get("type") == "too_short" and tuple(error.get("loc", ())) == ("questions",):
                continue
            failures.append(_format_error(error))
        validated = None

    if failures:
        logger.warning(
            "Quiz response rejected (%d questions, %d required): %s",
            len(questions),
            required_minimum_count,
            "; ".join(failures),
        )
        raise QuizValidationError(
            failures,
            required_count=required_minimum_count,
            received_count=len(questions),
        )

    return list(validated.questions)  # type: ignore[union-attr]
