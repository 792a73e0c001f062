"""Gemini API client construction and response-schema helpers.

The client is constructed once at application startup (see
``studyset.main.lifespan``) and injected into the generators.
Uses the modern google-genai SDK (not google.generativeai).
"""

from typing import Any, Dict, Optional, Type

from google import genai
from google.genai import types
from pydantic import BaseModel

from studyset.config import Settings, get_settings
from studyset.errors import ModelCallError


def create_gemini_client(settings: Optional[Settings] = None) -> genai.Client:
    """Initialize and return a Gemini API client.

    Args:
        settings: Application settings (defaults to the cached settings)

    Returns:
        genai.Client: Initialized Gemini client ready for API calls.

    Raises:
        ValueError: If GEMINI_API_KEY is not set in environment.

    Example:
        >>> client = create_gemini_client()
        >>> response = await client.aio.models.generate_content(
        ...     model="gemini-2.5-flash",
        ...     contents=["Hello world"]
        ... )
    """
    settings = settings or get_settings()

    # Settings validation already ensures the key is present; this gives a clearer message
    if not settings.gemini_api_key:
        raise ValueError(
            "GEMINI_API_KEY not set in environment. "
            "Please set this variable in your .env file or environment."
        )

    return genai.Client(api_key=settings.gemini_api_key)


def _strip_additional_properties(node: Any) -> Any:
    """Drop every ``additionalProperties`` key; Gemini rejects the keyword.

    An object schema that only had ``additionalProperties`` (a ``Dict[str, T]``
    field) becomes ``{}`` so the model may return any mapping there.
    """
    if isinstance(node, list):
        return [_strip_additional_properties(item) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned = {
        key: _strip_additional_properties(value)
        for key, value in node.items()
        if key != "additionalProperties"
    }
    if "additionalProperties" in node and cleaned.get("type") == "object" and not cleaned.get("properties"):
        return {}
    return cleaned


def gemini_response_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """JSON schema for ``model`` in the subset Gemini's response_schema accepts."""
    return _strip_additional_properties(model.model_json_schema())


def response_text(response: Any) -> str:
    """Return the stripped text of a generate_content response ("" when absent)."""
    text = getattr(response, "text", None)
    return text.strip() if isinstance(text, str) else ""


async def generate_text(
    client: genai.Client,
    model: str,
    contents: Any,
    config: Optional[types.GenerateContentConfig] = None,
) -> str:
    """Call the model and return its text reply.

    Args:
        client: Gemini API client
        model: Model name
        contents: Prompt contents (string, parts, or a list of both)
        config: Generation config

    Returns:
        Stripped response text, possibly empty

    Raises:
        ModelCallError: For any transport, quota or SDK failure
    """
    try:
        response = await client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
    except Exception as e:
        raise ModelCallError(f"Gemini call to {model} failed: {str(e)}", e) from e
    return response_text(response)
