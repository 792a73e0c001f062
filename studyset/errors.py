"""Typed failures raised by the ingestion and generation pipeline.

Every external call site maps its failure onto one of these kinds. Routers
render them through a single exception handler (see ``studyset.main``), so
the ``kind`` string and ``status_code`` are part of the HTTP contract.
"""

from typing import Any, Dict, List, Optional


# Shown to operators when the conversion engine cannot be found.
LIBREOFFICE_INSTALL_INSTRUCTIONS: Dict[str, str] = {
    "ubuntu": "sudo apt-get install libreoffice",
    "mac": "brew install --cask libreoffice",
    "windows": "Install LibreOffice from https://www.libreoffice.org/download/download/",
}


class PipelineError(Exception):
    """Base class for pipeline failures that carry an HTTP mapping."""

    kind: str = "pipeline_error"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        """Serializable error body returned to HTTP callers."""
        return {"error": self.message, "kind": self.kind}


class EngineUnavailableError(PipelineError):
    """The office conversion engine is not installed or cannot be spawned."""

    kind = "engine_unavailable"
    status_code = 503

    def __init__(
        self,
        message: str = "LibreOffice is not installed on the server.",
        install_instructions: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.install_instructions = dict(install_instructions or LIBREOFFICE_INSTALL_INSTRUCTIONS)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["notInstalled"] = True
        payload["installInstructions"] = self.install_instructions
        return payload


class ConversionFailedError(PipelineError):
    """The engine ran but the conversion job itself failed."""

    kind = "conversion_failed"
    status_code = 500

    def __init__(self, engine_message: str, message: str = "Error converting file to PDF"):
        super().__init__(message)
        self.engine_message = engine_message

    def __str__(self) -> str:
        return f"{self.message}: {self.engine_message}"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["details"] = self.engine_message
        return payload


class UnsupportedFormatError(PipelineError):
    """Client supplied a file the requested operation cannot handle."""

    kind = "unsupported_format"
    status_code = 400


class StagingFailedError(PipelineError):
    """Object store rejected a temporary upload or returned no URL.

    Raised and logged inside ``ObjectStager.stage``, which then returns None.
    Title and quiz generation fall back to the text path, so it never
    reaches an HTTP caller.
    """

    kind = "staging_failed"
    status_code = 502


class ModelCallError(PipelineError):
    """The language model endpoint failed (network, quota, empty reply)."""

    kind = "model_call_failed"
    status_code = 502

    def __init__(self, message: str, original_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.original_exception = original_exception


class QuizValidationError(PipelineError):
    """Model output did not satisfy the quiz schema or the requested count.

    Attributes:
        failures: One human-readable entry per violated constraint.
        required_count: Minimum number of questions the request asked for.
        received_count: Number of question objects found in the response
            (None when the response was not parseable at all).
    """

    kind = "quiz_validation_failed"
    status_code = 422

    def __init__(
        self,
        failures: List[str],
        required_count: int,
        received_count: Optional[int] = None,
    ):
        summary = "; ".join(failures) if failures else "invalid quiz response"
        super().__init__(f"Quiz response rejected: {summary}")
        self.failures = list(failures)
        self.required_count = required_count
        self.received_count = received_count

    @property
    def insufficient_count(self) -> bool:
        return self.received_count is not None and self.received_count < self.required_count

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["failures"] = self.failures
        payload["required_count"] = self.required_count
        payload["received_count"] = self.received_count
        return payload
