"""Configuration management for the study material ingestion service.

This module uses Pydantic Settings to load configuration from environment
variables. All settings are validated at startup to catch configuration
errors early.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All sensitive values (API keys, storage credentials) must be
    provided via environment variables or .env file.
    """

    # Gemini API Configuration
    gemini_api_key: str = Field(
        ...,
        description="Google Gemini API key for title and quiz generation"
    )

    # Supabase Configuration
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anonymous key"
    )
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key (preferred for server-side storage access)"
    )

    # AI Model Configuration
    text_model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for text-based titles and quizzes"
    )
    vision_model_name: str = Field(
        default="gemini-2.5-flash",
        description="Vision-capable Gemini model used for image uploads"
    )

    # Object storage
    materials_bucket: str = Field(
        default="study-materials",
        description="Bucket holding temporarily staged images"
    )
    temp_image_prefix: str = Field(
        default="temp-images",
        description="Path prefix for staged images (orphans can be swept by prefix)"
    )
    files_bucket: str = Field(
        default="files",
        description="Bucket holding original study set uploads"
    )
    staged_cache_control: str = Field(
        default="3600",
        description="Cache-Control max-age for staged images"
    )

    # Office conversion engine
    soffice_binary: str = Field(
        default="soffice",
        description="LibreOffice executable used for office-to-PDF conversion"
    )
    conversion_timeout_seconds: float = Field(
        default=120.0,
        description="Upper bound for a single LibreOffice conversion job"
    )

    # Generation tuning
    min_text_length: int = Field(
        default=50,
        description="Extracted text shorter than this is treated as insufficient"
    )
    title_prompt_chars: int = Field(
        default=1000,
        description="Characters of extracted text sent to the title prompt"
    )
    quiz_content_limits: List[int] = Field(
        default_factory=lambda: [14000, 8000, 4000],
        description="Source text length per quiz attempt (one attempt per entry)"
    )
    default_question_count: int = Field(default=5, ge=1)
    max_question_count: int = Field(default=50, ge=1)

    # Uploads
    max_upload_size_mb: int = Field(
        default=50,
        description="Maximum accepted upload size in megabytes"
    )

    # Rate limiting
    trusted_proxies: Optional[str] = Field(
        default=None,
        description="Comma-separated proxy IPs whose X-Forwarded-For is trusted"
    )

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_gemini_api_key(cls, v: str) -> str:
        """Validate that GEMINI_API_KEY is present and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "GEMINI_API_KEY must be set in environment variables. "
                "Get your API key from https://ai.google.dev/"
            )
        return v.strip()

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate that Supabase URL is present and properly formatted."""
        if not v or not v.strip():
            raise ValueError("SUPABASE_URL must be set in environment variables")

        url = v.strip()
        if not url.startswith("https://"):
            raise ValueError(
                "SUPABASE_URL must start with https:// "
                f"(got: {url[:20]}...)"
            )

        return url

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Validate that Supabase key is present and non-empty."""
        if not v or not v.strip():
            raise ValueError("SUPABASE_KEY must be set in environment variables")
        return v.strip()

    @field_validator("conversion_timeout_seconds")
    @classmethod
    def validate_conversion_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("CONVERSION_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("quiz_content_limits")
    @classmethod
    def validate_quiz_content_limits(cls, v: List[int]) -> List[int]:
        """At least one attempt, every limit positive."""
        if not v or any(limit <= 0 for limit in v):
            raise ValueError("QUIZ_CONTENT_LIMITS must be a non-empty list of positive integers")
        return v

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    This function uses lru_cache to ensure settings are loaded only once
    and reused across the application lifetime.

    Returns:
        Settings: Validated application settings

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    return Settings()
