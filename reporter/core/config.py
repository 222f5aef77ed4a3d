"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "https://localhost:3000",
    "http://127.0.0.1:3000",
]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        openai_api_key: API key for the OpenAI services (chat, transcription, vision).
        openai_base_url: Optional base URL for an OpenAI-compatible endpoint.
        model_id: Identifier of the text generation model.
        transcription_model: Identifier of the speech-to-text model.
        vision_model: Identifier of the model used to read text out of images.
        transcription_language: Language hint passed to the transcription service.
        llm_temperature: Sampling temperature for the synthesis call.
        llm_max_tokens: Upper bound on the synthesis reply length.
        llm_max_attempts: Number of synthesis attempts per submission (1 = no retry).
        ocr_backend: Which OCR port to build at startup ("openai" or "tesseract").
        ocr_language: Language setting for Tesseract OCR processing.
        scratch_dir: Directory used to stage audio bytes before transcription.
        cleanup_ttl: Time-to-live in seconds for stale scratch files before cleanup.
        max_prompt_chars: Maximum characters allowed for a single evidence text before truncation.
        max_total_prompt_chars: Maximum characters allowed for a total assembled prompt.
        max_concurrent_extractions: Upper bound on simultaneous extractor calls.
        cors_allowed_origins: List of allowed origins for CORS.
        LLM_CONNECT_TIMEOUT: LLM client connect timeout in seconds.
        LLM_READ_TIMEOUT: LLM client read timeout in seconds.
        log_level: Level of the reporter.* loggers.
    """

    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    model_id: str = Field(default="gpt-4")
    transcription_model: str = Field(default="whisper-1")
    vision_model: str = Field(default="gpt-4o")
    transcription_language: str = Field(default="it")

    llm_temperature: float = Field(default=0.3)
    llm_max_tokens: int = Field(default=4000)
    llm_max_attempts: int = Field(default=1, ge=1)

    ocr_backend: Literal["openai", "tesseract"] = Field(default="openai")
    ocr_language: str = Field(default="ita+eng")

    scratch_dir: Path = Field(default=Path("temp"))
    cleanup_ttl: int = Field(default=900)
    max_prompt_chars: int = Field(default=200_000)
    max_total_prompt_chars: int = Field(default=400_000)
    max_concurrent_extractions: int = Field(default=4, ge=1)

    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),  # Use a copy of the default list
    )

    LLM_CONNECT_TIMEOUT: float = Field(default=10.0, description="LLM client connect timeout in seconds.")
    LLM_READ_TIMEOUT: float = Field(default=180.0, description="LLM client read timeout in seconds.")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="DEBUG")

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",  # No prefix for environment variables
        "extra": "ignore",  # Ignore extra fields
    }

    @field_validator("cors_allowed_origins", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str] | None) -> list[str]:
        """Assembles the list of CORS allowed origins.

        If 'v' is a string, it splits it by commas. If 'v' is already a list,
        it's used directly. Otherwise, returns the default list of origins.
        """
        if isinstance(v, str) and v:
            return [origin.strip() for origin in v.split(",")]
        elif isinstance(v, list):
            return v
        return list(DEFAULT_CORS_ORIGINS)


settings = Settings()
