"""Configuration management for freight invoice processing."""
import os
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized configuration for freight invoice processing."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API Configuration
    gemini_api_key: str = Field(default="", description="Gemini API key for document understanding")
    use_vertex_ai: bool = Field(default=False, description="Use Vertex AI instead of standard Gemini API")
    google_cloud_project: str = Field(default="not-set", description="Google Cloud project for Vertex AI")
    google_cloud_location: str = Field(default="not-set", description="Google Cloud location for Vertex AI")

    # Model Configuration
    extraction_model: str = Field(default="gemini-2.5-flash", description="Model for all extraction stages")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Sampling temperature for extraction")
    invoice_max_pages: int = Field(default=1, ge=1, description="Pages of an invoice sent to the model")
    quotation_max_pages: int = Field(default=5, ge=1, description="Pages of a quotation sent to the model")
    max_pdf_size_mb: float = Field(default=100.0, gt=0, description="Largest accepted PDF in MB")

    # Concurrency Configuration
    quota_limit: int = Field(default=4, ge=1, description="Concurrent model calls")

    # Retry Configuration
    retry_max_attempts: int = Field(default=3, ge=1, description="Maximum attempts per model call")
    retry_base_delay: float = Field(default=2.0, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=10.0, description="Maximum delay between retries")
    retry_jitter_range: float = Field(default=3.0, description="Jitter range for retry delays")

    # Debug Configuration
    debug_responses: bool = Field(default=False, description="Save raw model responses for debugging")
    responses_directory: Path = Field(default=Path("json_responses"), description="Where raw responses are saved")

    # File Paths
    logs_directory: Path = Field(default=Path("logs"), description="Directory for log files")
    output_directory: Path = Field(default=Path("output"), description="Directory for exported workbooks")

    @field_validator("use_vertex_ai", mode="before")
    @classmethod
    def parse_vertex_ai_flag(cls, v):
        """Parse vertex AI flag from string."""
        if isinstance(v, str):
            return v.lower() == "true"
        return v

    @field_validator("debug_responses", mode="before")
    @classmethod
    def parse_debug_flag(cls, v):
        """Parse debug flag from string."""
        if isinstance(v, str):
            return v == "1" or v.lower() == "true"
        return v

    @model_validator(mode="after")
    def api_key_required_without_vertex(self) -> "Settings":
        """Ensure an API key is provided unless Vertex AI credentials are used."""
        if not self.use_vertex_ai and not self.gemini_api_key.strip():
            raise ValueError("GEMINI_API_KEY must be provided")
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            use_vertex_ai=os.getenv("GOOGLE_GENAI_USE_VERTEXAI", "false").lower() == "true",
            google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT", "not-set"),
            google_cloud_location=os.getenv("GOOGLE_CLOUD_LOCATION", "not-set"),
            extraction_model=os.getenv("EXTRACTION_MODEL", "gemini-2.5-flash"),
            debug_responses=os.getenv("DEBUG_RESPONSES", "0") == "1",
        )

    @property
    def api_client_kwargs(self) -> dict:
        """Get genai.Client configuration."""
        if self.use_vertex_ai:
            return {
                "vertexai": True,
                "project": self.google_cloud_project,
                "location": self.google_cloud_location,
            }
        return {"api_key": self.gemini_api_key}
