"""Configuration models for validation using Pydantic."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator


class CredentialsConfig(BaseModel):
    """API credentials loaded from environment variables."""

    # Supabase (required)
    supabase_url: str = Field(..., min_length=1, description="Supabase project URL")
    supabase_key: str = Field(..., min_length=1, description="Supabase API key (service role or anon)")

    # LLM configuration for the bug chat assistant (optional)
    anthropic_api_key: Optional[str] = Field(None, description="Anthropic API key for Claude")
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    llm_provider: str = Field(default="openai", description="LLM provider: 'anthropic' or 'openai'")
    llm_model: str = Field(default="gpt-4o", description="LLM model name")

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v or v == "https://your-project.supabase.co":
            raise ValueError("Supabase URL must be set in .env file")
        if not v.startswith("https://"):
            raise ValueError("Supabase URL must start with https://")
        return v

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Validate Supabase key is set."""
        if not v or v == "your_supabase_key_here":
            raise ValueError("Supabase key must be set in .env file")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("anthropic", "openai"):
            raise ValueError("LLM provider must be 'anthropic' or 'openai'")
        return v_lower

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key matching the configured LLM provider."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key


class GridConfig(BaseModel):
    """Bug grid behaviour: data mode, paging, debounce and row geometry."""

    mode: Literal["server", "client"] = Field(
        default="server",
        description="'server' fetches filtered pages from the API, 'client' filters an in-memory list"
    )
    api_base_url: str = Field(default="http://127.0.0.1:8000", description="Base URL of the bug list API")
    page_size: int = Field(default=50, ge=1, le=200, description="Rows per page")
    debounce_ms: int = Field(default=300, ge=0, description="Search-term debounce window in milliseconds")
    row_height: int = Field(default=52, ge=1, description="Estimated row height in pixels")
    overscan: int = Field(default=10, ge=0, description="Rows rendered beyond each edge of the viewport")
    settings_path: Optional[str] = Field(
        None, description="JSON file holding persisted grid settings (in-memory when unset)"
    )
    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout for list requests in seconds")

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Bug API URL must start with http:// or https://")
        return v.rstrip("/")


class Config(BaseModel):
    """Application configuration."""

    credentials: CredentialsConfig
    grid: GridConfig = Field(default_factory=GridConfig)
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper
