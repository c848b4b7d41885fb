"""
Configuration management for the PDF Q&A Backend.
Handles environment variables and application settings.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields from environment
    )

    # API Configuration
    app_name: str = Field(default="PDF Q&A Backend")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    static_dir: str = Field(default="public")

    # Google AI Configuration
    google_api_key: str = Field(default="")
    google_embedding_model: str = Field(default="models/text-embedding-004")
    google_chat_model: str = Field(default="gemini-1.5-flash")
    google_temperature: float = Field(default=0.3)
    google_max_tokens: int = Field(default=500)

    # Qdrant Configuration
    qdrant_url: str = Field(default="http://localhost:6333")
    qdrant_api_key: Optional[str] = Field(default=None)
    qdrant_collection: str = Field(default="pdf-qa")
    namespace_prefix: str = Field(default="pdf")

    # Vector Database Configuration
    vector_dimension: int = Field(default=768)
    chunk_size: int = Field(default=1000)
    chunk_overlap: int = Field(default=200)
    similarity_search_k: int = Field(default=10)
    similarity_threshold: float = Field(default=0.5)
    upsert_batch_size: int = Field(default=16, ge=1)
    max_upsert_concurrency: int = Field(default=5, ge=1)

    # Pipeline Configuration
    collaborator_timeout_seconds: float = Field(default=30.0, gt=0)
    rewrite_history_window: int = Field(default=20, ge=0)

    # File Processing Configuration
    max_file_size_mb: int = Field(default=50)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def validate_required_settings(config: Optional[Settings] = None) -> None:
    """Validate that all required settings are present."""
    config = config or settings
    required_settings = [
        ("google_api_key", config.google_api_key),
        ("qdrant_url", config.qdrant_url),
    ]

    missing_settings = []
    for setting_name, setting_value in required_settings:
        if not setting_value:
            missing_settings.append(setting_name)

    if missing_settings:
        raise ValueError(
            f"Missing required environment variables: {', '.join(name.upper() for name in missing_settings)}. "
            "Please check your .env file."
        )

    if config.chunk_overlap >= config.chunk_size:
        raise ValueError("CHUNK_OVERLAP must be smaller than CHUNK_SIZE")
