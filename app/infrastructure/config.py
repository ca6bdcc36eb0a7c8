"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://medcatalog:medcatalog_dev_password@db:5432/medcatalog"
    transient_retry_backoff_seconds: float = 0.2

    # Taxonomy
    taxonomy_max_depth: int = 16
    taxonomy_path_separator: str = " → "
    additional_section_name: str = "Additional characteristics"

    # Delete impact
    impact_sample_size: int = 10

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
