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
    database_url: str = "postgresql+psycopg://catalog:catalog_dev_password@db:5432/catalog"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Image store
    image_store_backend: str = "local"
    image_store_local_dir: str = "./uploads"
    image_store_public_base_url: str = "http://localhost:8000/uploads"
    image_store_endpoint: str = "http://object-store:9000"
    image_store_bucket: str = "catalog"
    image_store_token: str | None = None
    image_store_timeout_seconds: float = 30.0

    # Identifiers
    slug_max_attempts: int = 100
    sku_max_attempts: int = 50
    ean_prefix: str = "370"

    # Queries
    default_page_size: int = 20
    max_page_size: int = 100
    recommendation_candidate_pool: int = 200
    new_arrival_days: int = 30

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
