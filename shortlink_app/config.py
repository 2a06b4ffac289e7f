from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Short Link Service"
    app_version: str = "1.0.0"

    # Database
    database_url: str = "sqlite:///./shortlinks.db"

    # Short links
    base_url: str = "http://127.0.0.1:8000"
    short_url_length: int = 6
    max_retries: int = 5

    # Short code generation strategy
    short_code_strategy: str = "base62"  # Options: "random", "base62"
    short_code_salt: int = 1256

    # Per-link lock settings
    lock_backend: str = "redis"  # Options: "redis", "memory"
    redis_url: str = "redis://localhost:6379/0"
    lock_timeout: int = 30  # Seconds before a held lock expires (redis only)
    lock_blocking_timeout: float = 10.0  # Seconds to wait for a busy link

    # Version history
    versions_page_size: int = 50
    versions_max_page_size: int = 200

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
