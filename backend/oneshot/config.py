from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./secrets.db"

    # Encryption (urlsafe base64 of a 32-byte AES key)
    encryption_key: str | None = None

    # Views and expiry
    default_view_limit: int = 1
    max_view_limit: int = 100
    default_ttl_minutes: int = 1440  # 1 day
    max_ttl_minutes: int = 43_200  # 30 days
    max_plaintext_size: int = 100_000  # 100KB

    # Cleanup
    cleanup_enabled: bool = True
    cleanup_interval_minutes: int = 15

    # Rate Limiting
    rate_limit_creates: str = "10/minute"
    rate_limit_reveals: str = "30/minute"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("default_view_limit", "default_ttl_minutes")
    @classmethod
    def validate_positive_default(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Defaults must be positive")
        return v


settings = Settings()
