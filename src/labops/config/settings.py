from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache
from ..validators.config_validators import to_header_name, to_lowercase, to_uppercase

class Settings(BaseSettings):
    """
    Application settings loaded from environment.
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"
    API_VERSION: str = "1.0.0"

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/labops")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0
    LOG_QUEUE_BLOCKING: bool = False
    ENABLE_SQL_LOGGING: bool = False

    # Request correlation
    REQUEST_ID_HEADER: str = "X-Request-ID"

    # Storage backend whose diagnostic codes the error classifier understands
    DB_BACKEND: Literal["postgresql", "sqlite"] = "postgresql"

    # --- Derived settings ---
    @property
    def EXPOSE_INTERNAL_ERRORS(self) -> bool:
        """
        Whether the original message of an unclassified exception may be sent to callers.

        Only development and testing expose it. Staging is treated like production so that
        the wire contract seen by pre-release clients matches what they will get live.

        Returns:
            bool: True when raw messages of unknown errors can be echoed in responses.
        """
        return self.ENV in ("development", "testing")

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize the LOG_LEVEL environment variable value to uppercase.

        The logging system expects level names in uppercase ("DEBUG", "INFO"), while
        operators frequently export them in lowercase.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", "DB_BACKEND", mode="before")
    def normalize_lowercase(cls, v: str | None) -> str | None:
        """
        Normalize LOG_FORMAT / DB_BACKEND to lowercase.
        """
        return to_lowercase(v)

    @field_validator("REQUEST_ID_HEADER", mode="before")
    def normalize_header_name(cls, v: str | None) -> str | None:
        return to_header_name(v)

    # --- ConfigDict settings ---
    model_config = ConfigDict(
        # Load environment variables from src/labops/.env when present.
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

# get_settings() takes no arguments and always returns the same settings from the environment,
# so caching it with @lru_cache() is good for performance. Tests call get_settings.cache_clear().
@lru_cache()
def get_settings() -> Settings:
    return Settings()
