"""
Session store configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefixed with
``SESSIONSTORE_``) or a .env file. Table and column naming is validated
separately by :class:`TableNaming` so stores built without settings get the
same checks.
"""

import logging
from typing import Annotated, Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Identifiers are interpolated into SQL at statement build time, so they must
# be single-line and reasonably short.
Identifier = Annotated[str, StringConstraints(min_length=1, max_length=255, pattern=r"^[^\r\n]+$")]

MIN_KDF_ITERATIONS = 100_000
MAX_KDF_ITERATIONS = 10_000_000
DEFAULT_KDF_ITERATIONS = 300_000


class TableNaming(BaseModel):
    """Table and column names used to build the store's SQL statements."""

    model_config = ConfigDict(frozen=True)

    table: Identifier = "sessions"
    key_column: Identifier = "key"
    data_column: Identifier = "data"
    expiration_column: Identifier = "expiration"


class Settings(BaseSettings):
    """Session store settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SESSIONSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings
    DATABASE_URL: str = "sqlite:///./data/sessions.db"

    # Table layout
    SESSION_TABLE: str = "sessions"
    KEY_COLUMN: str = "key"
    DATA_COLUMN: str = "data"
    EXPIRATION_COLUMN: str = "expiration"

    # Serialization
    SERIALIZER: str = "json"
    SECRET_KEY: Optional[str] = None
    ENCRYPTION_SALT: Optional[str] = None
    ENCRYPTION_KDF_ITERATIONS: int = DEFAULT_KDF_ITERATIONS

    # Retry a conflicting INSERT as an UPDATE
    INSERT_CONFLICT_FALLBACK: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGGING: bool = False
    LOG_FILE: Optional[str] = None

    @field_validator("ENCRYPTION_KDF_ITERATIONS")
    @classmethod
    def clamp_kdf_iterations(cls, value: int) -> int:
        """Keep PBKDF2 iterations within sane bounds"""
        if value > MAX_KDF_ITERATIONS:
            logger.warning(f"KDF iterations {value} exceeds maximum, using {MAX_KDF_ITERATIONS}")
            return MAX_KDF_ITERATIONS
        if value < MIN_KDF_ITERATIONS:
            logger.warning(f"KDF iterations {value} below recommended minimum, using {DEFAULT_KDF_ITERATIONS}")
            return DEFAULT_KDF_ITERATIONS
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    def table_naming(self) -> TableNaming:
        return TableNaming(
            table=self.SESSION_TABLE,
            key_column=self.KEY_COLUMN,
            data_column=self.DATA_COLUMN,
            expiration_column=self.EXPIRATION_COLUMN,
        )

    def serializer_config(self) -> Union[str, Dict[str, Any]]:
        """
        Build the ``serializer`` argument for a store from these settings.

        Plain codecs are referenced by name. The encrypted codec needs its
        secret material, so it is returned as a config mapping.
        """
        name = self.SERIALIZER.lower()
        if name != "fernet":
            return name
        return {
            "name": "fernet",
            "secret": self.SECRET_KEY,
            "salt": self.ENCRYPTION_SALT,
            "iterations": self.ENCRYPTION_KDF_ITERATIONS,
        }


# Global settings instance
settings = Settings()
