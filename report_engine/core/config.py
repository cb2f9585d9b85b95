"""Application configuration using Pydantic v2 Settings.

Centralized configuration that loads from environment variables
and provides type-safe access throughout the report engine.
"""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Report engine settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Strategy selection
    storage_type: str = Field(
        default="local",
        description="Document store implementation: local.",
    )
    renderer_type: str = Field(
        default="docx",
        description="Template renderer implementation: docx.",
    )

    # Document store
    storage_root: Path = Field(
        default=Path("./storage"),
        description="Root directory of the local JSON/blob document store.",
    )
    schema_document: str = Field(
        default="config/json-structure.json",
        description="Store key of the extraction/field schema definition.",
    )
    image_options_document: str = Field(
        default="config/image-options.json",
        description="Store key of the image-size configuration array.",
    )
    drafts_document: str = Field(
        default="drafts.json",
        description="Store key of the saved drafts array.",
    )
    defaults_document: str = Field(
        default="config/defaults.json",
        description="Store key of the lowest-priority default values (optional).",
    )
    templates_prefix: str = Field(
        default="templates",
        description="Store prefix under which .docx templates live.",
    )

    # Image rendering
    fallback_image_width: int = Field(
        default=300,
        gt=0,
        description="Image width in pixels when neither config nor header provides one.",
    )
    fallback_image_height: int = Field(
        default=200,
        gt=0,
        description="Image height in pixels when neither config nor header provides one.",
    )
    image_delimiters: list[tuple[str, str]] = Field(
        default=[("{%", "}"), ("{{", "}}")],
        description="Image token delimiter styles, tried in order.",
    )

    # Placeholder conventions
    extracted_token_prefix: str = Field(
        default="extracted_",
        description="Prefix used by schema placeholders for extracted fields.",
    )
    template_token_prefix: str = Field(
        default="Replace_",
        description="Prefix the same fields carry inside report templates.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR.",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Directory for rotating engine.log/errors.log files; console only when unset.",
    )

    @field_validator("storage_root")
    @classmethod
    def ensure_storage_root(cls, v: Path) -> Path:
        """Ensure the document store root exists."""
        v.mkdir(parents=True, exist_ok=True)
        return v.resolve()

    @field_validator("image_delimiters")
    @classmethod
    def require_delimiters(cls, v: list[tuple[str, str]]) -> list[tuple[str, str]]:
        """At least one non-empty delimiter pair is required."""
        if not v or any(not start or not end for start, end in v):
            raise ValueError("image_delimiters needs at least one (start, end) pair")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        return v.upper()

    def configure_logging(self) -> None:
        """Configure structlog to render through the standard library loggers."""
        import structlog

        level = getattr(logging, self.log_level, logging.INFO)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        # Handlers are installed by core.logging_config.setup_logging
        logger.setLevel(level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global Settings instance.

    Returns:
        The singleton Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.configure_logging()
    return _settings
