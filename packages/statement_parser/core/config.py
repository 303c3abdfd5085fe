"""Centralized parser configuration via Pydantic Settings.

Loads the tunables of the ingestion pipeline from environment variables
(or a local ``.env``) into a typed Settings instance.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Parser settings loaded from environment variables."""

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Python log level")
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, production",
    )

    # Excel
    STATEMENT_PASSWORD: str = Field(
        default="",
        description="Fallback password for encrypted Excel statements",
    )

    # CSV
    CSV_ENCODINGS: str = Field(
        default="utf-8-sig,cp1252,latin-1",
        description="Comma-separated encodings tried in order when decoding CSV text",
    )

    # PDF
    PDF_COLUMN_GAP: float = Field(
        default=8.0,
        description="Horizontal gap in PDF points between text spans treated as a column break",
    )
    PDF_X_TOLERANCE: float = Field(
        default=3.0,
        description="Character gap tolerance used when building text spans",
    )

    @property
    def csv_encodings(self) -> list[str]:
        """Parse comma-separated encodings into a list."""
        return [e.strip() for e in self.CSV_ENCODINGS.split(",") if e.strip()]

    @property
    def json_logs(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL

    model_config = {"env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Factory for Settings, overridable in tests via environment."""
    return Settings()
