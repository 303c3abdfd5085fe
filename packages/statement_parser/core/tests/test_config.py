"""Tests for core config module."""

from packages.statement_parser.core.config import Settings


class TestSettings:
    """Test Pydantic Settings loads env vars correctly."""

    def test_settings_defaults(self, monkeypatch):
        """Settings should have sensible defaults."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("PDF_COLUMN_GAP", raising=False)

        settings = Settings(_env_file=None)
        assert settings.LOG_LEVEL == "INFO"
        assert settings.ENVIRONMENT == "development"
        assert settings.PDF_COLUMN_GAP == 8.0
        assert settings.json_logs is False

    def test_settings_loads_password(self, monkeypatch):
        """Settings should load STATEMENT_PASSWORD from env."""
        monkeypatch.setenv("STATEMENT_PASSWORD", "hunter2")

        settings = Settings(_env_file=None)
        assert settings.STATEMENT_PASSWORD == "hunter2"

    def test_settings_parses_csv_encodings(self, monkeypatch):
        """Settings should parse CSV_ENCODINGS as comma-separated list."""
        monkeypatch.setenv("CSV_ENCODINGS", "utf-8, utf-16 ,")

        settings = Settings(_env_file=None)
        assert settings.csv_encodings == ["utf-8", "utf-16"]

    def test_production_uses_json_logs(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings(_env_file=None)
        assert settings.json_logs is True
