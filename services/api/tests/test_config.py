"""
Tests for settings and application startup checks.
"""

import pytest

from lens_api.config import DEV_IMAGE_SECRET_KEY, Settings
from lens_api.logging_mw import redact_query
from lens_api.main import create_app


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.IMAGE_TOKEN_TTL_MS == 60_000
        assert s.THUMBNAIL_MAX_DIM == 400
        assert s.JPEG_QUALITY == 85
        assert s.ORIGIN_MATCH_MODE == "origin"

    def test_client_url_first_and_deduplicated(self):
        s = Settings(CLIENT_URL="http://localhost:5173", ALLOWED_ORIGINS=["http://localhost:5173", "", "http://x"])
        assert s.allowed_origins() == ["http://localhost:5173", "http://x"]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("IMAGE_SECRET_KEY", "from-env")
        monkeypatch.setenv("ALLOWED_ORIGINS", '["https://a.example"]')
        s = Settings()
        assert s.IMAGE_SECRET_KEY == "from-env"
        assert s.allowed_origins() == ["https://a.example"]
        assert not s.uses_dev_secret()


class TestStartupChecks:
    def test_dev_secret_refused_in_production(self, tmp_path):
        s = Settings(
            ENVIRONMENT="production",
            IMAGE_SECRET_KEY=DEV_IMAGE_SECRET_KEY,
            DATABASE_URL=f"sqlite:///{tmp_path / 'x.db'}",
            IMAGE_STORE_DIR=str(tmp_path),
        )
        with pytest.raises(RuntimeError):
            create_app(s)

    def test_dev_secret_allowed_outside_production(self, tmp_path, caplog):
        s = Settings(
            ENVIRONMENT="development",
            IMAGE_SECRET_KEY=DEV_IMAGE_SECRET_KEY,
            DATABASE_URL=f"sqlite:///{tmp_path / 'x.db'}",
            IMAGE_STORE_DIR=str(tmp_path),
        )
        app = create_app(s)
        assert app.state.settings is s
        assert "IMAGE_SECRET_KEY not set" in caplog.text


class TestRedactQuery:
    def test_token_redacted(self):
        assert redact_query("token=123.abc&watermark=true") == "token=[REDACTED]&watermark=true"
        assert redact_query("thumbnail=true&token=123.abc") == "thumbnail=true&token=[REDACTED]"

    def test_other_params_untouched(self):
        assert redact_query("mytoken=1") == "mytoken=1"
