import logging

import pytest

from galley.core.config import Settings, validate_config
from galley.core.validation import EnvValidationError, validate_env


def _settings(**overrides):
    values = {
        "ENV": "production",
        "DATABASE_URL": "postgresql://galley:pw@db.internal:5432/galley",
        "TEST_DATABASE_URL": None,
        "GEMINI_API_KEY": "g",
        "OPENAI_API_KEY": "o",
        "SUPABASE_JWT_SECRET": "s",
        "ADMIN_KEY": "a",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _no_bypass(monkeypatch):
    monkeypatch.delenv("SKIP_ENV_VALIDATION", raising=False)


class TestValidateEnv:
    def test_complete_production_env_passes(self):
        assert validate_env(settings_obj=_settings()) is True

    def test_every_problem_is_reported(self):
        cfg = _settings(SUPABASE_JWT_SECRET=None, GEMINI_API_KEY=None, GOOGLE_GEMINI_API_KEY=None)
        with pytest.raises(EnvValidationError) as exc:
            validate_env(settings_obj=cfg)
        assert "SUPABASE_JWT_SECRET is required in production" in exc.value.problems
        assert "GEMINI_API_KEY is required in production" in exc.value.problems

    def test_sqlite_rejected_in_production(self):
        with pytest.raises(EnvValidationError, match="SQLite"):
            validate_env(settings_obj=_settings(DATABASE_URL="sqlite:///./galley.db"))

    def test_test_database_only_in_test_mode(self):
        cfg = _settings(ENV="development", TEST_DATABASE_URL="sqlite://")
        with pytest.raises(EnvValidationError, match="TEST_DATABASE_URL"):
            validate_env(settings_obj=cfg)
        assert validate_env(env="test", settings_obj=cfg) is True

    def test_malformed_database_url(self):
        with pytest.raises(EnvValidationError, match="DATABASE_URL must look like"):
            validate_env(env="development", settings_obj=_settings(DATABASE_URL="not-a-url"))

    def test_bypass_flag(self, monkeypatch):
        monkeypatch.setenv("SKIP_ENV_VALIDATION", "1")
        assert validate_env(settings_obj=_settings(DATABASE_URL="sqlite://")) is True


class TestValidateConfig:
    def test_lenient_mode_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="galley"):
            assert validate_config(strict=False, settings_obj=_settings(OPENAI_API_KEY=None)) is True
        assert "OPENAI_API_KEY (lesson generation and transcription)" in caplog.text

    def test_strict_mode_raises(self):
        with pytest.raises(RuntimeError, match="SUPABASE_JWT_SECRET"):
            validate_config(strict=True, settings_obj=_settings(SUPABASE_JWT_SECRET=None))
