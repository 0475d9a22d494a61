import pytest

import config


@pytest.fixture
def fresh_settings():
    config.get_settings.cache_clear()
    yield config.get_settings
    config.get_settings.cache_clear()


def test_settings_from_environment(monkeypatch, fresh_settings):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("APP_ENV", "Production")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DETAILED_LOGGING", "yes")
    monkeypatch.setenv("PORT", "9001")

    settings = fresh_settings()

    assert settings.database_url == "sqlite:///:memory:"
    assert settings.is_production
    assert settings.log_level == "DEBUG"
    assert settings.detailed_logging is True
    assert settings.port == 9001


def test_settings_defaults(monkeypatch, fresh_settings):
    for name in ["APP_ENV", "LOG_LEVEL", "DETAILED_LOGGING", "HOST", "PORT", "LOG_DIR"]:
        monkeypatch.delenv(name, raising=False)

    settings = fresh_settings()

    assert settings.environment == "development"
    assert not settings.is_production
    assert settings.host == "127.0.0.1"
    assert settings.port == 8000
    assert settings.log_dir
