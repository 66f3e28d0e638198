import pytest

from bucketgate.config import reload_settings, settings


def test_reload_reads_environment(monkeypatch, restore_settings):
    monkeypatch.setenv("RATE_LIMIT_MAX", "60|300")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    monkeypatch.setenv("CACHE_BACKEND", "sql")

    reloaded = reload_settings()

    assert reloaded is settings
    assert settings.RATE_LIMIT_MAX == "60|300"
    assert settings.RATE_LIMIT_ENABLED is True
    assert settings.CACHE_BACKEND == "sql"


def test_reload_keeps_values_without_environment(monkeypatch, restore_settings):
    monkeypatch.delenv("RATE_LIMIT_RATE", raising=False)
    settings.RATE_LIMIT_RATE = "0.25"
    reload_settings()
    assert settings.RATE_LIMIT_RATE == "0.25"


def test_invalid_environment_is_reported(monkeypatch, restore_settings):
    monkeypatch.setenv("CACHE_BACKEND", "redis")
    monkeypatch.setenv("RATE_LIMIT_RESOLVER", "planet")
    with pytest.raises(RuntimeError, match="CACHE_BACKEND, RATE_LIMIT_RESOLVER"):
        reload_settings()
