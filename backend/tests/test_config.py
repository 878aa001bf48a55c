import pytest
from pydantic import ValidationError

from pathsense.config import Settings


def test_defaults_match_pipeline_constants() -> None:
    settings = Settings()
    assert settings.tick_period_seconds == 1.0
    assert settings.camera_vfov_deg == 60.0
    assert settings.object_refresh_seconds == 4.0
    assert settings.clear_refresh_seconds == 6.0
    assert settings.surface_edge_threshold == 30.0


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TICK_PERIOD_SECONDS", "0.5")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    settings = Settings()
    assert settings.tick_period_seconds == 0.5
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


def test_invalid_values_rejected(monkeypatch) -> None:
    monkeypatch.setenv("TICK_PERIOD_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings()
