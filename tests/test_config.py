"""Tests for configuration loading and backend URL resolution."""

import tempfile

import yaml

from applytrack.config import (
    TrackerConfig,
    load_config,
    resolve_backend_url,
    resolve_dashboard_url,
)
from applytrack.storage import API_URL_KEY, DASHBOARD_URL_KEY, DEV_MODE_KEY


def test_load_default_config():
    """Loading the project's config.yaml should work."""
    config = load_config()
    assert isinstance(config, TrackerConfig)
    assert {"linkedin", "naukri"} <= set(config.enabled_platforms)


def test_load_missing_file():
    """Missing config file returns defaults."""
    config = load_config("/nonexistent/path.yaml")
    assert isinstance(config, TrackerConfig)
    assert config.platforms == []
    assert config.delivery_delay_seconds == 0.1


def test_empty_platform_list_enables_all():
    assert set(TrackerConfig().enabled_platforms) == {"linkedin", "naukri"}


def test_custom_config():
    data = {
        "log_level": "DEBUG",
        "observation_timeout_seconds": 8,
        "direct_apply_requires_confirmation": False,
        "platforms": [
            {"name": "linkedin", "enabled": False},
            {"name": "naukri", "success_phrases": ["applied to"]},
        ],
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(data, f)
        f.flush()
        config = load_config(f.name)

    assert config.log_level == "DEBUG"
    assert config.observation_timeout_seconds == 8
    assert config.direct_apply_requires_confirmation is False
    assert config.enabled_platforms == ["naukri"]
    assert config.platform_config("naukri").success_phrases == ["applied to"]


def test_backend_url_defaults_to_production(storage):
    config = TrackerConfig()
    assert resolve_backend_url(config, storage) == config.production_backend_url


def test_dev_mode_uses_development_url(storage):
    config = TrackerConfig()
    storage.set(DEV_MODE_KEY, True)
    assert resolve_backend_url(config, storage) == config.development_backend_url
    assert resolve_dashboard_url(config, storage) == config.development_dashboard_url


def test_stored_override_wins(storage):
    config = TrackerConfig()
    storage.set(DEV_MODE_KEY, True)
    storage.set(API_URL_KEY, "https://tracker.example.com/")
    storage.set(DASHBOARD_URL_KEY, "https://dash.example.com")
    assert resolve_backend_url(config, storage) == "https://tracker.example.com"
    assert resolve_dashboard_url(config, storage) == "https://dash.example.com"
