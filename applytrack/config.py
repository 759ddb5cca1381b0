"""Configuration loader for applytrack.

Reads config.yaml and returns typed configuration objects that the page
sessions, the background service and the backend client consume. Runtime
settings the user changes (auth token, backend URL override, dev mode)
live in durable storage instead, see ``resolve_backend_url``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from applytrack.storage import (
    API_URL_KEY,
    DASHBOARD_URL_KEY,
    DEV_MODE_KEY,
    LocalStorage,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


@dataclass
class PlatformConfig:
    """Per-board switches."""

    name: str
    enabled: bool = True
    success_phrases: list[str] = field(default_factory=list)


@dataclass
class TrackerConfig:
    """Top-level configuration."""

    platforms: list[PlatformConfig] = field(default_factory=list)
    production_backend_url: str = "https://humorous-solace-production.up.railway.app"
    development_backend_url: str = "http://localhost:4000"
    production_dashboard_url: str = "https://job-tracker-jwue.vercel.app"
    development_dashboard_url: str = "http://localhost:3000"
    api_prefix: str = "/api"
    data_dir: str = "data"
    log_level: str = "INFO"
    request_timeout_seconds: float = 30.0
    delivery_delay_seconds: float = 0.1  # gap between queued deliveries
    submit_settle_seconds: float = 1.0
    observation_timeout_seconds: float = 5.0
    message_timeout_seconds: float = 30.0
    direct_apply_requires_confirmation: bool = True
    verify_token_before_delivery: bool = False
    user_agent: str = "applytrack/0.1"

    @property
    def enabled_platforms(self) -> list[str]:
        """Names of enabled boards. An empty ``platforms`` list enables all."""
        if not self.platforms:
            from applytrack.platforms import PLATFORM_REGISTRY

            return list(PLATFORM_REGISTRY)
        return [p.name for p in self.platforms if p.enabled]

    def platform_config(self, name: str) -> PlatformConfig | None:
        for p in self.platforms:
            if p.name == name:
                return p
        return None


def load_config(path: Path | str | None = None) -> TrackerConfig:
    """Load and validate the configuration from a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning("Config file not found at %s, using defaults", config_path)
        return TrackerConfig()

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    if not raw:
        return TrackerConfig()

    platforms = []
    for p in raw.get("platforms", []):
        platforms.append(
            PlatformConfig(
                name=p["name"],
                enabled=p.get("enabled", True),
                success_phrases=p.get("success_phrases", []),
            )
        )

    defaults = TrackerConfig()
    return TrackerConfig(
        platforms=platforms,
        production_backend_url=raw.get("production_backend_url", defaults.production_backend_url),
        development_backend_url=raw.get("development_backend_url", defaults.development_backend_url),
        production_dashboard_url=raw.get("production_dashboard_url", defaults.production_dashboard_url),
        development_dashboard_url=raw.get("development_dashboard_url", defaults.development_dashboard_url),
        api_prefix=raw.get("api_prefix", defaults.api_prefix),
        data_dir=raw.get("data_dir", defaults.data_dir),
        log_level=raw.get("log_level", defaults.log_level),
        request_timeout_seconds=raw.get("request_timeout_seconds", defaults.request_timeout_seconds),
        delivery_delay_seconds=raw.get("delivery_delay_seconds", defaults.delivery_delay_seconds),
        submit_settle_seconds=raw.get("submit_settle_seconds", defaults.submit_settle_seconds),
        observation_timeout_seconds=raw.get(
            "observation_timeout_seconds", defaults.observation_timeout_seconds
        ),
        message_timeout_seconds=raw.get("message_timeout_seconds", defaults.message_timeout_seconds),
        direct_apply_requires_confirmation=raw.get(
            "direct_apply_requires_confirmation", defaults.direct_apply_requires_confirmation
        ),
        verify_token_before_delivery=raw.get(
            "verify_token_before_delivery", defaults.verify_token_before_delivery
        ),
        user_agent=raw.get("user_agent", defaults.user_agent),
    )


# ── Runtime settings ───────────────────────────────────────────────────────

def resolve_backend_url(config: TrackerConfig, storage: LocalStorage) -> str:
    """Backend base URL: stored override, then dev URL in dev mode, then production."""
    try:
        api_url = storage.get(API_URL_KEY)
        dev_mode = storage.get(DEV_MODE_KEY, False)
    except OSError as exc:
        logger.error("Could not read backend settings: %s", exc)
        return config.production_backend_url

    if api_url:
        return api_url.rstrip("/")
    if dev_mode:
        return config.development_backend_url
    return config.production_backend_url


def resolve_dashboard_url(config: TrackerConfig, storage: LocalStorage) -> str:
    dashboard_url = storage.get(DASHBOARD_URL_KEY)
    if dashboard_url:
        return dashboard_url.rstrip("/")
    if storage.get(DEV_MODE_KEY, False):
        return config.development_dashboard_url
    return config.production_dashboard_url
