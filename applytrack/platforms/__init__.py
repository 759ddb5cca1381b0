from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from .base import Platform, PlatformAdapter
from .linkedin import LINKEDIN
from .naukri import NAUKRI

PLATFORM_REGISTRY: dict[str, Platform] = {
    "linkedin": LINKEDIN,
    "naukri": NAUKRI,
}


def adapter_for_url(
    url: str,
    enabled: Optional[list[str]] = None,
    extra_success_phrases: Optional[dict[str, list[str]]] = None,
) -> PlatformAdapter | None:
    """Pick the adapter for the board serving ``url``, if it is supported and enabled."""
    host = (urlparse(url).hostname or "").lower()
    for name, platform in PLATFORM_REGISTRY.items():
        if enabled is not None and name not in enabled:
            continue
        adapter = PlatformAdapter(platform, (extra_success_phrases or {}).get(name))
        if adapter.handles(host):
            return adapter
    return None


__all__ = [
    "PLATFORM_REGISTRY",
    "Platform",
    "PlatformAdapter",
    "adapter_for_url",
]
