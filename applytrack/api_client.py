"""HTTP client for the job tracker backend.

Endpoints (all under ``{base_url}{api_prefix}``, bearer auth):
  POST  /jobs         create-or-update by (user, jobUrl), returns the stored job
  GET   /jobs         paginated list, optional platform/status filters
  PATCH /jobs/{id}    update status of one of the caller's jobs
  GET   /auth/me      validate the token

There are no automatic retries here. A failed delivery is recorded by the
sync queue and retried when the user asks for it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from applytrack.config import TrackerConfig, resolve_backend_url
from applytrack.errors import DeliveryError, NotAuthenticatedError
from applytrack.models import DEFAULT_PLATFORM, JobRecord
from applytrack.storage import AUTH_TOKEN_KEY, LocalStorage

logger = logging.getLogger(__name__)


class ApiClient:
    """Authenticated backend client. Settings are re-read from storage per call."""

    def __init__(self, config: TrackerConfig, storage: LocalStorage):
        self.config = config
        self.storage = storage
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": config.user_agent})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return resolve_backend_url(self.config, self.storage) + self.config.api_prefix

    @property
    def auth_token(self) -> Optional[str]:
        return self.storage.get(AUTH_TOKEN_KEY)

    def has_token(self) -> bool:
        return bool(self.auth_token)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def save_job(self, record: JobRecord) -> dict:
        """Deliver one job record. Returns the job as stored by the backend."""
        logger.info("[%s] Saving job to backend: %r", record.platform, record.job_title)
        payload = record.with_platform(DEFAULT_PLATFORM).to_payload()
        result = self._request("POST", "/jobs", json=payload)
        logger.info("[%s] Job saved: %s", record.platform, result.get("id", "?"))
        return result

    def get_jobs(
        self,
        page: int = 1,
        limit: int = 10,
        platform: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict:
        """Returns ``{jobs, total, page, totalPages, limit}``."""
        params: dict[str, Any] = {"page": page, "limit": limit}
        if platform:
            params["platform"] = platform
        if status:
            params["status"] = status
        return self._request("GET", "/jobs", params=params)

    def update_job_status(self, job_id: str, status: str) -> dict:
        return self._request("PATCH", f"/jobs/{job_id}", json={"status": status})

    def me(self) -> dict:
        """Validate the stored token. Raises NotAuthenticatedError if it is rejected."""
        return self._request("GET", "/auth/me")

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> dict:
        token = self.auth_token
        if not token:
            raise NotAuthenticatedError()

        url = self.base_url + path
        kwargs.setdefault("timeout", self.config.request_timeout_seconds)
        headers = {"Authorization": f"Bearer {token}"}

        try:
            resp = self.session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise DeliveryError(f"Network error: {exc}") from exc

        if resp.status_code == 401:
            logger.warning("%s %s rejected the auth token", method, url)
            raise NotAuthenticatedError()

        if not resp.ok:
            message = _error_message(resp)
            logger.warning("%s %s returned %d: %s", method, url, resp.status_code, message)
            raise DeliveryError(message, status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            raise DeliveryError(f"Invalid JSON from {path}: {exc}", status_code=resp.status_code) from exc


def _error_message(resp: requests.Response) -> str:
    """Prefer the backend's ``error`` field over a bare status line."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"
