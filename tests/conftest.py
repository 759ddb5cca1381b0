"""Shared fixtures: storage, fast timings and a fake backend client."""

import pytest

from applytrack.config import TrackerConfig
from applytrack.storage import AUTH_TOKEN_KEY, LocalStorage

from fake_backend import InMemoryJobBackend


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "data")


@pytest.fixture
def config():
    """Fast timings so flows finish within a test."""
    return TrackerConfig(
        delivery_delay_seconds=0,
        submit_settle_seconds=0,
        observation_timeout_seconds=0.5,
        message_timeout_seconds=5,
    )


class BackendApiClient:
    """Stands in for ApiClient, delivering into an InMemoryJobBackend."""

    def __init__(self, backend, storage, user_id="user-1"):
        self.backend = backend
        self.storage = storage
        self.user_id = user_id
        self.calls = []
        self.fail_urls = set()

    def has_token(self):
        return bool(self.storage.get(AUTH_TOKEN_KEY))

    def me(self):
        return {"id": self.user_id}

    def save_job(self, record):
        self.calls.append(record)
        if record.job_url in self.fail_urls:
            raise RuntimeError("HTTP 500")
        job, _ = self.backend.create_job(self.user_id, record.to_payload())
        return job


@pytest.fixture
def backend():
    return InMemoryJobBackend()


@pytest.fixture
def api_client(backend, storage):
    storage.set(AUTH_TOKEN_KEY, "test-token")
    return BackendApiClient(backend, storage)
