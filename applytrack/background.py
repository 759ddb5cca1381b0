"""Background service: receives captures from page sessions and syncs them.

Handles the bus message catalogue:
  JOB_APPLICATION        deliver one job record through the sync queue
  EXTERNAL_APPLY_CACHED  a job was parked for confirmation; show the count
  UPDATE_BADGE           set the pending count badge
  CLEAR_BADGE            clear the badge
  RETRY_FAILED           re-enqueue every failed delivery
  GET_FAILED_COUNT       how many deliveries are waiting for a retry

Nothing here survives a restart except what is in storage.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from applytrack.config import TrackerConfig
from applytrack.errors import DeliveryError, NotAuthenticatedError
from applytrack.messaging import (
    CLEAR_BADGE,
    EXTERNAL_APPLY_CACHED,
    GET_FAILED_COUNT,
    JOB_APPLICATION,
    RETRY_FAILED,
    UPDATE_BADGE,
    MessageBus,
)
from applytrack.models import DEFAULT_PLATFORM, JobRecord
from applytrack.notify import (
    Badge,
    Notifier,
    build_failure,
    build_pending_reminder,
    build_success,
)
from applytrack.storage import LocalStorage
from applytrack.sync_queue import FailedJobStore, SyncQueue

logger = logging.getLogger(__name__)


class BackgroundService:
    """Owns the sync queue, the badge and the backend client."""

    def __init__(
        self,
        config: TrackerConfig,
        storage: LocalStorage,
        bus: MessageBus,
        api_client: Any,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.storage = storage
        self.bus = bus
        self.api_client = api_client
        self.notifier = notifier or Notifier()
        self.badge = Badge()
        self.failed = FailedJobStore(storage)
        self.queue = SyncQueue(self._deliver, self.failed, config.delivery_delay_seconds)

    def start(self) -> None:
        self.bus.register_handlers(
            {
                JOB_APPLICATION: self.handle_job_application,
                EXTERNAL_APPLY_CACHED: self.handle_external_apply_cached,
                UPDATE_BADGE: self.handle_update_badge,
                CLEAR_BADGE: self.handle_clear_badge,
                RETRY_FAILED: self.handle_retry_failed,
                GET_FAILED_COUNT: self.handle_failed_count,
            }
        )
        self.bus.start()
        logger.info("Background service started")

    async def stop(self) -> None:
        """Stop taking messages, then save whatever the queue had not delivered."""
        await self.bus.stop()
        await self.queue.shutdown()
        logger.info("Background service stopped")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def handle_job_application(self, data: dict) -> dict:
        record = JobRecord.from_dict(data)
        if not record.is_complete or not record.job_url:
            raise ValueError("Job record is missing title, company or URL")

        record = record.with_platform(DEFAULT_PLATFORM)
        await self._check_auth()

        outcome = await self.queue.enqueue(record)
        if not outcome.ok:
            self.notifier.show(build_failure(outcome.error))
            raise DeliveryError(outcome.error)

        self.notifier.show(build_success(outcome.data or record.to_dict()))
        return outcome.data or {}

    def handle_external_apply_cached(self, data: dict) -> dict:
        count = int(data.get("count") or 0)
        self.notifier.show(build_pending_reminder(count))
        self.badge.set_count(count)
        return {"badge": self.badge.text}

    def handle_update_badge(self, data: dict) -> dict:
        self.badge.set_count(int(data.get("count") or 0))
        return {"badge": self.badge.text}

    def handle_clear_badge(self, data: dict) -> dict:
        self.badge.clear()
        return {"badge": self.badge.text}

    async def handle_retry_failed(self, data: dict) -> dict:
        await self._check_auth()
        retried = await self.queue.retry_failed()
        return {"retried": retried, "failed": self.failed.count()}

    def handle_failed_count(self, data: dict) -> dict:
        return {"count": self.failed.count()}

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _check_auth(self) -> None:
        """Refuse to queue anything without a usable token."""
        if not self.api_client.has_token():
            logger.warning("No auth token stored, not delivering")
            raise NotAuthenticatedError()
        if self.config.verify_token_before_delivery:
            try:
                await asyncio.to_thread(self.api_client.me)
            except DeliveryError as exc:
                logger.warning("Could not verify auth token: %s", exc)

    async def _deliver(self, record: JobRecord) -> dict:
        return await asyncio.to_thread(self.api_client.save_job, record)
