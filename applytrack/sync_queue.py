"""Delivery queue from the background service to the backend.

Entries are delivered strictly one at a time, oldest first, with a short
pause between deliveries. A failed delivery is written to the durable
``failedJobs`` list and the queue moves on. On ``shutdown()`` everything not
yet delivered is written to ``failedJobs`` too, so a record is always
either delivered or on the failed list.

Delivery is at-least-once. ``retry_failed`` re-enqueues every failed record
and empties the failed list; a retry that fails again becomes a new failed
entry. Duplicates that slip through are absorbed by the backend's upsert on
``jobUrl``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from applytrack.models import DeliveryOutcome, FailedJobEntry, JobRecord
from applytrack.storage import FAILED_JOBS_KEY, LocalStorage

logger = logging.getLogger(__name__)

Deliver = Callable[[JobRecord], Awaitable[Any]]

SHUTDOWN_ERROR = "Delivery interrupted by shutdown"


class FailedJobStore:
    """Durable list of failed deliveries."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def append(self, record: JobRecord, error: str) -> FailedJobEntry:
        entries = self.storage.get_list(FAILED_JOBS_KEY)
        entry = FailedJobEntry(record=record.with_retry(), error=error)
        entries.append(entry.to_dict())
        self.storage.set(FAILED_JOBS_KEY, entries)
        logger.info("[%s] Saved failed job %r (%d failed)", record.platform, record.job_title, len(entries))
        return entry

    def list(self) -> list[FailedJobEntry]:
        return [FailedJobEntry.from_dict(raw) for raw in self.storage.get_list(FAILED_JOBS_KEY)]

    def clear(self) -> None:
        self.storage.set(FAILED_JOBS_KEY, [])

    def count(self) -> int:
        return len(self.storage.get_list(FAILED_JOBS_KEY))


@dataclass
class QueueEntry:
    data: JobRecord
    platform: str
    outcome: asyncio.Future = field(repr=False, default=None)


class SyncQueue:
    """FIFO delivery of confirmed job records, one at a time."""

    def __init__(self, deliver: Deliver, failed: FailedJobStore, delay_seconds: float = 0.1):
        self.deliver = deliver
        self.failed = failed
        self.delay_seconds = delay_seconds
        self._queue: deque[QueueEntry] = deque()
        self._processing = False
        self._drain: Optional[asyncio.Task] = None
        self._current: Optional[QueueEntry] = None

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def processing(self) -> bool:
        return self._processing

    def enqueue(self, record: JobRecord, platform: Optional[str] = None) -> asyncio.Future:
        """Add a record and make sure a drain is running.

        Returns a future that resolves to the entry's DeliveryOutcome. It
        never resolves to an exception.
        """
        platform = platform or record.platform
        entry = QueueEntry(
            data=record.with_platform(platform),
            platform=platform,
            outcome=asyncio.get_running_loop().create_future(),
        )
        self._queue.append(entry)
        logger.info("[%s] Job added to queue: %r (%d queued)", platform, record.job_title, len(self._queue))

        if not self._processing:
            self._drain = asyncio.ensure_future(self.process())
        return entry.outcome

    async def process(self) -> None:
        """Deliver everything queued. A second call while draining is a no-op."""
        if self._processing or not self._queue:
            return

        self._processing = True
        try:
            while self._queue:
                entry = self._queue.popleft()
                self._current = entry
                outcome = await self._deliver_one(entry)
                self._current = None
                if not entry.outcome.done():
                    entry.outcome.set_result(outcome)
                if self.delay_seconds > 0:
                    await asyncio.sleep(self.delay_seconds)
        finally:
            self._processing = False
            self._current = None

    async def join(self) -> None:
        """Wait for the current drain, if any, to finish."""
        if self._drain is not None and not self._drain.done():
            await self._drain

    async def shutdown(self) -> int:
        """Stop draining and move every undelivered record to the failed list.

        The record being delivered when the drain is cancelled is recorded by
        ``_deliver_one``; the ones still waiting are recorded here. Returns
        the number of waiting records that were moved.
        """
        in_flight = self._current
        if self._drain is not None and not self._drain.done():
            self._drain.cancel()
            try:
                await self._drain
            except asyncio.CancelledError:
                pass
        if in_flight is not None and not in_flight.outcome.done():
            in_flight.outcome.set_result(DeliveryOutcome(ok=False, error=SHUTDOWN_ERROR))

        moved = 0
        while self._queue:
            entry = self._queue.popleft()
            self.failed.append(entry.data, SHUTDOWN_ERROR)
            if not entry.outcome.done():
                entry.outcome.set_result(DeliveryOutcome(ok=False, error=SHUTDOWN_ERROR))
            moved += 1

        if moved:
            logger.info("Queue shut down, %d undelivered jobs saved for retry", moved)
        return moved

    async def retry_failed(self) -> int:
        """Re-enqueue every failed record, clear the failed list, and drain.

        Returns the number of records re-enqueued.
        """
        entries = self.failed.list()
        if not entries:
            logger.info("No failed jobs to retry")
            return 0

        logger.info("Retrying %d failed jobs", len(entries))
        outcomes = [self.enqueue(entry.record) for entry in entries]
        # cleared before draining so a repeat failure is kept as a new entry
        self.failed.clear()
        await asyncio.gather(*outcomes)
        return len(entries)

    async def _deliver_one(self, entry: QueueEntry) -> DeliveryOutcome:
        record = entry.data
        logger.info("[%s] Processing job: %r", entry.platform, record.job_title)
        try:
            result = await self.deliver(record)
        except asyncio.CancelledError:
            self.failed.append(record, "Delivery cancelled")
            raise
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            logger.error("[%s] Failed to deliver %r: %s", entry.platform, record.job_title, error)
            self.failed.append(record, error)
            return DeliveryOutcome(ok=False, error=error)

        logger.info("[%s] Job delivered: %r", entry.platform, record.job_title)
        return DeliveryOutcome(ok=True, data=result if isinstance(result, dict) else None)
