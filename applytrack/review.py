"""Asking the user about pending jobs.

A pending job only reaches the backend after the user says they really
applied. Confirming sends it through the background service and drops it
from the pending list once delivery succeeded; declining just drops it.
Either way the badge is refreshed with the remaining count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from applytrack.errors import ChannelUnavailableError
from applytrack.messaging import CLEAR_BADGE, JOB_APPLICATION, UPDATE_BADGE, MessageBus
from applytrack.models import PendingJob
from applytrack.pending import PendingJobStore

logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    ok: bool
    error: Optional[str] = None
    remaining: int = 0


@dataclass
class BulkResult:
    saved: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class PendingReview:
    """Confirm / decline operations over the pending job store."""

    def __init__(self, store: PendingJobStore, bus: MessageBus):
        self.store = store
        self.bus = bus

    def pending(self) -> list[PendingJob]:
        return self.store.list()

    def next_pending(self) -> PendingJob | None:
        """The oldest pending job, which is the one to ask about first."""
        jobs = self.store.list()
        return jobs[0] if jobs else None

    async def confirm(self, job_id: str) -> ReviewResult:
        """Deliver a pending job. It stays pending if delivery fails.

        Raises ChannelUnavailableError if the background service is gone.
        """
        job = self.store.get(job_id)
        if job is None:
            return ReviewResult(ok=False, error=f"No pending job with id {job_id}", remaining=self.store.count())

        response = await self.bus.send(JOB_APPLICATION, job.record.to_dict())
        if not response.success:
            logger.warning("[%s] Could not save pending job %s: %s", job.record.platform, job_id, response.error)
            return ReviewResult(ok=False, error=response.error, remaining=self.store.count())

        remaining = self.store.remove(job_id)
        await self._update_badge(remaining)
        return ReviewResult(ok=True, remaining=remaining)

    async def decline(self, job_id: str) -> ReviewResult:
        remaining = self.store.remove(job_id)
        logger.info("Pending job %s declined", job_id)
        await self._update_badge(remaining)
        return ReviewResult(ok=True, remaining=remaining)

    async def confirm_all(self) -> BulkResult:
        result = BulkResult()
        for job in self.store.list():
            outcome = await self.confirm(job.id)
            if outcome.ok:
                result.saved += 1
            else:
                result.failed += 1
                result.errors.append(outcome.error or "Unknown error")
        logger.info("Confirmed pending jobs: %d saved, %d failed", result.saved, result.failed)
        return result

    async def clear_all(self) -> None:
        self.store.clear()
        try:
            await self.bus.send(CLEAR_BADGE)
        except ChannelUnavailableError as exc:
            logger.warning("Could not clear badge: %s", exc)

    async def _update_badge(self, count: int) -> None:
        try:
            await self.bus.send(UPDATE_BADGE, {"count": count})
        except ChannelUnavailableError as exc:
            # the badge catches up on the next successful update
            logger.warning("Could not update badge: %s", exc)
