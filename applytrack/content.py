"""Page session: everything that runs for one visit to a job-board page.

Wires a ``Page`` to its board's adapter and a fresh ``ApplyStateMachine``,
and routes what the machine produces:
  - confirmed applications go straight to the background service
  - unobservable ones are parked in the pending store and the background
    service is told the new pending count

Any failure to reach the background service ends up as a page notice
asking the user to reload, never as an exception out of a click handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from bs4 import Tag

from applytrack.config import TrackerConfig
from applytrack.errors import AUTH_REQUIRED, ChannelUnavailableError
from applytrack.messaging import EXTERNAL_APPLY_CACHED, JOB_APPLICATION, MessageBus
from applytrack.models import ApplyFlow, JobRecord, PendingJob
from applytrack.page import Page
from applytrack.pending import DUPLICATE, PendingJobStore
from applytrack.platforms import adapter_for_url
from applytrack.platforms.base import PlatformAdapter
from applytrack.review import PendingReview, ReviewResult
from applytrack.state_machine import ApplyStateMachine

logger = logging.getLogger(__name__)

RELOAD_NOTICE = "Extension updated - Please reload this page (F5)"


@dataclass
class PageNotice:
    message: str
    kind: str  # "success" or "error"


class UnsupportedPageError(ValueError):
    """No enabled board adapter serves this URL."""


class ContentSession:
    """One page visit on a supported job board."""

    def __init__(
        self,
        page: Page,
        bus: MessageBus,
        pending: PendingJobStore,
        config: TrackerConfig,
        adapter: Optional[PlatformAdapter] = None,
    ):
        if adapter is None:
            extra = {p.name: p.success_phrases for p in config.platforms}
            adapter = adapter_for_url(page.url, config.enabled_platforms, extra)
        if adapter is None:
            raise UnsupportedPageError(f"No supported job board at {page.url}")

        self.page = page
        self.bus = bus
        self.pending = pending
        self.adapter = adapter
        self.review = PendingReview(pending, bus)
        self.notices: list[PageNotice] = []
        self.machine = ApplyStateMachine(
            adapter,
            page,
            on_complete=self.send_capture,
            on_pending=self.cache_pending,
            observation_timeout=config.observation_timeout_seconds,
            settle_delay=config.submit_settle_seconds,
            direct_apply_requires_confirmation=config.direct_apply_requires_confirmation,
        )

    @property
    def platform(self) -> str:
        return self.adapter.name

    async def on_click(self, target: Tag | None) -> ApplyFlow | None:
        return await self.machine.handle_click(target)

    async def close(self) -> None:
        await self.machine.cancel()

    # ------------------------------------------------------------------
    # Routing what the state machine produces
    # ------------------------------------------------------------------

    async def send_capture(self, record: JobRecord) -> bool:
        """Send a confirmed application to the background service."""
        record = record.with_platform(self.platform)
        logger.info("[%s] Sending job data to background: %r", self.platform, record)
        try:
            response = await self.bus.send(JOB_APPLICATION, record.to_dict())
        except ChannelUnavailableError as exc:
            logger.error("[%s] Background unavailable: %s", self.platform, exc)
            self.notify(RELOAD_NOTICE, "error")
            return False

        if response.success:
            self.notify("Job tracked successfully!", "success")
            return True

        if response.error == AUTH_REQUIRED:
            self.notify("Please log in to track applications", "error")
        else:
            self.notify(f"Failed to track job: {response.error or 'Unknown error'}", "error")
        return False

    async def cache_pending(self, record: JobRecord, flow: ApplyFlow) -> bool:
        """Park an application the user has to confirm later."""
        record = record.with_platform(self.platform)
        result = self.pending.add(record)
        if not result.ok:
            if result.reason == DUPLICATE:
                self.notify("Job already saved", "error")
            return False

        logger.info("[%s] %s job cached, %d pending", self.platform, flow.value, result.count)
        try:
            await self.bus.send(EXTERNAL_APPLY_CACHED, {"count": result.count})
        except ChannelUnavailableError as exc:
            # the job is stored; only the badge refresh is lost
            logger.error("[%s] Background unavailable: %s", self.platform, exc)
            self.notify(RELOAD_NOTICE, "error")
        return True

    # ------------------------------------------------------------------
    # Pending confirmation on page load
    # ------------------------------------------------------------------

    def check_for_pending_job(self) -> PendingJob | None:
        """The pending job to ask the user about on this visit, if any."""
        job = self.review.next_pending()
        if job is not None:
            logger.info("[%s] Found %d pending jobs", self.platform, self.pending.count())
        return job

    async def confirm_pending(self, job_id: str) -> ReviewResult:
        try:
            result = await self.review.confirm(job_id)
        except ChannelUnavailableError as exc:
            logger.error("[%s] Background unavailable: %s", self.platform, exc)
            self.notify(RELOAD_NOTICE, "error")
            return ReviewResult(ok=False, error=str(exc), remaining=self.pending.count())

        if result.ok:
            self.notify("Job tracked successfully!", "success")
        else:
            self.notify(f"Failed to track job: {result.error or 'Unknown error'}", "error")
        return result

    async def decline_pending(self, job_id: str) -> ReviewResult:
        result = await self.review.decline(job_id)
        self.notify("Application not tracked", "error")
        return result

    def notify(self, message: str, kind: str) -> None:
        self.notices.append(PageNotice(message, kind))
        log = logger.info if kind == "success" else logger.warning
        log("[%s] %s", self.platform, message)
