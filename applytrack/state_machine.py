"""Per-page-visit application flow tracking.

    IDLE ── EASY_APPLY ──▶ EASY_APPLY_STARTED ── SUBMIT ──▶ AWAITING_CONFIRMATION
                                                              │
                                                 signal seen ─┤─ timed out
                                                              ▼
                                                   COMPLETE   ABANDONED

    IDLE ── EXTERNAL_APPLY / DIRECT_APPLY ──▶ EXTERNAL_APPLY_CACHED

Every terminal state resets to IDLE. Easy Apply snapshots the job when the
flow starts because the page may have moved on by the time the success
dialog shows up. External and direct applies read the page when clicked,
since the user is about to leave it.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from bs4 import Tag

from applytrack.models import ApplyFlow, JobRecord
from applytrack.page import Page
from applytrack.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)

RecordSink = Callable[[JobRecord], Awaitable[None]]
PendingSink = Callable[[JobRecord, ApplyFlow], Awaitable[None]]


class ApplyState(str, Enum):
    IDLE = "IDLE"
    EASY_APPLY_STARTED = "EASY_APPLY_STARTED"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    COMPLETE = "COMPLETE"
    ABANDONED = "ABANDONED"
    EXTERNAL_APPLY_CACHED = "EXTERNAL_APPLY_CACHED"


class ApplyStateMachine:
    """Turns clicks on one page into at most one job record per flow.

    ``on_complete`` receives records whose success was seen on the page and
    should be delivered now. ``on_pending`` receives records that need the
    user to confirm them later.
    """

    def __init__(
        self,
        adapter: PlatformAdapter,
        page: Page,
        on_complete: RecordSink,
        on_pending: PendingSink,
        observation_timeout: float = 5.0,
        settle_delay: float = 1.0,
        direct_apply_requires_confirmation: bool = True,
    ):
        self.adapter = adapter
        self.page = page
        self.on_complete = on_complete
        self.on_pending = on_pending
        self.observation_timeout = observation_timeout
        self.settle_delay = settle_delay
        self.direct_apply_requires_confirmation = direct_apply_requires_confirmation

        self.state = ApplyState.IDLE
        self.snapshot: Optional[JobRecord] = None
        self.last_outcome: Optional[ApplyState] = None
        self.observation: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.adapter.name

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def handle_click(self, target: Tag | None) -> ApplyFlow | None:
        """Feed one click into the machine. Returns the flow it was classified as.

        Never raises. Waiting for the Easy Apply success signal happens in a
        background task (``self.observation``), so this returns right away.
        """
        try:
            control = self.adapter.resolve_control(target)
            flow = self.adapter.classify(control)
        except Exception as exc:
            logger.warning("[%s] Ignoring click: %s", self.name, exc)
            return None

        if flow is None:
            return None

        if flow is ApplyFlow.EASY_APPLY:
            self._start_easy_apply()
        elif flow is ApplyFlow.SUBMIT:
            self._submit()
        else:
            await self._capture_off_page(flow)
        return flow

    async def cancel(self) -> None:
        """Stop a running observation, e.g. when the page visit ends."""
        if self.observation and not self.observation.done():
            self.observation.cancel()
            try:
                await self.observation
            except asyncio.CancelledError:
                pass
        # a task cancelled before its first step never reaches its own cleanup
        if self.state is ApplyState.AWAITING_CONFIRMATION:
            self._finish(ApplyState.ABANDONED)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _start_easy_apply(self) -> None:
        if self.state is ApplyState.AWAITING_CONFIRMATION:
            logger.debug("[%s] Easy Apply clicked while awaiting confirmation, ignored", self.name)
            return

        self.snapshot = self.adapter.extract(self.page)
        self.state = ApplyState.EASY_APPLY_STARTED
        if self.snapshot:
            logger.info(
                "[%s] Easy Apply started, cached %r at %r",
                self.name, self.snapshot.job_title, self.snapshot.company_name,
            )
        else:
            logger.warning("[%s] Easy Apply started but job details could not be cached", self.name)

    def _submit(self) -> None:
        if self.state is not ApplyState.EASY_APPLY_STARTED:
            logger.info("[%s] Submit clicked outside an Easy Apply flow, skipping", self.name)
            return

        self.state = ApplyState.AWAITING_CONFIRMATION
        dialog_was_open = self.adapter.apply_dialog_open(self.page)
        self.observation = asyncio.ensure_future(self._await_completion(dialog_was_open))
        logger.info("[%s] Submit clicked, waiting for confirmation", self.name)

    async def _await_completion(self, dialog_was_open: bool) -> None:
        try:
            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)

            seen = await self.page.wait_for(
                self.adapter.completion_signal(dialog_was_open),
                self.observation_timeout,
            )
            if not seen:
                logger.info("[%s] No success signal within %.1fs", self.name, self.observation_timeout)
                self._finish(ApplyState.ABANDONED)
                return

            record = self.snapshot or self.adapter.extract(self.page)
            if record is None or not record.is_complete:
                logger.warning("[%s] Application confirmed but job details are incomplete", self.name)
                self._finish(ApplyState.ABANDONED)
                return
        except asyncio.CancelledError:
            self._finish(ApplyState.ABANDONED)
            raise
        except Exception as exc:
            logger.error("[%s] Failed while waiting for confirmation: %s", self.name, exc)
            self._finish(ApplyState.ABANDONED)
            return

        logger.info("[%s] Application confirmed: %r", self.name, record)
        self._finish(ApplyState.COMPLETE)
        try:
            await self.on_complete(record)
        except Exception as exc:
            logger.error("[%s] Failed to hand off confirmed record: %s", self.name, exc)

    async def _capture_off_page(self, flow: ApplyFlow) -> None:
        if self.state is ApplyState.AWAITING_CONFIRMATION:
            logger.debug("[%s] %s clicked while awaiting confirmation, ignored", self.name, flow.value)
            return

        record = self.adapter.extract(self.page)
        if record is None:
            logger.warning("[%s] Missing job data for %s", self.name, flow.value)
            self._finish(ApplyState.ABANDONED)
            return

        self._finish(ApplyState.EXTERNAL_APPLY_CACHED)
        try:
            if flow is ApplyFlow.DIRECT_APPLY and not self.direct_apply_requires_confirmation:
                await self.on_complete(record)
            else:
                await self.on_pending(record, flow)
        except Exception as exc:
            logger.error("[%s] Failed to hand off %s record: %s", self.name, flow.value, exc)

    def _finish(self, outcome: ApplyState) -> None:
        self.last_outcome = outcome
        self.state = ApplyState.IDLE
        self.snapshot = None
        logger.debug("[%s] Flow ended: %s", self.name, outcome.value)
