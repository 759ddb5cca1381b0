"""User-facing notifications and the pending-jobs badge.

Only the data is modelled here: title, message and kind for a toast, text
and color for the badge. Rendering them is up to whatever front end is
attached; by default they are logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from applytrack.models import now_millis

logger = logging.getLogger(__name__)

BADGE_COLOR = "#2563eb"


@dataclass
class Notification:
    kind: str  # "success", "error", "action"
    title: str
    message: str
    require_interaction: bool = False
    created_at: int = field(default_factory=now_millis)


@dataclass
class Badge:
    text: str = ""
    color: Optional[str] = None

    def set_count(self, count: int) -> None:
        if count > 0:
            self.text = str(count)
            self.color = BADGE_COLOR
        else:
            self.clear()

    def clear(self) -> None:
        self.text = ""


def build_success(job: dict) -> Notification:
    return Notification(
        kind="success",
        title="Job Application Tracked!",
        message=(
            f"{job.get('jobTitle', 'Unknown')} at {job.get('companyName', 'Unknown')} "
            "has been saved to your dashboard."
        ),
    )


def build_failure(error: Optional[str]) -> Notification:
    return Notification(
        kind="error",
        title="Failed to Track Application",
        message=error or "Could not save job application. Please check your connection and try again.",
    )


def build_pending_reminder(count: int) -> Notification:
    plural = "s" if count != 1 else ""
    return Notification(
        kind="action",
        title="Job Saved - Action Required",
        message=(
            f"You have {count} pending job{plural} waiting for confirmation. "
            "After you apply on their website, confirm it to save it to your dashboard."
        ),
        require_interaction=True,
    )


class Notifier:
    """Collects notifications and hands each one to an optional sink."""

    def __init__(self, sink: Optional[Callable[[Notification], None]] = None):
        self.sink = sink
        self.history: list[Notification] = []

    def show(self, notification: Notification) -> None:
        self.history.append(notification)
        log = logger.error if notification.kind == "error" else logger.info
        log("%s: %s", notification.title, notification.message)
        if self.sink is not None:
            try:
                self.sink(notification)
            except Exception as exc:
                logger.warning("Notification sink failed: %s", exc)
