"""Data models for the capture and sync pipeline.

Records are stored and sent over the wire with camelCase keys (the
backend's field names); the Python side uses snake_case attributes.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

DESCRIPTION_LIMIT = 5000

# platform tag for captures that arrive without one
DEFAULT_PLATFORM = "linkedin"


class ApplyFlow(str, Enum):
    """Classification of a clicked control on a job board."""

    EASY_APPLY = "EASY_APPLY"
    SUBMIT = "SUBMIT"
    EXTERNAL_APPLY = "EXTERNAL_APPLY"
    DIRECT_APPLY = "DIRECT_APPLY"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class JobRecord:
    """A job application captured from a job-board page.

    ``job_url`` is the natural key. ``applied_at`` is stamped when the page
    is read, not when the user later confirms the application.
    """

    job_title: str
    company_name: str
    job_url: str
    platform: str = ""
    location: str = ""
    description: str = ""
    applied_at: str = field(default_factory=utc_now_iso)
    retry_count: int = 0

    @property
    def is_complete(self) -> bool:
        return bool(self.job_title and self.company_name)

    def with_platform(self, platform: str) -> JobRecord:
        """Return a copy tagged with ``platform`` unless one is already set."""
        if self.platform:
            return self
        return replace(self, platform=platform)

    def with_retry(self) -> JobRecord:
        return replace(self, retry_count=self.retry_count + 1)

    def to_payload(self) -> dict[str, Any]:
        """Body for ``POST /jobs``."""
        return {
            "companyName": self.company_name,
            "jobTitle": self.job_title,
            "location": self.location or None,
            "description": self.description or None,
            "jobUrl": self.job_url,
            "platform": self.platform,
            "appliedAt": self.applied_at,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage and messages."""
        d = {
            "jobTitle": self.job_title,
            "companyName": self.company_name,
            "location": self.location,
            "description": self.description,
            "jobUrl": self.job_url,
            "platform": self.platform,
            "appliedAt": self.applied_at,
        }
        if self.retry_count:
            d["retryCount"] = self.retry_count
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobRecord:
        return cls(
            job_title=d.get("jobTitle") or "",
            company_name=d.get("companyName") or "",
            job_url=d.get("jobUrl") or "",
            platform=d.get("platform") or "",
            location=d.get("location") or "",
            description=d.get("description") or "",
            applied_at=d.get("appliedAt") or utc_now_iso(),
            retry_count=int(d.get("retryCount") or 0),
        )

    def __repr__(self) -> str:
        return (
            f"JobRecord(job_title={self.job_title!r}, company_name={self.company_name!r}, "
            f"platform={self.platform!r}, job_url={self.job_url!r})"
        )


def new_pending_id() -> str:
    return f"job-{now_millis()}-{uuid.uuid4().hex[:9]}"


@dataclass
class PendingJob:
    """A captured record waiting for the user to confirm they applied."""

    record: JobRecord
    id: str = field(default_factory=new_pending_id)
    status: str = "APPLIED"
    timestamp: int = field(default_factory=now_millis)

    @property
    def job_url(self) -> str:
        return self.record.job_url

    def to_dict(self) -> dict[str, Any]:
        d = self.record.to_dict()
        d.update({"id": self.id, "status": self.status, "timestamp": self.timestamp})
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PendingJob:
        return cls(
            record=JobRecord.from_dict(d),
            id=d["id"],
            status=d.get("status", "APPLIED"),
            timestamp=int(d.get("timestamp") or 0),
        )


@dataclass
class FailedJobEntry:
    """A delivery attempt that did not succeed, kept for a user-triggered retry."""

    record: JobRecord
    error: str
    timestamp: int = field(default_factory=now_millis)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.record.to_dict(),
            "error": self.error,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FailedJobEntry:
        return cls(
            record=JobRecord.from_dict(d.get("data") or {}),
            error=d.get("error", ""),
            timestamp=int(d.get("timestamp") or 0),
        )


@dataclass
class DeliveryOutcome:
    """How one queue entry ended: delivered (with the stored record) or failed."""

    ok: bool
    data: Optional[dict] = None
    error: str = ""
