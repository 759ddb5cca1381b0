"""Pending jobs: applications whose completion could not be observed.

When the user leaves the job board to apply elsewhere we cannot see whether
they finished, so the record is parked here and the user is asked on a later
visit. Entries are unique by ``jobUrl``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from applytrack.models import JobRecord, PendingJob
from applytrack.storage import PENDING_JOBS_KEY, LocalStorage

logger = logging.getLogger(__name__)

DUPLICATE = "DUPLICATE"


@dataclass
class AddResult:
    ok: bool
    reason: Optional[str] = None
    job: Optional[PendingJob] = None
    count: int = 0


class PendingJobStore:
    """Durable list of pending jobs, in insertion order."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def add(self, record: JobRecord) -> AddResult:
        """Append a pending job unless one with the same URL already exists."""
        jobs = self.storage.get_list(PENDING_JOBS_KEY)

        if any(j.get("jobUrl") == record.job_url for j in jobs):
            logger.info("[%s] Job already pending: %s", record.platform, record.job_url)
            return AddResult(ok=False, reason=DUPLICATE, count=len(jobs))

        job = PendingJob(record=record)
        jobs.append(job.to_dict())
        self.storage.set(PENDING_JOBS_KEY, jobs)
        logger.info(
            "[%s] Cached pending job %r at %r (total pending: %d)",
            record.platform, record.job_title, record.company_name, len(jobs),
        )
        return AddResult(ok=True, job=job, count=len(jobs))

    def list(self) -> list[PendingJob]:
        jobs = []
        for raw in self.storage.get_list(PENDING_JOBS_KEY):
            try:
                jobs.append(PendingJob.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed pending job %r: %s", raw, exc)
        return jobs

    def get(self, job_id: str) -> PendingJob | None:
        for job in self.list():
            if job.id == job_id:
                return job
        return None

    def remove(self, job_id: str) -> int:
        """Drop the pending job with ``job_id``. Returns how many remain."""
        jobs = self.storage.get_list(PENDING_JOBS_KEY)
        remaining = [j for j in jobs if j.get("id") != job_id]
        if len(remaining) != len(jobs):
            self.storage.set(PENDING_JOBS_KEY, remaining)
            logger.info("Removed pending job %s (%d remaining)", job_id, len(remaining))
        return len(remaining)

    def clear(self) -> None:
        self.storage.remove(PENDING_JOBS_KEY)
        logger.info("Cleared all pending jobs")

    def count(self) -> int:
        return len(self.storage.get_list(PENDING_JOBS_KEY))
