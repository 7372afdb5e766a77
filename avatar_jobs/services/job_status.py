from __future__ import annotations

import logging
from datetime import datetime, timedelta

from avatar_jobs.core.errors import ForbiddenError, NotFoundError, ProviderRejectedError, ProviderUnavailableError
from avatar_jobs.models.job import PROCESSING, GenerationJob, as_utc, utcnow
from avatar_jobs.services.job_store import JobStore
from avatar_jobs.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


class JobStatusService:
    """Owner-scoped read path; refreshes stale processing jobs with one poll."""

    def __init__(self, store: JobStore, engine: ReconciliationEngine, staleness_threshold_seconds: int = 120) -> None:
        self.store = store
        self.engine = engine
        self.staleness_threshold = timedelta(seconds=staleness_threshold_seconds)

    def _is_stale(self, job: GenerationJob, now: datetime) -> bool:
        if job.status != PROCESSING:
            return False
        last_seen = max(t for t in (as_utc(job.updated_at), as_utc(job.last_polled_at)) if t is not None)
        return now - last_seen >= self.staleness_threshold

    def get_status(self, job_id: str, requester_id: str, *, now: datetime | None = None) -> GenerationJob:
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        if job.owner_id != requester_id:
            raise ForbiddenError("You do not have access to this job")

        if self._is_stale(job, now or utcnow()):
            try:
                job = self.engine.poll(job)
            except (ProviderUnavailableError, ProviderRejectedError) as e:
                logger.warning("Status poll for job %s failed: %s", job.id, e.message)
        return job

    def list_jobs(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[int, list[GenerationJob]]:
        return self.store.list_for_owner(owner_id, status=status, limit=limit, offset=offset)
