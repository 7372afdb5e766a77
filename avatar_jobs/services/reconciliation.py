from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from avatar_jobs.core.errors import (
    ConflictError,
    NotFoundError,
    ProviderRejectedError,
    ProviderUnavailableError,
    ValidationError,
)
from avatar_jobs.models.job import COMPLETED, FAILED, PROCESSING, GenerationJob, utcnow
from avatar_jobs.services.job_store import JobStore
from avatar_jobs.services.profiles import ProfileProvider
from avatar_jobs.services.provider_client import ProviderStatus
from avatar_jobs.services.webhooks import ProviderCallbackEvent

logger = logging.getLogger(__name__)

STALE_JOB_DETAIL = "Timed out waiting for provider"


class VideoProvider(Protocol):
    def submit(self, script: str, *, avatar_id: str, voice_id: str, callback_id: str | None = None) -> str: ...

    def poll_status(self, correlation_id: str) -> ProviderStatus: ...


class ReconciliationEngine:
    """
    Drives a GenerationJob through pending -> processing -> completed | failed.

    Webhooks, polls and the stale-job sweep all end up in
    JobStore.apply_terminal, so a job gets at most one effective terminal
    transition no matter how many signals arrive.
    """

    def __init__(
        self,
        store: JobStore,
        client: VideoProvider | None = None,
        profiles: ProfileProvider | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.profiles = profiles

    # -----------------------
    # Submission
    # -----------------------
    def submit(self, owner_id: str, payload_ref: str, *, title: str | None = None) -> GenerationJob:
        if self.client is None or self.profiles is None:
            raise RuntimeError("submit() needs a provider client and a profile provider")

        if not (payload_ref or "").strip():
            raise ValidationError("payload_ref must not be empty")

        creds = self.profiles.get_active_avatar_credentials(owner_id)
        job = self.store.create(owner_id, payload_ref, title=title)

        try:
            correlation_id = self.client.submit(
                payload_ref,
                avatar_id=creds.avatar_id,
                voice_id=creds.voice_id,
                callback_id=job.id,
            )
        except ProviderRejectedError as e:
            logger.warning("Provider rejected job %s: %s", job.id, e.message)
            self.store.apply_terminal(job.id, FAILED, error_detail=e.message)
            raise
        except ProviderUnavailableError as e:
            # the provider may or may not have accepted it; a late callback for
            # an unknown video id is logged as orphaned
            logger.warning("Provider unavailable while submitting job %s: %s", job.id, e.message)
            self.store.apply_terminal(job.id, FAILED, error_detail=f"Submission failed: {e.message}")
            raise

        try:
            return self.store.assign_correlation_id(job.id, correlation_id)
        except ConflictError as e:
            logger.error("Job %s could not be bound to provider id %s: %s", job.id, correlation_id, e.message)
            self.store.apply_terminal(job.id, FAILED, error_detail=f"Could not track provider video: {e.message}")
            raise

    # -----------------------
    # Inbound signals
    # -----------------------
    def handle_event(self, event: ProviderCallbackEvent) -> GenerationJob:
        job = self.store.find_by_correlation_id(event.external_correlation_id)
        if job is None:
            raise NotFoundError(f"No job for provider id {event.external_correlation_id}")

        if job.is_terminal:
            logger.info(
                "Duplicate %s event for job %s (already %s); ignored",
                event.event_type,
                job.id,
                job.status,
            )
            return job

        if event.event_type == COMPLETED:
            job, applied = self.store.apply_terminal(job.id, COMPLETED, result=event.result)
        else:
            job, applied = self.store.apply_terminal(job.id, FAILED, error_detail=event.error_detail)

        if not applied:
            logger.info("Concurrent update won for job %s; %s event absorbed", job.id, event.event_type)
        return job

    def apply_provider_status(self, job: GenerationJob, provider_status: ProviderStatus) -> GenerationJob:
        if provider_status.status == COMPLETED:
            job, _ = self.store.apply_terminal(job.id, COMPLETED, result=provider_status.result or {})
            return job
        if provider_status.status == FAILED:
            job, _ = self.store.apply_terminal(job.id, FAILED, error_detail=provider_status.error_detail)
            return job
        if provider_status.status == PROCESSING and provider_status.progress is not None:
            return self.store.update_progress(job.id, provider_status.progress)
        return job

    def poll(self, job: GenerationJob) -> GenerationJob:
        """
        Ask the provider for the job's state and reconcile it.
        Terminal or never-submitted jobs are returned as cached.
        """
        if job.is_terminal or not job.external_correlation_id:
            return job
        if self.client is None:
            return job

        self.store.mark_polled(job.id)
        provider_status = self.client.poll_status(job.external_correlation_id)
        logger.debug("Polled job %s: provider status %s", job.id, provider_status.status)
        return self.apply_provider_status(job, provider_status)

    # -----------------------
    # Stale-job sweep
    # -----------------------
    def expire_stale(self, max_age_seconds: int, *, now: datetime | None = None) -> list[str]:
        cutoff = (now or utcnow()) - timedelta(seconds=max_age_seconds)
        expired: list[str] = []
        for job in self.store.list_stale(cutoff):
            _, applied = self.store.apply_terminal(job.id, FAILED, error_detail=STALE_JOB_DETAIL)
            if applied:
                expired.append(job.id)

        if expired:
            logger.info("Expired %d stale job(s)", len(expired))
        return expired
