from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from avatar_jobs.core.errors import ConflictError, NotFoundError, ValidationError
from avatar_jobs.models.job import (
    ACTIVE_STATUSES,
    COMPLETED,
    PENDING,
    PROCESSING,
    TERMINAL_STATUSES,
    GenerationJob,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_DETAIL = "Video generation failed"


class JobStore:
    """
    Single source of truth for GenerationJob rows.

    Every status change is a conditional UPDATE, so two writers racing on the
    same job (webhook redelivery, concurrent poll) resolve to one effective
    transition: whoever matches the WHERE clause first wins, the other one
    affects zero rows and becomes a no-op.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # -----------------------
    # Reads
    # -----------------------
    def get(self, job_id: str) -> GenerationJob | None:
        return self.db.get(GenerationJob, job_id, populate_existing=True)

    def _get_or_raise(self, job_id: str) -> GenerationJob:
        job = self.get(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def find_by_correlation_id(self, correlation_id: str) -> GenerationJob | None:
        if not correlation_id:
            return None
        stmt = (
            select(GenerationJob)
            .where(GenerationJob.external_correlation_id == correlation_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_owner(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[int, list[GenerationJob]]:
        query = select(GenerationJob).where(GenerationJob.owner_id == owner_id)
        if status:
            query = query.where(GenerationJob.status == status)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = self.db.execute(
            query.order_by(GenerationJob.created_at.desc()).offset(offset).limit(limit)
        ).scalars().all()
        return total, list(rows)

    def list_stale(self, older_than: datetime) -> list[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(
                GenerationJob.status.in_(ACTIVE_STATUSES),
                GenerationJob.updated_at < older_than,
            )
            .order_by(GenerationJob.updated_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    # -----------------------
    # Writes
    # -----------------------
    def create(self, owner_id: str, payload_ref: str, *, title: str | None = None) -> GenerationJob:
        if not (owner_id or "").strip():
            raise ValidationError("owner_id is required")
        if not (payload_ref or "").strip():
            raise ValidationError("payload_ref must not be empty")

        now = utcnow()
        job = GenerationJob(
            owner_id=owner_id,
            payload_ref=payload_ref,
            title=(title or "").strip() or None,
            status=PENDING,
            progress=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info("Created generation job %s for owner %s", job.id, owner_id)
        return job

    def assign_correlation_id(self, job_id: str, correlation_id: str) -> GenerationJob:
        correlation_id = (correlation_id or "").strip()
        if not correlation_id:
            raise ValidationError("correlation_id must not be empty")

        job = self._get_or_raise(job_id)
        if job.external_correlation_id == correlation_id:
            return job
        if job.external_correlation_id is not None:
            raise ConflictError(
                f"Job {job_id} is already bound to correlation id {job.external_correlation_id}"
            )

        other = self.find_by_correlation_id(correlation_id)
        if other is not None and other.id != job_id:
            raise ConflictError(f"Correlation id {correlation_id} is already bound to another job")

        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.external_correlation_id.is_(None),
                GenerationJob.status == PENDING,
            )
            .values(
                external_correlation_id=correlation_id,
                status=PROCESSING,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            res = self.db.execute(stmt)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"Correlation id {correlation_id} is already bound to another job") from e

        job = self._get_or_raise(job_id)
        if res.rowcount != 1 and job.external_correlation_id != correlation_id:
            raise ConflictError(f"Job {job_id} cannot accept a correlation id (status={job.status})")

        logger.info("Job %s bound to provider id %s", job_id, correlation_id)
        return job

    def apply_terminal(
        self,
        job_id: str,
        status: str,
        *,
        result: dict[str, Any] | None = None,
        error_detail: str | None = None,
    ) -> tuple[GenerationJob, bool]:
        """
        Move a job to completed/failed.

        Returns (job, applied). A job that is already terminal is returned
        unchanged with applied=False; redelivered callbacks land here.
        """
        if status not in TERMINAL_STATUSES:
            raise ValidationError(f"apply_terminal expects one of {TERMINAL_STATUSES}, got {status!r}")

        self._get_or_raise(job_id)

        now = utcnow()
        values: dict[str, Any] = {"status": status, "updated_at": now, "completed_at": now}
        if status == COMPLETED:
            values.update(
                result_json=json.dumps(result or {}, ensure_ascii=False),
                error_detail=None,
                progress=100,
            )
        else:
            values.update(
                result_json=None,
                error_detail=(error_detail or "").strip() or DEFAULT_FAILURE_DETAIL,
            )

        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status.in_(ACTIVE_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        res = self.db.execute(stmt)
        self.db.commit()

        applied = res.rowcount == 1
        job = self._get_or_raise(job_id)
        if applied:
            logger.info("Job %s reached terminal status %s", job_id, status)
        else:
            logger.debug("Job %s already %s; terminal update to %s discarded", job_id, job.status, status)
        return job, applied

    def update_progress(self, job_id: str, progress: int) -> GenerationJob:
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError("progress must be an integer between 0 and 100")

        self._get_or_raise(job_id)
        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status.in_(ACTIVE_STATUSES),
                GenerationJob.progress < progress,
            )
            .values(progress=progress, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
        return self._get_or_raise(job_id)

    def mark_polled(self, job_id: str) -> None:
        stmt = (
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .values(last_polled_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()

