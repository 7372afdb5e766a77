import json
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from avatar_jobs.db.base import Base

DRAFT = "draft"
PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

JOB_STATUSES = (DRAFT, PENDING, PROCESSING, COMPLETED, FAILED)
ACTIVE_STATUSES = (PENDING, PROCESSING)
TERMINAL_STATUSES = (COMPLETED, FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_job_id() -> str:
    return str(uuid.uuid4())


class GenerationJob(Base):
    __tablename__ = "generation_jobs"
    __table_args__ = (
        UniqueConstraint("external_correlation_id", name="uq_generation_jobs_external_correlation_id"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_generation_jobs_progress_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_job_id)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # provider side
    external_correlation_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PENDING, index=True)  # pending|processing|completed|failed
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # input / output
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    payload_ref: Mapped[str] = mapped_column(Text, nullable=False)
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string: {video_url, thumbnail_url, duration}
    error_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_polled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def result(self) -> dict[str, Any] | None:
        if not self.result_json:
            return None
        try:
            return json.loads(self.result_json)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<GenerationJob id={self.id} status={self.status} correlation={self.external_correlation_id}>"
