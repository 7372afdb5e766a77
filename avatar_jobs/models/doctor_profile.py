from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from avatar_jobs.db.base import Base
from avatar_jobs.models.job import utcnow

AVATAR_NOT_CONFIGURED = "not_configured"
AVATAR_PENDING = "pending"
AVATAR_ACTIVE = "active"
AVATAR_ERROR = "error"

AVATAR_STATUSES = (AVATAR_NOT_CONFIGURED, AVATAR_PENDING, AVATAR_ACTIVE, AVATAR_ERROR)


class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"
    __table_args__ = (
        CheckConstraint(
            "avatar_status IN (" + ", ".join(f"'{s}'" for s in AVATAR_STATUSES) + ")",
            name="ck_doctor_profiles_avatar_status",
        ),
    )

    owner_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    # provider credentials for the doctor's trained avatar
    avatar_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    voice_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    avatar_status: Mapped[str] = mapped_column(String(32), nullable=False, default=AVATAR_NOT_CONFIGURED)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
