from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from avatar_jobs.core.errors import NotConfiguredError, ValidationError
from avatar_jobs.models.doctor_profile import (
    AVATAR_ACTIVE,
    AVATAR_ERROR,
    AVATAR_PENDING,
    DoctorProfile,
)
from avatar_jobs.services.provider_client import InstantAvatar

logger = logging.getLogger(__name__)

# provider avatar status -> profile avatar_status
_INSTANT_AVATAR_STATUS = {
    "pending": AVATAR_PENDING,
    "processing": AVATAR_PENDING,
    "completed": AVATAR_ACTIVE,
    "failed": AVATAR_ERROR,
}


@dataclass(frozen=True)
class AvatarCredentials:
    avatar_id: str
    voice_id: str


class ProfileProvider(Protocol):
    def get_active_avatar_credentials(self, owner_id: str) -> AvatarCredentials:
        """Return the owner's avatar/voice pair or raise NotConfiguredError."""


class DbProfileProvider:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_profile(self, owner_id: str) -> DoctorProfile | None:
        return self.db.get(DoctorProfile, owner_id)

    def _get_or_create(self, owner_id: str) -> DoctorProfile:
        profile = self.get_profile(owner_id)
        if profile is None:
            profile = DoctorProfile(owner_id=owner_id)
            self.db.add(profile)
        return profile

    def get_active_avatar_credentials(self, owner_id: str) -> AvatarCredentials:
        profile = self.get_profile(owner_id)
        if profile is None or not profile.avatar_id or not profile.voice_id:
            raise NotConfiguredError(
                "Avatar or voice not configured. Add your avatar credentials in Settings."
            )
        if profile.avatar_status != AVATAR_ACTIVE:
            raise NotConfiguredError(
                f"Avatar is not active (status={profile.avatar_status}). Verify your avatar configuration."
            )
        return AvatarCredentials(avatar_id=profile.avatar_id, voice_id=profile.voice_id)

    def set_avatar_credentials(self, owner_id: str, avatar_id: str, voice_id: str) -> DoctorProfile:
        avatar_id = (avatar_id or "").strip()
        voice_id = (voice_id or "").strip()
        if not avatar_id or not voice_id:
            raise ValidationError("avatar_id and voice_id are required")

        profile = self._get_or_create(owner_id)
        profile.avatar_id = avatar_id
        profile.voice_id = voice_id
        profile.avatar_status = AVATAR_ACTIVE
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def apply_instant_avatar(self, owner_id: str, avatar: InstantAvatar) -> DoctorProfile:
        """
        Record an instant avatar the provider is training (or has trained).
        The voice stays whatever the owner configured before.
        """
        status = _INSTANT_AVATAR_STATUS.get(avatar.status, AVATAR_PENDING)

        profile = self._get_or_create(owner_id)
        profile.avatar_id = avatar.avatar_id
        profile.avatar_status = status
        self.db.commit()
        self.db.refresh(profile)
        logger.info("Owner %s avatar %s is now %s", owner_id, avatar.avatar_id, status)
        return profile
