from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from avatar_jobs.api.deps import get_current_user_id, get_profile_provider, get_provider_client
from avatar_jobs.core.errors import NotConfiguredError, ValidationError
from avatar_jobs.models.doctor_profile import AVATAR_NOT_CONFIGURED, AVATAR_PENDING
from avatar_jobs.services.profiles import DbProfileProvider
from avatar_jobs.services.provider_client import AvatarVideoClient, InstantAvatar

MAX_TRAINING_VIDEO_BYTES = 100 * 1024 * 1024

router = APIRouter(prefix="/profiles", tags=["profiles"])


class AvatarCredentialsRequest(BaseModel):
    avatar_id: str
    voice_id: str


class AvatarCredentialsResponse(BaseModel):
    ok: bool
    owner_id: str
    avatar_id: str | None
    voice_id: str | None
    avatar_status: str


class InstantAvatarResponse(BaseModel):
    ok: bool
    owner_id: str
    avatar_id: str
    avatar_status: str
    provider_status: str
    preview_image_url: str | None = None
    preview_video_url: str | None = None


@router.get("/me/avatar", response_model=AvatarCredentialsResponse)
def get_my_avatar(
    owner_id: str = Depends(get_current_user_id),
    profiles: DbProfileProvider = Depends(get_profile_provider),
) -> AvatarCredentialsResponse:
    profile = profiles.get_profile(owner_id)
    if profile is None:
        return AvatarCredentialsResponse(
            ok=True, owner_id=owner_id, avatar_id=None, voice_id=None, avatar_status=AVATAR_NOT_CONFIGURED
        )
    return AvatarCredentialsResponse(
        ok=True,
        owner_id=owner_id,
        avatar_id=profile.avatar_id,
        voice_id=profile.voice_id,
        avatar_status=profile.avatar_status,
    )


@router.put("/me/avatar", response_model=AvatarCredentialsResponse)
def set_my_avatar(
    req: AvatarCredentialsRequest,
    owner_id: str = Depends(get_current_user_id),
    profiles: DbProfileProvider = Depends(get_profile_provider),
) -> AvatarCredentialsResponse:
    profile = profiles.set_avatar_credentials(owner_id, req.avatar_id, req.voice_id)
    return AvatarCredentialsResponse(
        ok=True,
        owner_id=owner_id,
        avatar_id=profile.avatar_id,
        voice_id=profile.voice_id,
        avatar_status=profile.avatar_status,
    )


def _instant_response(owner_id: str, avatar_status: str, avatar: InstantAvatar) -> InstantAvatarResponse:
    return InstantAvatarResponse(
        ok=True,
        owner_id=owner_id,
        avatar_id=avatar.avatar_id,
        avatar_status=avatar_status,
        provider_status=avatar.status,
        preview_image_url=avatar.preview_image_url,
        preview_video_url=avatar.preview_video_url,
    )


@router.post("/me/avatar/instant", response_model=InstantAvatarResponse)
async def create_instant_avatar(
    video: UploadFile = File(...),
    avatar_name: str | None = Form(default=None),
    owner_id: str = Depends(get_current_user_id),
    profiles: DbProfileProvider = Depends(get_profile_provider),
    client: AvatarVideoClient = Depends(get_provider_client),
) -> InstantAvatarResponse:
    """
    Train an instant avatar from a short video of the doctor.
    Multipart form with a "video" file. Training takes a few minutes; the
    profile stays "pending" until GET reports completion.
    """
    content_type = (video.content_type or "").lower()
    if not content_type.startswith("video/"):
        raise ValidationError("Invalid file type. Please upload a video file.")

    content = await video.read()
    if not content:
        raise ValidationError("No video file provided")
    if len(content) > MAX_TRAINING_VIDEO_BYTES:
        raise ValidationError("Video file too large. Maximum size is 100MB.")

    video_url = await run_in_threadpool(
        client.upload_asset,
        content,
        content_type=content_type,
        filename=video.filename or "avatar.mp4",
    )
    avatar = await run_in_threadpool(
        client.create_instant_avatar,
        video_url,
        avatar_name=(avatar_name or "").strip() or f"Dr. {owner_id} Avatar",
    )
    profile = await run_in_threadpool(profiles.apply_instant_avatar, owner_id, avatar)
    return _instant_response(owner_id, profile.avatar_status, avatar)


@router.get("/me/avatar/instant", response_model=InstantAvatarResponse)
def refresh_instant_avatar(
    owner_id: str = Depends(get_current_user_id),
    profiles: DbProfileProvider = Depends(get_profile_provider),
    client: AvatarVideoClient = Depends(get_provider_client),
) -> InstantAvatarResponse:
    profile = profiles.get_profile(owner_id)
    if profile is None or not profile.avatar_id:
        raise NotConfiguredError("No instant avatar has been requested for this account")

    avatar = client.get_avatar_status(profile.avatar_id)
    if profile.avatar_status == AVATAR_PENDING:
        profile = profiles.apply_instant_avatar(owner_id, avatar)
    return _instant_response(owner_id, profile.avatar_status, avatar)
