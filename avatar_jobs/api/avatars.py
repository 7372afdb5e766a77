from fastapi import APIRouter, Depends

from avatar_jobs.api.deps import get_current_user_id, get_provider_client
from avatar_jobs.services.provider_client import AvatarVideoClient

router = APIRouter(prefix="/avatars", tags=["avatars"])


@router.get("")
def list_avatars_and_voices(
    _user_id: str = Depends(get_current_user_id),
    client: AvatarVideoClient = Depends(get_provider_client),
):
    """Avatars and voices available on the provider account, for the settings picker."""
    avatars = client.list_avatars()
    voices = client.list_voices()
    return {"ok": True, "avatars": avatars, "voices": voices}
