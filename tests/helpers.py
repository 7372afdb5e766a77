from avatar_jobs.services.provider_client import InstantAvatar, ProviderStatus
from avatar_jobs.services.webhooks import compute_signature

WEBHOOK_SECRET = "test-webhook-secret"
OWNER = "doctor-1"
OTHER = "doctor-2"


class FakeAvatarClient:
    """Stands in for AvatarVideoClient; records calls, returns scripted answers."""

    def __init__(self) -> None:
        self.submissions: list[dict] = []
        self.polls: list[str] = []
        self.submit_error: Exception | None = None
        self.poll_error: Exception | None = None
        self.list_error: Exception | None = None
        self.statuses: dict[str, ProviderStatus] = {}
        self.uploads: list[dict] = []
        self.avatar_statuses: dict[str, str] = {}
        self._next = 0

    def submit(self, script, *, avatar_id, voice_id, callback_id=None):
        if self.submit_error is not None:
            raise self.submit_error
        self._next += 1
        self.submissions.append(
            {"script": script, "avatar_id": avatar_id, "voice_id": voice_id, "callback_id": callback_id}
        )
        return f"vid_{self._next}"

    def poll_status(self, correlation_id):
        self.polls.append(correlation_id)
        if self.poll_error is not None:
            raise self.poll_error
        return self.statuses.get(correlation_id, ProviderStatus(status="processing"))

    def list_avatars(self):
        if self.list_error is not None:
            raise self.list_error
        return [{"avatar_id": "av_1", "avatar_name": "Dr. Instant"}]

    def list_voices(self):
        return [{"voice_id": "vo_1", "name": "Clone voice"}]

    def upload_asset(self, content, *, content_type, filename="avatar.mp4"):
        self.uploads.append({"size": len(content), "content_type": content_type})
        return "https://assets.test/training.mp4"

    def create_instant_avatar(self, video_url, *, avatar_name):
        self.avatar_statuses.setdefault("ia_1", "pending")
        return InstantAvatar(avatar_id="ia_1", status=self.avatar_statuses["ia_1"])

    def get_avatar_status(self, avatar_id):
        return InstantAvatar(
            avatar_id=avatar_id,
            status=self.avatar_statuses.get(avatar_id, "processing"),
            preview_image_url="https://assets.test/preview.jpg",
        )


def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    return {"X-Signature": compute_signature(body, secret), "Content-Type": "application/json"}


def owner_headers(owner_id: str = OWNER) -> dict:
    return {"X-User-Id": owner_id}
