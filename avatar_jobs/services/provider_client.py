from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from avatar_jobs.core.errors import ProviderRejectedError, ProviderUnavailableError

logger = logging.getLogger(__name__)

GENERATE_PATH = "/v2/video/generate"
STATUS_PATH = "/v2/video_status.get"
AVATARS_PATH = "/v2/avatars"
VOICES_PATH = "/v2/voices"
ASSET_PATH = "/v1/asset"
INSTANT_AVATAR_PATH = "/v2/avatars/instant"

# provider status -> local status
_STATUS_MAP = {
    "waiting": "pending",
    "pending": "pending",
    "processing": "processing",
    "completed": "completed",
    "failed": "failed",
}

_RESULT_FIELDS = ("video_url", "thumbnail_url", "duration", "gif_url")


@dataclass
class ProviderStatus:
    status: str
    result: dict[str, Any] | None = None
    error_detail: str | None = None
    progress: int | None = None


@dataclass
class InstantAvatar:
    avatar_id: str
    status: str  # pending | processing | completed | failed
    preview_image_url: str | None = None
    preview_video_url: str | None = None


class AvatarVideoClient:
    """
    Minimal client for a HeyGen-compatible avatar video API.

    submit() is never retried here: a retried submission can create a second
    billable video on the provider side, so the caller decides.
    poll_status() has no side effects and is safe to repeat.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.transport = transport

    # -----------------------
    # HTTP plumbing
    # -----------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.api_key:
            raise ProviderUnavailableError("AVATAR_PROVIDER_API_KEY is not configured")

        headers = {"X-Api-Key": self.api_key, "Accept": "application/json"}
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self.transport) as client:
                return client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("Provider %s %s timed out", method, path)
            raise ProviderUnavailableError(f"Video provider timed out: {e}") from e
        except httpx.TransportError as e:
            logger.warning("Provider %s %s transport error: %s", method, path, e)
            raise ProviderUnavailableError(f"Video provider unreachable: {e}") from e

    @staticmethod
    def _json(r: httpx.Response) -> dict[str, Any]:
        try:
            data = r.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_message(body: dict[str, Any], fallback: str) -> str:
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("code") or fallback)
        if err:
            return str(err)
        return str(body.get("message") or fallback)

    def _raise_for_status(self, r: httpx.Response, action: str) -> dict[str, Any]:
        body = self._json(r)
        if r.status_code == 429 or r.status_code >= 500:
            raise ProviderUnavailableError(
                f"Video provider {action} failed ({r.status_code}): {self._error_message(body, r.text[:200])}"
            )
        if r.status_code >= 400:
            raise ProviderRejectedError(
                f"Video provider rejected {action} ({r.status_code}): {self._error_message(body, r.text[:200])}"
            )
        return body

    # -----------------------
    # Public API
    # -----------------------
    def submit(self, script: str, *, avatar_id: str, voice_id: str, callback_id: str | None = None) -> str:
        payload: dict[str, Any] = {
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": avatar_id,
                        "avatar_style": "normal",
                    },
                    "voice": {
                        "type": "text",
                        "input_text": script,
                        "voice_id": voice_id,
                        "speed": 1.0,
                    },
                }
            ],
            "dimension": {"width": 1920, "height": 1080},
        }
        if callback_id:
            payload["callback_id"] = callback_id

        r = self._request("POST", GENERATE_PATH, json=payload)
        body = self._raise_for_status(r, "generation")

        if body.get("error"):
            raise ProviderRejectedError(f"Video provider generation error: {self._error_message(body, 'unknown')}")

        video_id = str((body.get("data") or {}).get("video_id") or "").strip()
        if not video_id:
            raise ProviderRejectedError("Video provider accepted the request but returned no video_id")
        return video_id

    def poll_status(self, correlation_id: str) -> ProviderStatus:
        r = self._request("GET", STATUS_PATH, params={"video_id": correlation_id})

        # the provider may not have indexed a fresh submission yet
        if r.status_code == 404:
            return ProviderStatus(status="pending")

        body = self._raise_for_status(r, "status check")
        data = body.get("data") or {}

        if body.get("error") and not data:
            message = self._error_message(body, "unknown")
            if "not found" in message.lower():
                return ProviderStatus(status="pending")
            raise ProviderRejectedError(f"Video provider status error: {message}")

        raw_status = str(data.get("status") or "").lower()
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            logger.warning("Unknown provider status %r for %s; treating as processing", raw_status, correlation_id)
            status = "processing"

        progress = data.get("progress")
        if not isinstance(progress, int) or isinstance(progress, bool):
            progress = None
        else:
            progress = max(0, min(100, progress))

        if status == "completed":
            result = {k: data.get(k) for k in _RESULT_FIELDS if data.get(k) is not None}
            return ProviderStatus(status=status, result=result, progress=100)

        if status == "failed":
            return ProviderStatus(status=status, error_detail=self._error_message(data, "Video generation failed"))

        return ProviderStatus(status=status, progress=progress)

    def list_avatars(self) -> list[dict[str, Any]]:
        body = self._raise_for_status(self._request("GET", AVATARS_PATH), "avatar listing")
        return list((body.get("data") or {}).get("avatars") or [])

    def list_voices(self) -> list[dict[str, Any]]:
        body = self._raise_for_status(self._request("GET", VOICES_PATH), "voice listing")
        return list((body.get("data") or {}).get("voices") or [])

    # -----------------------
    # Instant avatars
    # -----------------------
    def upload_asset(self, content: bytes, *, content_type: str, filename: str = "avatar.mp4") -> str:
        """Upload a training video; returns the provider-hosted URL."""
        r = self._request("POST", ASSET_PATH, files={"file": (filename, content, content_type)})
        body = self._raise_for_status(r, "asset upload")
        if body.get("error"):
            raise ProviderRejectedError(f"Video provider upload error: {self._error_message(body, 'unknown')}")

        url = str((body.get("data") or {}).get("url") or "").strip()
        if not url:
            raise ProviderRejectedError("Video provider accepted the upload but returned no url")
        return url

    def create_instant_avatar(self, video_url: str, *, avatar_name: str) -> InstantAvatar:
        r = self._request("POST", INSTANT_AVATAR_PATH, json={"video_url": video_url, "avatar_name": avatar_name})
        body = self._raise_for_status(r, "avatar creation")
        if body.get("error"):
            raise ProviderRejectedError(f"Video provider avatar error: {self._error_message(body, 'unknown')}")
        return self._instant_avatar(body.get("data") or {})

    def get_avatar_status(self, avatar_id: str) -> InstantAvatar:
        r = self._request("GET", f"{AVATARS_PATH}/{avatar_id}")
        body = self._raise_for_status(r, "avatar status check")
        data = dict(body.get("data") or {})
        data.setdefault("avatar_id", avatar_id)
        return self._instant_avatar(data)

    @staticmethod
    def _instant_avatar(data: dict[str, Any]) -> InstantAvatar:
        avatar_id = str(data.get("avatar_id") or "").strip()
        if not avatar_id:
            raise ProviderRejectedError("Video provider returned no avatar_id")

        status = str(data.get("status") or "pending").lower()
        if status not in ("pending", "processing", "completed", "failed"):
            logger.warning("Unknown avatar status %r for %s; treating as processing", status, avatar_id)
            status = "processing"

        return InstantAvatar(
            avatar_id=avatar_id,
            status=status,
            preview_image_url=data.get("preview_image_url"),
            preview_video_url=data.get("preview_video_url"),
        )
