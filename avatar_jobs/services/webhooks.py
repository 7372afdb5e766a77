from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from typing import Any

from avatar_jobs.core.errors import MalformedPayloadError

SIGNATURE_HEADER = "X-Signature"

_EVENT_TYPES = {
    "completed": "completed",
    "failed": "failed",
    "video.completed": "completed",
    "video.failed": "failed",
    "avatar_video.success": "completed",
    "avatar_video.fail": "failed",
    "avatar_video.failed": "failed",
}

_RESULT_FIELDS = ("video_url", "url", "thumbnail_url", "duration", "gif_url")


@dataclass(frozen=True)
class ProviderCallbackEvent:
    event_type: str  # completed | failed
    external_correlation_id: str
    result_payload: dict[str, Any] = field(default_factory=dict)
    callback_id: str | None = None
    signature: str = ""

    @property
    def result(self) -> dict[str, Any]:
        out = {k: v for k, v in self.result_payload.items() if k in _RESULT_FIELDS and v is not None}
        # some payloads call the media link "url"
        if "url" in out:
            out.setdefault("video_url", out.pop("url"))
        return out

    @property
    def error_detail(self) -> str | None:
        err = self.result_payload.get("error") or self.result_payload.get("msg")
        if isinstance(err, dict):
            err = err.get("message") or err.get("code")
        return str(err) if err else None


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    return hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature_header: str | None, shared_secret: str) -> bool:
    """
    HMAC-SHA256 over the exact request bytes, compared in constant time.

    Must run on the raw body: re-serialized JSON does not reproduce the
    provider's bytes. Never raises; any mismatch is just False.
    """
    if not shared_secret or not signature_header:
        return False

    provided = signature_header.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]

    expected = compute_signature(raw_body or b"", shared_secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.lower().encode("utf-8", "replace"))


def parse_event(raw_body: bytes, signature: str = "") -> ProviderCallbackEvent:
    try:
        body = json.loads(raw_body or b"")
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        raise MalformedPayloadError(f"Webhook body is not valid JSON: {e}") from e

    if not isinstance(body, dict):
        raise MalformedPayloadError("Webhook body must be a JSON object")

    # nested shape: {"event_type": ..., "event_data": {"video_id": ...}}
    data = dict(body)
    nested = body.get("event_data")
    if isinstance(nested, dict):
        data.update(nested)

    raw_type = str(data.get("event_type") or "").strip()
    video_id = str(data.get("video_id") or "").strip()
    if not raw_type or not video_id:
        raise MalformedPayloadError("Webhook payload requires event_type and video_id")

    event_type = _EVENT_TYPES.get(raw_type.lower()) or _EVENT_TYPES.get(str(data.get("status") or "").lower())
    if event_type is None:
        raise MalformedPayloadError(f"Unsupported webhook event_type: {raw_type}")

    result_payload = {
        k: v for k, v in data.items() if k not in {"event_type", "event_data", "video_id", "callback_id", "status"}
    }
    callback_id = data.get("callback_id")

    return ProviderCallbackEvent(
        event_type=event_type,
        external_correlation_id=video_id,
        result_payload=result_payload,
        callback_id=str(callback_id) if callback_id else None,
        signature=signature,
    )
