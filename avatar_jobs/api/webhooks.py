import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from avatar_jobs.api.deps import get_engine, get_settings
from avatar_jobs.core.config import Settings
from avatar_jobs.core.errors import MalformedPayloadError, NotFoundError
from avatar_jobs.services.reconciliation import ReconciliationEngine
from avatar_jobs.services.webhooks import SIGNATURE_HEADER, parse_event, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _ack(**extra) -> dict:
    return {"received": True, **extra}


@router.post("/avatar-video")
async def avatar_video_callback(
    request: Request,
    settings: Settings = Depends(get_settings),
    engine: ReconciliationEngine = Depends(get_engine),
):
    """
    Provider callback. Anything other than a bad signature is acknowledged
    with 200, otherwise the provider keeps redelivering.
    """
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not verify_signature(raw_body, signature, settings.webhook_shared_secret):
        logger.warning("Rejected webhook with invalid signature")
        return JSONResponse(status_code=401, content={"received": False, "error": "Invalid signature"})

    try:
        event = parse_event(raw_body, signature=signature)
    except MalformedPayloadError as e:
        logger.warning("Malformed webhook payload: %s", e.message)
        return _ack(ok=False, error="malformed payload")
    except Exception:
        logger.exception("Failed to parse webhook payload")
        return _ack(ok=False, error="malformed payload")

    logger.info("Webhook received: %s for provider id %s", event.event_type, event.external_correlation_id)

    try:
        job = await run_in_threadpool(engine.handle_event, event)
    except NotFoundError:
        logger.warning(
            "Orphaned webhook: no job for provider id %s (callback_id=%s)",
            event.external_correlation_id,
            event.callback_id,
        )
        return _ack(ok=False, error="job not found")
    except Exception:
        logger.exception("Failed to process webhook for provider id %s", event.external_correlation_id)
        return _ack(ok=False, error="processing failed")

    return _ack(ok=True, job_id=job.id, status=job.status)


@router.get("/avatar-video")
def avatar_video_callback_health() -> dict:
    return {"status": "ok", "endpoint": "avatar-video-webhook"}
