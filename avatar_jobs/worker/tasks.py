import logging

from sqlalchemy.orm import Session

from avatar_jobs.core.config import settings
from avatar_jobs.db.session import SessionLocal
from avatar_jobs.services.job_store import JobStore
from avatar_jobs.services.reconciliation import ReconciliationEngine
from avatar_jobs.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="jobs.expire_stale")
def expire_stale_jobs(max_age_seconds: int | None = None) -> dict:
    """
    Periodic sweep: fail jobs that never heard back from the provider.
    Goes through the same terminal write path as webhooks, so a late callback
    racing the sweep still yields a single transition.
    """
    max_age = max_age_seconds or settings.job_expiry_seconds
    db: Session = SessionLocal()
    try:
        engine = ReconciliationEngine(JobStore(db))
        expired = engine.expire_stale(max_age)
        return {"ok": True, "expired": expired, "count": len(expired)}
    except Exception:
        logger.exception("Stale job sweep failed")
        raise
    finally:
        db.close()
