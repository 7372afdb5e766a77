import os

from celery import Celery

from avatar_jobs.core.config import settings


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v and v.strip() else default


BROKER_URL = (
    _env("CELERY_BROKER_URL")
    or _env("REDIS_URL")
    or "redis://localhost:6379/0"
)

RESULT_BACKEND = _env("CELERY_RESULT_BACKEND") or BROKER_URL

celery_app = Celery(
    "avatar_jobs",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
)

celery_app.autodiscover_tasks(["avatar_jobs.worker"])

celery_app.conf.update(
    task_track_started=True,
    result_extended=True,
    enable_utc=True,
    timezone="UTC",
    # ENV=test runs tasks inline
    task_always_eager=settings.env == "test",
    task_eager_propagates=True,
    beat_schedule={
        "expire-stale-generation-jobs": {
            "task": "jobs.expire_stale",
            "schedule": float(settings.sweep_interval_seconds),
        },
    },
)

__all__ = ["celery_app"]
