from datetime import timedelta

import pytest
from sqlalchemy import update

from avatar_jobs.core.errors import ForbiddenError, NotFoundError, ProviderUnavailableError
from avatar_jobs.models.job import GenerationJob, utcnow
from avatar_jobs.services.job_status import JobStatusService
from avatar_jobs.services.job_store import JobStore
from avatar_jobs.services.profiles import DbProfileProvider
from avatar_jobs.services.provider_client import ProviderStatus
from avatar_jobs.services.reconciliation import ReconciliationEngine
from tests.helpers import OTHER, OWNER


@pytest.fixture
def service(db, fake_client):
    store = JobStore(db)
    engine = ReconciliationEngine(store, client=fake_client, profiles=DbProfileProvider(db))
    return JobStatusService(store, engine, staleness_threshold_seconds=120)


@pytest.fixture
def processing_job(db):
    store = JobStore(db)
    job = store.create(OWNER, "script")
    return store.assign_correlation_id(job.id, "vid_1")


def test_fresh_job_is_served_from_store(service, fake_client, processing_job):
    job = service.get_status(processing_job.id, OWNER)

    assert job.status == "processing"
    assert fake_client.polls == []


def test_stale_job_triggers_one_poll(service, fake_client, processing_job):
    fake_client.statuses["vid_1"] = ProviderStatus(status="completed", result={"video_url": "https://a"})

    job = service.get_status(processing_job.id, OWNER, now=utcnow() + timedelta(minutes=5))

    assert fake_client.polls == ["vid_1"]
    assert job.status == "completed"
    assert job.result == {"video_url": "https://a"}


def test_recent_poll_suppresses_another(service, fake_client, processing_job, db):
    db.execute(
        update(GenerationJob)
        .where(GenerationJob.id == processing_job.id)
        .values(updated_at=utcnow() - timedelta(minutes=10))
    )
    db.commit()

    service.get_status(processing_job.id, OWNER)
    service.get_status(processing_job.id, OWNER)

    assert fake_client.polls == ["vid_1"]


def test_poll_failure_returns_cached_state(service, fake_client, processing_job):
    fake_client.poll_error = ProviderUnavailableError("down")

    job = service.get_status(processing_job.id, OWNER, now=utcnow() + timedelta(minutes=5))

    assert job.status == "processing"
    assert fake_client.polls == ["vid_1"]


def test_pending_job_never_polls(service, fake_client, db):
    job = JobStore(db).create(OWNER, "script")

    service.get_status(job.id, OWNER, now=utcnow() + timedelta(hours=1))

    assert fake_client.polls == []


def test_other_owner_forbidden(service, processing_job):
    with pytest.raises(ForbiddenError):
        service.get_status(processing_job.id, OTHER)


def test_unknown_job_not_found(service):
    with pytest.raises(NotFoundError):
        service.get_status("missing", OWNER)
