from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from avatar_jobs.core.config import Settings
from avatar_jobs.core.errors import UnauthorizedError
from avatar_jobs.db.session import get_db
from avatar_jobs.services.job_status import JobStatusService
from avatar_jobs.services.job_store import JobStore
from avatar_jobs.services.profiles import DbProfileProvider
from avatar_jobs.services.provider_client import AvatarVideoClient
from avatar_jobs.services.reconciliation import ReconciliationEngine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_client(request: Request) -> AvatarVideoClient:
    return request.app.state.provider_client


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    # identity is asserted by the auth gateway in front of this service
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedError("Missing X-User-Id header")
    return user_id


def get_job_store(db: Session = Depends(get_db)) -> JobStore:
    return JobStore(db)


def get_profile_provider(db: Session = Depends(get_db)) -> DbProfileProvider:
    return DbProfileProvider(db)


def get_engine(
    store: JobStore = Depends(get_job_store),
    client: AvatarVideoClient = Depends(get_provider_client),
    profiles: DbProfileProvider = Depends(get_profile_provider),
) -> ReconciliationEngine:
    return ReconciliationEngine(store, client=client, profiles=profiles)


def get_status_service(
    store: JobStore = Depends(get_job_store),
    engine: ReconciliationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> JobStatusService:
    return JobStatusService(store, engine, staleness_threshold_seconds=settings.staleness_threshold_seconds)
