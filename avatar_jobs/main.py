import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from avatar_jobs.api.avatars import router as avatars_router
from avatar_jobs.api.jobs import router as jobs_router
from avatar_jobs.api.profiles import router as profiles_router
from avatar_jobs.api.scripts import router as scripts_router
from avatar_jobs.api.webhooks import router as webhooks_router
from avatar_jobs.core.config import Settings, settings
from avatar_jobs.core.errors import AppError
from avatar_jobs.core.logging import configure_logging
from avatar_jobs.db.session import get_db
from avatar_jobs.services.provider_client import AvatarVideoClient

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    db_ok: bool


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.to_dict()})


def create_app(app_settings: Settings | None = None, provider_client: AvatarVideoClient | None = None) -> FastAPI:
    app_settings = (app_settings or settings).validate()
    configure_logging(app_settings.log_level)

    app = FastAPI(title="Avatar Video Jobs API", version="0.1.0")
    app.state.settings = app_settings
    app.state.provider_client = provider_client or AvatarVideoClient(
        base_url=app_settings.provider_base_url,
        api_key=app_settings.provider_api_key,
        timeout_s=app_settings.provider_timeout_s,
    )

    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(jobs_router)
    app.include_router(avatars_router)
    app.include_router(profiles_router)
    app.include_router(scripts_router)
    if app_settings.webhook_enabled:
        app.include_router(webhooks_router)

    @app.get("/health", response_model=HealthResponse)
    def health(db: Session = Depends(get_db)) -> HealthResponse:
        # lightweight DB check
        try:
            db.execute(text("SELECT 1"))
            db_ok = True
        except Exception:
            db_ok = False

        return HealthResponse(ok=True, service="api", version=app.version, db_ok=db_ok)

    return app


app = create_app()
