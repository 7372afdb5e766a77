from fastapi import APIRouter, Depends
from pydantic import BaseModel

from avatar_jobs.api.deps import get_current_user_id, get_settings
from avatar_jobs.core.config import Settings
from avatar_jobs.services.llm import openai_client

router = APIRouter(prefix="/scripts", tags=["scripts"])


class ScriptGenerateRequest(BaseModel):
    topic: str
    health_condition: str | None = None
    tone: str = "friendly"  # professional | friendly | empathetic | educational
    duration: str = "medium"  # short | medium | long
    additional_context: str | None = None


class ScriptGenerateResponse(BaseModel):
    ok: bool
    script: str
    word_count: int
    estimated_duration_sec: int
    topic: str
    tone: str


@router.post("/generate", response_model=ScriptGenerateResponse)
def generate_script(
    req: ScriptGenerateRequest,
    _user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> ScriptGenerateResponse:
    out = openai_client.generate_script_openai(
        req.topic,
        tone=req.tone,
        duration=req.duration,
        health_condition=req.health_condition,
        additional_context=req.additional_context,
        model=settings.openai_model,
    )
    return ScriptGenerateResponse(
        ok=True,
        script=out.script,
        word_count=out.word_count,
        estimated_duration_sec=out.estimated_duration_sec,
        topic=out.topic,
        tone=out.tone,
    )
