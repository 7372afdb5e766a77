from __future__ import annotations

import os
import re
from dataclasses import dataclass

from avatar_jobs.core.errors import ScriptGenerationError, ValidationError
from avatar_jobs.services.llm.prompts import (
    SCRIPT_CONDITION_SUFFIX,
    SCRIPT_CONTEXT_SUFFIX,
    SCRIPT_SYSTEM_TEMPLATE,
    SCRIPT_USER_TEMPLATE,
)

TONES = ("professional", "friendly", "empathetic", "educational")

# average speaking rate is ~150 words/min
TARGET_WORDS = {"short": 75, "medium": 150, "long": 300}
SPOKEN_LENGTH = {"short": "30 seconds", "medium": "1 minute", "long": "2 minutes"}
WORDS_PER_SECOND = 2.5

_WS_RE = re.compile(r"\s+")


@dataclass
class GeneratedScript:
    script: str
    word_count: int
    estimated_duration_sec: int
    topic: str
    tone: str


# ----------------------------
# OpenAI call helpers (SDK compatible)
# ----------------------------

def _build_openai_client():
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ScriptGenerationError("OPENAI_API_KEY is missing")

    timeout_sec = float(os.getenv("OPENAI_TIMEOUT_SEC", "60"))
    max_retries = int(os.getenv("OPENAI_MAX_RETRIES", "2"))

    from openai import OpenAI

    return OpenAI(api_key=api_key, timeout=timeout_sec, max_retries=max_retries)


def build_prompts(
    topic: str,
    *,
    tone: str,
    duration: str,
    health_condition: str | None = None,
    additional_context: str | None = None,
) -> tuple[str, str]:
    system_prompt = SCRIPT_SYSTEM_TEMPLATE.format(
        tone=tone,
        target_words=TARGET_WORDS[duration],
        spoken_length=SPOKEN_LENGTH[duration],
    )

    user_prompt = SCRIPT_USER_TEMPLATE.format(topic=topic)
    if health_condition:
        user_prompt += SCRIPT_CONDITION_SUFFIX.format(health_condition=health_condition)
    if additional_context:
        user_prompt += SCRIPT_CONTEXT_SUFFIX.format(additional_context=additional_context)
    return system_prompt, user_prompt


def count_words(text: str) -> int:
    return len([w for w in _WS_RE.split((text or "").strip()) if w])


# ----------------------------
# Public API
# ----------------------------

def generate_script_openai(
    topic: str,
    *,
    tone: str = "friendly",
    duration: str = "medium",
    health_condition: str | None = None,
    additional_context: str | None = None,
    model: str | None = None,
) -> GeneratedScript:
    topic = (topic or "").strip()
    if not topic:
        raise ValidationError("Topic is required")
    if tone not in TONES:
        raise ValidationError(f"tone must be one of: {', '.join(TONES)}")
    if duration not in TARGET_WORDS:
        raise ValidationError(f"duration must be one of: {', '.join(TARGET_WORDS)}")

    system_prompt, user_prompt = build_prompts(
        topic,
        tone=tone,
        duration=duration,
        health_condition=(health_condition or "").strip() or None,
        additional_context=(additional_context or "").strip() or None,
    )

    client = _build_openai_client()
    try:
        chat = client.chat.completions.create(
            model=model or os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.7,
            max_tokens=1000,
        )
    except Exception as e:
        raise ScriptGenerationError(f"OpenAI script generation failed: {e}") from e

    script = ""
    if chat.choices:
        script = (chat.choices[0].message.content or "").strip()
    if not script:
        raise ScriptGenerationError("OpenAI returned an empty script")

    word_count = count_words(script)
    return GeneratedScript(
        script=script,
        word_count=word_count,
        estimated_duration_sec=round(word_count / WORDS_PER_SECOND),
        topic=topic,
        tone=tone,
    )
