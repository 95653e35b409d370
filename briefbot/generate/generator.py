import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence

import openai

from briefbot.core.config import settings
from briefbot.core.openai_client import get_openai_client
from briefbot.generate.errors import (
    AuthenticationError,
    BriefGenerationFailed,
    EmptyResponseError,
    ExhaustedRetriesError,
    GenerationError,
    InvalidJSONError,
)
from briefbot.guardrails.sources import ensure_source_coverage
from briefbot.guardrails.structure import normalize_brief, validate_brief_structure
from briefbot.guardrails.word_budget import enforce_word_budget
from briefbot.models.schemas import Brief
from briefbot.prompts.loader import load_prompts
from briefbot.utils.retry import RetryError, with_retry

logger = logging.getLogger(__name__)

CONTEXT_BULLETS = {"exec": 3, "ic": 5}
AUDIENCE_LABELS = {"exec": "executive", "ic": "IC"}

_AUTH_MARKERS = ("invalid api key", "incorrect api key", "authentication")


def _is_auth_failure(exc: BaseException) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    msg = str(exc).lower()
    return any(m in msg for m in _AUTH_MARKERS)


def parse_json_object(raw: str) -> Any:
    """Parse the model output as JSON. If that fails, try the first {...} block (handles fenced or chatty output); otherwise raise InvalidJSONError."""
    raw = (raw or "").strip()
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        start = raw.find("{")
        end = raw.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(raw[start : end + 1])
            except json.JSONDecodeError:
                pass
    raise InvalidJSONError(f"Invalid JSON response from AI: {raw[:120]!r}")


def build_prompts(
    meeting_title: str,
    attendees: str,
    meeting_type: str,
    audience_level: str,
    documents: str,
    filenames: Sequence[str],
    max_words: int,
    version: Optional[str] = None,
) -> tuple[str, str]:
    """Fill the versioned brief templates. Returns (system_prompt, user_prompt)."""
    templates = load_prompts("brief", version=version)
    guidance = templates["exec_guidance"] if audience_level == "exec" else templates["ic_guidance"]
    file_list = "\n".join(f"  - {name}" for name in filenames) or "  (none)"

    system_prompt = (
        templates["system"]
        .replace("<<CONTEXT_BULLETS>>", str(CONTEXT_BULLETS.get(audience_level, 5)))
        .replace("<<AUDIENCE_GUIDANCE>>", guidance)
        .replace("<<MAX_WORDS>>", str(max_words))
        .replace("<<FILENAMES>>", file_list)
    )
    user_prompt = (
        templates["user"]
        .replace("<<TITLE>>", meeting_title)
        .replace("<<MEETING_TYPE>>", meeting_type)
        .replace("<<ATTENDEES>>", attendees)
        .replace("<<AUDIENCE_LABEL>>", AUDIENCE_LABELS.get(audience_level, audience_level))
        .replace("<<DOCUMENTS>>", documents)
    )
    return system_prompt, user_prompt


class BriefGenerator:
    """Calls the chat model for a structured brief, retrying transient failures, then validates, repairs sources, and enforces the word budget.
    client must expose chat.completions.create (the OpenAI SDK client or a test double)."""

    def __init__(
        self,
        client: Any = None,
        *,
        model: Optional[str] = None,
        max_words: Optional[int] = None,
        max_attempts: Optional[int] = None,
        initial_backoff_seconds: Optional[float] = None,
        max_tokens: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self.model = model or settings.chat_model
        self.max_words = max_words or settings.max_brief_words
        self.max_attempts = max_attempts or settings.generation_max_attempts
        self.initial_backoff_seconds = (
            settings.generation_initial_backoff_seconds if initial_backoff_seconds is None else initial_backoff_seconds
        )
        self.max_tokens = max_tokens or settings.generation_max_tokens
        self.sleep = sleep

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def _complete_once(self, system_prompt: str, user_prompt: str) -> Any:
        """One request/response pair. Returns the parsed JSON; auth failures become AuthenticationError."""
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            if _is_auth_failure(e):
                raise AuthenticationError(f"OpenAI authentication failed: {e}") from e
            raise

        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        logger.info(
            "generation_response",
            extra={"choices": len(choices), "finish_reason": getattr(choices[0], "finish_reason", None) if choices else None},
        )
        if not content or not content.strip():
            raise EmptyResponseError("No content in AI response")
        return parse_json_object(content)

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> Any:
        try:
            return with_retry(
                lambda: self._complete_once(system_prompt, user_prompt),
                attempts=self.max_attempts,
                backoff_seconds=self.initial_backoff_seconds,
                retry_on=(Exception,),
                give_up_on=(AuthenticationError,),
                sleep=self.sleep,
            )
        except RetryError as e:
            raise ExhaustedRetriesError(e.attempts, e.last_error) from e.last_error

    def generate(
        self,
        meeting_title: str,
        attendees: str,
        meeting_type: str,
        audience_level: str,
        combined_document_text: str,
        filenames: Sequence[str],
    ) -> Brief:
        """Generate a validated brief for the meeting from the combined document text.
        Raises BriefGenerationFailed ("generation failed: <cause>") for any GenerationError; the specific error is chained.
        Why available: Single entry point the job processor calls between progress 30 and 70."""
        system_prompt, user_prompt = build_prompts(
            meeting_title,
            attendees,
            meeting_type,
            audience_level,
            combined_document_text,
            filenames,
            self.max_words,
        )
        try:
            data = self._call_with_retry(system_prompt, user_prompt)
            validate_brief_structure(data)
        except GenerationError as e:
            logger.error("brief_generation_failed", extra={"error": str(e), "error_type": type(e).__name__})
            raise BriefGenerationFailed(e) from e

        brief = normalize_brief(data)
        ensure_source_coverage(brief, filenames)
        word_count = enforce_word_budget(brief, self.max_words)

        return Brief(
            **brief,
            wordCount=word_count,
            generatedAt=datetime.now(timezone.utc).isoformat(),
        )
