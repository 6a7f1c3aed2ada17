"""AI Resilience Layer: retry state machine, model fallback and JSON extraction.

Every Gemini call goes through GenerationService.generate(). Failures move an
explicit state machine (ATTEMPTING -> DONE | FAILED):

- rate limit (429 / resource exhausted): up to 3 retries waiting 10s, 20s, 30s.
  From the second retry on, search grounding is switched off (it has the tighter
  quota); from the third on, the model drops to its fallback tier.
- any other error: one retry after 3s.

tenacity drives the loop; next_state() decides stop, wait and the parameters of
the next attempt, so the policy is testable without a network or real sleeps.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from tenacity import RetryCallState, Retrying, retry_if_not_exception_type

from errors import MalformedResponseError, PlannerError, TransientServiceError
from models import GroundingSource

logger = logging.getLogger(__name__)


# ── Model tiers ────────────────────────────────────────────

MODEL_TIERS: dict[str, str] = {
    "pro": "gemini-2.5-flash",
    "standard": "gemini-2.0-flash",
    "lite": "gemini-1.5-flash",
}

TIER_FALLBACKS: dict[str, str] = {
    "pro": "standard",
    "standard": "lite",
}

RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_BASE_WAIT = 10  # seconds, multiplied by (retry_count + 1)
ERROR_MAX_RETRIES = 1
ERROR_RETRY_WAIT = 3


# ── Retry state machine ────────────────────────────────────

class Phase(str, Enum):
    ATTEMPTING = "attempting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class AttemptState:
    model_tier: str
    search_enabled: bool
    retry_count: int = 0
    error_retries: int = 0
    phase: Phase = Phase.ATTEMPTING


@dataclass(frozen=True)
class Transition:
    state: AttemptState
    wait: float = 0.0


_RATE_LIMIT_PATTERNS = ("429", "rate limit", "resource exhausted", "resourceexhausted", "quota")


def is_rate_limit(exc: BaseException) -> bool:
    """Check if an exception is a rate-limit / quota rejection."""
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return True
    if type(exc).__name__ in ("ResourceExhausted", "TooManyRequests"):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _RATE_LIMIT_PATTERNS)


def next_state(state: AttemptState, exc: BaseException) -> Transition:
    """Transition table for a failed attempt."""
    if is_rate_limit(exc):
        if state.retry_count >= RATE_LIMIT_MAX_RETRIES:
            return Transition(replace(state, phase=Phase.FAILED))
        tier = state.model_tier
        if state.retry_count >= 2:
            tier = TIER_FALLBACKS.get(tier, tier)
        return Transition(
            replace(
                state,
                model_tier=tier,
                search_enabled=state.search_enabled and state.retry_count < 1,
                retry_count=state.retry_count + 1,
            ),
            wait=RATE_LIMIT_BASE_WAIT * (state.retry_count + 1),
        )

    if state.error_retries >= ERROR_MAX_RETRIES:
        return Transition(replace(state, phase=Phase.FAILED))
    return Transition(replace(state, error_retries=state.error_retries + 1), wait=ERROR_RETRY_WAIT)


# ── JSON extraction ────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def extract_json(text: str) -> Any:
    """Parse JSON from free-form model text.

    First strips markdown code fences; failing that, slices from the first
    ``{``/``[`` to the last ``}``/``]``. Anything else is a MalformedResponseError.
    """
    if not text or not text.strip():
        raise MalformedResponseError("AI returned an empty response.", raw=text or "")

    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        start = min(starts)
        closer = "}" if text[start] == "{" else "]"
        end = text.rfind(closer)
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                pass

    logger.error("JSON parse error. First 500 chars: %s", text[:500])
    raise MalformedResponseError(raw=text)


# ── Gemini client ──────────────────────────────────────────

@dataclass
class GenerationResult:
    text: str
    sources: list[GroundingSource] = field(default_factory=list)
    model: str = ""
    attempts: int = 1
    latency_ms: int = 0


def _grounding_sources(response: Any) -> list[GroundingSource]:
    sources = []
    try:
        chunks = response.candidates[0].grounding_metadata.grounding_chunks
    except (AttributeError, IndexError, TypeError):
        return sources
    for chunk in chunks or []:
        web = getattr(chunk, "web", None)
        if web is not None and getattr(web, "uri", None):
            sources.append(GroundingSource(uri=web.uri, title=getattr(web, "title", "") or web.uri))
    return sources


class GeminiClient:
    """Single-shot Gemini call (no retry, no cache)."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def generate(self, model: str, prompt: str, *, wants_json: bool, wants_search: bool) -> GenerationResult:
        if not self.api_key:
            raise PlannerError("GOOGLE_API_KEY is not configured; AI features are unavailable.")
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        tools = "google_search_retrieval" if wants_search else None
        gemini = genai.GenerativeModel(model, tools=tools)
        if wants_json and not wants_search:
            generation_config = {"response_mime_type": "application/json", "temperature": 0.2}
        else:
            generation_config = {"temperature": 0.4 if wants_search else 0.7}
        response = gemini.generate_content(prompt, generation_config=generation_config)
        text = response.text
        return GenerationResult(
            text=text,
            sources=_grounding_sources(response) if wants_search else [],
            model=model,
        )


# ── Main entry point ───────────────────────────────────────

class GenerationService:
    """Resilient front door to the generation service."""

    def __init__(
        self,
        client: GeminiClient,
        sleep: Callable[[float], None] = time.sleep,
        model_tiers: Optional[dict[str, str]] = None,
    ) -> None:
        self.client = client
        self._sleep = sleep
        self.model_tiers = model_tiers or dict(MODEL_TIERS)

    def model_for(self, tier: str) -> str:
        return self.model_tiers.get(tier, tier)

    def generate(
        self,
        model_tier: str,
        prompt: str,
        *,
        wants_json: bool = False,
        wants_search: bool = False,
    ) -> GenerationResult:
        """Call the model with the retry state machine.

        Raises:
            TransientServiceError: the retry budget was exhausted.
        """
        current = [AttemptState(model_tier=model_tier, search_enabled=wants_search)]
        pending: dict[int, Transition] = {}

        # tenacity may ask for stop or wait first; both read one transition per attempt
        def _transition(retry_state: RetryCallState) -> Transition:
            attempt = retry_state.attempt_number
            if attempt not in pending:
                pending[attempt] = next_state(current[0], retry_state.outcome.exception())
            return pending[attempt]

        def _stop(retry_state: RetryCallState) -> bool:
            return _transition(retry_state).state.phase is Phase.FAILED

        def _wait(retry_state: RetryCallState) -> float:
            return _transition(retry_state).wait

        def _before_sleep(retry_state: RetryCallState) -> None:
            transition = _transition(retry_state)
            logger.warning(
                "AI attempt %d on %s failed (%s); retrying in %ss with %s, search=%s",
                retry_state.attempt_number,
                self.model_for(current[0].model_tier),
                retry_state.outcome.exception(),
                transition.wait,
                self.model_for(transition.state.model_tier),
                transition.state.search_enabled,
            )
            current[0] = transition.state

        retryer = Retrying(
            retry=retry_if_not_exception_type(PlannerError),
            stop=_stop,
            wait=_wait,
            before_sleep=_before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        start = time.time()
        attempts = 0
        try:
            for attempt in retryer:
                with attempt:
                    attempts += 1
                    state = current[0]
                    model = self.model_for(state.model_tier)
                    logger.info("[AI Request] Model: %s, Search: %s", model, state.search_enabled)
                    result = self.client.generate(
                        model, prompt, wants_json=wants_json, wants_search=state.search_enabled,
                    )
        except PlannerError:
            raise
        except Exception as exc:
            state = current[0]
            logger.error("AI generation failed after %d attempt(s): %s", attempts, exc)
            raise TransientServiceError(
                attempts=attempts, model=self.model_for(state.model_tier),
            ) from exc

        current[0] = replace(current[0], phase=Phase.DONE)
        result.attempts = attempts
        result.model = result.model or self.model_for(current[0].model_tier)
        result.latency_ms = int((time.time() - start) * 1000)
        logger.info("[AI Response] Length: %d chars, attempts: %d", len(result.text or ""), attempts)
        return result

    def generate_json(
        self, model_tier: str, prompt: str, *, wants_search: bool = False
    ) -> tuple[Any, list[GroundingSource]]:
        result = self.generate(model_tier, prompt, wants_json=True, wants_search=wants_search)
        return extract_json(result.text), result.sources
