"""Tests for ai_resilience.py: retry state machine, model fallback, JSON extraction."""

from __future__ import annotations

import pytest

from ai_resilience import (
    AttemptState,
    GeminiClient,
    Phase,
    extract_json,
    is_rate_limit,
    next_state,
)
from conftest import RateLimited
from errors import MalformedResponseError, PlannerError, TransientServiceError


class TestIsRateLimit:
    def test_code_attribute(self):
        assert is_rate_limit(RateLimited("slow down"))

    def test_message_patterns(self):
        assert is_rate_limit(Exception("429 Too Many Requests"))
        assert is_rate_limit(Exception("Resource exhausted: quota"))

    def test_class_name(self):
        class ResourceExhausted(Exception):
            pass
        assert is_rate_limit(ResourceExhausted())

    def test_other_errors(self):
        assert not is_rate_limit(ConnectionError("reset by peer"))


class TestNextState:
    def test_rate_limit_sequence(self):
        state = AttemptState(model_tier="pro", search_enabled=True)
        waits, searches, tiers = [], [], []
        for _ in range(3):
            transition = next_state(state, RateLimited())
            state = transition.state
            waits.append(transition.wait)
            searches.append(state.search_enabled)
            tiers.append(state.model_tier)
        assert waits == [10, 20, 30]
        assert searches == [True, False, False]
        assert tiers == ["pro", "pro", "standard"]
        assert next_state(state, RateLimited()).state.phase is Phase.FAILED

    def test_lowest_tier_stays(self):
        state = AttemptState(model_tier="lite", search_enabled=False, retry_count=2)
        assert next_state(state, RateLimited()).state.model_tier == "lite"

    def test_generic_error_retries_once(self):
        state = AttemptState(model_tier="standard", search_enabled=False)
        first = next_state(state, ValueError("boom"))
        assert first.wait == 3
        assert first.state.phase is Phase.ATTEMPTING
        assert next_state(first.state, ValueError("boom")).state.phase is Phase.FAILED


class TestGenerationService:
    def test_success_first_try(self, generation, scripted_client, sleeps):
        scripted_client.queue("hello")
        result = generation.generate("standard", "prompt")
        assert result.text == "hello"
        assert result.attempts == 1
        assert result.model == "gemini-2.0-flash"
        assert sleeps == []

    def test_backoff_sequence_then_failure(self, generation, scripted_client, sleeps):
        scripted_client.queue(*[RateLimited("429") for _ in range(4)])
        with pytest.raises(TransientServiceError) as exc_info:
            generation.generate("pro", "prompt", wants_search=True)
        assert sleeps == [10, 20, 30]
        assert exc_info.value.attempts == 4
        searches = [c["search"] for c in scripted_client.calls]
        assert searches == [True, True, False, False]
        models = [c["model"] for c in scripted_client.calls]
        assert models == ["gemini-2.5-flash", "gemini-2.5-flash", "gemini-2.5-flash", "gemini-2.0-flash"]

    def test_recovers_after_rate_limit(self, generation, scripted_client, sleeps):
        scripted_client.queue(RateLimited(), "ok")
        assert generation.generate("standard", "prompt").text == "ok"
        assert sleeps == [10]

    def test_generic_error_single_retry(self, generation, scripted_client, sleeps):
        scripted_client.queue(ConnectionError("reset"), ConnectionError("reset"))
        with pytest.raises(TransientServiceError):
            generation.generate("standard", "prompt")
        assert sleeps == [3]
        assert len(scripted_client.calls) == 2

    def test_planner_errors_are_not_retried(self, generation, scripted_client, sleeps):
        scripted_client.queue(PlannerError("no key"))
        with pytest.raises(PlannerError):
            generation.generate("standard", "prompt")
        assert len(scripted_client.calls) == 1

    def test_generate_json(self, generation, scripted_client):
        scripted_client.queue('```json\n[{"a": 1}]\n```')
        data, sources = generation.generate_json("standard", "prompt")
        assert data == [{"a": 1}]
        assert sources == []
        assert scripted_client.calls[0]["json"] is True


class TestExtractJson:
    def test_plain(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert extract_json("```json\n[1, 2]\n```") == [1, 2]

    def test_embedded_in_prose(self):
        assert extract_json('Here is your plan: [{"date": "2024-03-01"}] Good luck!') == [{"date": "2024-03-01"}]

    @pytest.mark.parametrize("text", ["", "no json here", "{broken: ]"])
    def test_malformed(self, text):
        with pytest.raises(MalformedResponseError):
            extract_json(text)


def test_client_without_key_raises():
    with pytest.raises(PlannerError):
        GeminiClient("").generate("gemini-2.0-flash", "hi", wants_json=False, wants_search=False)
