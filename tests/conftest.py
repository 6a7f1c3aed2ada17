"""
Test fixtures for the Exam Study Planner.

Provides app and client fixtures backed by temporary data directories, plus a
scripted Gemini client so no test reaches the network or sleeps for real.
"""

from __future__ import annotations

import json
import pytest
from unittest.mock import patch, MagicMock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(scope="session", autouse=True)
def mock_gemini():
    """Mock Google Generative AI globally to prevent API calls."""
    mock_model = MagicMock()
    mock_model.generate_content.return_value = MagicMock(text="[]")

    with patch.dict("sys.modules", {
        "google.generativeai": MagicMock(),
    }):
        yield mock_model


class ScriptedClient:
    """Stands in for GeminiClient: replays queued responses and records calls.

    Each queued item is either text to return or an exception to raise.
    Once the queue is empty the ``default`` text is returned.
    """

    def __init__(self, *responses, default="[]"):
        self.responses = list(responses)
        self.default = default
        self.calls: list[dict] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def generate(self, model, prompt, *, wants_json, wants_search):
        from ai_resilience import GenerationResult

        self.calls.append({"model": model, "prompt": prompt, "json": wants_json, "search": wants_search})
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        if not isinstance(item, str):
            item = json.dumps(item)
        return GenerationResult(text=item, model=model)


class RateLimited(Exception):
    code = 429


@pytest.fixture
def scripted_client():
    return ScriptedClient()


@pytest.fixture
def sleeps():
    """Records requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def generation(scripted_client, sleeps):
    from ai_resilience import GenerationService
    return GenerationService(scripted_client, sleep=sleeps.append)


@pytest.fixture
def file_cache(tmp_path):
    from cache_backend import JsonFileCache
    return JsonFileCache(tmp_path / "quiz_cache.json")


@pytest.fixture
def app(tmp_path):
    """Create app with temporary state, syllabus and cache locations."""
    from app import create_app

    syllabus_dir = tmp_path / "syllabuses"
    syllabus_dir.mkdir()
    (syllabus_dir / "tnpsc-group-4.txt").write_text("Unit IV: Indian Polity", encoding="utf-8")

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "GOOGLE_API_KEY": "test-key",
        "REDIS_URL": "",
        "DATA_DIR": str(tmp_path),
        "STATE_DIR": str(tmp_path / "states"),
        "SYLLABUS_DIR": str(syllabus_dir),
        "QUIZ_CACHE_PATH": str(tmp_path / "quiz_cache.json"),
    })

    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_ai(app, scripted_client, sleeps):
    """Route every AI call made by the app through the scripted client."""
    from ai_resilience import GenerationService
    from extensions import ServiceManager

    ServiceManager.reset()
    ServiceManager._generation = GenerationService(scripted_client, sleep=sleeps.append)
    yield scripted_client
    ServiceManager.reset()


# ── Sample data ───────────────────────────────────────────

SAMPLE_SYLLABUS = [
    {"subject": "History", "topics": [
        {"name": "Mughal Empire", "weightage": "High", "marksWeight": 10},
        {"name": "Freedom Struggle", "weightage": "Medium"},
    ]},
    {"subject": "Polity", "topics": [
        {"name": "Preamble", "weightage": "High", "marksWeight": 8},
    ]},
    {"subject": "Maths", "topics": [
        {"name": "Percentage", "weightage": "Low", "marksWeight": 4},
    ]},
]


def make_day(day_date, tasks, day_type="STUDY", completed=(), scores=None, day_id=None):
    from models import DayType, ScheduleDay

    return ScheduleDay(
        id=day_id or f"day-{day_date}",
        date=day_date,
        day_type=DayType(day_type),
        tasks=list(tasks),
        completed_tasks=list(completed),
        validation_scores=dict(scores or {}),
    ).with_completion_synced()


@pytest.fixture
def syllabus():
    from models import parse_syllabus
    return parse_syllabus(SAMPLE_SYLLABUS)


@pytest.fixture
def exam_config():
    from models import ExamConfig
    return ExamConfig.from_dict({
        "examName": "TNPSC Group 4",
        "examDate": "2024-06-30",
        "startDate": "2024-03-01",
        "studyHoursPerDay": 6,
        "language": "en",
    })
