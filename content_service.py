"""
AI content capabilities built on the GenerationService.

Each method builds a prompt, calls the resilient generation layer and checks the
shape of what came back. Shape problems raise MalformedResponseError so the
route layer can answer 502 instead of passing junk to the client.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Optional

from ai_resilience import GenerationService
from continuation import ContinuationRequest, days_until_exam
from errors import MalformedResponseError, ValidationError
from models import (
    CURRENT_AFFAIR_CATEGORIES,
    CurrentAffairItem,
    ExamConfig,
    ScheduleDay,
    SyllabusSubject,
    parse_ai_schedule,
    parse_syllabus,
)
from prompts import (
    CURRENT_AFFAIRS_PROMPT,
    DAILY_SUMMARY_PROMPT,
    EXTRACT_SYLLABUS_PROMPT,
    INTERLEAVED_RULE,
    MOCK_TEST_PROMPT,
    MOTIVATION_PROMPT,
    NEAR_EXAM_DAYS,
    NEAR_EXAM_NOTE,
    PARSE_SCHEDULE_PROMPT,
    PRACTICE_PROMPT,
    REGULAR_PACE_NOTE,
    SCHEDULE_PROMPT,
    language_name,
)
from quiz_bank import parse_questions

logger = logging.getLogger(__name__)

SYLLABUS_PROMPT_CHARS = 10_000
PAPERS_PROMPT_CHARS = 5_000
EXTRACT_INPUT_CHARS = 30_000

_WRAPPER_KEYS = ("data", "items", "questions", "syllabus", "news", "results")


def _require_list(data: Any, what: str) -> list:
    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    if not isinstance(data, list):
        raise MalformedResponseError(f"AI {what} response was not a list.")
    return data


def _progress_context(progress: Optional[ContinuationRequest]) -> str:
    if progress is None:
        return ""
    lines = []
    if progress.completed_topics:
        lines.append(f"Completed topics (don't repeat): {', '.join(progress.completed_topics)}")
    if progress.missed_topics:
        lines.append(f"MISSED topics (MUST include with priority): {', '.join(progress.missed_topics)}")
    if progress.hard_topics:
        lines.append(
            "HARD topics (marked difficult by the learner, include in revision slots): "
            + ", ".join(progress.hard_topics)
        )
    return "\n".join(lines)


class ContentService:
    def __init__(self, generation: GenerationService) -> None:
        self.generation = generation

    # ── Syllabus ───────────────────────────────────────────

    def extract_syllabus(self, text: str, language: str = "en", exam: str = "competitive exam") -> list[SyllabusSubject]:
        if not text or not text.strip():
            raise ValidationError("Syllabus text is required.")
        prompt = EXTRACT_SYLLABUS_PROMPT.format(
            exam=exam, language=language_name(language), content=text[:EXTRACT_INPUT_CHARS],
        )
        data, _ = self.generation.generate_json("pro", prompt)
        try:
            return parse_syllabus(_require_list(data, "syllabus"))
        except ValidationError as exc:
            raise MalformedResponseError(f"AI syllabus had an unexpected shape: {exc.message}") from exc

    # ── Schedule ───────────────────────────────────────────

    def generate_schedule(
        self,
        syllabus: list[SyllabusSubject],
        config: ExamConfig,
        progress: Optional[ContinuationRequest] = None,
        days: Optional[int] = None,
        start_date: Optional[str] = None,
        question_papers: str = "",
    ) -> list[ScheduleDay]:
        """Generate a contiguous block of study days.

        The window comes from ``progress`` when given (continuations), else from
        ``start_date``/``days``.
        """
        if progress is not None:
            start = progress.start_date
            days = progress.days_to_generate
            end = progress.end_date
        else:
            start = start_date or date.today().isoformat()
            days = days or 1
            end = ContinuationRequest(start_date=start, days_to_generate=days).end_date
        if days <= 0:
            raise ValidationError("No days left to schedule before the exam.")

        remaining = days_until_exam(config, date.fromisoformat(start))
        notes = [NEAR_EXAM_NOTE if remaining < NEAR_EXAM_DAYS else REGULAR_PACE_NOTE]
        if any("interleav" in m.lower() for m in config.preferred_methods):
            notes.append(INTERLEAVED_RULE)
        if question_papers:
            notes.append(f"Previous paper trends: {question_papers[:PAPERS_PROMPT_CHARS]}")

        prompt = SCHEDULE_PROMPT.format(
            exam=config.exam_name,
            days=days,
            start_date=start,
            end_date=end,
            exam_date=config.exam_date,
            days_until_exam=remaining,
            hours=config.study_hours_per_day,
            methods=", ".join(config.preferred_methods) or "any",
            preferences=config.specific_preferences or "none",
            syllabus=json.dumps([s.to_dict() for s in syllabus], ensure_ascii=False)[:SYLLABUS_PROMPT_CHARS],
            progress=_progress_context(progress),
            intensity="\n\n".join(notes),
            language=language_name(config.language),
        )
        data, _ = self.generation.generate_json("pro", prompt)
        schedule = parse_ai_schedule(data)
        if not schedule:
            raise MalformedResponseError("AI returned an empty schedule.")
        logger.info("Generated %d day(s) from %s for %s", len(schedule), start, config.exam_name)
        return schedule

    def parse_manual_schedule(self, text: str, exam_date: str) -> list[ScheduleDay]:
        if not text or not text.strip():
            raise ValidationError("Schedule text is required.")
        prompt = PARSE_SCHEDULE_PROMPT.format(exam_date=exam_date, content=text)
        data, _ = self.generation.generate_json("standard", prompt)
        return parse_ai_schedule(data)

    # ── Current affairs ────────────────────────────────────

    def current_affairs(self, language: str = "en", exam: str = "competitive exams") -> list[CurrentAffairItem]:
        prompt = CURRENT_AFFAIRS_PROMPT.format(exam=exam, language=language_name(language))
        data, sources = self.generation.generate_json("standard", prompt, wants_search=True)
        today = date.today().isoformat()
        items = []
        for idx, entry in enumerate(_require_list(data, "current affairs")):
            if not isinstance(entry, dict):
                continue
            category = str(entry.get("category") or "GENERAL").upper()
            if category not in CURRENT_AFFAIR_CATEGORIES:
                category = "GENERAL"
            items.append(CurrentAffairItem(
                id=f"ca-{idx}",
                title=str(entry.get("title") or entry.get("Name") or "Current Event"),
                summary=str(entry.get("summary") or entry.get("Description") or entry.get("content") or ""),
                category=category,
                date=str(entry.get("date") or today),
                sources=tuple(sources[:2]),
            ))
        return items

    # ── Questions ──────────────────────────────────────────

    def practice_questions(self, topics: list[str], papers: str = "", language: str = "en", count: int = 5) -> list[dict]:
        if not topics:
            raise ValidationError("At least one topic is required.")
        prompt = PRACTICE_PROMPT.format(
            count=count, topics=", ".join(topics), language=language_name(language),
            papers=(papers or "")[:PAPERS_PROMPT_CHARS],
        )
        data, _ = self.generation.generate_json("standard", prompt)
        questions = [
            {"question": str(q["question"]), "explanation": str(q.get("explanation") or "")}
            for q in _require_list(data, "practice")
            if isinstance(q, dict) and q.get("question")
        ]
        if not questions:
            raise MalformedResponseError("AI returned no practice questions.")
        return questions

    def mock_test(self, topics: list[str], papers: str = "", language: str = "en", count: int = 10) -> list[dict]:
        if not topics:
            raise ValidationError("Complete at least one topic before taking a mock test.")
        prompt = MOCK_TEST_PROMPT.format(
            count=count, topics=", ".join(topics), language=language_name(language),
            papers=(papers or "")[:PAPERS_PROMPT_CHARS],
        )
        data, _ = self.generation.generate_json("standard", prompt)
        return parse_questions(data)

    # ── Free text ──────────────────────────────────────────

    def motivation(self, language: str = "en") -> str:
        result = self.generation.generate("lite", MOTIVATION_PROMPT.format(language=language_name(language)))
        text = (result.text or "").strip()
        if not text:
            raise MalformedResponseError("AI returned an empty quote.")
        return text

    def daily_summary(self, tasks: list[str], language: str = "en") -> str:
        if not tasks:
            raise ValidationError("No tasks for today.")
        prompt = DAILY_SUMMARY_PROMPT.format(tasks="\n- ".join(tasks), language=language_name(language))
        result = self.generation.generate("standard", prompt)
        return (result.text or "").strip()
