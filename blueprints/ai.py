"""AI content routes: syllabus extraction, schedules, current affairs, questions, motivation."""

from __future__ import annotations

from datetime import date, timedelta

from flask import Blueprint, current_app

from continuation import ContinuationRequest, days_until_exam, normalize_schedule
from errors import ValidationError
from extensions import ServiceManager, limiter
from helpers import json_body, ok, request_language, string_list
from models import ExamConfig, normalize_date, parse_syllabus

bp = Blueprint("ai", __name__)


def _ai_limit() -> str:
    return current_app.config.get("AI_RATE_LIMIT", "30 per minute")


def _progress_from(body: dict, config: ExamConfig) -> ContinuationRequest:
    """Build the generation window from a client-supplied progress summary."""
    progress = body.get("progressData") or {}
    if not isinstance(progress, dict):
        raise ValidationError("progressData must be an object.")
    last = progress.get("lastGeneratedDate")
    try:
        if last:
            start = date.fromisoformat(normalize_date(last)) + timedelta(days=1)
        elif config.start_date:
            start = date.fromisoformat(config.start_date)
        else:
            start = date.today()
    except ValueError as exc:
        raise ValidationError(f"Invalid lastGeneratedDate: {exc}") from exc
    batch = current_app.config.get("CONTINUATION_BATCH_DAYS", 30)
    return ContinuationRequest(
        completed_topics=string_list(progress.get("completedTopics"), "completedTopics"),
        missed_topics=string_list(progress.get("missedTopics"), "missedTopics"),
        hard_topics=string_list(progress.get("hardTopics"), "hardTopics"),
        start_date=start.isoformat(),
        last_generated_date=last or None,
        days_to_generate=max(0, min(batch, days_until_exam(config, start))),
    )


@bp.route("/api/extract-syllabus", methods=["POST"])
@limiter.limit(_ai_limit)
def api_extract_syllabus():
    body = json_body()
    text = body.get("text") or body.get("content") or ""
    syllabus = ServiceManager.get_content().extract_syllabus(
        str(text), request_language(body), exam=str(body.get("examName") or "competitive exam"),
    )
    return ok([s.to_dict() for s in syllabus])


@bp.route("/api/generate-schedule", methods=["POST"])
@limiter.limit(_ai_limit)
def api_generate_schedule():
    body = json_body()
    config = ExamConfig.from_dict(body.get("config"))
    syllabus = parse_syllabus(body.get("syllabus"))
    progress = _progress_from(body, config)
    if progress.days_to_generate <= 0:
        raise ValidationError("No days left to schedule before the exam.")
    schedule = ServiceManager.get_content().generate_schedule(
        syllabus, config, progress=progress,
        question_papers=str(body.get("questionPapersContent") or ""),
    )
    return ok([d.to_dict() for d in normalize_schedule(schedule, config.exam_date)])


@bp.route("/api/parse-schedule", methods=["POST"])
@limiter.limit(_ai_limit)
def api_parse_schedule():
    body = json_body()
    try:
        exam_date = normalize_date(body.get("examDate"))
    except ValueError as exc:
        raise ValidationError(f"Invalid examDate: {exc}") from exc
    schedule = ServiceManager.get_content().parse_manual_schedule(str(body.get("text") or ""), exam_date)
    return ok([d.to_dict() for d in normalize_schedule(schedule, exam_date)])


@bp.route("/api/current-affairs")
@limiter.limit(_ai_limit)
def api_current_affairs():
    items = ServiceManager.get_content().current_affairs(request_language())
    return ok([item.to_dict() for item in items])


@bp.route("/api/practice-question", methods=["POST"])
@limiter.limit(_ai_limit)
def api_practice_question():
    body = json_body()
    questions = ServiceManager.get_content().practice_questions(
        string_list(body.get("topics"), "topics"),
        str(body.get("questionPapers") or ""),
        request_language(body),
    )
    return ok(questions)


@bp.route("/api/mock-test", methods=["POST"])
@limiter.limit(_ai_limit)
def api_mock_test():
    body = json_body()
    questions = ServiceManager.get_content().mock_test(
        string_list(body.get("completedTopics"), "completedTopics"),
        str(body.get("oldPapers") or ""),
        request_language(body),
    )
    return ok(questions)


@bp.route("/api/motivation")
@limiter.limit(_ai_limit)
def api_motivation():
    return ok(ServiceManager.get_content().motivation(request_language()))


@bp.route("/api/daily-summary", methods=["POST"])
@limiter.limit(_ai_limit)
def api_daily_summary():
    body = json_body()
    summary = ServiceManager.get_content().daily_summary(
        string_list(body.get("tasks"), "tasks"), request_language(body),
    )
    return ok(summary)
