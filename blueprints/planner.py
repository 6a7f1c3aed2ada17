"""Study planner routes: setup, quiz-gated progress, hard topics, continuation, readiness, daily content."""

from __future__ import annotations

from flask import Blueprint, request

from blueprints.ai import _ai_limit
from errors import ValidationError
from extensions import limiter
from helpers import json_body, ok, request_email, request_language
from mastery import QUIZ_QUESTIONS, scale_quiz_score
from models import ExamConfig, parse_syllabus
from planner_service import build_planner

bp = Blueprint("planner", __name__)


def _score(body: dict):
    """Validation score from ``score`` (0-20) or a raw ``correct``/``total`` quiz result."""
    try:
        if body.get("correct") is not None:
            return scale_quiz_score(int(body["correct"]), int(body.get("total") or QUIZ_QUESTIONS))
        if body.get("score") is None:
            return None
        return int(body["score"])
    except (TypeError, ValueError):
        raise ValidationError("score must be an integer.")


def _language(body: dict | None = None):
    lang = (body or {}).get("lang") or request.args.get("lang")
    return request_language(body) if lang else None


@bp.route("/api/planner/setup", methods=["POST"])
@limiter.limit("10 per hour")
def api_planner_setup():
    body = json_body()
    planner = build_planner(request_email(body))
    config = ExamConfig.from_dict(body.get("config"))
    syllabus = parse_syllabus(body.get("syllabus"))
    info = planner.request_initial_plan(
        config, syllabus, question_papers=str(body.get("questionPapersContent") or ""),
    )
    return ok(info, state=planner.state.to_dict())


@bp.route("/api/planner/toggle", methods=["POST"])
def api_planner_toggle():
    body = json_body()
    planner = build_planner(request_email(body))
    day_id = str(body.get("dayId") or "")
    if not day_id:
        raise ValidationError("dayId is required.")
    try:
        task_index = int(body.get("taskIndex"))
    except (TypeError, ValueError):
        raise ValidationError("taskIndex must be an integer.")
    info = planner.toggle_task(day_id, task_index, _score(body))
    return ok(info, state=planner.state.to_dict())


@bp.route("/api/planner/hard", methods=["POST"])
def api_planner_hard():
    body = json_body()
    planner = build_planner(request_email(body))
    info = planner.mark_hard(str(body.get("topic") or ""))
    return ok(info, hardTopics=list(planner.state.hard_topics))


@bp.route("/api/planner/mode", methods=["POST"])
def api_planner_mode():
    body = json_body()
    planner = build_planner(request_email(body))
    return ok(planner.open_setup(body.get("mode")))


@bp.route("/api/planner/motivation")
@limiter.limit(_ai_limit)
def api_planner_motivation():
    planner = build_planner(request_email())
    return ok(planner.refresh_motivation(_language()))


@bp.route("/api/planner/current-affairs")
@limiter.limit(_ai_limit)
def api_planner_current_affairs():
    planner = build_planner(request_email())
    items = planner.refresh_current_affairs(_language())
    return ok([item.to_dict() for item in items])


@bp.route("/api/planner/continue", methods=["POST"])
@limiter.limit("20 per hour")
def api_planner_continue():
    body = json_body()
    planner = build_planner(request_email(body))
    info = planner.request_continuation()
    return ok(info, schedule=[d.to_dict() for d in planner.state.schedule])


@bp.route("/api/planner/readiness")
def api_planner_readiness():
    planner = build_planner(request_email())
    return ok(planner.readiness_snapshot())
