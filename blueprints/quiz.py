"""Quiz routes: per-topic quizzes and the background quiz factory."""

from __future__ import annotations

from flask import Blueprint

from errors import ValidationError
from extensions import ServiceManager
from helpers import json_body, ok, request_language, string_list
from models import parse_syllabus
from quiz_bank import QUIZ_SIZE

bp = Blueprint("quiz", __name__)


@bp.route("/api/quiz", methods=["POST"])
def api_quiz():
    body = json_body()
    topic = str(body.get("topic") or "").strip()
    if not topic:
        raise ValidationError("Topic is required.")
    try:
        count = int(body.get("count") or QUIZ_SIZE)
    except (TypeError, ValueError):
        raise ValidationError("count must be a number.")
    if not 1 <= count <= 20:
        raise ValidationError("count must be between 1 and 20.")
    result = ServiceManager.get_quiz_bank().get_quiz(topic, request_language(body), count)
    return ok(result.to_dict())


@bp.route("/api/quiz/factory", methods=["POST"])
def api_quiz_factory_enqueue():
    """Queue quizzes for a syllabus or an explicit list of topics."""
    body = json_body()
    factory = ServiceManager.get_quiz_factory()
    language = request_language(body)
    if body.get("syllabus") is not None:
        added = factory.enqueue_syllabus(parse_syllabus(body["syllabus"]), language)
    else:
        topics = string_list(body.get("topics"), "topics")
        if not topics:
            raise ValidationError("Provide a syllabus or a list of topics.")
        added = factory.enqueue_topics(topics, language)
    return ok({"queued": added, **factory.status()}, 202)


@bp.route("/api/quiz/factory")
def api_quiz_factory_status():
    return ok(ServiceManager.get_quiz_factory().status())
