"""Health check, exam presets and bundled syllabus routes."""

from __future__ import annotations

import time

from flask import Blueprint, current_app

from extensions import ServiceManager
from helpers import fail, ok
from storage import EXAM_PRESETS

bp = Blueprint("core", __name__)

_start_time = time.time()


@bp.route("/health")
def health():
    from tasks import is_async_available

    return ok(
        status="ok",
        uptime_seconds=int(time.time() - _start_time),
        ai_configured=bool(current_app.config.get("GOOGLE_API_KEY")),
        task_backend="rq" if is_async_available() else "sync",
    )


@bp.route("/api/exams")
def api_exams():
    available = set(ServiceManager.get_syllabuses().available())
    return ok([dict(p, hasSyllabus=p["syllabusFile"] in available) for p in EXAM_PRESETS])


@bp.route("/api/syllabus/<preset_id>")
def api_syllabus(preset_id: str):
    text = ServiceManager.get_syllabuses().get(preset_id)
    if text is None:
        return fail("Syllabus not found", 404)
    return ok(text)
