"""
Exam Study Planner: Flask Web Application

Adaptive study schedules for competitive exams: AI-generated plans extended in
batches, quiz-gated progress, remediation, readiness tracking and gamification.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response, jsonify

from blueprints import register_blueprints
from errors import PlannerError
from extensions import ServiceManager, limiter


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PlannerError)
    def handle_planner_error(exc: PlannerError):
        app.logger.warning("%s: %s", type(exc).__name__, exc.message)
        body: dict[str, Any] = {"success": False, "error": exc.message}
        if exc.retryable:
            body["retryable"] = True
        return jsonify(body), exc.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(429)
    def handle_rate_limited(exc):
        return jsonify({"success": False, "error": "Too many requests", "retryable": True}), 429


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    env = os.environ.get("FLASK_ENV", "development")
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config["SECRET_KEY"]

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Fresh service singletons for this app's config
    ServiceManager.reset()

    # Quiz cache (Redis or JSON file)
    from cache_backend import init_cache
    init_cache(app)

    # Background jobs (RQ or synchronous fallback)
    from tasks import init_tasks
    init_tasks(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    register_error_handlers(app)
    register_blueprints(app)

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # Quiz factory ticks (off under tests and in RQ workers)
    if not app.config.get("TESTING") and app.config.get("SCHEDULER_ENABLED", True):
        from scheduler import init_scheduler
        app.extensions["scheduler"] = init_scheduler(app)

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001, use_reloader=False)
