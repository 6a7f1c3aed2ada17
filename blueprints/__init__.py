"""
Blueprint registration for the Exam Study Planner.

All blueprints are registered without URL prefixes; routes carry their full
``/api/...`` paths.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.state import bp as state_bp
    from blueprints.ai import bp as ai_bp
    from blueprints.quiz import bp as quiz_bp
    from blueprints.planner import bp as planner_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(state_bp)
    app.register_blueprint(ai_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(planner_bp)
