"""
Centralized Scheduler: registers periodic background jobs.

Jobs:
  - Quiz factory tick (every QUIZ_FACTORY_INTERVAL_SECONDS, default 20s)
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

QUIZ_FACTORY_INTERVAL_SECONDS = 20


def run_quiz_factory_tick(app) -> None:
    """Generate one pending quiz, inside an app context."""
    from extensions import ServiceManager

    with app.app_context():
        topic = ServiceManager.get_quiz_factory().process_next()
        if topic:
            app.logger.info("Quiz factory generated %r", topic)


def init_scheduler(app):
    """Start the background scheduler. Returns the scheduler instance."""
    scheduler = BackgroundScheduler(daemon=True)

    scheduler.add_job(
        func=run_quiz_factory_tick,
        args=[app],
        trigger="interval",
        seconds=app.config.get("QUIZ_FACTORY_INTERVAL_SECONDS", QUIZ_FACTORY_INTERVAL_SECONDS),
        id="quiz_factory",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    app.logger.info("Scheduler started (quiz factory)")
    return scheduler
