"""
Planner service: the operations a learner's UI triggers.

Wires one learner's AppStore to the state repository (persist on every change)
and to the content service for schedule generation. Network failures propagate
to the caller with the stored state untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any, Optional

import reducers
from content_service import ContentService
from continuation import (
    CONTINUATION_BATCH_DAYS,
    INITIAL_BATCH_DAYS,
    initial_plan_window,
    last_scheduled_date,
    needs_extension,
    plan_continuation,
)
from errors import PlannerError, ValidationError
from gamification import xp_progress_pct
from models import ExamConfig, SyllabusSubject
from readiness import compute_readiness, pending_tasks
from state_store import CURRENT_AFFAIRS, MOTIVATION, SCHEDULE, AppStore
from storage import StateRepository, user_key

logger = logging.getLogger(__name__)

MAX_BACKGROUND_BATCHES = 12


class PlannerService:
    def __init__(
        self,
        email: str,
        repository: StateRepository,
        content: ContentService,
        today: Callable[[], date] = date.today,
        initial_batch_days: int = INITIAL_BATCH_DAYS,
        continuation_batch_days: int = CONTINUATION_BATCH_DAYS,
        tracker=None,
    ) -> None:
        self.email = email
        self.repository = repository
        self.content = content
        self._today = today
        self.initial_batch_days = initial_batch_days
        self.continuation_batch_days = continuation_batch_days
        self.store = AppStore(repository.load(email), tracker=tracker, scope=user_key(email))
        self.store.subscribe(self._persist)

    def _persist(self, state) -> None:
        self.repository.save(self.email, state)

    @property
    def state(self):
        return self.store.state

    def _reload(self) -> None:
        self.store.reload(self.repository.load(self.email))

    # ── Progress ───────────────────────────────────────────

    def toggle_task(self, day_id: str, task_index: int, score: Optional[int] = None) -> dict:
        info = self.store.dispatch(reducers.toggle_task, day_id, task_index, score, today=self._today())
        info["needsExtension"] = self._maybe_extend()
        return info

    def mark_hard(self, topic: str) -> dict:
        return self.store.dispatch(reducers.mark_hard, topic)

    def open_setup(self, mode: Optional[str]) -> dict:
        return self.store.dispatch(reducers.open_setup, mode)

    # ── Daily content ──────────────────────────────────────

    def refresh_motivation(self, language: Optional[str] = None) -> str:
        language = language or self._language()
        request_id = self.store.begin(MOTIVATION)
        try:
            text = self.content.motivation(language)
        finally:
            fresh = self.store.finish(MOTIVATION, request_id)
        if fresh:
            self._reload()
            self.store.dispatch(reducers.set_motivation, text)
        return text

    def refresh_current_affairs(self, language: Optional[str] = None) -> list:
        language = language or self._language()
        exam = self.state.config.exam_name if self.state.config else "competitive exams"
        request_id = self.store.begin(CURRENT_AFFAIRS)
        try:
            items = self.content.current_affairs(language, exam)
        finally:
            fresh = self.store.finish(CURRENT_AFFAIRS, request_id)
        if fresh:
            self._reload()
            self.store.dispatch(reducers.set_current_affairs, items)
        return items

    def _language(self) -> str:
        return self.state.config.language if self.state.config else "en"

    # ── Schedule generation ────────────────────────────────

    def request_continuation(self, batch_days: Optional[int] = None) -> dict:
        """Generate and merge the next block of days.

        Validation happens before any network call. If generation fails the
        error propagates and the schedule is unchanged. New days are merged
        onto the stored state as it is after generation, so progress saved
        while the AI call ran is kept.
        """
        self._reload()
        state = self.state
        if state.config is None:
            raise ValidationError("Set up your exam before extending the schedule.")
        if not state.syllabus:
            raise ValidationError("A syllabus is required to extend the schedule.")

        request = plan_continuation(
            state.schedule,
            state.syllabus,
            state.config,
            hard_topics=state.hard_topics,
            today=self._today(),
            batch_days=batch_days or self.continuation_batch_days,
        )
        if request.days_to_generate <= 0:
            raise ValidationError("Your schedule already reaches the exam date.")

        request_id = self.store.begin(SCHEDULE)
        try:
            new_days = self.content.generate_schedule(
                list(state.syllabus), state.config, progress=request,
                question_papers=state.question_papers_content,
            )
        except PlannerError:
            self.store.finish(SCHEDULE, request_id)
            raise
        if not self.store.finish(SCHEDULE, request_id):
            return {"added": 0, "stale": True}

        self._reload()
        info = self.store.dispatch(reducers.apply_continuation, new_days)
        info["request"] = request.to_dict()
        logger.info("Continuation for %s: %d day(s) from %s", self.email, info["added"], request.start_date)
        return info

    def request_initial_plan(
        self,
        config: ExamConfig,
        syllabus: list[SyllabusSubject],
        question_papers: str = "",
    ) -> dict:
        """Generate the first batch of a new plan; the rest follows in the background."""
        if not syllabus:
            raise ValidationError("A syllabus is required to generate a plan.")
        today = self._today()
        if config.exam_date < today.isoformat():
            raise ValidationError("The exam date is in the past.")

        window = initial_plan_window(config, today, self.initial_batch_days)
        request_id = self.store.begin(SCHEDULE)
        try:
            schedule = self.content.generate_schedule(
                syllabus, config,
                days=window.first_batch_days, start_date=window.start_date,
                question_papers=question_papers,
            )
        except PlannerError:
            self.store.finish(SCHEDULE, request_id)
            raise
        if not self.store.finish(SCHEDULE, request_id):
            return {"days": 0, "stale": True}

        self._reload()
        info = self.store.dispatch(reducers.apply_initial_plan, config, syllabus, schedule, question_papers)
        info["totalDays"] = window.total_days
        info["backgroundExtension"] = False
        if window.needs_background_extension:
            info["backgroundExtension"] = self._enqueue_extension()
        return info

    def extend_schedule(self, max_batches: int = MAX_BACKGROUND_BATCHES) -> int:
        """Keep requesting continuations until the plan covers its end date."""
        config = self.state.config
        if config is None:
            return 0
        target = config.end_date or config.exam_date
        added = 0
        for _ in range(max_batches):
            last = last_scheduled_date(self.state.schedule)
            if last is not None and last >= target:
                break
            info = self.request_continuation()
            if not info.get("added"):
                break
            added += info["added"]
        return added

    def _maybe_extend(self) -> bool:
        state = self.state
        if not needs_extension(state.schedule, self._today(), config=state.config):
            return False
        self._enqueue_extension()
        return True

    def _enqueue_extension(self) -> bool:
        """Queue a background extension. Returns False when no worker is available."""
        from tasks import enqueue, is_async_available

        if not is_async_available():
            return False
        enqueue(extend_schedule_job, self.email, job_id=f"extend:{user_key(self.email)}")
        return True

    # ── Read models ────────────────────────────────────────

    def readiness_snapshot(self) -> dict:
        self.store.dispatch(reducers.refresh_activity, self._today())
        state = self.state
        report = compute_readiness(state.schedule, state.syllabus)
        data: dict[str, Any] = report.to_dict()
        data["pendingTasks"] = pending_tasks(state.schedule, self._today())
        data["gamification"] = dict(state.gamification.to_dict(), progressPct=xp_progress_pct(state.gamification))
        data["needsExtension"] = needs_extension(state.schedule, self._today(), config=state.config)
        return data


def build_planner(email: str) -> PlannerService:
    """PlannerService for ``email`` using the app's configured services."""
    from flask import current_app

    from extensions import ServiceManager

    return PlannerService(
        email,
        ServiceManager.get_states(),
        ServiceManager.get_content(),
        initial_batch_days=current_app.config.get("INITIAL_BATCH_DAYS", INITIAL_BATCH_DAYS),
        continuation_batch_days=current_app.config.get("CONTINUATION_BATCH_DAYS", CONTINUATION_BATCH_DAYS),
        tracker=ServiceManager.get_request_tracker(),
    )


def _extend(email: str) -> int:
    try:
        added = build_planner(email).extend_schedule()
    except PlannerError as e:
        logger.warning("Background extension for %s failed: %s", email, e.message)
        return 0
    logger.info("Background extension for %s added %d day(s)", email, added)
    return added


def extend_schedule_job(email: str) -> int:
    """Worker entry point. Builds an app context when run outside one."""
    from flask import has_app_context

    if has_app_context():
        return _extend(email)

    from app import create_app
    with create_app().app_context():
        return _extend(email)
