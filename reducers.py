"""
Pure reducers over AppState.

Each takes the current state plus an event payload and returns
``(new_state, info)``. Nothing here performs I/O; invalid events raise
ValidationError before any state is built.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from continuation import check_schedule_invariants, merge_continuation, normalize_schedule
from errors import ValidationError
from gamification import on_task_completed, refresh_streak
from mastery import mastered_count, record_attempt, toggle_completion
from models import AppState, CurrentAffairItem, ExamConfig, ScheduleDay, SyllabusSubject
from readiness import compute_readiness
from remediation import inject_remediation, needs_remediation

SETUP_MODES = ("ai", "manual")


def _day_index(schedule: Sequence[ScheduleDay], day_id: str) -> int:
    for i, day in enumerate(schedule):
        if day.id == day_id:
            return i
    raise ValidationError(f"Unknown day: {day_id}")


def _with_insights(state: AppState) -> AppState:
    report = compute_readiness(state.schedule, state.syllabus)
    return replace(state, mentor_insights=tuple(report.insights))


def toggle_task(
    state: AppState,
    day_id: str,
    task_index: int,
    score: Optional[int] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> tuple[AppState, dict]:
    """Complete a task with a quiz score, or un-complete it.

    A completed task is toggled off with no score required; its score is
    deleted and XP already earned is kept, but completing it again pays no
    further XP. An incomplete task needs ``score``.
    """
    today = today or date.today()
    schedule = list(state.schedule)
    index = _day_index(schedule, day_id)
    day = schedule[index]
    if task_index < 0 or task_index >= len(day.tasks):
        raise ValidationError(f"Task index {task_index} out of range for {day.date}.")
    task = day.tasks[task_index]

    if task in day.completed_tasks:
        schedule[index] = toggle_completion(day, task_index)
        new_state = _with_insights(replace(state, schedule=tuple(schedule)))
        return new_state, {"task": task, "completed": False}

    if score is None:
        raise ValidationError("Completing a task requires a quiz score.")
    updated = record_attempt(day, task, score)
    schedule[index] = updated
    info: dict = {"task": task, "score": updated.validation_scores[task], "completed": task in updated.completed_tasks}

    if needs_remediation(score):
        before = sum(len(d.tasks) for d in schedule)
        schedule = inject_remediation(schedule, index, task, score)
        info["remediation"] = sum(len(d.tasks) for d in schedule) > before

    gamification = state.gamification
    if info["completed"]:
        gamification, reward = on_task_completed(
            gamification,
            day_completed=updated.is_completed and not day.is_completed,
            today=today,
            completed_tasks=sum(len(d.completed_tasks) for d in schedule),
            completed_days=sum(1 for d in schedule if d.is_completed and d.tasks),
            mastered=mastered_count(schedule),
            day_id=day.id,
            task=task,
            now=now,
        )
        info["reward"] = reward

    new_state = replace(state, schedule=tuple(schedule), gamification=gamification)
    return _with_insights(new_state), info


def mark_hard(state: AppState, topic: str) -> tuple[AppState, dict]:
    """Flag or unflag a task string as hard."""
    topic = (topic or "").strip()
    if not topic:
        raise ValidationError("Topic is required.")
    if topic in state.hard_topics:
        hard = tuple(t for t in state.hard_topics if t != topic)
        return replace(state, hard_topics=hard), {"topic": topic, "hard": False}
    return replace(state, hard_topics=state.hard_topics + (topic,)), {"topic": topic, "hard": True}


def apply_continuation(state: AppState, new_days: Iterable[ScheduleDay]) -> tuple[AppState, dict]:
    until = state.config.exam_date if state.config else None
    merged = merge_continuation(state.schedule, new_days, until)
    check_schedule_invariants(merged)
    added = len(merged) - len(state.schedule)
    if not added:
        return state, {"added": 0}
    new_state = _with_insights(replace(state, schedule=tuple(merged)))
    return new_state, {"added": added, "lastDate": merged[-1].date}


def apply_initial_plan(
    state: AppState,
    config: ExamConfig,
    syllabus: Sequence[SyllabusSubject],
    schedule: Iterable[ScheduleDay],
    question_papers: str = "",
    mode: str = "ai",
) -> tuple[AppState, dict]:
    """Replace config, syllabus and schedule with a freshly set-up plan."""
    days = normalize_schedule(schedule, config.exam_date)
    check_schedule_invariants(days)
    new_state = replace(
        state,
        config=config,
        syllabus=tuple(syllabus),
        schedule=tuple(days),
        hard_topics=(),
        # day ids restart with a new plan; XP and badges already earned stay
        gamification=replace(state.gamification, awarded=()),
        question_papers_content=question_papers or state.question_papers_content,
        setup_mode=mode,
    )
    return _with_insights(new_state), {"days": len(days)}


def open_setup(state: AppState, mode: Optional[str]) -> tuple[AppState, dict]:
    if mode is not None and mode not in SETUP_MODES:
        raise ValidationError(f"Unknown setup mode: {mode}")
    return replace(state, setup_mode=mode), {"setupMode": mode}


def set_motivation(state: AppState, text: str) -> tuple[AppState, dict]:
    return replace(state, motivation=text), {}


def set_current_affairs(state: AppState, items: Iterable[CurrentAffairItem]) -> tuple[AppState, dict]:
    items = tuple(items)
    return replace(state, current_affairs=items), {"count": len(items)}


def refresh_activity(state: AppState, today: Optional[date] = None) -> tuple[AppState, dict]:
    """Zero the streak after a missed day."""
    gamification = refresh_streak(state.gamification, today or date.today())
    if gamification is state.gamification:
        return state, {"streak": gamification.streak}
    return replace(state, gamification=gamification), {"streak": gamification.streak}
