"""
Mastery Ledger: per-task completion plus the 0-20 validation score.

``validation_scores[task]`` on a ScheduleDay is the only source of truth for
mastery; nothing here is stored separately.

Completion policy: a task is completed by recording a quiz attempt with a
positive score. Toggling a completed task off is always allowed and forgets
its score. Toggling an incomplete task on without a score is refused.
"""

from __future__ import annotations

from models import ScheduleDay
from errors import ValidationError

MAX_SCORE = 20
MASTERY_THRESHOLD = 18
PARTIAL_CREDIT = 0.4
QUIZ_QUESTIONS = 10

MASTERED = "mastered"
PARTIAL = "partial"
NOT_ATTEMPTED = "not_attempted"


def mastery_state(score: int | None) -> str:
    if not score or score <= 0:
        return NOT_ATTEMPTED
    if score >= MASTERY_THRESHOLD:
        return MASTERED
    return PARTIAL


def effective_weight(weight: float, score: int | None) -> float:
    """Marks credit for a completed task given its validation score."""
    state = mastery_state(score)
    if state == MASTERED:
        return float(weight)
    if state == PARTIAL:
        return weight * PARTIAL_CREDIT
    return 0.0


def scale_quiz_score(correct: int, total: int = QUIZ_QUESTIONS) -> int:
    """Convert a raw quiz result to the 0-20 scale (x2 for a 10-question quiz)."""
    if total <= 0:
        raise ValidationError("Quiz must have at least one question.")
    if correct < 0 or correct > total:
        raise ValidationError(f"Quiz score {correct}/{total} is out of range.")
    return round(correct / total * MAX_SCORE)


def validate_score(score: int) -> int:
    try:
        score = int(score)
    except (TypeError, ValueError):
        raise ValidationError(f"Score must be an integer, got {score!r}.")
    if score < 0 or score > MAX_SCORE:
        raise ValidationError(f"Score must be between 0 and {MAX_SCORE}.")
    return score


def record_attempt(day: ScheduleDay, task: str, score: int) -> ScheduleDay:
    """Store a quiz score for ``task``; a positive score completes the task."""
    if task not in day.tasks:
        raise ValidationError(f"Task not found on {day.date}: {task}")
    score = validate_score(score)

    updated = day.copy()
    updated.validation_scores[task] = score
    if score > 0 and task not in updated.completed_tasks:
        updated.completed_tasks.append(task)
    return updated.with_completion_synced()


def toggle_completion(day: ScheduleDay, task_index: int) -> ScheduleDay:
    """Un-complete a completed task. Completing requires ``record_attempt``."""
    if task_index < 0 or task_index >= len(day.tasks):
        raise ValidationError(f"Task index {task_index} out of range for {day.date}.")
    task = day.tasks[task_index]
    if task not in day.completed_tasks:
        raise ValidationError("Completing a task requires a quiz score.")

    updated = day.copy()
    updated.completed_tasks.remove(task)
    updated.validation_scores.pop(task, None)
    return updated.with_completion_synced()


def mastered_count(days) -> int:
    return sum(
        1
        for day in days
        for task in day.tasks
        if mastery_state(day.validation_scores.get(task)) == MASTERED
    )
