"""
Schedule Continuation Planner.

Builds the progress summary sent with a "continue my plan" request and splices
the returned block of days onto the existing schedule. The schedule is
append-only and keyed by date: a continuation always starts the day after the
last scheduled date (never "today") so blocks never leave gaps or overlap.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from errors import MergeConflictError
from models import ExamConfig, ScheduleDay, SyllabusSubject

logger = logging.getLogger(__name__)

INITIAL_BATCH_DAYS = 15
CONTINUATION_BATCH_DAYS = 30
EXTENSION_THRESHOLD_DAYS = 5

_PLACEHOLDER_ID = re.compile(r"^(day-?)?\d{1,3}$", re.IGNORECASE)


@dataclass
class ContinuationRequest:
    completed_topics: list[str] = field(default_factory=list)
    missed_topics: list[str] = field(default_factory=list)
    hard_topics: list[str] = field(default_factory=list)
    start_date: str = ""
    last_generated_date: Optional[str] = None
    days_to_generate: int = CONTINUATION_BATCH_DAYS

    @property
    def end_date(self) -> str:
        start = date.fromisoformat(self.start_date)
        return (start + timedelta(days=max(self.days_to_generate, 1) - 1)).isoformat()

    def to_dict(self) -> dict:
        return {
            "completedTopics": list(self.completed_topics),
            "missedTopics": list(self.missed_topics),
            "hardTopics": list(self.hard_topics),
            "startDate": self.start_date,
            "lastGeneratedDate": self.last_generated_date,
            "daysToGenerate": self.days_to_generate,
        }


def last_scheduled_date(schedule: Iterable[ScheduleDay]) -> Optional[str]:
    return max((d.date for d in schedule), default=None)


def days_until_exam(config: ExamConfig, start: date) -> int:
    """Days from ``start`` up to and including the exam date."""
    return (date.fromisoformat(config.exam_date) - start).days + 1


def plan_continuation(
    schedule: Sequence[ScheduleDay],
    syllabus: Sequence[SyllabusSubject],
    config: ExamConfig,
    hard_topics: Iterable[str] = (),
    today: Optional[date] = None,
    batch_days: int = CONTINUATION_BATCH_DAYS,
) -> ContinuationRequest:
    """Summarise progress and pick the next contiguous date window."""
    today = today or date.today()
    today_iso = today.isoformat()

    completed: list[str] = []
    missed: list[str] = []
    for day in schedule:
        for task in day.tasks:
            if task in day.completed_tasks:
                completed.append(task)
            elif day.date < today_iso:
                missed.append(task)

    last = last_scheduled_date(schedule)
    if last:
        start = date.fromisoformat(last) + timedelta(days=1)
    elif config.start_date:
        start = max(date.fromisoformat(config.start_date), today)
    else:
        start = today

    remaining = days_until_exam(config, start)
    days = max(0, min(batch_days, remaining))

    request = ContinuationRequest(
        completed_topics=list(dict.fromkeys(completed)),
        missed_topics=list(dict.fromkeys(missed)),
        hard_topics=list(dict.fromkeys(hard_topics)),
        start_date=start.isoformat(),
        last_generated_date=last,
        days_to_generate=days,
    )
    logger.debug(
        "Continuation window %s +%d days (%d completed, %d missed, %d subjects)",
        request.start_date, days, len(request.completed_topics),
        len(request.missed_topics), len(syllabus),
    )
    return request


def is_placeholder_id(day_id: str) -> bool:
    """True for auto-generated ids such as ``1``, ``day-3`` or ``day-12``."""
    return bool(_PLACEHOLDER_ID.match(str(day_id).strip()))


def merge_continuation(
    schedule: Sequence[ScheduleDay],
    new_days: Iterable[ScheduleDay],
    until: Optional[str] = None,
) -> list[ScheduleDay]:
    """Append ``new_days`` in date order without repeating a date or an id.

    Incoming days on an already scheduled date are dropped (the existing day
    wins), as are days after ``until`` (the exam date). Placeholder or
    colliding ids are regenerated as ``day-{date}``.
    """
    merged = list(schedule)
    seen_dates = {d.date for d in merged}
    seen_ids = {d.id for d in merged}
    dropped = 0

    for day in sorted(new_days, key=lambda d: d.date):
        if day.date in seen_dates or (until and day.date > until):
            dropped += 1
            continue
        day_id = day.id
        if is_placeholder_id(day_id) or day_id in seen_ids:
            day_id = f"day-{day.date}"
            suffix = 1
            while day_id in seen_ids:
                suffix += 1
                day_id = f"day-{day.date}-{suffix}"
        merged.append(day.copy(id=day_id).with_completion_synced())
        seen_dates.add(day.date)
        seen_ids.add(day_id)

    if dropped:
        logger.info("Dropped %d generated day(s) already scheduled or after the exam", dropped)
    return merged


def normalize_schedule(days: Iterable[ScheduleDay], until: Optional[str] = None) -> list[ScheduleDay]:
    """Normalise a freshly generated schedule (dates sorted, ids unique)."""
    return merge_continuation([], days, until)


def check_schedule_invariants(schedule: Sequence[ScheduleDay]) -> None:
    """Raise MergeConflictError on duplicate dates or ids."""
    dates = [d.date for d in schedule]
    if len(dates) != len(set(dates)):
        raise MergeConflictError("Schedule contains two days for the same date.")
    ids = [d.id for d in schedule]
    if len(ids) != len(set(ids)):
        raise MergeConflictError("Schedule contains a repeated day id.")


def needs_extension(
    schedule: Sequence[ScheduleDay],
    today: Optional[date] = None,
    threshold: int = EXTENSION_THRESHOLD_DAYS,
    config: Optional[ExamConfig] = None,
) -> bool:
    """True when the schedule runs out within ``threshold`` days of today.

    A schedule that already reaches the exam date never needs extending.
    """
    last = last_scheduled_date(schedule)
    if last is None:
        return False
    if config and last >= config.exam_date:
        return False
    today = today or date.today()
    return (date.fromisoformat(last) - today).days <= threshold


@dataclass(frozen=True)
class PlanWindow:
    start_date: str
    total_days: int
    first_batch_days: int

    @property
    def needs_background_extension(self) -> bool:
        return self.total_days > self.first_batch_days


def initial_plan_window(
    config: ExamConfig, today: Optional[date] = None, batch_days: int = INITIAL_BATCH_DAYS
) -> PlanWindow:
    """Requested horizon for a brand-new plan and the size of its first batch."""
    today = today or date.today()
    start = date.fromisoformat(config.start_date) if config.start_date else today
    end = date.fromisoformat(config.end_date or config.exam_date)
    total = max(1, (end - start).days + 1)
    return PlanWindow(
        start_date=start.isoformat(),
        total_days=total,
        first_batch_days=min(batch_days, total),
    )
