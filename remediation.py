"""Adaptive remediation: queue a deep-revision task after a weak quiz score."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from models import DayType, ScheduleDay

logger = logging.getLogger(__name__)

REMEDIATION_THRESHOLD = 10  # on the 0-20 scale, i.e. below 50%
REMEDIATION_PREFIX = "[Adaptive] Deep Revision: "
ELIGIBLE_DAY_TYPES = (DayType.STUDY, DayType.REVISION)


def needs_remediation(score: int | None) -> bool:
    return score is not None and 0 < score < REMEDIATION_THRESHOLD


def remediation_task(task: str) -> str:
    return f"{REMEDIATION_PREFIX}{task}"


def is_remediation_task(task: str) -> bool:
    return task.startswith(REMEDIATION_PREFIX)


def inject_remediation(
    schedule: Sequence[ScheduleDay], day_index: int, task: str, score: int
) -> list[ScheduleDay]:
    """Append a deep-revision task to the next study/revision day after ``day_index``.

    Only the first eligible day is considered, and the task is never added twice.
    When no eligible day remains the remediation is dropped; a later schedule
    extension will bring new study days.
    """
    result = list(schedule)
    if not needs_remediation(score):
        return result

    revision = remediation_task(task)
    for i in range(day_index + 1, len(result)):
        day = result[i]
        if day.day_type not in ELIGIBLE_DAY_TYPES:
            continue
        if revision not in day.tasks:
            updated = day.copy()
            updated.tasks.append(revision)
            result[i] = updated.with_completion_synced()
            logger.info("Scheduled remediation for %r on %s (score %d)", task, day.date, score)
        return result

    logger.info("No study day left for remediation of %r; skipped", task)
    return result
