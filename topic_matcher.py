"""
Topic Matcher: maps a free-form schedule task onto a syllabus subject.

A task belongs to a subject when any of the subject's topic names appears
(case-insensitively) inside the task text. Syllabi for these exams overlap
("Economy" appears under both Geography and Polity in some boards), so when a
task matches topics in two subjects the first subject in syllabus order wins.
The order dependence is deliberate and stable; no semantic disambiguation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Optional

from models import ScheduleDay, SyllabusSubject, SyllabusTopic


def match_topic(
    task_text: str, syllabus: Iterable[SyllabusSubject]
) -> Optional[tuple[SyllabusSubject, SyllabusTopic]]:
    """Return the first (subject, topic) whose topic name occurs in the task."""
    task_lower = (task_text or "").lower()
    if not task_lower:
        return None
    for subject in syllabus:
        for topic in subject.topics:
            name = topic.name.strip().lower()
            if name and name in task_lower:
                return subject, topic
    return None


def match_subject(task_text: str, syllabus: Iterable[SyllabusSubject]) -> Optional[SyllabusSubject]:
    match = match_topic(task_text, syllabus)
    return match[0] if match else None


def iter_matched_tasks(
    schedule: Iterable[ScheduleDay], syllabus: Iterable[SyllabusSubject]
) -> Iterator[tuple[ScheduleDay, str, SyllabusSubject, SyllabusTopic]]:
    """Yield every (day, task, subject, topic) for tasks that match the syllabus."""
    subjects = list(syllabus)
    for day in schedule:
        for task in day.tasks:
            match = match_topic(task, subjects)
            if match:
                yield day, task, match[0], match[1]
