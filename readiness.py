"""
Progress Reconciler: subject readiness derived from schedule + syllabus.

Nothing computed here is persisted. Every call walks the schedule again so the
numbers can never drift from the mastery ledger.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from mastery import MASTERED, MAX_SCORE, effective_weight, mastery_state
from models import ScheduleDay, SyllabusSubject
from topic_matcher import iter_matched_tasks

WEAK_COVERAGE_PCT = 50
VALIDATION_GAP_PCT = 10
LOW_MASTERY_COUNT = 5
COVERAGE_WEIGHT = 0.7
QUIZ_WEIGHT = 0.3


@dataclass
class SubjectReadiness:
    subject: str
    total_tasks: int = 0
    completed_tasks: int = 0
    mastered_count: int = 0
    coverage_pct: int = 0
    weighted_marks_pct: int = 0
    avg_quiz_pct: int = 0
    readiness_pct: int = 0

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "masteredCount": self.mastered_count,
            "coveragePct": self.coverage_pct,
            "weightedMarksPct": self.weighted_marks_pct,
            "avgQuizPct": self.avg_quiz_pct,
            "readinessPct": self.readiness_pct,
        }


@dataclass
class ReadinessReport:
    per_subject: list[SubjectReadiness] = field(default_factory=list)
    weak_subjects: list[SubjectReadiness] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    overall_completion_pct: int = 0
    mastered_total: int = 0

    def subject(self, name: str) -> Optional[SubjectReadiness]:
        return next((s for s in self.per_subject if s.subject == name), None)

    def to_dict(self) -> dict:
        return {
            "perSubject": [s.to_dict() for s in self.per_subject],
            "weakSubjects": [s.subject for s in self.weak_subjects],
            "insights": list(self.insights),
            "overallCompletionPct": self.overall_completion_pct,
            "masteredTotal": self.mastered_total,
        }


def _pct(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return max(0, min(100, round(part / whole * 100)))


def compute_readiness(
    schedule: Sequence[ScheduleDay], syllabus: Sequence[SyllabusSubject]
) -> ReadinessReport:
    stats = {s.subject: SubjectReadiness(subject=s.subject) for s in syllabus}
    weight_total: dict[str, float] = {name: 0.0 for name in stats}
    weight_earned: dict[str, float] = {name: 0.0 for name in stats}
    quiz_total: dict[str, float] = {name: 0.0 for name in stats}
    quiz_count: dict[str, int] = {name: 0 for name in stats}

    for day, task, subject, topic in iter_matched_tasks(schedule, syllabus):
        entry = stats[subject.subject]
        score = day.validation_scores.get(task)
        entry.total_tasks += 1
        weight_total[subject.subject] += topic.weight
        if mastery_state(score) == MASTERED:
            entry.mastered_count += 1
        if task in day.completed_tasks:
            entry.completed_tasks += 1
            weight_earned[subject.subject] += effective_weight(topic.weight, score)
            if score and score > 0:
                quiz_total[subject.subject] += score / MAX_SCORE * 100
                quiz_count[subject.subject] += 1

    for name, entry in stats.items():
        entry.coverage_pct = _pct(entry.completed_tasks, entry.total_tasks)
        entry.weighted_marks_pct = _pct(weight_earned[name], weight_total[name])
        if quiz_count[name]:
            entry.avg_quiz_pct = max(0, min(100, round(quiz_total[name] / quiz_count[name])))
        raw_coverage = entry.completed_tasks / entry.total_tasks * 100 if entry.total_tasks else 0
        entry.readiness_pct = max(0, min(100, round(
            raw_coverage * COVERAGE_WEIGHT + entry.avg_quiz_pct * QUIZ_WEIGHT
        )))

    per_subject = list(stats.values())
    weak = sorted(
        (s for s in per_subject if s.total_tasks > 0 and s.coverage_pct < WEAK_COVERAGE_PCT),
        key=lambda s: s.coverage_pct,
    )
    total_tasks = sum(len(d.tasks) for d in schedule)
    completed = sum(len(d.completed_tasks) for d in schedule)
    mastered_total = sum(
        1 for d in schedule for t in d.tasks
        if mastery_state(d.validation_scores.get(t)) == MASTERED
    )
    report = ReadinessReport(
        per_subject=per_subject,
        weak_subjects=weak,
        overall_completion_pct=_pct(completed, total_tasks),
        mastered_total=mastered_total,
    )
    report.insights = mentor_insights(report)
    return report


def mentor_insights(report: ReadinessReport) -> list[str]:
    """Plain-language nudges from simple threshold rules."""
    insights = []
    for entry in report.per_subject:
        if entry.coverage_pct - entry.weighted_marks_pct > VALIDATION_GAP_PCT:
            insights.append(
                f"{entry.subject}: coverage without validation. {entry.coverage_pct}% of tasks "
                f"are done but only {entry.weighted_marks_pct}% of the marks are backed by quiz scores."
            )
    if report.weak_subjects:
        weakest = report.weak_subjects[0]
        insights.append(
            f"Weakest subject: {weakest.subject} at {weakest.coverage_pct}% coverage. "
            f"Give it priority this week."
        )
    if report.mastered_total < LOW_MASTERY_COUNT:
        insights.append(
            f"Only {report.mastered_total} topics mastered so far. "
            f"Take the quiz after each task and aim for 18/20."
        )
    return insights


def pending_tasks(schedule: Iterable[ScheduleDay], today: date) -> list[dict]:
    """Incomplete tasks from days before ``today``, oldest first."""
    today_iso = today.isoformat()
    return [
        {"dayId": day.id, "date": day.date, "task": task}
        for day in sorted(schedule, key=lambda d: d.date)
        if day.date < today_iso
        for task in day.tasks
        if task not in day.completed_tasks
    ]
