"""
Planner data model: syllabus, schedule days, exam config, gamification and AppState.

Everything round-trips through the camelCase JSON the web client stores, so each
type has a ``to_dict`` / ``from_dict`` pair. ``from_dict`` is tolerant of missing
fields (stored state predates some of them) and never trusts the AI's shapes;
``parse_ai_*`` helpers do the strict validation for freshly generated content.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Optional

from errors import MalformedResponseError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MARKS_WEIGHT = 5
LANGUAGES = ("en", "ta")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DayType(str, Enum):
    STUDY = "STUDY"
    REVISION = "REVISION"
    MOCK_TEST = "MOCK_TEST"
    REST = "REST"

    @classmethod
    def parse(cls, value: Any) -> DayType:
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.STUDY


def normalize_date(value: Any) -> str:
    """Return an ISO ``YYYY-MM-DD`` string or raise ValueError."""
    if isinstance(value, date):
        return value.isoformat()
    text = str(value or "").strip()[:10]
    if not _DATE_RE.match(text):
        raise ValueError(f"not an ISO date: {value!r}")
    date.fromisoformat(text)
    return text


# ── Syllabus ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SyllabusTopic:
    name: str
    subtopics: tuple[str, ...] = ()
    weightage: str = "Medium"  # "High"|"Medium"|"Low"
    marks_weight: Optional[int] = None

    @property
    def weight(self) -> int:
        if self.marks_weight is None or self.marks_weight <= 0:
            return DEFAULT_MARKS_WEIGHT
        return self.marks_weight

    def to_dict(self) -> dict:
        data = {"name": self.name, "subtopics": list(self.subtopics), "weightage": self.weightage}
        if self.marks_weight is not None:
            data["marksWeight"] = self.marks_weight
        return data

    @staticmethod
    def from_dict(data: Any) -> SyllabusTopic:
        if isinstance(data, str):
            return SyllabusTopic(name=data.strip())
        if not isinstance(data, dict):
            raise ValueError("topic must be an object or a string")
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("topic has no name")
        subtopics = data.get("subtopics") or []
        if not isinstance(subtopics, list):
            subtopics = []
        weight = data.get("marksWeight")
        try:
            weight = int(weight) if weight is not None else None
        except (TypeError, ValueError):
            weight = None
        weightage = str(data.get("weightage") or "Medium").capitalize()
        if weightage not in ("High", "Medium", "Low"):
            weightage = "Medium"
        return SyllabusTopic(
            name=name,
            subtopics=tuple(str(s) for s in subtopics if str(s).strip()),
            weightage=weightage,
            marks_weight=weight,
        )


@dataclass(frozen=True)
class SyllabusSubject:
    subject: str
    topics: tuple[SyllabusTopic, ...] = ()

    def to_dict(self) -> dict:
        return {"subject": self.subject, "topics": [t.to_dict() for t in self.topics]}

    @staticmethod
    def from_dict(data: Any) -> SyllabusSubject:
        if not isinstance(data, dict):
            raise ValueError("subject must be an object")
        name = str(data.get("subject") or data.get("subjectName") or "").strip()
        if not name:
            raise ValueError("subject has no name")
        raw_topics = data.get("topics") or []
        if not isinstance(raw_topics, list):
            raise ValueError(f"topics of {name!r} must be a list")
        topics = []
        for raw in raw_topics:
            try:
                topics.append(SyllabusTopic.from_dict(raw))
            except ValueError:
                continue
        return SyllabusSubject(subject=name, topics=tuple(topics))


def parse_syllabus(data: Any) -> list[SyllabusSubject]:
    """Strictly parse a syllabus list; raises ValidationError on a bad shape."""
    if not isinstance(data, list) or not data:
        raise ValidationError("Syllabus must be a non-empty list of subjects.")
    try:
        return [SyllabusSubject.from_dict(item) for item in data]
    except ValueError as exc:
        raise ValidationError(f"Invalid syllabus: {exc}") from exc


# ── Schedule ───────────────────────────────────────────────────────────

@dataclass
class ScheduleDay:
    id: str
    date: str
    day_type: DayType = DayType.STUDY
    tasks: list[str] = field(default_factory=list)
    completed_tasks: list[str] = field(default_factory=list)
    validation_scores: dict[str, int] = field(default_factory=dict)
    is_completed: bool = False
    notes: str = ""

    def copy(self, **changes: Any) -> ScheduleDay:
        """Shallow-copy with fresh containers so callers can mutate the result."""
        base = replace(
            self,
            tasks=list(self.tasks),
            completed_tasks=list(self.completed_tasks),
            validation_scores=dict(self.validation_scores),
        )
        return replace(base, **changes) if changes else base

    def with_completion_synced(self) -> ScheduleDay:
        """Drop completions for unknown tasks and recompute ``is_completed``."""
        completed = [t for t in dict.fromkeys(self.completed_tasks) if t in self.tasks]
        return self.copy(
            completed_tasks=completed,
            is_completed=len(completed) == len(self.tasks),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "date": self.date,
            "type": self.day_type.value,
            "tasks": list(self.tasks),
            "completedTasks": list(self.completed_tasks),
            "validationScores": dict(self.validation_scores),
            "isCompleted": self.is_completed,
        }
        if self.notes:
            data["notes"] = self.notes
        return data

    @staticmethod
    def from_dict(data: Any) -> ScheduleDay:
        if not isinstance(data, dict):
            raise ValueError("schedule day must be an object")
        day_date = normalize_date(data.get("date"))
        tasks = data.get("tasks") or []
        if not isinstance(tasks, list):
            raise ValueError(f"tasks for {day_date} must be a list")
        scores_raw = data.get("validationScores")
        if scores_raw is None:
            scores_raw = data.get("mcqsAttempted") or {}
        scores: dict[str, int] = {}
        if isinstance(scores_raw, dict):
            for task, score in scores_raw.items():
                try:
                    scores[str(task)] = int(score)
                except (TypeError, ValueError):
                    continue
        raw_id = data.get("id")
        day = ScheduleDay(
            id=str(raw_id) if raw_id not in (None, "") else f"day-{day_date}",
            date=day_date,
            day_type=DayType.parse(data.get("type") or data.get("dayType")),
            tasks=[str(t) for t in tasks if str(t).strip()],
            completed_tasks=[str(t) for t in (data.get("completedTasks") or [])],
            validation_scores=scores,
            notes=str(data.get("notes") or ""),
        )
        return day.with_completion_synced()


def unique_days(days: Iterable[ScheduleDay]) -> list[ScheduleDay]:
    """Keep the first day per date and give repeated ids a ``day-{date}`` id."""
    unique: list[ScheduleDay] = []
    seen_dates: set[str] = set()
    seen_ids: set[str] = set()
    for day in days:
        if day.date in seen_dates:
            logger.warning("Dropping stored day %s: date %s already scheduled", day.id, day.date)
            continue
        if day.id in seen_ids:
            new_id = f"day-{day.date}"
            suffix = 1
            while new_id in seen_ids:
                suffix += 1
                new_id = f"day-{day.date}-{suffix}"
            day = day.copy(id=new_id)
        unique.append(day)
        seen_dates.add(day.date)
        seen_ids.add(day.id)
    return unique


def parse_ai_schedule(data: Any) -> list[ScheduleDay]:
    """Validate a generated schedule block; raise MalformedResponseError if unusable."""
    if isinstance(data, dict):
        for key in ("schedule", "days", "data"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise MalformedResponseError("AI schedule was not a list of days.")
    days = []
    for item in data:
        try:
            day = ScheduleDay.from_dict(item)
        except ValueError:
            continue
        days.append(day.copy(completed_tasks=[], validation_scores={}, is_completed=False))
    if data and not days:
        raise MalformedResponseError("AI schedule contained no valid days.")
    return days


# ── Exam configuration ────────────────────────────────────────────────

@dataclass(frozen=True)
class ExamConfig:
    exam_name: str
    exam_date: str
    study_hours_per_day: float = 6
    language: str = "en"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    preferred_methods: tuple[str, ...] = ()
    specific_preferences: str = ""
    theme: str = "light"

    def to_dict(self) -> dict:
        data = {
            "examName": self.exam_name,
            "examDate": self.exam_date,
            "studyHoursPerDay": self.study_hours_per_day,
            "language": self.language,
            "preferredMethods": list(self.preferred_methods),
            "specificPreferences": self.specific_preferences,
            "theme": self.theme,
        }
        if self.start_date:
            data["startDate"] = self.start_date
        if self.end_date:
            data["endDate"] = self.end_date
        return data

    @staticmethod
    def from_dict(data: Any) -> ExamConfig:
        """Parse and validate user-supplied exam settings."""
        if not isinstance(data, dict):
            raise ValidationError("Exam configuration is required.")
        exam_name = str(data.get("examName") or "").strip()
        if not exam_name:
            raise ValidationError("Exam name is required.")
        try:
            exam_date = normalize_date(data.get("examDate"))
            start = normalize_date(data["startDate"]) if data.get("startDate") else None
            end = normalize_date(data["endDate"]) if data.get("endDate") else None
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {exc}") from exc
        try:
            hours = float(data.get("studyHoursPerDay", 6))
        except (TypeError, ValueError):
            raise ValidationError("Study hours per day must be a number.")
        if hours <= 0 or hours > 24:
            raise ValidationError("Study hours per day must be between 0 and 24.")
        language = data.get("language") or "en"
        if language not in LANGUAGES:
            raise ValidationError(f"Unsupported language: {language}")
        methods = data.get("preferredMethods") or []
        return ExamConfig(
            exam_name=exam_name,
            exam_date=exam_date,
            study_hours_per_day=hours,
            language=language,
            start_date=start,
            end_date=end,
            preferred_methods=tuple(str(m) for m in methods) if isinstance(methods, list) else (),
            specific_preferences=str(data.get("specificPreferences") or ""),
            theme="dark" if data.get("theme") == "dark" else "light",
        )


# ── Current affairs ───────────────────────────────────────────────────

CURRENT_AFFAIR_CATEGORIES = ("STATE", "NATIONAL", "INTERNATIONAL", "ECONOMY", "SCIENCE", "GENERAL")


@dataclass(frozen=True)
class GroundingSource:
    uri: str
    title: str

    def to_dict(self) -> dict:
        return {"uri": self.uri, "title": self.title}


@dataclass(frozen=True)
class CurrentAffairItem:
    id: str
    title: str
    summary: str
    category: str
    date: str
    sources: tuple[GroundingSource, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "category": self.category,
            "date": self.date,
            "sources": [s.to_dict() for s in self.sources],
        }

    @staticmethod
    def from_dict(data: dict) -> CurrentAffairItem:
        return CurrentAffairItem(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            summary=str(data.get("summary", "")),
            category=str(data.get("category", "GENERAL")),
            date=str(data.get("date", "")),
            sources=tuple(
                GroundingSource(uri=str(s.get("uri", "")), title=str(s.get("title", "")))
                for s in data.get("sources", []) if isinstance(s, dict)
            ),
        )


# ── Gamification ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class GamificationState:
    xp: int = 0
    badges: dict[str, str] = field(default_factory=dict)  # badge id -> unlocked at (ISO)
    streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None
    streak_history: tuple[str, ...] = ()
    awarded: tuple[str, ...] = ()  # "task:{day id}:{task}" and "day:{day id}" keys already paid

    @property
    def level(self) -> int:
        return self.xp // 100 + 1

    def to_dict(self) -> dict:
        return {
            "xp": self.xp,
            "level": self.level,
            "badges": [{"id": b, "unlockedDate": at} for b, at in self.badges.items()],
            "streak": self.streak,
            "longestStreak": self.longest_streak,
            "lastUpdateDate": self.last_activity_date,
            "streakHistory": list(self.streak_history),
            "xpAwarded": list(self.awarded),
        }

    @staticmethod
    def from_dict(data: dict) -> GamificationState:
        badges: dict[str, str] = {}
        for badge in data.get("badges") or []:
            if isinstance(badge, dict) and badge.get("id"):
                badges[str(badge["id"])] = str(badge.get("unlockedDate") or "")
            elif isinstance(badge, str):
                badges[badge] = ""
        return GamificationState(
            xp=max(0, int(data.get("xp") or 0)),
            badges=badges,
            streak=max(0, int(data.get("streak") or 0)),
            longest_streak=max(0, int(data.get("longestStreak") or 0)),
            last_activity_date=data.get("lastUpdateDate"),
            streak_history=tuple(data.get("streakHistory") or ()),
            awarded=tuple(str(k) for k in data.get("xpAwarded") or ()),
        )


# ── Aggregate state ───────────────────────────────────────────────────

@dataclass(frozen=True)
class AppState:
    config: Optional[ExamConfig] = None
    syllabus: tuple[SyllabusSubject, ...] = ()
    schedule: tuple[ScheduleDay, ...] = ()
    hard_topics: tuple[str, ...] = ()
    gamification: GamificationState = field(default_factory=GamificationState)
    motivation: Optional[str] = None
    current_affairs: tuple[CurrentAffairItem, ...] = ()
    question_papers_content: str = ""
    mentor_insights: tuple[str, ...] = ()
    setup_mode: Optional[str] = None  # "ai"|"manual"|None

    @property
    def has_schedule(self) -> bool:
        return bool(self.schedule)

    def to_dict(self) -> dict:
        data = {
            "user": self.config.to_dict() if self.config else None,
            "syllabus": [s.to_dict() for s in self.syllabus] or None,
            "schedule": [d.to_dict() for d in self.schedule] or None,
            "hardTopics": list(self.hard_topics),
            "motivation": self.motivation,
            "currentAffairs": [c.to_dict() for c in self.current_affairs],
            "questionPapersContent": self.question_papers_content,
            "mentorInsights": list(self.mentor_insights),
            "setupMode": self.setup_mode,
        }
        data.update(self.gamification.to_dict())
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> AppState:
        """Hydrate stored state; malformed sections fall back to empty defaults."""
        if not data:
            return AppState()
        config = None
        if data.get("user"):
            try:
                config = ExamConfig.from_dict(data["user"])
            except ValidationError:
                config = None
        syllabus: list[SyllabusSubject] = []
        for item in data.get("syllabus") or []:
            try:
                syllabus.append(SyllabusSubject.from_dict(item))
            except ValueError:
                continue
        schedule: list[ScheduleDay] = []
        for item in data.get("schedule") or []:
            try:
                schedule.append(ScheduleDay.from_dict(item))
            except ValueError:
                continue
        schedule = unique_days(schedule)
        return AppState(
            config=config,
            syllabus=tuple(syllabus),
            schedule=tuple(schedule),
            hard_topics=tuple(data.get("hardTopics") or ()),
            gamification=GamificationState.from_dict(data),
            motivation=data.get("motivation"),
            current_affairs=tuple(
                CurrentAffairItem.from_dict(c) for c in data.get("currentAffairs") or []
                if isinstance(c, dict)
            ),
            question_papers_content=str(data.get("questionPapersContent") or ""),
            mentor_insights=tuple(data.get("mentorInsights") or ()),
            setup_mode=data.get("setupMode"),
        )
