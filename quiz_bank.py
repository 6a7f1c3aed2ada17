"""
Quiz Bank: cache-first quiz generation with failover.

Lookup order for a topic:
  1. cached questions for (language, normalised topic)
  2. fresh generation, written back to the cache on success
  3. on any generation failure: the cache again (another worker may have
     filled it meanwhile), then the static generic question bank

The learner always gets a quiz; stale or generic content beats an error page.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ai_resilience import GenerationService
from cache_backend import CacheBackend
from errors import MalformedResponseError, PlannerError
from prompts import QUIZ_PROMPT, language_name
from remediation import REMEDIATION_PREFIX, is_remediation_task

logger = logging.getLogger(__name__)

QUIZ_SIZE = 10
QUIZ_MODEL_TIER = "standard"

SOURCE_CACHE = "cache"
SOURCE_GENERATED = "generated"
SOURCE_STALE = "stale_cache"
SOURCE_GENERIC = "generic"

_SLOT_RE = re.compile(r"^slot\s*\d+\s*:\s*", re.IGNORECASE)
_DURATION_RE = re.compile(r"\(\s*[\d.]+\s*(hrs?|hours?|mins?|minutes?)\s*\)", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")

GENERIC_QUESTIONS: list[dict] = [
    {
        "question": "Which study habit best improves long-term retention of a topic?",
        "options": ["Re-reading notes once", "Spaced revision with self-testing",
                    "Highlighting the textbook", "Studying only the night before"],
        "correctAnswer": 1,
        "explanation": "Spaced repetition combined with active recall is the most reliable way to retain material.",
    },
    {
        "question": "When a topic scores below 50% in a quiz, the best next step is to:",
        "options": ["Skip it for now", "Schedule a focused revision session",
                    "Move to a new subject", "Retake the quiz immediately without review"],
        "correctAnswer": 1,
        "explanation": "A focused revision session targets the gap before it compounds.",
    },
    {
        "question": "In an 'Assertion and Reason' question, if both statements are true but the reason does not explain the assertion, the answer is:",
        "options": ["Both true, reason explains assertion", "Both true, reason does not explain assertion",
                    "Assertion true, reason false", "Assertion false, reason true"],
        "correctAnswer": 1,
        "explanation": "Both statements can be individually correct without a causal link between them.",
    },
    {
        "question": "What is the main purpose of a full-length mock test?",
        "options": ["To learn new topics", "To practise time management under exam conditions",
                    "To replace revision", "To memorise answers"],
        "correctAnswer": 1,
        "explanation": "Mock tests build pacing and stamina and reveal weak areas under realistic conditions.",
    },
    {
        "question": "Which topics deserve priority when time before the exam is short?",
        "options": ["Low-weightage topics", "Topics already mastered",
                    "High-weightage topics with low mastery", "Random topics"],
        "correctAnswer": 2,
        "explanation": "High-weightage, low-mastery topics give the largest marks gain per hour.",
    },
]


@dataclass
class QuizResult:
    topic: str
    questions: list[dict] = field(default_factory=list)
    source: str = SOURCE_GENERATED

    def to_dict(self) -> dict:
        return {"topic": self.topic, "questions": self.questions, "source": self.source}


def normalize_topic(text: str) -> str:
    """Reduce a task string to a stable cache key component."""
    topic = (text or "").strip()
    if is_remediation_task(topic):
        topic = topic[len(REMEDIATION_PREFIX):]
    topic = _SLOT_RE.sub("", topic)
    topic = _DURATION_RE.sub("", topic)
    return _SPACE_RE.sub(" ", topic).strip().lower()


def cache_key(language: str, topic: str) -> str:
    return f"quiz:{language}:{normalize_topic(topic)}"


def parse_questions(data: Any) -> list[dict]:
    """Keep only well-formed MCQs; raise MalformedResponseError if none survive."""
    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise MalformedResponseError("Quiz response was not a list of questions.")
    questions = []
    for item in data:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        options = item.get("options")
        if not question or not isinstance(options, list) or len(options) < 2:
            continue
        try:
            answer = int(item.get("correctAnswer"))
        except (TypeError, ValueError):
            continue
        if not 0 <= answer < len(options):
            continue
        questions.append({
            "question": question,
            "options": [str(o) for o in options],
            "correctAnswer": answer,
            "explanation": str(item.get("explanation") or ""),
        })
    if not questions:
        raise MalformedResponseError("Quiz response contained no valid questions.")
    return questions


class QuizBank:
    """Serves quizzes per topic, generating and caching on demand."""

    def __init__(self, cache: CacheBackend, generation: GenerationService) -> None:
        self.cache = cache
        self.generation = generation

    def is_cached(self, topic: str, language: str = "en") -> bool:
        return cache_key(language, topic) in self.cache

    def get_quiz(self, topic: str, language: str = "en", count: int = QUIZ_SIZE) -> QuizResult:
        key = cache_key(language, topic)
        cached = self.cache.get(key)
        if cached:
            logger.debug("Quiz cache hit for %s", key)
            return QuizResult(topic=topic, questions=cached, source=SOURCE_CACHE)

        try:
            questions = self.generate(topic, language, count)
        except PlannerError as exc:
            logger.warning("Quiz generation failed for %r (%s); failing over", topic, exc.message)
            return self._failover(topic, key)

        self.cache.set(key, questions)
        return QuizResult(topic=topic, questions=questions, source=SOURCE_GENERATED)

    def generate(self, topic: str, language: str = "en", count: int = QUIZ_SIZE) -> list[dict]:
        prompt = QUIZ_PROMPT.format(
            count=count, topic=normalize_topic(topic) or topic, language=language_name(language),
        )
        data, _ = self.generation.generate_json(QUIZ_MODEL_TIER, prompt)
        return parse_questions(data)[:count]

    def _failover(self, topic: str, key: str) -> QuizResult:
        stale = self.cache.get(key)
        if stale:
            return QuizResult(topic=topic, questions=stale, source=SOURCE_STALE)
        return QuizResult(topic=topic, questions=[dict(q) for q in GENERIC_QUESTIONS], source=SOURCE_GENERIC)
