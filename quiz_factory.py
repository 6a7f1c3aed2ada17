"""
Quiz Factory: pre-generates quizzes for every syllabus topic in the background.

Topics wait in a process-local queue; each scheduler tick generates one quiz,
so the generation service is never hit in a burst. The queue does not survive
a restart.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable
from typing import Optional, Protocol

from models import SyllabusSubject
from quiz_bank import SOURCE_GENERATED, QuizBank, normalize_topic

logger = logging.getLogger(__name__)


class TopicQueue(Protocol):
    def push(self, item: tuple[str, str]) -> bool: ...
    def pop(self) -> Optional[tuple[str, str]]: ...
    def __len__(self) -> int: ...


class InMemoryTopicQueue:
    """FIFO of (topic, language) pairs with duplicate suppression."""

    def __init__(self) -> None:
        self._items: deque[tuple[str, str]] = deque()
        self._keys: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def push(self, item: tuple[str, str]) -> bool:
        topic, lang = item
        key = (normalize_topic(topic), lang)
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            self._items.append(item)
            return True

    def pop(self) -> Optional[tuple[str, str]]:
        with self._lock:
            if not self._items:
                return None
            topic, lang = self._items.popleft()
            self._keys.discard((normalize_topic(topic), lang))
            return topic, lang

    def __len__(self) -> int:
        return len(self._items)


def syllabus_topics(syllabus: Iterable[SyllabusSubject]) -> list[str]:
    return [f"{s.subject} - {t.name}" for s in syllabus for t in s.topics]


class QuizFactory:
    def __init__(self, bank: QuizBank, queue: Optional[TopicQueue] = None) -> None:
        self.bank = bank
        self.queue = queue if queue is not None else InMemoryTopicQueue()
        self.processed = 0
        self.failed = 0
        self.last_topic: Optional[str] = None

    def enqueue_topics(self, topics: Iterable[str], language: str = "en") -> int:
        """Queue topics that are not cached yet. Returns how many were added."""
        added = 0
        for topic in topics:
            if not topic or self.bank.is_cached(topic, language):
                continue
            if self.queue.push((topic, language)):
                added += 1
        if added:
            logger.info("Quiz factory: queued %d topic(s) (%s)", added, language)
        return added

    def enqueue_syllabus(self, syllabus: Iterable[SyllabusSubject], language: str = "en") -> int:
        return self.enqueue_topics(syllabus_topics(syllabus), language)

    def process_next(self) -> Optional[str]:
        """Generate the quiz for one queued topic. Returns the topic, or None if idle."""
        item = self.queue.pop()
        if item is None:
            return None
        topic, language = item
        self.last_topic = topic
        result = self.bank.get_quiz(topic, language)
        if result.source == SOURCE_GENERATED:
            self.processed += 1
        else:
            self.failed += 1
            logger.info("Quiz factory: %r served from %s", topic, result.source)
        return topic

    def status(self) -> dict:
        return {
            "pending": len(self.queue),
            "processed": self.processed,
            "failed": self.failed,
            "lastTopic": self.last_topic,
        }
