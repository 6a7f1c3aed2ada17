"""
AppStore: the single owner of a learner's AppState.

All mutation goes through ``dispatch(reducer, ...)``. Reducers are pure and
return ``(new_state, info)``; subscribers (persistence, mostly) run after each
state change. Async work is bracketed by ``begin``/``finish`` so a response that
lost the race to a newer request for the same concern can be discarded.

Usage:
    store = AppStore(repository.load(email))
    store.subscribe(lambda state: repository.save(email, state))
    info = store.dispatch(reducers.mark_hard, "Polity - Preamble")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from models import AppState

logger = logging.getLogger(__name__)

Subscriber = Callable[[AppState], None]

SCHEDULE = "schedule"
QUIZ = "quiz"
CURRENT_AFFAIRS = "current_affairs"
MOTIVATION = "motivation"


class RequestTracker:
    """Process-wide monotonic request ids per (learner, concern).

    Shared by every AppStore built for the same learner, so a response that
    lost the race to a newer request from another HTTP call is still spotted.
    """

    def __init__(self) -> None:
        self._ids: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def next_id(self, scope: str, concern: str) -> int:
        with self._lock:
            request_id = self._ids.get((scope, concern), 0) + 1
            self._ids[(scope, concern)] = request_id
            return request_id

    def latest(self, scope: str, concern: str) -> int:
        with self._lock:
            return self._ids.get((scope, concern), 0)


class RedisRequestTracker:
    """RequestTracker backed by Redis INCR, shared with RQ workers."""

    def __init__(self, redis_client, prefix: str = "planner:request:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, scope: str, concern: str) -> str:
        return f"{self._prefix}{scope}:{concern}"

    def next_id(self, scope: str, concern: str) -> int:
        return int(self._redis.incr(self._key(scope, concern)))

    def latest(self, scope: str, concern: str) -> int:
        return int(self._redis.get(self._key(scope, concern)) or 0)


class AppStore:
    def __init__(self, state: AppState | None = None, tracker=None, scope: str = "") -> None:
        self._state = state or AppState()
        self._subscribers: list[Subscriber] = []
        self._tracker = tracker or RequestTracker()
        self._scope = scope
        self.loading: dict[str, bool] = {}

    @property
    def state(self) -> AppState:
        return self._state

    def reload(self, state: AppState) -> None:
        """Adopt ``state`` read back from storage. Subscribers are not notified."""
        self._state = state

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register ``fn`` to run after every state change. Returns an unsubscribe callable."""
        self._subscribers.append(fn)

        def _unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return _unsubscribe

    def dispatch(self, reducer: Callable[..., tuple[AppState, dict]], *args: Any, **kwargs: Any) -> dict:
        """Run ``reducer(state, *args, **kwargs)`` and commit its result.

        If the reducer raises, the current state is left untouched.
        """
        new_state, info = reducer(self._state, *args, **kwargs)
        if new_state is not self._state:
            self._state = new_state
            self._notify()
        return info

    def _notify(self) -> None:
        for fn in list(self._subscribers):
            try:
                fn(self._state)
            except Exception:
                # persistence is fire-and-forget; the in-memory state stays authoritative
                logger.exception("State subscriber %r failed", fn)

    # ── In-flight request tracking ─────────────────────────

    def begin(self, concern: str) -> int:
        """Mark ``concern`` as loading and return a new request id for it."""
        request_id = self._tracker.next_id(self._scope, concern)
        self.loading[concern] = True
        return request_id

    def is_latest(self, concern: str, request_id: int) -> bool:
        return self._tracker.latest(self._scope, concern) == request_id

    def finish(self, concern: str, request_id: int) -> bool:
        """Close a request. Returns False when a newer request superseded it."""
        self.loading[concern] = False
        if not self.is_latest(concern, request_id):
            logger.info("Discarding stale %s response (request %d)", concern, request_id)
            return False
        return True

    def is_loading(self, concern: str) -> bool:
        return self.loading.get(concern, False)
