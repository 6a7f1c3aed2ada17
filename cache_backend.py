"""Key/value store for generated quiz content, on disk or in Redis.

The quiz bank favours availability over freshness: entries never expire, so a
topic generated once can always be served again, even when the AI is down.

Usage:
    from cache_backend import init_cache, get_cache
    init_cache(app)          # called once in create_app()
    cache = get_cache()
    cache.set("quiz:en:polity", questions)
    questions = cache.get("quiz:en:polity")
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...
    def clear(self) -> None: ...
    def __contains__(self, key: str) -> bool: ...


# ── JSON file implementation ──────────────────────────────

class JsonFileCache:
    """A single JSON object on disk, read and rewritten whole on every write.

    There is no file locking: two processes writing at once race and the last
    writer wins. That is acceptable for one user in one tab.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Cache file %s unreadable (%s); starting empty", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Any | None:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        self._save({})

    def keys(self) -> list[str]:
        return list(self._load())

    def __contains__(self, key: str) -> bool:
        return key in self._load()


# ── Redis implementation ──────────────────────────────────

class RedisCache:
    """Wraps redis.Redis with graceful error handling."""

    def __init__(self, redis_client, prefix: str = "planner:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        try:
            raw = self._redis.get(self._key(key))
        except Exception as e:
            logger.warning("Redis GET error (key=%s): %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw.decode() if isinstance(raw, bytes) else raw

    def set(self, key: str, value: Any) -> None:
        try:
            self._redis.set(self._key(key), json.dumps(value, ensure_ascii=False))
        except Exception as e:
            logger.warning("Redis SET error (key=%s): %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except Exception as e:
            logger.warning("Redis DELETE error (key=%s): %s", key, e)

    def clear(self) -> None:
        try:
            keys = list(self._redis.scan_iter(f"{self._prefix}*"))
            if keys:
                self._redis.delete(*keys)
        except Exception as e:
            logger.warning("Redis CLEAR error: %s", e)

    def __contains__(self, key: str) -> bool:
        try:
            return bool(self._redis.exists(self._key(key)))
        except Exception as e:
            logger.warning("Redis EXISTS error (key=%s): %s", key, e)
            return False


# ── Module-level singleton ────────────────────────────────

_cache: CacheBackend | None = None


def init_cache(app) -> CacheBackend:
    """Initialize the cache backend. Call once from create_app()."""
    global _cache

    redis_url = app.config.get("REDIS_URL", "")
    if redis_url:
        import redis
        try:
            client = redis.Redis.from_url(redis_url, decode_responses=False)
            client.ping()
            _cache = RedisCache(client)
            app.logger.info("Quiz cache: Redis (%s)", redis_url)
            return _cache
        except redis.RedisError as e:
            app.logger.warning("Redis connection failed (%s); using the JSON file cache.", e)

    _cache = JsonFileCache(app.config["QUIZ_CACHE_PATH"])
    app.logger.info("Quiz cache: JSON file (%s)", app.config["QUIZ_CACHE_PATH"])
    return _cache


def get_cache() -> CacheBackend:
    """Return the active cache backend."""
    if _cache is None:
        raise RuntimeError("Cache not initialised; call init_cache(app) first.")
    return _cache
