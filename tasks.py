"""Background jobs (schedule extension) via RQ with synchronous fallback.

When REDIS_URL is set and RQ is reachable, jobs go to the ``planner`` queue for
an ``rq worker planner`` process. Otherwise they run synchronously in the
calling thread.

Usage:
    from tasks import enqueue, is_async_available
    if is_async_available():
        enqueue(extend_schedule_job, email, job_id=f"extend:{user_key(email)}")
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

QUEUE_NAME = "planner"
JOB_TIMEOUT_SECONDS = 600  # a full-horizon extension makes several AI calls

_queue = None


def init_tasks(app) -> None:
    """Connect the RQ queue if Redis is configured. Call once from create_app()."""
    global _queue
    _queue = None

    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        app.logger.info("Task backend: synchronous (no REDIS_URL)")
        return

    import redis
    from rq import Queue

    try:
        conn = redis.Redis.from_url(redis_url)
        conn.ping()
    except redis.RedisError as e:
        app.logger.warning("Task backend: synchronous (Redis error: %s)", e)
        return
    _queue = Queue(
        app.config.get("TASK_QUEUE_NAME", QUEUE_NAME),
        connection=conn,
        default_timeout=app.config.get("TASK_JOB_TIMEOUT", JOB_TIMEOUT_SECONDS),
    )
    app.logger.info("Task backend: RQ queue %r (%s)", _queue.name, redis_url)


ACTIVE_STATUSES = ("queued", "started", "deferred", "scheduled")


def enqueue(func, *args, job_id=None, **kwargs):
    """Push a job to RQ if available, else call synchronously.

    With ``job_id`` at most one such job waits or runs at a time; None is
    returned while an earlier one is still active. Otherwise returns the RQ
    Job object or the function's return value.
    """
    if _queue is not None:
        try:
            if job_id is not None:
                existing = _queue.fetch_job(job_id)
                if existing is not None and existing.get_status() in ACTIVE_STATUSES:
                    logger.debug("Job %s already active; not enqueued again", job_id)
                    return None
            job = _queue.enqueue(func, *args, job_id=job_id, **kwargs)
            logger.debug("Enqueued %s (job=%s)", func.__name__, job.id)
            return job
        except Exception as e:
            logger.warning("RQ enqueue failed (%s), running synchronously: %s", func.__name__, e)

    logger.debug("Running %s synchronously", func.__name__)
    return func(*args, **kwargs)


def is_async_available() -> bool:
    """True when jobs go to an RQ worker."""
    return _queue is not None
