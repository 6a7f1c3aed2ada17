"""
Singleton management for the generation stack, repositories and rate limiter.

Services are built lazily from ``current_app.config`` and reset between tests.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])


class ServiceManager:
    """Lazy-loaded singletons for the AI services, quiz bank and repositories."""

    _generation = None
    _content = None
    _quiz_bank = None
    _quiz_factory = None
    _states = None
    _syllabuses = None
    _request_tracker = None

    @classmethod
    def get_generation(cls):
        if cls._generation is None:
            from ai_resilience import GeminiClient, GenerationService
            api_key = current_app.config.get("GOOGLE_API_KEY", "")
            cls._generation = GenerationService(
                GeminiClient(api_key),
                model_tiers=current_app.config.get("MODEL_TIERS"),
            )
        return cls._generation

    @classmethod
    def get_content(cls):
        if cls._content is None:
            from content_service import ContentService
            cls._content = ContentService(cls.get_generation())
        return cls._content

    @classmethod
    def get_quiz_bank(cls):
        if cls._quiz_bank is None:
            from cache_backend import get_cache
            from quiz_bank import QuizBank
            cls._quiz_bank = QuizBank(get_cache(), cls.get_generation())
        return cls._quiz_bank

    @classmethod
    def get_quiz_factory(cls):
        if cls._quiz_factory is None:
            from quiz_factory import QuizFactory
            cls._quiz_factory = QuizFactory(cls.get_quiz_bank())
        return cls._quiz_factory

    @classmethod
    def get_states(cls):
        if cls._states is None:
            from storage import StateRepository
            cls._states = StateRepository(current_app.config["STATE_DIR"])
        return cls._states

    @classmethod
    def get_syllabuses(cls):
        if cls._syllabuses is None:
            from storage import SyllabusRepository
            cls._syllabuses = SyllabusRepository(current_app.config["SYLLABUS_DIR"])
        return cls._syllabuses

    @classmethod
    def get_request_tracker(cls):
        """Request ids shared by every PlannerService; kept in Redis when the cache is."""
        if cls._request_tracker is None:
            from cache_backend import RedisCache, get_cache
            from state_store import RedisRequestTracker, RequestTracker
            cache = get_cache()
            if isinstance(cache, RedisCache):
                cls._request_tracker = RedisRequestTracker(cache._redis)
            else:
                cls._request_tracker = RequestTracker()
        return cls._request_tracker

    @classmethod
    def reset(cls):
        """Drop every singleton; called from create_app()."""
        cls._generation = None
        cls._content = None
        cls._quiz_bank = None
        cls._quiz_factory = None
        cls._states = None
        cls._syllabuses = None
        cls._request_tracker = None
