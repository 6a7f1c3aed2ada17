"""Error taxonomy shared by the planner core and the HTTP layer."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for every error the planner raises on purpose."""

    status_code = 500
    retryable = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class TransientServiceError(PlannerError):
    """Rate limit or network failure that survived the retry budget."""

    status_code = 503
    retryable = True

    def __init__(self, message: str = "", *, attempts: int = 0, model: str = "") -> None:
        super().__init__(message or "The AI service is busy. Please try again.")
        self.attempts = attempts
        self.model = model


class MalformedResponseError(PlannerError):
    """The AI returned text that could not be parsed or validated."""

    status_code = 502

    def __init__(self, message: str = "", *, raw: str = "") -> None:
        super().__init__(message or "AI returned invalid JSON format. Please try again.")
        self.raw = raw[:500]


class ValidationError(PlannerError):
    """Missing or invalid input, rejected before any network call."""

    status_code = 400


class MergeConflictError(PlannerError):
    """A schedule holds two days for one date or a repeated day id."""

    status_code = 409
