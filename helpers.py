"""
Shared helpers used across blueprints.

Responses use the envelope ``{"success": bool, "data" | "error": ...}``.
"""

from __future__ import annotations

from typing import Any

from flask import jsonify, request

from errors import ValidationError
from models import LANGUAGES


def ok(data: Any = None, status_code: int = 200, **extra: Any):
    """Success envelope. Keyword extras become top-level body fields (``status`` included)."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status_code


def fail(message: str, status_code: int = 400, **extra: Any):
    body = {"success": False, "error": message}
    body.update(extra)
    return jsonify(body), status_code


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def request_email(body: dict | None = None) -> str:
    """Learner identity from the JSON body or the ``email`` query parameter."""
    email = (body or {}).get("email") or request.args.get("email") or ""
    email = str(email).strip()
    if not email:
        raise ValidationError("Email required")
    return email


def request_language(body: dict | None = None) -> str:
    lang = (body or {}).get("lang") or (body or {}).get("language") or request.args.get("lang") or "en"
    return lang if lang in LANGUAGES else "en"


def string_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list.")
    return [str(v).strip() for v in value if str(v).strip()]
