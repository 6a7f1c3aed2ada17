"""Whole-document learner state persistence routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import ValidationError
from extensions import ServiceManager
from helpers import json_body, ok, request_email
from models import AppState

bp = Blueprint("state", __name__)


@bp.route("/api/user/state")
def api_get_state():
    email = request_email()
    return jsonify({"success": True, "data": ServiceManager.get_states().load_raw(email)})


@bp.route("/api/user/state", methods=["POST"])
def api_save_state():
    body = json_body()
    email = request_email(body)
    state = body.get("state")
    if not isinstance(state, dict):
        raise ValidationError("Email and state required")
    # round-trip through AppState so stored documents always satisfy the schedule invariants
    ServiceManager.get_states().save(email, AppState.from_dict(state))
    return ok()
