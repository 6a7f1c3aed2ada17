"""
File-backed persistence for learner state and syllabus presets.

One JSON file per learner, keyed by the url-safe base64 of their email, read
and written whole. There is no locking; the last writer wins.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Optional

from errors import ValidationError
from models import AppState

logger = logging.getLogger(__name__)

EXAM_PRESETS = [
    {"id": "tnpsc-group-1", "name": "TNPSC Group 1", "category": "TNPSC", "syllabusFile": "tnpsc-group-1"},
    {"id": "tnpsc-group-2", "name": "TNPSC Group 2 & 2A", "category": "TNPSC", "syllabusFile": "tnpsc-group-2"},
    {"id": "tnpsc-group-4", "name": "TNPSC Group 4", "category": "TNPSC", "syllabusFile": "tnpsc-group-4"},
    {"id": "upsc-prelims", "name": "UPSC Civil Services (Prelims)", "category": "UPSC", "syllabusFile": "upsc-prelims"},
    {"id": "neet-ug", "name": "NEET UG", "category": "Medical", "syllabusFile": "neet-ug"},
]


def user_key(email: str) -> str:
    email = (email or "").strip()
    if not email:
        raise ValidationError("Email required")
    return base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii")


class StateRepository:
    """Load and save whole AppState documents."""

    def __init__(self, state_dir: str | Path) -> None:
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, email: str) -> Path:
        return self.state_dir / f"{user_key(email)}.json"

    def load_raw(self, email: str) -> Optional[dict]:
        path = self.path_for(email)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("State file %s unreadable: %s", path.name, e)
            return None
        return data if isinstance(data, dict) else None

    def load(self, email: str) -> AppState:
        return AppState.from_dict(self.load_raw(email))

    def save_raw(self, email: str, data: dict) -> None:
        self.path_for(email).write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

    def save(self, email: str, state: AppState) -> None:
        self.save_raw(email, state.to_dict())


class SyllabusRepository:
    """Raw syllabus text for the bundled exam presets."""

    def __init__(self, syllabus_dir: str | Path) -> None:
        self.syllabus_dir = Path(syllabus_dir)

    def get(self, preset_id: str) -> Optional[str]:
        # ids come from the URL; refuse anything that could escape the directory
        if not preset_id or "/" in preset_id or "\\" in preset_id or preset_id.startswith("."):
            return None
        path = self.syllabus_dir / f"{preset_id}.txt"
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def available(self) -> list[str]:
        if not self.syllabus_dir.exists():
            return []
        return sorted(p.stem for p in self.syllabus_dir.glob("*.txt"))
