"""Tests for gamification.py: XP, levels, badges, streaks."""

from __future__ import annotations

from datetime import date, datetime

from gamification import (
    XP_AWARDS,
    award_xp,
    level_for,
    on_task_completed,
    record_activity,
    refresh_streak,
    unlock_badges,
    xp_progress_pct,
)
from models import GamificationState


class TestXP:
    def test_level_formula(self):
        assert level_for(0) == 1
        assert level_for(99) == 1
        assert level_for(100) == 2
        assert GamificationState(xp=450).level == 5

    def test_award_reports_level_up(self):
        state, result = award_xp(GamificationState(xp=95), 10)
        assert state.xp == 105
        assert result["level_up"] == 2

    def test_award_without_level_up(self):
        _, result = award_xp(GamificationState(xp=10), 10)
        assert "level_up" not in result

    def test_progress_pct(self):
        assert xp_progress_pct(GamificationState(xp=250)) == 50


class TestBadges:
    def test_unlock_once(self):
        now = datetime(2024, 3, 1, 9, 0)
        state, new = unlock_badges(GamificationState(), completed_tasks=1, now=now)
        assert new == ["first_task"]
        assert state.badges["first_task"] == "2024-03-01T09:00:00"
        again, new_again = unlock_badges(state, completed_tasks=2, now=datetime(2024, 3, 2))
        assert new_again == []
        assert again is state

    def test_threshold_badges(self):
        state = GamificationState(xp=400, streak=7)
        _, new = unlock_badges(state, completed_tasks=100, completed_days=3, mastered=10)
        assert set(new) == {"first_task", "first_day", "streak_7", "century", "mastery_10", "level_5"}


class TestStreak:
    def test_same_day_is_no_op(self):
        state = GamificationState(streak=3, last_activity_date="2024-03-05")
        assert record_activity(state, date(2024, 3, 5)) is state

    def test_consecutive_day_increments(self):
        state = GamificationState(streak=3, longest_streak=3, last_activity_date="2024-03-05")
        updated = record_activity(state, date(2024, 3, 6))
        assert updated.streak == 4
        assert updated.longest_streak == 4
        assert updated.streak_history[-1] == "2024-03-06"

    def test_gap_resets_to_one(self):
        state = GamificationState(streak=6, longest_streak=6, last_activity_date="2024-03-01")
        updated = record_activity(state, date(2024, 3, 5))
        assert updated.streak == 1
        assert updated.longest_streak == 6

    def test_refresh_zeroes_stale_streak(self):
        state = GamificationState(streak=4, longest_streak=4, last_activity_date="2024-03-01")
        assert refresh_streak(state, date(2024, 3, 2)) is state
        assert refresh_streak(state, date(2024, 3, 4)).streak == 0


class TestTaskCompleted:
    def test_day_completion_bonus(self):
        state, result = on_task_completed(
            GamificationState(),
            day_completed=True,
            today=date(2024, 3, 1),
            completed_tasks=1,
            completed_days=1,
            mastered=0,
        )
        assert state.xp == XP_AWARDS["complete_task"] + XP_AWARDS["complete_day"]
        assert result["day_complete"] is True
        assert result["streak"] == 1
        assert set(result["new_badges"]) == {"first_task", "first_day"}

    def test_same_task_pays_once(self):
        kwargs = dict(day_completed=True, today=date(2024, 3, 1), completed_tasks=1, completed_days=1,
                      mastered=0, day_id="day-2024-03-01", task="Polity - Preamble")
        state, first = on_task_completed(GamificationState(), **kwargs)
        state, again = on_task_completed(state, **kwargs)
        assert first["xp_earned"] == XP_AWARDS["complete_task"] + XP_AWARDS["complete_day"]
        assert again["xp_earned"] == 0
        assert state.awarded == ("task:day-2024-03-01:Polity - Preamble", "day:day-2024-03-01")

    def test_awarded_keys_survive_storage(self):
        state = GamificationState(xp=60, awarded=("task:d:A", "day:d"))
        assert GamificationState.from_dict(state.to_dict()) == state
