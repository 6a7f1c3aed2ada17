"""
Gamification state machine: XP, levels, badges and study streaks.

All functions are pure: they take a GamificationState and return a new one.
Level is derived (``xp // 100 + 1``) and never stored on its own.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Optional

from models import GamificationState

BADGE_DEFINITIONS = {
    "first_task": {"name": "First Step", "description": "Complete your first task", "icon": "star"},
    "first_day": {"name": "Day One Done", "description": "Finish every task of a day", "icon": "check"},
    "streak_7": {"name": "7-Day Streak", "description": "Study 7 days in a row", "icon": "fire"},
    "streak_30": {"name": "Monthly Warrior", "description": "Study 30 days in a row", "icon": "medal"},
    "century": {"name": "Century", "description": "Complete 100 tasks", "icon": "hundred"},
    "mastery_10": {"name": "Topic Master", "description": "Master 10 topics with 18/20 or better", "icon": "trophy"},
    "level_5": {"name": "Rising Aspirant", "description": "Reach level 5", "icon": "rocket"},
}

XP_AWARDS = {
    "complete_task": 10,
    "complete_day": 50,
}

XP_PER_LEVEL = 100


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def xp_progress_pct(state: GamificationState) -> int:
    """Percentage progress toward the next level."""
    return int(state.xp % XP_PER_LEVEL / XP_PER_LEVEL * 100)


def award_xp(state: GamificationState, amount: int) -> tuple[GamificationState, dict]:
    old_level = state.level
    new_state = replace(state, xp=max(0, state.xp + amount))
    result = {"xp_earned": amount, "total_xp": new_state.xp}
    if new_state.level > old_level:
        result["level_up"] = new_state.level
    return new_state, result


def unlock_badges(
    state: GamificationState,
    *,
    completed_tasks: int = 0,
    completed_days: int = 0,
    mastered: int = 0,
    now: Optional[datetime] = None,
) -> tuple[GamificationState, list[str]]:
    """Unlock any newly earned badges. Already unlocked badges are left alone."""
    checks = [
        ("first_task", completed_tasks >= 1),
        ("first_day", completed_days >= 1),
        ("streak_7", state.streak >= 7),
        ("streak_30", state.streak >= 30),
        ("century", completed_tasks >= 100),
        ("mastery_10", mastered >= 10),
        ("level_5", state.level >= 5),
    ]
    stamp = (now or datetime.now()).isoformat(timespec="seconds")
    badges = dict(state.badges)
    new_badges = []
    for badge_id, condition in checks:
        if condition and badge_id not in badges:
            badges[badge_id] = stamp
            new_badges.append(badge_id)
    if not new_badges:
        return state, []
    return replace(state, badges=badges), new_badges


def record_activity(state: GamificationState, today: date) -> GamificationState:
    """Register study activity on ``today`` and advance the streak."""
    today_iso = today.isoformat()
    last = state.last_activity_date
    if last == today_iso:
        return state

    if last == (today - timedelta(days=1)).isoformat():
        streak = state.streak + 1
    else:
        streak = 1

    history = state.streak_history
    if today_iso not in history:
        history = history + (today_iso,)
    return replace(
        state,
        streak=streak,
        longest_streak=max(state.longest_streak, streak),
        last_activity_date=today_iso,
        streak_history=history,
    )


def refresh_streak(state: GamificationState, today: date) -> GamificationState:
    """Reset the streak when the learner has been idle for more than a day."""
    if not state.last_activity_date or state.streak == 0:
        return state
    last = date.fromisoformat(state.last_activity_date)
    if (today - last).days <= 1:
        return state
    return replace(state, streak=0, longest_streak=max(state.longest_streak, state.streak))


def on_task_completed(
    state: GamificationState,
    *,
    day_completed: bool,
    today: date,
    completed_tasks: int,
    completed_days: int,
    mastered: int,
    day_id: Optional[str] = None,
    task: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[GamificationState, dict]:
    """Apply XP, streak and badge transitions for one completed task.

    With ``day_id``/``task`` given, XP for that task (and for finishing that
    day) is paid only the first time; re-completing after a toggle-off earns
    nothing.
    """
    amount = 0
    awarded = state.awarded
    task_key = f"task:{day_id}:{task}" if day_id is not None else None
    day_key = f"day:{day_id}" if day_id is not None else None
    if task_key is None or task_key not in awarded:
        amount += XP_AWARDS["complete_task"]
        if task_key is not None:
            awarded += (task_key,)
    if day_completed and (day_key is None or day_key not in awarded):
        amount += XP_AWARDS["complete_day"]
        if day_key is not None:
            awarded += (day_key,)
    if awarded != state.awarded:
        state = replace(state, awarded=awarded)

    state = record_activity(state, today)
    state, result = award_xp(state, amount)
    state, new_badges = unlock_badges(
        state,
        completed_tasks=completed_tasks,
        completed_days=completed_days,
        mastered=mastered,
        now=now,
    )
    result["new_badges"] = new_badges
    result["streak"] = state.streak
    if day_completed:
        result["day_complete"] = True
    return state, result
