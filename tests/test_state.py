"""Tests for storage.py, state_store.py and reducers.py."""

from __future__ import annotations

import base64
from dataclasses import replace
from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

import reducers
from conftest import make_day
from errors import MergeConflictError, ValidationError
from models import AppState, GamificationState
from remediation import REMEDIATION_PREFIX
from state_store import SCHEDULE, AppStore, RedisRequestTracker, RequestTracker
from storage import StateRepository, SyllabusRepository, user_key


class TestStorage:
    def test_user_key_is_urlsafe_base64(self):
        key = user_key("learner+exam@example.com")
        assert base64.urlsafe_b64decode(key).decode() == "learner+exam@example.com"
        assert "/" not in key

    def test_user_key_requires_email(self):
        with pytest.raises(ValidationError):
            user_key("  ")

    def test_missing_state_loads_empty(self, tmp_path):
        repo = StateRepository(tmp_path)
        assert repo.load_raw("a@example.com") is None
        assert repo.load("a@example.com") == AppState()

    def test_save_and_load(self, tmp_path, exam_config):
        repo = StateRepository(tmp_path)
        state = AppState(config=exam_config, hard_topics=("Polity - Preamble",))
        repo.save("a@example.com", state)
        assert repo.load("a@example.com") == state
        assert repo.load("b@example.com") == AppState()

    def test_syllabus_repository(self, tmp_path):
        (tmp_path / "neet-ug.txt").write_text("Biology", encoding="utf-8")
        repo = SyllabusRepository(tmp_path)
        assert repo.get("neet-ug") == "Biology"
        assert repo.get("missing") is None
        assert repo.get("../neet-ug") is None
        assert repo.available() == ["neet-ug"]


class TestAppStore:
    def test_dispatch_notifies_subscribers(self):
        store = AppStore()
        seen = []
        store.subscribe(seen.append)
        info = store.dispatch(reducers.mark_hard, "Polity - Preamble")
        assert info == {"topic": "Polity - Preamble", "hard": True}
        assert seen == [store.state]

    def test_unchanged_state_does_not_notify(self):
        store = AppStore()
        seen = []
        store.subscribe(seen.append)
        store.dispatch(reducers.refresh_activity, date(2024, 3, 1))
        assert seen == []

    def test_failed_reducer_leaves_state(self):
        store = AppStore()
        before = store.state
        with pytest.raises(ValidationError):
            store.dispatch(reducers.mark_hard, "")
        assert store.state is before

    def test_subscriber_failure_is_logged_not_raised(self):
        store = AppStore()
        broken = MagicMock(side_effect=OSError("disk full"))
        store.subscribe(broken)
        store.dispatch(reducers.mark_hard, "Polity")
        assert store.state.hard_topics == ("Polity",)
        broken.assert_called_once()

    def test_unsubscribe(self):
        store = AppStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        store.dispatch(reducers.mark_hard, "Polity")
        assert seen == []

    def test_stale_request_is_discarded(self):
        store = AppStore()
        first = store.begin(SCHEDULE)
        second = store.begin(SCHEDULE)
        assert store.is_loading(SCHEDULE)
        assert store.finish(SCHEDULE, first) is False
        assert store.is_loading(SCHEDULE)
        assert store.finish(SCHEDULE, second) is True
        assert not store.is_loading(SCHEDULE)

    def test_stores_sharing_a_tracker_see_newer_requests(self):
        tracker = RequestTracker()
        first = AppStore(tracker=tracker, scope="learner")
        second = AppStore(tracker=tracker, scope="learner")
        other_learner = AppStore(tracker=tracker, scope="someone-else")
        older = first.begin(SCHEDULE)
        newer = second.begin(SCHEDULE)
        other_learner.begin(SCHEDULE)
        assert first.finish(SCHEDULE, older) is False
        assert second.finish(SCHEDULE, newer) is True

    def test_redis_tracker_counts_per_key(self):
        redis_client = MagicMock()
        redis_client.incr.return_value = 3
        redis_client.get.return_value = b"3"
        store = AppStore(tracker=RedisRequestTracker(redis_client), scope="learner")
        assert store.begin(SCHEDULE) == 3
        assert store.finish(SCHEDULE, 3) is True
        redis_client.incr.assert_called_once_with("planner:request:learner:schedule")

    def test_reload_replaces_state_without_notifying(self):
        store = AppStore()
        seen = []
        store.subscribe(seen.append)
        fresh = AppState(hard_topics=("Polity",))
        store.reload(fresh)
        assert store.state is fresh
        assert seen == []


class TestToggleReducer:
    @pytest.fixture
    def state(self, syllabus, exam_config):
        return AppState(
            config=exam_config,
            syllabus=tuple(syllabus),
            schedule=(
                make_day("2024-03-01", ["Polity - Preamble", "Maths - Percentage"]),
                make_day("2024-03-02", ["Full mock"], day_type="MOCK_TEST"),
                make_day("2024-03-03", ["History - Mughal Empire"]),
            ),
        )

    def test_complete_with_score(self, state):
        new_state, info = reducers.toggle_task(state, "day-2024-03-01", 0, 18, today=date(2024, 3, 1))
        day = new_state.schedule[0]
        assert day.completed_tasks == ["Polity - Preamble"]
        assert day.validation_scores == {"Polity - Preamble": 18}
        assert info["completed"] is True
        assert info["reward"]["xp_earned"] == 10
        assert new_state.gamification.xp == 10
        assert new_state.gamification.streak == 1
        assert "first_task" in new_state.gamification.badges
        assert state.schedule[0].completed_tasks == []

    def test_completing_day_awards_bonus(self, state):
        s1, _ = reducers.toggle_task(state, "day-2024-03-01", 0, 20, today=date(2024, 3, 1))
        s2, info = reducers.toggle_task(s1, "day-2024-03-01", 1, 20, today=date(2024, 3, 1))
        assert s2.schedule[0].is_completed is True
        assert info["reward"]["day_complete"] is True
        assert s2.gamification.xp == 10 + 10 + 50

    def test_low_score_injects_remediation(self, state):
        new_state, info = reducers.toggle_task(state, "day-2024-03-01", 1, 6, today=date(2024, 3, 1))
        assert info["remediation"] is True
        assert new_state.schedule[2].tasks[-1] == REMEDIATION_PREFIX + "Maths - Percentage"
        assert new_state.schedule[1].tasks == ["Full mock"]

    def test_toggle_off_keeps_xp(self, state):
        s1, _ = reducers.toggle_task(state, "day-2024-03-01", 0, 18, today=date(2024, 3, 1))
        s2, info = reducers.toggle_task(s1, "day-2024-03-01", 0, today=date(2024, 3, 1))
        assert info["completed"] is False
        assert s2.schedule[0].validation_scores == {}
        assert s2.gamification.xp == s1.gamification.xp

    def test_score_required_to_complete(self, state):
        with pytest.raises(ValidationError):
            reducers.toggle_task(state, "day-2024-03-01", 0)

    def test_zero_score_records_without_reward(self, state):
        new_state, info = reducers.toggle_task(state, "day-2024-03-01", 0, 0, today=date(2024, 3, 1))
        assert info["completed"] is False
        assert new_state.schedule[0].validation_scores == {"Polity - Preamble": 0}
        assert new_state.gamification == GamificationState()

    def test_unknown_day(self, state):
        with pytest.raises(ValidationError):
            reducers.toggle_task(state, "day-1999-01-01", 0, 10)

    def test_insights_recomputed(self, state):
        new_state, _ = reducers.toggle_task(state, "day-2024-03-01", 0, 4, today=date(2024, 3, 1))
        assert any(i.startswith("Polity: coverage without validation") for i in new_state.mentor_insights)

    def test_completion_invariant_holds(self, state):
        s, _ = reducers.toggle_task(state, "day-2024-03-01", 0, 12, today=date(2024, 3, 1))
        s, _ = reducers.toggle_task(s, "day-2024-03-01", 1, 3, today=date(2024, 3, 1))
        s, _ = reducers.toggle_task(s, "day-2024-03-01", 0, today=date(2024, 3, 1))
        for day in s.schedule:
            assert day.is_completed == (len(day.completed_tasks) == len(day.tasks))

    def test_recompleting_a_task_pays_no_more_xp(self, exam_config, syllabus):
        s = AppState(config=exam_config, syllabus=tuple(syllabus), schedule=(make_day("2024-03-01", ["Polity - Preamble"]),))
        for _ in range(5):
            s, _ = reducers.toggle_task(s, "day-2024-03-01", 0, 20, today=date(2024, 3, 1))
            s, _ = reducers.toggle_task(s, "day-2024-03-01", 0, today=date(2024, 3, 1))
        s, info = reducers.toggle_task(s, "day-2024-03-01", 0, 20, today=date(2024, 3, 1))
        assert info["reward"]["xp_earned"] == 0
        assert s.gamification.xp == 10 + 50


class TestOtherReducers:
    def test_mark_hard_toggles(self):
        s1, info = reducers.mark_hard(AppState(), "Polity")
        assert info["hard"] is True
        s2, info = reducers.mark_hard(s1, "Polity")
        assert info["hard"] is False
        assert s2.hard_topics == ()

    def test_apply_continuation(self):
        state = AppState(schedule=(make_day("2024-03-10", ["A"]),))
        new_state, info = reducers.apply_continuation(
            state, [make_day("2024-03-10", ["dup"], day_id="1"), make_day("2024-03-11", ["B"], day_id="2")],
        )
        assert info == {"added": 1, "lastDate": "2024-03-11"}
        assert [d.date for d in new_state.schedule] == ["2024-03-10", "2024-03-11"]

    def test_apply_continuation_nothing_new(self):
        state = AppState(schedule=(make_day("2024-03-10", ["A"]),))
        new_state, info = reducers.apply_continuation(state, [make_day("2024-03-10", ["dup"])])
        assert new_state is state
        assert info == {"added": 0}

    def test_apply_continuation_rejects_corrupt_schedule(self):
        state = AppState(schedule=(make_day("2024-03-10", ["A"], day_id="x"), make_day("2024-03-10", ["B"], day_id="y")))
        with pytest.raises(MergeConflictError):
            reducers.apply_continuation(state, [make_day("2024-03-11", ["C"])])

    def test_apply_continuation_sorts_and_stops_at_exam(self, exam_config):
        state = AppState(config=exam_config, schedule=(make_day("2024-06-27", ["A"]),))
        new_state, info = reducers.apply_continuation(state, [
            make_day("2024-07-01", ["after"], day_id="1"),
            make_day("2024-06-29", ["B"], day_id="2"),
            make_day("2024-06-28", ["C"], day_id="3"),
        ])
        assert [d.date for d in new_state.schedule] == ["2024-06-27", "2024-06-28", "2024-06-29"]
        assert info == {"added": 2, "lastDate": "2024-06-29"}

    def test_apply_initial_plan(self, exam_config, syllabus):
        state = AppState(hard_topics=("old",))
        new_state, info = reducers.apply_initial_plan(
            state, exam_config, syllabus, [make_day("2024-03-02", ["B"], day_id="2"), make_day("2024-03-01", ["A"], day_id="1")],
        )
        assert info == {"days": 2}
        assert [d.id for d in new_state.schedule] == ["day-2024-03-01", "day-2024-03-02"]
        assert new_state.hard_topics == ()
        assert new_state.setup_mode == "ai"

    def test_new_plan_clears_paid_xp_keys(self, exam_config, syllabus):
        state = AppState(gamification=GamificationState(xp=60, awarded=("task:day-2024-03-01:A", "day:day-2024-03-01")))
        new_state, _ = reducers.apply_initial_plan(state, exam_config, syllabus, [make_day("2024-03-01", ["A"])])
        assert new_state.gamification.awarded == ()
        assert new_state.gamification.xp == 60

    def test_open_setup_validates_mode(self):
        assert reducers.open_setup(AppState(), "manual")[0].setup_mode == "manual"
        with pytest.raises(ValidationError):
            reducers.open_setup(AppState(), "wizard")

    def test_refresh_activity_zeroes_stale_streak(self):
        state = AppState(gamification=GamificationState(streak=5, longest_streak=5, last_activity_date="2024-03-01"))
        new_state, info = reducers.refresh_activity(state, date(2024, 3, 5))
        assert info["streak"] == 0
        assert new_state.gamification.longest_streak == 5
