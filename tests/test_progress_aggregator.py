from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from app.models.ielts_models import DBProgress
from app.services import progress_aggregator
from app.services.progress_aggregator import (
    ProgressAggregator,
    fold_result,
    seed_profile,
    user_lock,
)

T0 = datetime(2025, 3, 10, 9, 0, 0)


def test_seed_profile_for_first_result():
    profile = seed_profile("u1", "reading", 6.5, 1500, T0)

    assert profile.overall_band_score == 6.5
    assert profile.total_tests_completed == 1
    assert profile.total_time_spent == 25
    assert profile.study_streak == 1
    assert profile.last_study_date == T0
    assert profile.strengths == [] and profile.weaknesses == []
    [skill] = profile.skills_progress
    assert (skill.skill_type, skill.average_score, skill.tests_completed, skill.improvement) == (
        "reading", 6.5, 1, 0.0,
    )


def test_fold_updates_running_average_and_improvement():
    profile = seed_profile("u1", "reading", 6.0, 0, T0)
    fold_result(profile, "reading", 7.0, 119, T0 + timedelta(hours=2))

    skill = profile.skills_progress[0]
    assert skill.average_score == pytest.approx(6.5)
    assert skill.tests_completed == 2
    assert skill.improvement == pytest.approx(0.5 / 6.0 * 100)
    assert profile.total_tests_completed == 2
    assert profile.total_time_spent == 1


def test_zero_average_does_not_divide():
    profile = seed_profile("u1", "writing", 0.0, 0, T0)
    fold_result(profile, "writing", 6.0, 0, T0)

    skill = profile.skills_progress[0]
    assert skill.average_score == pytest.approx(3.0)
    assert skill.improvement == 0.0


def test_overall_is_unweighted_mean_of_skills():
    profile = seed_profile("u1", "reading", 6.0, 0, T0)
    fold_result(profile, "reading", 6.0, 0, T0)
    fold_result(profile, "reading", 6.0, 0, T0)
    fold_result(profile, "listening", 8.0, 0, T0)

    assert [s.skill_type for s in profile.skills_progress] == ["reading", "listening"]
    assert profile.skills_progress[1].improvement == 0.0
    assert profile.overall_band_score == pytest.approx(7.0)


@pytest.mark.parametrize(
    "gap,expected",
    [
        (timedelta(hours=3), 4),
        (timedelta(days=1, hours=2), 5),
        (timedelta(days=2), 1),
        (timedelta(days=9), 1),
    ],
)
def test_streak_transitions(gap, expected):
    profile = seed_profile("u1", "reading", 6.0, 0, T0)
    profile.study_streak = 4
    fold_result(profile, "reading", 6.0, 0, T0 + gap)

    assert profile.study_streak == expected
    assert profile.last_study_date == T0 + gap


def test_record_result_mean_over_many_submissions(db_session):
    aggregator = ProgressAggregator(db_session)
    scores = [6.5, 7.0, 5.5, 8.0, 4.5, 9.0, 6.0]
    for day, score in enumerate(scores):
        aggregator.record_result("u1", "listening", score, 600, now=T0 + timedelta(days=day))

    profile = aggregator.get_profile("u1")
    assert profile.overall_band_score == pytest.approx(sum(scores) / len(scores), abs=1e-9)
    assert profile.total_tests_completed == len(scores)
    assert profile.total_time_spent == 10 * len(scores)
    assert profile.study_streak == len(scores)
    assert db_session.query(DBProgress).count() == 1


def test_concurrent_submissions_are_not_lost(session_factory):
    workers, per_worker = 4, 5
    barrier = threading.Barrier(workers)
    errors: list[BaseException] = []

    def submit():
        session = session_factory()
        try:
            barrier.wait()
            aggregator = ProgressAggregator(session)
            for _ in range(per_worker):
                aggregator.record_result("racer", "reading", 6.0, 60, now=T0)
        except BaseException as exc:  # surfaced by the assertion below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=submit) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    session = session_factory()
    try:
        profile = ProgressAggregator(session).get_profile("racer")
        assert profile.total_tests_completed == workers * per_worker
        assert profile.skills_progress[0].tests_completed == workers * per_worker
        assert profile.total_time_spent == workers * per_worker
    finally:
        session.close()


def test_revise_score_shifts_average_without_counting(db_session):
    aggregator = ProgressAggregator(db_session)
    aggregator.record_result("u2", "writing", 4.0, 0, now=T0)
    aggregator.record_result("u2", "writing", 6.0, 0, now=T0 + timedelta(days=1))

    profile = aggregator.revise_score("u2", "writing", 6.0, 8.0)

    skill = profile.skills_progress[0]
    assert skill.average_score == pytest.approx(6.0)
    assert skill.tests_completed == 2
    assert profile.total_tests_completed == 2
    assert profile.study_streak == 2
    assert profile.overall_band_score == pytest.approx(6.0)


def test_revise_without_profile_is_noop(db_session):
    assert ProgressAggregator(db_session).revise_score("ghost", "writing", 3.5, 7.0) is None


def test_target_score_before_first_result(db_session):
    aggregator = ProgressAggregator(db_session)
    profile = aggregator.set_target("u3", 8.0)
    assert profile.total_tests_completed == 0
    assert profile.progress_to_target == 0.0

    profile = aggregator.record_result("u3", "reading", 6.0, 0, now=T0)
    assert profile.total_tests_completed == 1
    assert profile.study_streak == 1
    assert profile.target_score == 8.0
    assert profile.progress_to_target == pytest.approx(75.0)


def test_first_insert_lost_to_another_writer_is_merged(session_factory, db_session):
    aggregator = ProgressAggregator(db_session)
    original_get_profile = aggregator.get_profile
    calls = {"n": 0}

    def get_profile_after_foreign_insert(user_id):
        calls["n"] += 1
        if calls["n"] == 1:
            # another process creates the row between our read and our commit
            other = session_factory()
            try:
                other.add(seed_profile(user_id, "reading", 6.0, 0, T0))
                other.commit()
            finally:
                other.close()
            return None
        return original_get_profile(user_id)

    aggregator.get_profile = get_profile_after_foreign_insert

    profile = aggregator.record_result("u_x", "reading", 7.0, 0, now=T0)

    assert calls["n"] == 2
    assert profile.total_tests_completed == 2
    assert profile.skills_progress[0].tests_completed == 2
    assert profile.skills_progress[0].average_score == pytest.approx(6.5)
    assert db_session.query(DBProgress).filter(DBProgress.user_id == "u_x").count() == 1


def test_user_locks_are_released_after_use(db_session):
    aggregator = ProgressAggregator(db_session)
    for idx in range(50):
        aggregator.record_result(f"user-{idx}", "reading", 6.0, 0, now=T0)

    assert progress_aggregator._LOCKS == {}


def test_user_lock_entry_lives_while_held():
    with user_lock("holder"):
        assert "holder" in progress_aggregator._LOCKS
        with user_lock("other"):
            assert set(progress_aggregator._LOCKS) == {"holder", "other"}
        assert "other" not in progress_aggregator._LOCKS
    assert "holder" not in progress_aggregator._LOCKS
