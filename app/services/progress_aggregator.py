# app/services/progress_aggregator.py
"""Incremental per-user progress profile.

Every created test result is folded into the user's ``progress`` row exactly
once. The row is read, merged in memory and written back, so all writers for
a user go through :func:`user_lock`: two submissions racing for the same user
are applied one after the other and neither update is lost. The UNIQUE
constraint on ``progress.user_id`` covers a concurrent first insert coming
from another process.
"""
import logging
import math
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..models.ielts_models import DBProgress, DBSkillProgress, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

class _UserLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0  # threads holding or waiting on ``lock``


_LOCKS: Dict[str, _UserLock] = {}
_LOCKS_GUARD = threading.Lock()


@contextmanager
def user_lock(user_id: str) -> Iterator[None]:
    """Serialize profile writers per user; the entry is dropped once nobody needs it."""
    with _LOCKS_GUARD:
        entry = _LOCKS.get(user_id)
        if entry is None:
            entry = _LOCKS[user_id] = _UserLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _LOCKS_GUARD:
            entry.holders -= 1
            if entry.holders == 0:
                del _LOCKS[user_id]


def _find_skill(profile: DBProgress, skill_type: str) -> Optional[DBSkillProgress]:
    return next((s for s in profile.skills_progress if s.skill_type == skill_type), None)


def _new_skill(skill_type: str, score: float, now: datetime) -> DBSkillProgress:
    return DBSkillProgress(
        skill_type=skill_type,
        average_score=score,
        tests_completed=1,
        last_test_date=now,
        improvement=0.0,
    )


def recompute_target(profile: DBProgress) -> None:
    if profile.target_score is None:
        profile.progress_to_target = 0.0
    elif profile.target_score <= 0:
        profile.progress_to_target = 100.0
    else:
        ratio = profile.overall_band_score / profile.target_score * 100
        profile.progress_to_target = round(min(100.0, ratio), 1)


def recompute_overall(profile: DBProgress) -> None:
    """Unweighted mean of the per-skill averages."""
    skills = profile.skills_progress
    if skills:
        profile.overall_band_score = sum(s.average_score for s in skills) / len(skills)
    else:
        profile.overall_band_score = 0.0
    recompute_target(profile)


def update_streak(profile: DBProgress, now: datetime) -> None:
    if profile.last_study_date is None:
        profile.study_streak = 1
        return

    diff_days = math.floor((now - profile.last_study_date).total_seconds() / SECONDS_PER_DAY)
    if diff_days == 1:
        profile.study_streak += 1
    elif diff_days > 1:
        profile.study_streak = 1
    # same day: unchanged


def empty_profile(user_id: str, target_score: Optional[float] = None) -> DBProgress:
    profile = DBProgress(
        user_id=user_id,
        overall_band_score=0.0,
        total_tests_completed=0,
        total_time_spent=0,
        skills_progress=[],
        strengths=[],
        weaknesses=[],
        study_streak=0,
        last_study_date=None,
        target_score=target_score,
        progress_to_target=0.0,
    )
    recompute_target(profile)
    return profile


def seed_profile(user_id: str, skill_type: str, score: float, time_spent: int, now: datetime) -> DBProgress:
    """Profile for a user's very first result."""
    profile = empty_profile(user_id)
    profile.overall_band_score = score
    profile.total_tests_completed = 1
    profile.total_time_spent = time_spent // 60
    profile.skills_progress = [_new_skill(skill_type, score, now)]
    profile.study_streak = 1
    profile.last_study_date = now
    recompute_target(profile)
    return profile


def fold_result(profile: DBProgress, skill_type: str, score: float, time_spent: int, now: datetime) -> DBProgress:
    """Merge one new result into an existing profile, in place."""
    profile.total_tests_completed += 1
    profile.total_time_spent += time_spent // 60

    skill = _find_skill(profile, skill_type)
    if skill is not None:
        old_average = skill.average_score
        new_average = (old_average * skill.tests_completed + score) / (skill.tests_completed + 1)
        skill.average_score = new_average
        skill.tests_completed += 1
        skill.last_test_date = now
        # percent change of this step, 0 when the old average is 0
        skill.improvement = (new_average - old_average) / old_average * 100 if old_average else 0.0
    else:
        profile.skills_progress.append(_new_skill(skill_type, score, now))

    recompute_overall(profile)
    update_streak(profile, now)
    profile.last_study_date = now
    return profile


class ProgressAggregator:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> Optional[DBProgress]:
        return self.db.query(DBProgress).filter(DBProgress.user_id == user_id).first()

    def _upsert(
        self,
        user_id: str,
        create: Callable[[], DBProgress],
        merge: Callable[[DBProgress], None],
    ) -> DBProgress:
        """Create the profile or merge into it, as one unit under the user's lock."""
        with user_lock(user_id):
            profile = self.get_profile(user_id)
            if profile is not None:
                merge(profile)
                self.db.commit()
                return profile

            profile = create()
            self.db.add(profile)
            try:
                self.db.commit()
            except IntegrityError:
                # created concurrently outside this process
                self.db.rollback()
                profile = self.get_profile(user_id)
                if profile is None:
                    raise
                merge(profile)
                self.db.commit()
            return profile

    def record_result(
        self,
        user_id: str,
        skill_type: str,
        score: float,
        time_spent: int,
        now: Optional[datetime] = None,
    ) -> DBProgress:
        now = now or utcnow()
        profile = self._upsert(
            user_id,
            create=lambda: seed_profile(user_id, skill_type, score, time_spent, now),
            merge=lambda p: fold_result(p, skill_type, score, time_spent, now),
        )
        logger.info(
            f"Progress updated for user {user_id}: tests={profile.total_tests_completed}, "
            f"overall={profile.overall_band_score:.2f}, streak={profile.study_streak}"
        )
        return profile

    def revise_score(self, user_id: str, skill_type: str, old_score: float, new_score: float) -> Optional[DBProgress]:
        """Swap one already-counted score for a manually graded one.

        Attempt counts, streak and time are left alone; only the running
        average of the skill and the derived overall score move.
        """
        with user_lock(user_id):
            profile = self.get_profile(user_id)
            if profile is None:
                logger.warning(f"No progress profile for user {user_id}; score revision skipped")
                return None

            skill = _find_skill(profile, skill_type)
            if skill is None or not skill.tests_completed:
                logger.warning(f"No {skill_type} progress for user {user_id}; score revision skipped")
                return profile

            revised = skill.average_score + (new_score - old_score) / skill.tests_completed
            skill.average_score = min(9.0, max(0.0, revised))
            recompute_overall(profile)
            self.db.commit()

        logger.info(f"Revised {skill_type} average for user {user_id}: {old_score} -> {new_score}")
        return profile

    def set_target(self, user_id: str, target_score: float) -> DBProgress:
        def merge(profile: DBProgress) -> None:
            profile.target_score = target_score
            recompute_target(profile)

        return self._upsert(
            user_id,
            create=lambda: empty_profile(user_id, target_score),
            merge=merge,
        )
