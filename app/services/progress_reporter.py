# app/services/progress_reporter.py
"""On-demand progress report computed from a user's full result history.

This is deliberately independent of the stored progress profile: it never
reads the ``progress`` table and recomputes everything from ``test_results``.
Its numbers differ from the profile's on purpose:

* improvement is ``mean(latest N) - mean(earliest N)`` in band points,
  rather than the profile's percent change of the last update;
* the streak counts consecutive calendar days that have a result, walking
  back from the most recent one, rather than elapsed 24h periods;
* ``totalTimeSpent`` is in seconds (the profile keeps minutes);
* strengths and weaknesses are only ever filled in here.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
from .. import config
from ..models.ielts_models import utcnow
from ..schemas.ielts_schemas import ProgressReport, RecentActivity, SkillProgressRead

UNKNOWN_SKILL = "unknown"
DEFAULT_TITLE = "Practice test"


@dataclass
class HistoryEntry:
    score: float
    created_at: datetime
    skill_type: str
    test_title: str
    is_passed: bool
    time_spent: int = 0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _label(skill_type: str) -> str:
    return skill_type[:1].upper() + skill_type[1:]


def window_improvement(scores: Sequence[float], window: int) -> float:
    if len(scores) <= window:
        return 0.0
    return round(_mean(scores[-window:]) - _mean(scores[:window]), 2)


def calendar_streak(dates: Sequence[datetime]) -> int:
    """Consecutive days with a result, counted back from the latest result's day."""
    if not dates:
        return 0
    days = {d.date() for d in dates}
    current = max(dates).date()
    streak = 0
    while current in days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def build_progress_report(
    user_id: str,
    history: Sequence[HistoryEntry],
    now: Optional[datetime] = None,
) -> Optional[ProgressReport]:
    """Return the report, or None when the user has no results at all."""
    if not history:
        return None

    ordered = sorted(history, key=lambda e: e.created_at)

    buckets: Dict[str, List[HistoryEntry]] = {}
    for entry in ordered:
        buckets.setdefault(entry.skill_type or UNKNOWN_SKILL, []).append(entry)

    skills_progress: List[SkillProgressRead] = []
    for skill_type, entries in buckets.items():
        scores = [e.score for e in entries]
        skills_progress.append(SkillProgressRead(
            skill_type=skill_type,
            average_score=round(_mean(scores), 1),
            tests_completed=len(scores),
            last_test_date=max(e.created_at for e in entries),
            improvement=window_improvement(scores, config.IMPROVEMENT_WINDOW),
        ))

    strengths = [
        _label(s.skill_type) for s in skills_progress
        if s.average_score >= config.STRENGTH_MIN_AVERAGE
    ]
    weaknesses = [
        _label(s.skill_type) for s in skills_progress
        if s.average_score < config.WEAKNESS_MAX_AVERAGE
    ]

    newest_first = list(reversed(ordered))
    recent_activity = [
        RecentActivity(
            test_title=e.test_title or DEFAULT_TITLE,
            score=e.score,
            is_passed=e.is_passed,
            created_at=e.created_at,
        )
        for e in newest_first[:config.RECENT_ACTIVITY_LIMIT]
    ]

    return ProgressReport(
        user_id=user_id,
        overall_band_score=round(_mean([e.score for e in ordered]), 1),
        total_tests_completed=len(ordered),
        total_time_spent=sum(e.time_spent for e in ordered),
        skills_progress=skills_progress,
        strengths=strengths,
        weaknesses=weaknesses,
        study_streak=calendar_streak([e.created_at for e in ordered]),
        last_study_date=ordered[-1].created_at,
        target_score=None,
        progress_to_target=None,
        recent_activity=recent_activity,
        generated_at=now or utcnow(),
    )
