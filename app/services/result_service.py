# app/services/result_service.py
from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging
from sqlalchemy.orm import Session
from ..schemas.ielts_schemas import ProgressReport, TestResultRead, TestSubmission, TeacherGrade
from ..models.ielts_models import DBProgress, DBTest, DBTestResult, utcnow
from .band_score import calculate_band_score, is_passed
from .grader import grade_answers
from .progress_aggregator import ProgressAggregator
from .progress_reporter import HistoryEntry, UNKNOWN_SKILL, DEFAULT_TITLE, build_progress_report
from .test_service import TestService

logger = logging.getLogger(__name__)


class ResultService:
    def __init__(self, db: Session):
        self.db = db
        self.tests = TestService(db)
        self.aggregator = ProgressAggregator(db)

    def submit_test(self, user_id: str, submission: TestSubmission) -> TestResultRead:
        """Grade a submission, store the result and fold it into the user's progress."""
        test = self.tests.get_test(submission.test_id)
        if not test:
            raise LookupError("Test not found")

        questions = self.tests.get_questions(test.id)
        outcome = grade_answers(questions, submission.answers)

        score = calculate_band_score(outcome.correct, test.total_questions)
        passed = is_passed(score, test.pass_score)
        now = utcnow()

        db_result = DBTestResult(
            user_id=user_id,
            test_id=test.id,
            answers=[a.model_dump(by_alias=True) for a in outcome.answers],
            score=score,
            total_questions=test.total_questions,
            correct_answers=outcome.correct,
            wrong_answers=outcome.wrong,
            skipped_answers=outcome.skipped,
            time_spent=submission.time_spent,
            is_passed=passed,
            started_at=_naive_utc(submission.started_at) or now,
            completed_at=now,
            created_at=now,
        )
        try:
            self.db.add(db_result)
            self.db.commit()
            self.db.refresh(db_result)
        except Exception as e:
            logger.error(f"Error storing result for test {test.id}: {str(e)}")
            self.db.rollback()
            raise

        # Snapshot before the profile step; a rollback there expires db_result
        result_id = db_result.id
        response = TestResultRead.model_validate(db_result)
        logger.info(
            f"User {user_id} scored {score} on test {test.id} "
            f"({outcome.correct} correct, {outcome.wrong} wrong, {outcome.skipped} skipped)"
        )

        # The stored result stands even if the derived profile update fails
        try:
            self.aggregator.record_result(user_id, test.type, score, submission.time_spent, now=now)
        except Exception:
            self.db.rollback()
            logger.exception(f"Progress update failed for user {user_id} after result {result_id}")

        return response

    def get_result(self, result_id: str) -> Optional[DBTestResult]:
        return self.db.query(DBTestResult).filter(DBTestResult.id == result_id).first()

    def list_user_results(self, user_id: str, page: int, limit: int) -> Tuple[List[DBTestResult], int]:
        query = self.db.query(DBTestResult).filter(DBTestResult.user_id == user_id)
        total = query.count()
        results = (
            query.order_by(DBTestResult.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return results, total

    def get_progress(self, user_id: str) -> Optional[DBProgress]:
        return self.aggregator.get_profile(user_id)

    def get_progress_report(self, user_id: str) -> Optional[ProgressReport]:
        rows = (
            self.db.query(DBTestResult, DBTest)
            .outerjoin(DBTest, DBTestResult.test_id == DBTest.id)
            .filter(DBTestResult.user_id == user_id)
            .order_by(DBTestResult.created_at)
            .all()
        )
        history = [
            HistoryEntry(
                score=result.score,
                created_at=result.created_at,
                skill_type=test.type if test else UNKNOWN_SKILL,
                test_title=test.title if test else DEFAULT_TITLE,
                is_passed=result.is_passed,
                time_spent=result.time_spent,
            )
            for result, test in rows
        ]
        return build_progress_report(user_id, history)

    def set_target_score(self, user_id: str, target_score: float) -> DBProgress:
        return self.aggregator.set_target(user_id, target_score)

    def grade_manually(self, result_id: str, grade: TeacherGrade, grader_id: str) -> TestResultRead:
        """Apply a teacher's score to a result and carry the change into the profile."""
        result = self.get_result(result_id)
        if not result:
            raise LookupError("Result not found")

        test = self.tests.get_test(result.test_id)
        if not test:
            raise LookupError("Test not found")

        old_score = result.score
        user_id = result.user_id
        skill_type = test.type

        result.score = grade.score
        result.is_passed = is_passed(grade.score, test.pass_score)
        result.teacher_feedback = grade.teacher_feedback
        result.graded_by = grader_id
        result.graded_at = utcnow()
        try:
            self.db.commit()
            self.db.refresh(result)
        except Exception as e:
            logger.error(f"Error saving manual grade for result {result_id}: {str(e)}")
            self.db.rollback()
            raise

        response = TestResultRead.model_validate(result)
        logger.info(f"Result {result_id} graded by {grader_id}: {old_score} -> {grade.score}")

        if old_score != grade.score:
            try:
                self.aggregator.revise_score(user_id, skill_type, old_score, grade.score)
            except Exception:
                self.db.rollback()
                logger.exception(f"Progress revision failed for user {user_id} after grading {result_id}")

        return response


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
