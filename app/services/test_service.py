# app/services/test_service.py
from typing import List, Optional
import logging
from sqlalchemy.orm import Session
from ..schemas.ielts_schemas import TestCreate, TestRead
from ..models.ielts_models import DBTest, DBQuestion

logger = logging.getLogger(__name__)


class TestService:
    def __init__(self, db: Session):
        self.db = db

    def _convert_to_db_model(self, test: TestCreate) -> DBTest:
        """Convert request model to database model"""
        db_questions = []
        for q in test.questions:
            db_question = DBQuestion(
                question_number=q.question_number,
                type=q.type.value,
                question=q.question,
                options=[opt.model_dump(by_alias=True) for opt in q.options] if q.options else None,
                correct_answer=q.correct_answer,
                explanation=q.explanation,
                points=q.points,
            )
            db_questions.append(db_question)

        return DBTest(
            title=test.title,
            description=test.description,
            type=test.type.value,
            duration=test.duration,
            total_questions=test.total_questions,
            pass_score=test.pass_score,
            questions=db_questions,
        )

    def create_test(self, test: TestCreate) -> DBTest:
        """Store a test together with its questions."""
        if test.questions and len(test.questions) != test.total_questions:
            # Not enforced: scoring always divides by total_questions
            logger.warning(
                f"Test '{test.title}' declares {test.total_questions} questions "
                f"but {len(test.questions)} were supplied"
            )

        try:
            db_test = self._convert_to_db_model(test)
            self.db.add(db_test)
            self.db.commit()
            self.db.refresh(db_test)
            logger.info(f"Created test {db_test.id} ({db_test.type}) with {len(db_test.questions)} questions")
            return db_test
        except Exception as e:
            logger.error(f"Error in create_test: {str(e)}")
            self.db.rollback()
            raise

    def get_test(self, test_id: str) -> Optional[DBTest]:
        """Retrieve a test from the database."""
        return self.db.query(DBTest).filter(DBTest.id == test_id).first()

    def get_test_read(self, test_id: str) -> Optional[TestRead]:
        db_test = self.get_test(test_id)
        if db_test:
            return TestRead.model_validate(db_test)
        return None

    def get_questions(self, test_id: str) -> List[DBQuestion]:
        return (
            self.db.query(DBQuestion)
            .filter(DBQuestion.test_id == test_id)
            .order_by(DBQuestion.question_number)
            .all()
        )
