# app/models/ielts_models.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class DBTest(Base):
    __tablename__ = "tests"

    id = Column(String, primary_key=True, default=lambda: new_id("test"))
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=False, default="")
    type = Column(String, nullable=False)  # listening, reading, writing, speaking, full_test
    duration = Column(Integer, nullable=False)  # minutes
    total_questions = Column(Integer, nullable=False)
    pass_score = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    questions = relationship(
        "DBQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="DBQuestion.question_number",
    )


class DBQuestion(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True, default=lambda: new_id("q"))
    test_id = Column(String, ForeignKey("tests.id"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)  # [{"text": ..., "isCorrect": ...}] for multiple choice
    correct_answer = Column(JSON, nullable=True)  # string or list of accepted strings
    explanation = Column(Text, nullable=True)
    points = Column(Float, nullable=False, default=1)

    test = relationship("DBTest", back_populates="questions")


class DBTestResult(Base):
    __tablename__ = "test_results"

    id = Column(String, primary_key=True, default=lambda: new_id("result"))
    user_id = Column(String, nullable=False, index=True)
    test_id = Column(String, ForeignKey("tests.id"), nullable=False)
    answers = Column(JSON, nullable=False, default=list)  # graded answers
    score = Column(Float, nullable=False)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    skipped_answers = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    is_passed = Column(Boolean, nullable=False)
    teacher_feedback = Column(Text, nullable=True)
    graded_by = Column(String, nullable=True)
    graded_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    test = relationship("DBTest")


class DBProgress(Base):
    __tablename__ = "progress"
    __table_args__ = (UniqueConstraint("user_id", name="uq_progress_user_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    overall_band_score = Column(Float, nullable=False, default=0)
    total_tests_completed = Column(Integer, nullable=False, default=0)
    total_time_spent = Column(Integer, nullable=False, default=0)  # minutes
    strengths = Column(JSON, nullable=False, default=list)
    weaknesses = Column(JSON, nullable=False, default=list)
    study_streak = Column(Integer, nullable=False, default=0)
    last_study_date = Column(DateTime, nullable=True)
    target_score = Column(Float, nullable=True)
    progress_to_target = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    skills_progress = relationship(
        "DBSkillProgress",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="DBSkillProgress.id",
    )


class DBSkillProgress(Base):
    __tablename__ = "skill_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    progress_id = Column(Integer, ForeignKey("progress.id"), nullable=False, index=True)
    skill_type = Column(String, nullable=False)
    average_score = Column(Float, nullable=False, default=0)
    tests_completed = Column(Integer, nullable=False, default=0)
    last_test_date = Column(DateTime, nullable=True)
    improvement = Column(Float, nullable=False, default=0)  # percent change of the last update

    progress = relationship("DBProgress", back_populates="skills_progress")
