# app/schemas/ielts_schemas.py
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TestType(str, Enum):
    LISTENING = "listening"
    READING = "reading"
    WRITING = "writing"
    SPEAKING = "speaking"
    FULL_TEST = "full_test"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE_NOT_GIVEN = "true_false_not_given"
    MATCHING = "matching"
    FILL_IN_BLANK = "fill_in_blank"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"
    SPEAKING = "speaking"


SUBJECTIVE_TYPES = {QuestionType.ESSAY, QuestionType.SPEAKING}


def _is_half_step(value: float) -> bool:
    return round(value * 2) == value * 2


# ---- Submitted answers ----

class SingleAnswer(BaseModel):
    kind: Literal["single"] = "single"
    value: str

    @property
    def raw(self) -> str:
        return self.value

    def is_blank(self) -> bool:
        return not self.value.strip()


class MultiAnswer(BaseModel):
    kind: Literal["multi"] = "multi"
    values: List[str]

    @property
    def raw(self) -> List[str]:
        return list(self.values)

    def is_blank(self) -> bool:
        return all(not v.strip() for v in self.values)


UserAnswer = Annotated[Union[SingleAnswer, MultiAnswer], Field(discriminator="kind")]


class AnswerSubmission(CamelModel):
    question_id: str = Field(min_length=1)
    user_answer: UserAnswer

    @field_validator("user_answer", mode="before")
    @classmethod
    def wrap_user_answer(cls, v):
        # wire format is string | string[]
        if isinstance(v, (SingleAnswer, MultiAnswer)):
            return v
        if v is None:
            return {"kind": "single", "value": ""}
        if isinstance(v, str):
            return {"kind": "single", "value": v}
        if isinstance(v, list) and all(isinstance(x, str) for x in v):
            return {"kind": "multi", "values": v}
        raise ValueError("userAnswer must be a string or a list of strings")


class TestSubmission(CamelModel):
    test_id: str = Field(min_length=1)
    answers: List[AnswerSubmission] = Field(min_length=1)
    time_spent: int = Field(0, ge=0)  # seconds
    started_at: Optional[datetime] = None

    @field_validator("answers")
    @classmethod
    def validate_unique_questions(cls, v):
        seen = set()
        for answer in v:
            if answer.question_id in seen:
                raise ValueError(f"Duplicate answer for question {answer.question_id}")
            seen.add(answer.question_id)
        return v


class GradedAnswer(CamelModel):
    question_id: str
    user_answer: Union[str, List[str]]
    is_correct: Optional[bool] = None
    points_earned: float = 0


# ---- Tests and questions ----

class Option(CamelModel):
    text: str
    is_correct: bool = False


class QuestionCreate(CamelModel):
    question_number: int = Field(ge=1)
    type: QuestionType
    question: str = Field(min_length=1)
    options: Optional[List[Option]] = None
    correct_answer: Optional[Union[str, List[str]]] = None
    explanation: Optional[str] = None
    points: float = Field(1, ge=0)


class QuestionRead(QuestionCreate):
    id: str
    test_id: str


class TestCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    type: TestType
    duration: int = Field(ge=1)
    total_questions: int = Field(ge=1)
    pass_score: float = Field(ge=0, le=9)
    questions: List[QuestionCreate] = []


class TestRead(CamelModel):
    id: str
    title: str
    description: str
    type: TestType
    duration: int
    total_questions: int
    pass_score: float
    questions: List[QuestionRead] = []
    created_at: Optional[datetime] = None


# ---- Results ----

class TestResultRead(CamelModel):
    id: str
    user_id: str
    test_id: str
    answers: List[GradedAnswer]
    score: float
    total_questions: int
    correct_answers: int
    wrong_answers: int
    skipped_answers: int
    time_spent: int
    is_passed: bool
    teacher_feedback: Optional[str] = None
    graded_by: Optional[str] = None
    graded_at: Optional[datetime] = None
    started_at: datetime
    completed_at: datetime
    created_at: datetime


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PaginatedResults(CamelModel):
    data: List[TestResultRead]
    pagination: Pagination


class TeacherGrade(CamelModel):
    score: float = Field(ge=0, le=9)
    teacher_feedback: Optional[str] = None

    @field_validator("score")
    @classmethod
    def validate_band_step(cls, v):
        if not _is_half_step(v):
            raise ValueError("Score must be in 0.5 steps")
        return v


# ---- Stored progress profile ----

class SkillProgressRead(CamelModel):
    skill_type: str
    average_score: float
    tests_completed: int
    last_test_date: Optional[datetime] = None
    improvement: float = 0


class ProgressRead(CamelModel):
    user_id: str
    overall_band_score: float
    total_tests_completed: int
    total_time_spent: int  # minutes
    skills_progress: List[SkillProgressRead] = []
    strengths: List[str] = []
    weaknesses: List[str] = []
    study_streak: int
    last_study_date: Optional[datetime] = None
    target_score: Optional[float] = None
    progress_to_target: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


EMPTY_PROGRESS = {
    "overallBandScore": 0,
    "totalTestsCompleted": 0,
    "totalTimeSpent": 0,
    "skillsProgress": [],
    "strengths": [],
    "weaknesses": [],
    "studyStreak": 0,
}


class TargetScoreUpdate(CamelModel):
    target_score: float = Field(ge=0, le=9)


# ---- On-demand progress report ----

class RecentActivity(CamelModel):
    test_title: str
    score: float
    is_passed: bool
    created_at: datetime


class ProgressReport(CamelModel):
    user_id: str
    overall_band_score: float
    total_tests_completed: int
    total_time_spent: int  # seconds
    skills_progress: List[SkillProgressRead]
    strengths: List[str]
    weaknesses: List[str]
    study_streak: int
    last_study_date: Optional[datetime] = None
    target_score: Optional[float] = None
    progress_to_target: Optional[float] = None
    recent_activity: List[RecentActivity]
    generated_at: datetime


class ProgressReportResponse(CamelModel):
    data: Optional[ProgressReport] = None
    message: str
