from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from app.database.database import build_engine, build_session_factory, get_db, init_db
from app.main import app

STUDENT = {"X-User-Id": "student-1", "X-User-Role": "student"}
TEACHER = {"X-User-Id": "teacher-1", "X-User-Role": "teacher"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def build_test_payload(
    *,
    test_type: str = "reading",
    question_type: str = "multiple_choice",
    count: int = 20,
    total_questions: int | None = None,
    pass_score: float = 6.5,
) -> dict:
    """A test whose multiple-choice questions all have option "A" as the key."""
    questions = []
    for idx in range(1, count + 1):
        question = {
            "questionNumber": idx,
            "type": question_type,
            "question": f"Question {idx}",
            "points": 1,
        }
        if question_type == "multiple_choice":
            question["options"] = [
                {"text": "A", "isCorrect": True},
                {"text": "B", "isCorrect": False},
                {"text": "C", "isCorrect": False},
            ]
        questions.append(question)

    return {
        "title": f"{test_type.title()} practice",
        "description": "Synthetic test",
        "type": test_type,
        "duration": 60,
        "totalQuestions": total_questions or count,
        "passScore": pass_score,
        "questions": questions,
    }


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ielts_test.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def create_test(client):
    """Create a test through the API and return its JSON representation."""

    def _create(**kwargs) -> dict:
        response = client.post("/api/tests", json=build_test_payload(**kwargs), headers=TEACHER)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
