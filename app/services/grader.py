# app/services/grader.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from ..schemas.ielts_schemas import (
    AnswerSubmission,
    GradedAnswer,
    MultiAnswer,
    QuestionType,
    SingleAnswer,
    SUBJECTIVE_TYPES,
)

logger = logging.getLogger(__name__)

Answer = Union[SingleAnswer, MultiAnswer]


@dataclass
class GradingOutcome:
    answers: List[GradedAnswer] = field(default_factory=list)
    correct: int = 0
    wrong: int = 0
    skipped: int = 0


def _normalize(value: Any) -> str:
    return str(value).strip().lower()


def _alternatives(correct_answer: Any) -> List[Any]:
    if correct_answer is None:
        return []
    if isinstance(correct_answer, list):
        return correct_answer
    return [correct_answer]


def _check_multiple_choice(question, answer: Answer) -> bool:
    if not isinstance(answer, SingleAnswer):
        return False
    correct_option = next(
        (opt for opt in (question.options or []) if opt.get("isCorrect")),
        None,
    )
    if correct_option is None:
        return False
    return answer.value == correct_option.get("text")


def _check_free_text(question, answer: Answer) -> bool:
    """Fill-in-blank / short answer: any accepted alternative, ignoring case and padding."""
    if not isinstance(answer, SingleAnswer):
        return False
    given = _normalize(answer.value)
    return any(
        alt is not None and _normalize(alt) == given
        for alt in _alternatives(question.correct_answer)
    )


def _check_true_false_not_given(question, answer: Answer) -> bool:
    if not isinstance(answer, SingleAnswer):
        return False
    return answer.value == question.correct_answer


def _check_matching(question, answer: Answer) -> bool:
    """Pairs are compared position by position; a single key compares like free text."""
    expected = question.correct_answer
    if expected is None:
        return False
    if isinstance(expected, list):
        if not isinstance(answer, MultiAnswer) or len(answer.values) != len(expected):
            return False
        return all(
            exp is not None and _normalize(exp) == _normalize(got)
            for exp, got in zip(expected, answer.values)
        )
    if not isinstance(answer, SingleAnswer):
        return False
    return _normalize(expected) == _normalize(answer.value)


CHECKERS: Dict[str, Callable[[Any, Answer], bool]] = {
    QuestionType.MULTIPLE_CHOICE.value: _check_multiple_choice,
    QuestionType.FILL_IN_BLANK.value: _check_free_text,
    QuestionType.SHORT_ANSWER.value: _check_free_text,
    QuestionType.TRUE_FALSE_NOT_GIVEN.value: _check_true_false_not_given,
    QuestionType.MATCHING.value: _check_matching,
}

SUBJECTIVE_VALUES = {t.value for t in SUBJECTIVE_TYPES}


def grade_answers(questions: Union[Dict[str, Any], Iterable[Any]], answers: List[AnswerSubmission]) -> GradingOutcome:
    """Grade submitted answers against a test's questions.

    ``questions`` is either a mapping of question id to question or an iterable
    of question objects exposing ``id``, ``type``, ``options``,
    ``correct_answer`` and ``points``.

    Essay and speaking answers are left for manual review and touch no counter.
    Every other answer moves exactly one of correct / wrong / skipped. An answer
    that references a question outside the test is counted as wrong.
    """
    if not isinstance(questions, dict):
        questions = {str(q.id): q for q in questions}

    outcome = GradingOutcome()

    for answer in answers:
        question: Optional[Any] = questions.get(answer.question_id)
        q_type = getattr(question, "type", None)
        q_type = q_type.value if isinstance(q_type, QuestionType) else q_type

        if question is not None and q_type in SUBJECTIVE_VALUES:
            outcome.answers.append(GradedAnswer(
                question_id=answer.question_id,
                user_answer=answer.user_answer.raw,
                is_correct=None,
                points_earned=0,
            ))
            continue

        checker = CHECKERS.get(q_type) if question is not None else None
        if checker is None:
            logger.warning(f"No gradable question {answer.question_id} (type={q_type}); marking incorrect")
            outcome.wrong += 1
            outcome.answers.append(GradedAnswer(
                question_id=answer.question_id,
                user_answer=answer.user_answer.raw,
                is_correct=False,
                points_earned=0,
            ))
            continue

        is_correct = checker(question, answer.user_answer)
        if is_correct:
            outcome.correct += 1
        elif answer.user_answer.is_blank():
            outcome.skipped += 1
        else:
            outcome.wrong += 1

        outcome.answers.append(GradedAnswer(
            question_id=answer.question_id,
            user_answer=answer.user_answer.raw,
            is_correct=is_correct,
            points_earned=question.points if is_correct else 0,
        ))

    return outcome
