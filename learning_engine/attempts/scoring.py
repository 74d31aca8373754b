"""Answer validation and scoring for quiz and examination attempts.

Equality is type-specific:

- single_choice, fill_in_blank: exact string match
- multiple_choice: exact string match, or set equality when the stored
  correct answer is a list of options
- multiple_select: set equality
- true_false: boolean equality ("true"/"false" strings accepted)
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from learning_engine.content.models import Question, QuestionType
from learning_engine.core.exceptions import MalformedAnswerError
from learning_engine.utils.rounding import percent_of, round_half_up


_TRUE_FALSE = {"true": True, "false": False}


@dataclass
class ScoreResult:
    score: int
    max_score: int
    percentage: int
    correct_question_ids: list[str] = field(default_factory=list)


def is_unanswered(answer: Any) -> bool:
    """None, empty string and empty list count as unanswered."""
    if answer is None:
        return True
    if isinstance(answer, str) and answer.strip() == "":
        return True
    return isinstance(answer, list | tuple | set) and len(answer) == 0


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _TRUE_FALSE.get(value.strip().lower())
    return None


def _option_values(question: Question) -> set[str] | None:
    """Option strings a choice answer must come from, when the bank lists them."""
    options = question.options
    if not isinstance(options, list) or not options:
        return None
    if all(isinstance(o, str) for o in options):
        return set(options)
    return None


def validate_answer(question: Question, answer: Any) -> Any:
    """Check the answer's shape against its question and normalize it.

    Unanswered values pass through unchanged so that a learner can clear
    an answer.

    Raises:
        MalformedAnswerError: If the shape does not fit the question type
    """
    if is_unanswered(answer):
        return answer

    qtype = question.question_type
    qid = str(question.id)

    if qtype == QuestionType.TRUE_FALSE.value:
        value = _as_bool(answer)
        if value is None:
            raise MalformedAnswerError(f"Question {qid} expects true or false")
        return value

    if qtype == QuestionType.MULTIPLE_SELECT.value or (
        qtype == QuestionType.MULTIPLE_CHOICE.value and isinstance(answer, list)
    ):
        if not isinstance(answer, list) or not all(isinstance(a, str) for a in answer):
            raise MalformedAnswerError(f"Question {qid} expects a list of options")
        picked = answer
    elif isinstance(answer, str):
        picked = [answer]
    else:
        raise MalformedAnswerError(f"Question {qid} expects a text answer")

    allowed = _option_values(question)
    if allowed is not None and qtype != QuestionType.FILL_IN_BLANK.value:
        unknown = [a for a in picked if a not in allowed]
        if unknown:
            raise MalformedAnswerError(f"Question {qid} has no option {unknown[0]!r}")

    return answer


def is_correct(question: Question, answer: Any) -> bool:
    """Compare one answer with the stored correct answer."""
    if is_unanswered(answer):
        return False

    expected = question.correct_answer
    qtype = question.question_type

    if qtype == QuestionType.TRUE_FALSE.value:
        given = _as_bool(answer)
        return given is not None and given == _as_bool(expected)

    if isinstance(expected, list) or qtype == QuestionType.MULTIPLE_SELECT.value:
        expected_set = set(expected) if isinstance(expected, list) else {expected}
        given_set = set(answer) if isinstance(answer, list) else {answer}
        return given_set == expected_set

    return isinstance(answer, str) and answer == expected


def score_answers(questions: Iterable[Question], answers: dict[str, Any]) -> ScoreResult:
    """Score an answer map; percentage is 0 when there are no points."""
    score = 0
    max_score = 0
    correct: list[str] = []

    for question in questions:
        qid = str(question.id)
        max_score += question.points
        if is_correct(question, answers.get(qid)):
            score += question.points
            correct.append(qid)

    percentage = int(round_half_up(percent_of(score, max_score)))
    return ScoreResult(
        score=score,
        max_score=max_score,
        percentage=percentage,
        correct_question_ids=correct,
    )


def is_passing(percentage: int, passing_score: int) -> bool:
    return percentage >= passing_score
