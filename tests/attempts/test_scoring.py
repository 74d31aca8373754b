"""Tests for answer validation and scoring."""

import pytest

from fakes import make_block, make_question
from learning_engine.attempts.scoring import (
    is_correct,
    is_passing,
    is_unanswered,
    score_answers,
    validate_answer,
)
from learning_engine.core.exceptions import MalformedAnswerError


@pytest.fixture
def quiz():
    return make_block("quiz")


class TestIsCorrect:
    """Type-specific equality."""

    def test_single_choice_exact_match(self, quiz) -> None:
        q = make_question(quiz, "single_choice", "Paris", options=["Paris", "Rome"])
        assert is_correct(q, "Paris")
        assert not is_correct(q, "paris")

    def test_multiple_select_is_order_insensitive(self, quiz) -> None:
        q = make_question(quiz, "multiple_select", ["a", "c"], options=["a", "b", "c"])
        assert is_correct(q, ["c", "a"])
        assert not is_correct(q, ["a"])
        assert not is_correct(q, ["a", "b", "c"])

    def test_multiple_choice_with_list_answer(self, quiz) -> None:
        q = make_question(quiz, "multiple_choice", ["x", "y"], options=["x", "y", "z"])
        assert is_correct(q, ["y", "x"])

    @pytest.mark.parametrize("answer", [True, "true", "TRUE", " True "])
    def test_true_false_accepts_strings(self, quiz, answer) -> None:
        q = make_question(quiz, "true_false", True)
        assert is_correct(q, answer)

    def test_true_false_mismatch(self, quiz) -> None:
        q = make_question(quiz, "true_false", "false")
        assert is_correct(q, False)
        assert not is_correct(q, "true")

    def test_fill_in_blank_exact(self, quiz) -> None:
        q = make_question(quiz, "fill_in_blank", "mitochondria")
        assert is_correct(q, "mitochondria")
        assert not is_correct(q, "Mitochondria")

    def test_unanswered_is_wrong(self, quiz) -> None:
        q = make_question(quiz, "single_choice", "A")
        assert not is_correct(q, None)
        assert not is_correct(q, "")


class TestValidateAnswer:
    """Answer shape checks."""

    def test_option_must_exist(self, quiz) -> None:
        q = make_question(quiz, "single_choice", "A", options=["A", "B"])
        with pytest.raises(MalformedAnswerError):
            validate_answer(q, "C")

    def test_multiple_select_requires_list(self, quiz) -> None:
        q = make_question(quiz, "multiple_select", ["A"], options=["A", "B"])
        with pytest.raises(MalformedAnswerError):
            validate_answer(q, "A")

    def test_true_false_rejects_other_text(self, quiz) -> None:
        q = make_question(quiz, "true_false", True)
        with pytest.raises(MalformedAnswerError):
            validate_answer(q, "maybe")

    def test_true_false_normalized_to_bool(self, quiz) -> None:
        q = make_question(quiz, "true_false", True)
        assert validate_answer(q, "False") is False

    def test_single_choice_rejects_number(self, quiz) -> None:
        q = make_question(quiz, "single_choice", "A")
        with pytest.raises(MalformedAnswerError):
            validate_answer(q, 3)

    def test_clearing_an_answer_is_allowed(self, quiz) -> None:
        q = make_question(quiz, "single_choice", "A", options=["A", "B"])
        assert validate_answer(q, None) is None


class TestScoreAnswers:
    """Score, max score and percentage."""

    def test_two_question_quiz_half_right(self, quiz) -> None:
        q1 = make_question(quiz, "single_choice", "A", options=["A", "B"])
        q2 = make_question(quiz, "true_false", True)

        result = score_answers([q1, q2], {str(q1.id): "A", str(q2.id): False})

        assert result.score == 1
        assert result.max_score == 2
        assert result.percentage == 50
        assert result.correct_question_ids == [str(q1.id)]
        assert is_passing(result.percentage, 50)
        assert not is_passing(result.percentage, 51)

    def test_points_are_weighted(self, quiz) -> None:
        q1 = make_question(quiz, "single_choice", "A", points=3)
        q2 = make_question(quiz, "single_choice", "B", points=1)

        result = score_answers([q1, q2], {str(q1.id): "A"})

        assert (result.score, result.max_score, result.percentage) == (3, 4, 75)

    def test_percentage_rounds_half_up(self, quiz) -> None:
        questions = [make_question(quiz, "single_choice", "A") for _ in range(8)]
        answers = {str(questions[0].id): "A"}

        assert score_answers(questions, answers).percentage == 13

    def test_no_questions_scores_zero(self) -> None:
        result = score_answers([], {})
        assert (result.score, result.max_score, result.percentage) == (0, 0, 0)


@pytest.mark.parametrize(
    "value,expected",
    [(None, True), ("", True), ("  ", True), ([], True), ("A", False), (False, False)],
)
def test_is_unanswered(value, expected) -> None:
    assert is_unanswered(value) is expected
