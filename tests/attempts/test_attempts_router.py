"""Tests for the attempt endpoints."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from fakes import make_block, make_question
from learning_engine.attempts.models import Attempt, AttemptState
from learning_engine.attempts.service import AttemptOverview, AttemptPolicy
from learning_engine.core.exceptions import (
    AlreadyAttemptedError,
    InvalidBlockTypeError,
    TimeoutExpiredError,
    UnansweredQuestionsError,
)


T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def graded_attempt(user_id, block_id, auto=False) -> Attempt:
    return Attempt(
        user_id=user_id,
        content_block_id=block_id,
        attempt_number=1,
        block_type="examination",
        passing_score=70,
        time_limit_minutes=1,
        state=AttemptState.GRADED.value,
        answers={"q1": "A"},
        score=1,
        max_score=2,
        percentage=50,
        is_passed=False,
        time_spent_seconds=60,
        started_at=T0,
        deadline_at=T0 + timedelta(minutes=1),
        completed_at=T0 + timedelta(minutes=1),
        auto_submitted=auto,
    )


def test_questions_hide_correct_answers(client, auth_headers, user_id, mock_attempt_service):
    quiz = make_block("quiz", instructions="Read carefully", passing_score=60)
    question = make_question(quiz, "single_choice", "A", options=["A", "B"])
    mock_attempt_service.get_attempt_questions.return_value = AttemptOverview(
        block=quiz,
        questions=[question],
        policy=AttemptPolicy(passing_score=60, time_limit_minutes=None, max_attempts=3),
        attempt_count=1,
        can_attempt=True,
    )

    response = client.get(f"/v1/attempts/{quiz.id}/questions", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["can_attempt"] is True
    assert data["attempt_count"] == 1
    assert data["max_attempts"] == 3
    assert data["instructions"] == "Read carefully"
    assert "correct_answer" not in data["questions"][0]
    assert data["questions"][0]["options"] == ["A", "B"]


def test_second_examination_attempt_is_409(client, auth_headers, mock_attempt_service):
    mock_attempt_service.start_attempt.side_effect = AlreadyAttemptedError(
        details={"attempt_id": str(uuid4()), "percentage": 80, "is_passed": True}
    )

    response = client.post(f"/v1/attempts/{uuid4()}/start", headers=auth_headers)

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "already_attempted"
    assert data["details"]["percentage"] == 80


def test_attempt_on_video_is_400(client, auth_headers, mock_attempt_service):
    mock_attempt_service.start_attempt.side_effect = InvalidBlockTypeError()

    response = client.post(f"/v1/attempts/{uuid4()}/start", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_block_type"


def test_late_answer_returns_graded_attempt(
    client, auth_headers, user_id, mock_attempt_service
):
    block_id = uuid4()
    mock_attempt_service.record_answer.side_effect = TimeoutExpiredError(
        details={"attempt": graded_attempt(user_id, block_id, auto=True)}
    )

    response = client.put(
        f"/v1/attempts/{block_id}/answers",
        json={"question_id": "q2", "answer": "B"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["time_expired"] is True
    assert data["auto_submitted"] is True
    assert data["state"] == "graded"
    assert data["answers"] == {"q1": "A"}


def test_submit_with_unanswered_is_422(client, auth_headers, mock_attempt_service):
    mock_attempt_service.submit_attempt.side_effect = UnansweredQuestionsError(["q2"])

    response = client.post(
        f"/v1/attempts/{uuid4()}/submit",
        json={"answers": {"q1": "A"}},
        headers=auth_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "unanswered_questions"
    assert data["details"] == {"unanswered_question_ids": ["q2"]}


def test_submit_passes_flags(client, auth_headers, user_id, mock_attempt_service):
    block_id = uuid4()
    mock_attempt_service.submit_attempt.return_value = graded_attempt(user_id, block_id)

    response = client.post(
        f"/v1/attempts/{block_id}/submit",
        json={"answers": {"q1": "A"}, "allow_unanswered": True, "time_spent_seconds": 55},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["percentage"] == 50
    kwargs = mock_attempt_service.submit_attempt.await_args.kwargs
    assert kwargs["allow_unanswered"] is True
    assert kwargs["time_spent_seconds"] == 55
    assert kwargs["auto_submitted"] is False


def test_negative_time_fails_request_validation(client, auth_headers):
    response = client.post(
        f"/v1/attempts/{uuid4()}/submit",
        json={"answers": {}, "time_spent_seconds": -3},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
