"""Tests for the assignment endpoints."""

from decimal import Decimal
from uuid import uuid4

from learning_engine.assignments.models import AssignmentSubmission, SubmissionStatus
from learning_engine.assignments.service import BlockSubmissions
from learning_engine.auth.permissions import UserRole
from learning_engine.core.exceptions import AlreadySubmittedError, AuthorizationError


def test_submit_assignment(client, auth_headers, user_id, mock_assignment_service):
    block_id = uuid4()
    mock_assignment_service.submit.return_value = AssignmentSubmission(
        user_id=user_id, content_block_id=block_id, submission_text="My answer"
    )

    response = client.post(
        f"/v1/assignments/{block_id}/submit",
        json={"text": "My answer"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["status"] == "submitted"
    kwargs = mock_assignment_service.submit.await_args.kwargs
    assert kwargs == {"user_id": user_id, "block_id": block_id, "text": "My answer", "files": None}


def test_duplicate_submission_is_409(client, auth_headers, mock_assignment_service):
    mock_assignment_service.submit.side_effect = AlreadySubmittedError()

    response = client.post(
        f"/v1/assignments/{uuid4()}/submit", json={"text": "again"}, headers=auth_headers
    )

    assert response.status_code == 409
    assert response.json()["code"] == "already_submitted"


def test_status_without_submission(client, auth_headers, mock_assignment_service):
    mock_assignment_service.get_submission_status.return_value = (False, None)

    response = client.get(f"/v1/assignments/{uuid4()}/status", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"has_submitted": False, "submission": None}


def test_grade_forwards_caller_role(
    client, staff_headers, staff_id, user_id, mock_assignment_service
):
    submission = AssignmentSubmission(
        user_id=user_id,
        content_block_id=uuid4(),
        submission_text="essay",
        status=SubmissionStatus.GRADED.value,
        graded_by=staff_id,
        score=Decimal("50"),
        max_score=Decimal("100"),
        percentage=Decimal("50.00"),
        is_passed=True,
    )
    mock_assignment_service.grade.return_value = submission

    response = client.post(
        f"/v1/assignments/submissions/{submission.id}/grade",
        json={"score": "50", "feedback": "Good"},
        headers=staff_headers,
    )

    assert response.status_code == 200
    assert response.json()["is_passed"] is True
    kwargs = mock_assignment_service.grade.await_args.kwargs
    assert kwargs["grader_id"] == staff_id
    assert kwargs["grader_role"] == UserRole.STAFF
    assert kwargs["score"] == Decimal("50")


def test_student_grade_is_403(client, auth_headers, mock_assignment_service):
    mock_assignment_service.grade.side_effect = AuthorizationError(
        "Only staff can grade assignments"
    )

    response = client.post(
        f"/v1/assignments/submissions/{uuid4()}/grade",
        json={"score": 100},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_queue_requires_staff(client, auth_headers, mock_assignment_service):
    response = client.get(f"/v1/assignments/{uuid4()}/submissions", headers=auth_headers)

    assert response.status_code == 403
    mock_assignment_service.list_block_submissions.assert_not_called()


def test_queue_counts(client, staff_headers, mock_assignment_service):
    block_id = uuid4()
    graded = AssignmentSubmission(
        user_id=uuid4(),
        content_block_id=block_id,
        submission_text="a",
        status=SubmissionStatus.GRADED.value,
        score=Decimal("70"),
        max_score=Decimal("100"),
        percentage=Decimal("70.00"),
        is_passed=True,
    )
    pending = AssignmentSubmission(
        user_id=uuid4(), content_block_id=block_id, submission_text="b"
    )
    mock_assignment_service.list_block_submissions.return_value = BlockSubmissions(
        content_block_id=block_id, submissions=[graded, pending]
    )

    response = client.get(f"/v1/assignments/{block_id}/submissions", headers=staff_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["pending_count"] == 1
    assert data["graded_count"] == 1
    assert len(data["submissions"]) == 2
