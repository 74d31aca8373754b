"""Shared fixtures: application client, auth tokens and mocked services."""

import os
import tempfile


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="learning-engine-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")

from unittest.mock import Mock  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from learning_engine.assignments.service import AssignmentService  # noqa: E402
from learning_engine.attempts.service import AttemptService  # noqa: E402
from learning_engine.auth.security import create_access_token  # noqa: E402
from learning_engine.main import create_app  # noqa: E402
from learning_engine.progress.service import ProgressService  # noqa: E402


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def staff_id() -> UUID:
    """Test staff member ID."""
    return uuid4()


def bearer(user_id: UUID, role: str) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user_id), "email": f"{role}@example.com", "role": role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    """Learner bearer token."""
    return bearer(user_id, "student")


@pytest.fixture
def staff_headers(staff_id: UUID) -> dict[str, str]:
    """Staff bearer token."""
    return bearer(staff_id, "staff")


@pytest.fixture
def mock_progress_service() -> Mock:
    return Mock(spec=ProgressService)


@pytest.fixture
def mock_attempt_service() -> Mock:
    return Mock(spec=AttemptService)


@pytest.fixture
def mock_assignment_service() -> Mock:
    return Mock(spec=AssignmentService)


@pytest.fixture
def app(mock_progress_service, mock_attempt_service, mock_assignment_service):
    """Application with engine services replaced by mocks (no lifespan)."""
    application = create_app()
    application.state.progress_service = mock_progress_service
    application.state.attempt_service = mock_attempt_service
    application.state.assignment_service = mock_assignment_service
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
