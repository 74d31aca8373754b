"""Pydantic schemas for authenticated callers."""

from uuid import UUID

from pydantic import BaseModel

from .permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Claims extracted from a validated access token."""

    id: UUID
    email: str
    role: UserRole
