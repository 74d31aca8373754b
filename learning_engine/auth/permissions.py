"""Role-based access control for the engine.

Hierarchical permission levels:
- ADMIN (level 4): Full system access
- HOD (level 3): Head of department, grades across the department
- STAFF (level 2): Teaching staff, grades assignments
- STUDENT (level 1): Learner taking sessions, quizzes and examinations
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels."""

    STUDENT = "student"
    STAFF = "staff"
    HOD = "hod"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 1,
    UserRole.STAFF: 2,
    UserRole.HOD: 3,
    UserRole.ADMIN: 4,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role (0 for unknown roles)."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.HOD, UserRole.STAFF)
        True
        >>> has_permission("student", "staff")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_staff(role: UserRole | str) -> bool:
    """Check if role may grade submissions (STAFF or higher)."""
    return has_permission(role, UserRole.STAFF)
