"""Identity claims and role checks.

Tokens are issued by the external identity service; this package only
validates them and exposes the caller's id and role to the engine.
"""

from .permissions import UserRole, has_permission, is_staff


__all__ = ["UserRole", "has_permission", "is_staff"]
