"""Shared FastAPI dependencies for authentication.

Handlers never read the cookie session directly; they receive an explicit
:class:`Principal` describing who is calling.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from exam_portal.database import get_session
from exam_portal.models import User


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_principal(
    request: Request, session: Session = Depends(get_session)
) -> Optional[Principal]:
    """Return the logged-in principal based on the session cookie, if any."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None

    user = session.get(User, user_id)
    if not user:
        # Clear any stale session
        request.session.clear()
        return None
    return Principal(user_id=user.id, role=user.role, name=user.name)


def require_login(principal: Optional[Principal] = Depends(get_current_principal)) -> Principal:
    """Ensure that a user is logged in."""
    if principal is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return principal


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(principal: Principal = Depends(require_login)) -> Principal:
        if principal.role not in required_roles:
            raise HTTPException(status_code=403, detail="Access denied")
        return principal

    return wrapper
