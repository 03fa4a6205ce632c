# app/dependencies.py
from dataclasses import dataclass
from typing import Optional
from fastapi import Header, HTTPException

STAFF_ROLES = {"teacher", "admin"}


@dataclass
class CurrentUser:
    user_id: str
    role: str = "student"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CurrentUser:
    """Identity forwarded by the upstream auth gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return CurrentUser(user_id=x_user_id.strip(), role=(x_user_role or "student").strip().lower())


def require_staff(user: CurrentUser) -> None:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Teacher or admin role required")
