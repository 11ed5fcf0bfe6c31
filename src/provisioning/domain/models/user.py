from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class UserType(str, Enum):
    DOCTOR = "doctor"
    STAFF = "staff"
    ADMIN = "admin"


class CallerContext(BaseModel):
    """Resolved identity of the caller for a single request.

    Built by the admission guard from the bearer token and the caller's
    profile, then passed explicitly into every service call.
    """

    identity: str
    role: UserType

    @property
    def is_admin(self) -> bool:
        return self.role == UserType.ADMIN
