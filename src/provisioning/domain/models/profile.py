from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from src.provisioning.domain.models.user import UserType


class Profile(BaseModel):
    """Authoritative role record for an account, keyed by the account id."""

    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    user_type: UserType
    department_id: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    created_at: datetime
