from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from src.provisioning.domain.models.user import UserType


class WhitelistStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WhitelistEntry(BaseModel):
    """A pre-registered invitation for a doctor, staff member or admin.

    The entry only ever leaves ``pending`` once, through the approval
    orchestrator; ``approved_by``/``approved_at`` record that single decision
    for both approvals and rejections.
    """

    id: UUID
    email: str
    user_type: UserType
    full_name: str
    phone: Optional[str] = None
    department_id: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    invited_by: str
    status: WhitelistStatus = WhitelistStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == WhitelistStatus.PENDING


class InviteRequest(BaseModel):
    # All optional strings; the whitelist service validates them and reports
    # the offending field as invalid input.
    email: Optional[str] = None
    user_type: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    department_id: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None


class DecisionAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class DecisionResult(BaseModel):
    whitelist_id: UUID
    status: WhitelistStatus
    account_id: Optional[str] = None
    # True when the account and profile exist but the entry could not be
    # flipped to approved; an operator has to finish the bookkeeping.
    reconciliation_required: bool = False
