from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ReconciliationKind(str, Enum):
    # Account exists without a profile and could not be deleted.
    ORPHANED_ACCOUNT = "orphaned_account"
    # Account and profile exist but the whitelist entry is still pending.
    STALE_PENDING = "stale_pending"
    # Profile row left behind for an account that was removed.
    ORPHANED_PROFILE = "orphaned_profile"


class ReconciliationCase(BaseModel):
    """Record of a degraded provisioning outcome awaiting manual repair."""

    id: UUID
    kind: ReconciliationKind
    whitelist_id: UUID
    account_id: Optional[str] = None
    email: Optional[str] = None
    detail: Optional[str] = None
    created_at: datetime
