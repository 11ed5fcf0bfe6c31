from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from src.provisioning.api.v1.deps import get_approval_service, get_whitelist_service
from src.provisioning.domain.models.user import CallerContext
from src.provisioning.domain.models.whitelist_entry import (
    DecisionResult,
    InviteRequest,
    WhitelistEntry,
    WhitelistStatus,
)
from src.provisioning.security import require_admin
from src.provisioning.services.approval.service import ApprovalService
from src.provisioning.services.whitelist.service import WhitelistService


router = APIRouter(prefix="/whitelist", tags=["whitelist"])


class InviteResponse(BaseModel):
    success: bool = True
    message: str = "User added to whitelist successfully"
    whitelist_entry: WhitelistEntry


class DecisionRequest(BaseModel):
    action: Optional[str] = None
    password: Optional[str] = None


class DecisionResponse(BaseModel):
    success: bool = True
    message: str
    result: DecisionResult


@router.post("/", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
def invite(
    payload: InviteRequest,
    caller: CallerContext = Depends(require_admin),
    service: WhitelistService = Depends(get_whitelist_service),
) -> InviteResponse:
    entry = service.invite(caller, payload)
    return InviteResponse(whitelist_entry=entry)


@router.get("/", response_model=List[WhitelistEntry])
def list_entries(
    status_filter: Optional[WhitelistStatus] = Query(None, alias="status"),
    caller: CallerContext = Depends(require_admin),
    service: WhitelistService = Depends(get_whitelist_service),
) -> List[WhitelistEntry]:
    return service.list_entries(caller, status_filter)


@router.get("/{whitelist_id}", response_model=WhitelistEntry)
def get_entry(
    whitelist_id: UUID,
    caller: CallerContext = Depends(require_admin),
    service: WhitelistService = Depends(get_whitelist_service),
) -> WhitelistEntry:
    return service.get_entry(caller, whitelist_id)


@router.post("/{whitelist_id}/decision", response_model=DecisionResponse)
def decide(
    whitelist_id: UUID,
    payload: DecisionRequest,
    caller: CallerContext = Depends(require_admin),
    service: ApprovalService = Depends(get_approval_service),
) -> DecisionResponse:
    result = service.decide(caller, whitelist_id, payload.action, payload.password)

    if result.status == WhitelistStatus.REJECTED:
        message = "User whitelist entry rejected successfully"
    elif result.reconciliation_required:
        message = "User account created; whitelist entry update is pending reconciliation"
    else:
        message = "User approved and account created successfully"
    return DecisionResponse(message=message, result=result)
