from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.provisioning.api.v1.deps import get_account_lookup_service
from src.provisioning.services.accounts.service import AccountLookupService

router = APIRouter(prefix="/accounts", tags=["accounts"])


class EmailExistsRequest(BaseModel):
    email: Optional[str] = None


class EmailExistsResponse(BaseModel):
    exists: bool


@router.post("/email-exists", response_model=EmailExistsResponse)
def email_exists(
    payload: EmailExistsRequest,
    service: AccountLookupService = Depends(get_account_lookup_service),
) -> EmailExistsResponse:
    return EmailExistsResponse(exists=service.email_exists(payload.email))
