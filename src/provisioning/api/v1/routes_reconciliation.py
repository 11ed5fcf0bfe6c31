from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends

from src.provisioning.api.v1.deps import get_reconciliation_service
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase, ReconciliationKind
from src.provisioning.domain.models.user import CallerContext
from src.provisioning.security import require_admin
from src.provisioning.services.reconciliation.service import ReconciliationService

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("/", response_model=List[ReconciliationCase])
def list_reconciliation_cases(
    kind: Optional[ReconciliationKind] = None,
    caller: CallerContext = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> List[ReconciliationCase]:
    """Degraded provisioning outcomes (orphaned accounts, stale pending entries)."""
    return service.list_cases(caller, kind)
