from __future__ import annotations

from typing import List, Optional

from src.provisioning.domain.models.reconciliation_case import ReconciliationCase, ReconciliationKind
from src.provisioning.domain.models.user import CallerContext
from src.provisioning.errors import StorageError
from src.provisioning.infra.db.repositories import ReconciliationRepository, RecordStoreError
from src.provisioning.services.admission.service import ensure_admin


class ReconciliationService:
    """Read access to degraded provisioning outcomes for operators."""

    def __init__(self, repository: ReconciliationRepository) -> None:
        self._repository = repository

    def list_cases(self, caller: CallerContext, kind: Optional[ReconciliationKind] = None) -> List[ReconciliationCase]:
        ensure_admin(caller)
        try:
            cases = list(self._repository.list_all())
        except RecordStoreError as exc:
            raise StorageError("Failed to list reconciliation cases") from exc
        if kind is not None:
            cases = [c for c in cases if c.kind == kind]
        return cases
