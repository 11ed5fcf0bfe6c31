from __future__ import annotations

from src.provisioning.infra.db import inmemory as record_stores
from src.provisioning.infra.identity import inmemory as identity_stores
from src.provisioning.services.accounts.service import AccountLookupService
from src.provisioning.services.approval.service import ApprovalService
from src.provisioning.services.reconciliation.service import ReconciliationService
from src.provisioning.services.whitelist.service import WhitelistService

# Services are built per request from the currently wired stores, so the
# startup hook (or a test) can swap a store without re-importing routes.


def get_whitelist_service() -> WhitelistService:
    return WhitelistService(record_stores.whitelist_repository)


def get_approval_service() -> ApprovalService:
    return ApprovalService(
        record_stores.whitelist_repository,
        record_stores.profile_repository,
        identity_stores.identity_store,
        record_stores.reconciliation_repository,
    )


def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(record_stores.reconciliation_repository)


def get_account_lookup_service() -> AccountLookupService:
    return AccountLookupService(identity_stores.identity_store)
