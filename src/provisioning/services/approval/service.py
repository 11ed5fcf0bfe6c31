from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from src.provisioning.config import settings
from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase, ReconciliationKind
from src.provisioning.domain.models.user import CallerContext
from src.provisioning.domain.models.whitelist_entry import (
    DecisionAction,
    DecisionResult,
    WhitelistEntry,
    WhitelistStatus,
)
from src.provisioning.errors import (
    InvalidInput,
    InvalidState,
    NotFound,
    ProvisioningAppError,
    ProvisioningError,
    StorageError,
)
from src.provisioning.infra.db.repositories import (
    ConditionFailedError,
    ProfileRepository,
    ReconciliationRepository,
    RecordStoreError,
    WhitelistRepository,
)
from src.provisioning.infra.identity.base import (
    DuplicateAccountError,
    IdentityStore,
    IdentityStoreError,
    IdentityStoreTimeout,
)
from src.provisioning.services.admission.service import ensure_admin
from src.provisioning.services.approval.locks import KeyedLock
from src.provisioning.services.audit.service import audit_service

logger = logging.getLogger("approval")

# Shared by every ApprovalService in the process so that decisions on the same
# entry are serialized even when services are built per request.
_decision_locks = KeyedLock()


class ApprovalService:
    """Moves a pending whitelist entry to approved or rejected.

    Approval is a saga over two independent stores:

    1. create the account in the identity store (nothing to undo on failure);
    2. insert the profile row (on failure, delete the account);
    3. flip the entry to approved with a compare-and-swap on ``pending``.

    If step 2's compensation fails the account is orphaned; if step 3 fails
    for a storage reason the account and profile are kept and the entry stays
    pending. If step 3 loses the compare-and-swap the profile and account are
    removed again. Every leftover is logged and recorded as a reconciliation
    case.
    Decisions on one entry are serialized by a per-entry lock.
    """

    def __init__(
        self,
        whitelist_repository: WhitelistRepository,
        profile_repository: ProfileRepository,
        identity_store: IdentityStore,
        reconciliation_repository: ReconciliationRepository,
        *,
        locks: Optional[KeyedLock] = None,
        min_password_length: Optional[int] = None,
    ) -> None:
        self._whitelist = whitelist_repository
        self._profiles = profile_repository
        self._identity = identity_store
        self._reconciliation = reconciliation_repository
        self._locks = locks if locks is not None else _decision_locks
        self._min_password_length = (
            min_password_length if min_password_length is not None else settings.min_password_length
        )

    def decide(
        self,
        caller: CallerContext,
        whitelist_id: UUID,
        action: Optional[str],
        password: Optional[str] = None,
    ) -> DecisionResult:
        ensure_admin(caller)
        decision = self._parse_action(action)

        with self._locks.hold(whitelist_id):
            try:
                entry = self._load_pending(whitelist_id)
                if decision == DecisionAction.REJECT:
                    result = self._reject(caller, entry)
                else:
                    result = self._approve(caller, entry, password)
            except ProvisioningAppError as exc:
                self._audit(caller, whitelist_id, decision, exc.kind)
                raise

        extra: Dict[str, Any] = {}
        if result.account_id:
            extra["account_id"] = result.account_id
        if result.reconciliation_required:
            extra["reconciliation_required"] = True
        self._audit(caller, whitelist_id, decision, "success", extra or None)
        return result

    @staticmethod
    def _parse_action(action: Optional[str]) -> DecisionAction:
        if not action:
            raise InvalidInput("action", "Missing required field: action")
        try:
            return DecisionAction(action)
        except ValueError as exc:
            raise InvalidInput("action", "Invalid action. Must be approve or reject") from exc

    def _load_pending(self, whitelist_id: UUID) -> WhitelistEntry:
        try:
            entry = self._whitelist.get(whitelist_id)
        except RecordStoreError as exc:
            raise StorageError("Failed to load whitelist entry") from exc
        if entry is None:
            raise NotFound("Whitelist entry not found")
        if not entry.is_pending:
            raise InvalidState(entry.status.value)
        return entry

    def _decision_fields(self, caller: CallerContext, status: WhitelistStatus) -> Dict[str, Any]:
        return {
            "status": status,
            "approved_by": caller.identity,
            "approved_at": datetime.now(timezone.utc),
        }

    def _reject(self, caller: CallerContext, entry: WhitelistEntry) -> DecisionResult:
        try:
            self._whitelist.update_if_status(
                entry.id,
                WhitelistStatus.PENDING,
                self._decision_fields(caller, WhitelistStatus.REJECTED),
            )
        except ConditionFailedError as exc:
            raise InvalidState(self._current_status(entry.id)) from exc
        except RecordStoreError as exc:
            logger.error("Failed to reject whitelist entry %s: %s", entry.id, exc)
            raise StorageError("Failed to reject whitelist entry") from exc

        logger.info("Whitelist entry %s rejected by %s", entry.id, caller.identity)
        return DecisionResult(whitelist_id=entry.id, status=WhitelistStatus.REJECTED)

    def _approve(self, caller: CallerContext, entry: WhitelistEntry, password: Optional[str]) -> DecisionResult:
        if not password:
            raise InvalidInput("password", "Password is required for approval")
        if len(password) < self._min_password_length:
            raise InvalidInput(
                "password",
                f"Password must be at least {self._min_password_length} characters",
            )

        account_id = self._create_account(entry, password)
        self._create_profile(entry, account_id)

        try:
            self._whitelist.update_if_status(
                entry.id,
                WhitelistStatus.PENDING,
                self._decision_fields(caller, WhitelistStatus.APPROVED),
            )
        except ConditionFailedError as exc:
            # Decided by someone else while we provisioned; take our pair back.
            self._undo_provisioning(entry, account_id)
            raise InvalidState(self._current_status(entry.id)) from exc
        except RecordStoreError as exc:
            logger.error(
                "RECONCILIATION REQUIRED: whitelist entry %s stays pending although account %s "
                "and its profile were created: %s",
                entry.id,
                account_id,
                exc,
            )
            self._record_case(
                ReconciliationKind.STALE_PENDING,
                entry,
                account_id,
                "final status update to approved failed",
            )
            return DecisionResult(
                whitelist_id=entry.id,
                status=WhitelistStatus.APPROVED,
                account_id=account_id,
                reconciliation_required=True,
            )

        logger.info("Whitelist entry %s approved by %s as account %s", entry.id, caller.identity, account_id)
        return DecisionResult(whitelist_id=entry.id, status=WhitelistStatus.APPROVED, account_id=account_id)

    def _create_account(self, entry: WhitelistEntry, password: str) -> str:
        metadata = {
            "user_type": entry.user_type.value,
            "full_name": entry.full_name,
            "phone": entry.phone,
            "specialization": entry.specialization,
        }
        try:
            return self._identity.create_account(entry.email, password, True, metadata)
        except IdentityStoreTimeout as exc:
            logger.warning(
                "Account creation for whitelist entry %s timed out; an account for %s may exist",
                entry.id,
                entry.email,
            )
            raise ProvisioningError("Failed to create user account") from exc
        except DuplicateAccountError as exc:
            raise ProvisioningError("An account with this email already exists") from exc
        except IdentityStoreError as exc:
            logger.error("Account creation for whitelist entry %s failed: %s", entry.id, exc)
            raise ProvisioningError("Failed to create user account") from exc

    def _create_profile(self, entry: WhitelistEntry, account_id: str) -> None:
        profile = Profile(
            id=account_id,
            email=entry.email,
            full_name=entry.full_name,
            phone=entry.phone,
            user_type=entry.user_type,
            department_id=entry.department_id,
            specialization=entry.specialization,
            license_number=entry.license_number,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self._profiles.insert(profile)
        except RecordStoreError as exc:
            logger.error("Profile creation for account %s (entry %s) failed: %s", account_id, entry.id, exc)
            self._delete_account_or_flag(entry, account_id, "profile creation failed")
            raise ProvisioningError("Failed to create user profile") from exc

    def _undo_provisioning(self, entry: WhitelistEntry, account_id: str) -> None:
        try:
            self._profiles.delete(account_id)
        except RecordStoreError as exc:
            logger.error(
                "ORPHANED PROFILE: could not remove profile %s for superseded whitelist entry %s: %s",
                account_id,
                entry.id,
                exc,
            )
            self._record_case(
                ReconciliationKind.ORPHANED_PROFILE,
                entry,
                account_id,
                "profile removal failed after entry was decided concurrently",
            )
        self._delete_account_or_flag(entry, account_id, "entry was decided concurrently")

    def _delete_account_or_flag(self, entry: WhitelistEntry, account_id: str, reason: str) -> None:
        """Compensate a created account; raise an orphaned ProvisioningError if that fails."""

        try:
            self._identity.delete_account(account_id)
        except IdentityStoreError as exc:
            logger.error(
                "ORPHANED ACCOUNT: could not delete account %s for whitelist entry %s after %s: %s",
                account_id,
                entry.id,
                reason,
                exc,
            )
            self._record_case(ReconciliationKind.ORPHANED_ACCOUNT, entry, account_id, reason)
            raise ProvisioningError(
                "Provisioning could not be rolled back; the created account was left in place",
                orphaned=True,
                account_id=account_id,
            ) from exc
        logger.info("Deleted account %s for whitelist entry %s after %s", account_id, entry.id, reason)

    def _record_case(
        self,
        kind: ReconciliationKind,
        entry: WhitelistEntry,
        account_id: Optional[str],
        detail: str,
    ) -> None:
        case = ReconciliationCase(
            id=uuid4(),
            kind=kind,
            whitelist_id=entry.id,
            account_id=account_id,
            email=entry.email,
            detail=detail,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self._reconciliation.insert(case)
        except RecordStoreError:
            # The ERROR log line above is then the only trace of this case.
            logger.exception("Failed to record %s reconciliation case for entry %s", kind.value, entry.id)

    def _current_status(self, whitelist_id: UUID) -> Optional[str]:
        try:
            entry = self._whitelist.get(whitelist_id)
        except RecordStoreError:
            return None
        return entry.status.value if entry is not None else None

    @staticmethod
    def _audit(
        caller: CallerContext,
        whitelist_id: UUID,
        decision: DecisionAction,
        outcome: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        audit_service.log_event(
            action=decision.value,
            resource_type="whitelist_entry",
            outcome=outcome,
            resource_id=str(whitelist_id),
            subject=caller.identity,
            extra=extra,
        )
