from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import validate_email

from src.provisioning.config import settings
from src.provisioning.domain.models.user import CallerContext, UserType
from src.provisioning.domain.models.whitelist_entry import InviteRequest, WhitelistEntry, WhitelistStatus
from src.provisioning.errors import Conflict, InvalidInput, NotFound, StorageError
from src.provisioning.infra.db.repositories import DuplicateRecordError, RecordStoreError, WhitelistRepository
from src.provisioning.services.admission.service import ensure_admin
from src.provisioning.services.audit.service import audit_service

logger = logging.getLogger("whitelist")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_email(email: str) -> str:
    return email.strip().lower()


class WhitelistService:
    """Creates and reads whitelist invitations.

    Inviting never touches the identity store; the only side effect is the
    inserted row.
    """

    def __init__(self, repository: WhitelistRepository, *, allow_reinvite_after_rejection: Optional[bool] = None) -> None:
        self._repository = repository
        if allow_reinvite_after_rejection is None:
            allow_reinvite_after_rejection = settings.allow_reinvite_after_rejection
        self._allow_reinvite_after_rejection = allow_reinvite_after_rejection

    def invite(self, caller: CallerContext, request: InviteRequest) -> WhitelistEntry:
        ensure_admin(caller)

        email, user_type, full_name = self._validate(request)
        self._ensure_invitable(email)

        entry = WhitelistEntry(
            id=uuid4(),
            email=email,
            user_type=user_type,
            full_name=full_name,
            phone=_clean(request.phone),
            department_id=_clean(request.department_id),
            specialization=_clean(request.specialization),
            license_number=_clean(request.license_number),
            invited_by=caller.identity,
            status=WhitelistStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )

        try:
            stored = self._repository.insert(entry)
        except DuplicateRecordError as exc:
            # Lost a race with a concurrent invite for the same email.
            raise Conflict(WhitelistStatus.PENDING.value) from exc
        except RecordStoreError as exc:
            logger.error("Failed to insert whitelist entry for invite by %s: %s", caller.identity, exc)
            raise StorageError("Failed to add user to whitelist") from exc

        audit_service.log_event(
            action="invite",
            resource_type="whitelist_entry",
            resource_id=str(stored.id),
            subject=caller.identity,
            extra={"user_type": stored.user_type.value},
        )
        return stored

    def get_entry(self, caller: CallerContext, entry_id: UUID) -> WhitelistEntry:
        ensure_admin(caller)
        try:
            entry = self._repository.get(entry_id)
        except RecordStoreError as exc:
            raise StorageError("Failed to load whitelist entry") from exc
        if entry is None:
            raise NotFound("Whitelist entry not found")
        return entry

    def list_entries(self, caller: CallerContext, status: Optional[WhitelistStatus] = None) -> List[WhitelistEntry]:
        ensure_admin(caller)
        try:
            return list(self._repository.list_by_status(status))
        except RecordStoreError as exc:
            raise StorageError("Failed to list whitelist entries") from exc

    def _validate(self, request: InviteRequest) -> tuple[str, UserType, str]:
        raw_email = _clean(request.email)
        if raw_email is None:
            raise InvalidInput("email", "Missing required field: email")
        try:
            # Accepts "Name <addr>"; only the address is kept.
            _, address = validate_email(raw_email)
        except ValueError as exc:
            raise InvalidInput("email", "Invalid email address") from exc

        raw_type = _clean(request.user_type)
        if raw_type is None:
            raise InvalidInput("user_type", "Missing required field: user_type")
        try:
            user_type = UserType(raw_type)
        except ValueError as exc:
            raise InvalidInput("user_type", "Invalid user_type. Must be doctor, staff, or admin") from exc

        full_name = _clean(request.full_name)
        if full_name is None:
            raise InvalidInput("full_name", "Missing required field: full_name")

        return normalize_email(address), user_type, full_name

    def _ensure_invitable(self, email: str) -> None:
        try:
            existing = self._repository.find_by_email(email)
        except RecordStoreError as exc:
            raise StorageError("Database error checking whitelist") from exc

        for entry in existing:
            if entry.status == WhitelistStatus.REJECTED and self._allow_reinvite_after_rejection:
                continue
            raise Conflict(entry.status.value)
