from __future__ import annotations

from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase
from src.provisioning.domain.models.user import UserType
from src.provisioning.domain.models.whitelist_entry import WhitelistEntry, WhitelistStatus
from src.provisioning.infra.db.repositories import (
    ConditionFailedError,
    DuplicateRecordError,
    ProfileRepository,
    ReconciliationRepository,
    WhitelistRepository,
)


class InMemoryWhitelistRepository(WhitelistRepository):
    """Process-local whitelist table.

    Mirrors the SQL constraints: one pending entry per lower-cased email and a
    compare-and-swap status update, both under a single lock.
    """

    def __init__(self) -> None:
        self._entries: Dict[UUID, WhitelistEntry] = {}
        self._lock = Lock()

    def insert(self, entry: WhitelistEntry) -> WhitelistEntry:
        email = entry.email.lower()
        with self._lock:
            if entry.id in self._entries:
                raise DuplicateRecordError(f"whitelist entry {entry.id} already exists")
            if entry.is_pending and any(
                e.email.lower() == email and e.is_pending for e in self._entries.values()
            ):
                raise DuplicateRecordError("pending whitelist entry already exists for email")
            self._entries[entry.id] = entry.model_copy()
        return entry.model_copy()

    def get(self, entry_id: UUID) -> Optional[WhitelistEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy() if entry is not None else None

    def find_by_email(self, email: str) -> List[WhitelistEntry]:
        email = email.lower()
        with self._lock:
            matches = [e.model_copy() for e in self._entries.values() if e.email.lower() == email]
        return sorted(matches, key=lambda e: e.created_at)

    def list_by_status(self, status: Optional[WhitelistStatus] = None) -> Iterable[WhitelistEntry]:
        with self._lock:
            entries = [e.model_copy() for e in self._entries.values()]
        for entry in sorted(entries, key=lambda e: e.created_at):
            if status is not None and entry.status != status:
                continue
            yield entry

    def update_if_status(
        self,
        entry_id: UUID,
        expected_status: WhitelistStatus,
        changes: Mapping[str, Any],
    ) -> WhitelistEntry:
        with self._lock:
            current = self._entries.get(entry_id)
            if current is None or current.status != expected_status:
                raise ConditionFailedError(f"whitelist entry {entry_id} is not {expected_status.value}")
            updated = current.model_copy(update=dict(changes))
            self._entries[entry_id] = updated
            return updated.model_copy()


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self) -> None:
        self._profiles: Dict[str, Profile] = {}
        self._lock = Lock()

    def insert(self, profile: Profile) -> Profile:
        with self._lock:
            if profile.id in self._profiles:
                raise DuplicateRecordError(f"profile {profile.id} already exists")
            self._profiles[profile.id] = profile.model_copy()
        return profile.model_copy()

    def get(self, profile_id: str) -> Optional[Profile]:
        with self._lock:
            profile = self._profiles.get(profile_id)
            return profile.model_copy() if profile is not None else None

    def delete(self, profile_id: str) -> None:
        with self._lock:
            self._profiles.pop(profile_id, None)

    def has_admin(self) -> bool:
        with self._lock:
            return any(p.user_type == UserType.ADMIN for p in self._profiles.values())


class InMemoryReconciliationRepository(ReconciliationRepository):
    def __init__(self) -> None:
        self._cases: List[ReconciliationCase] = []
        self._lock = Lock()

    def insert(self, case: ReconciliationCase) -> ReconciliationCase:
        with self._lock:
            self._cases.append(case)
        return case

    def list_all(self) -> Iterable[ReconciliationCase]:
        with self._lock:
            return list(self._cases)


whitelist_repository: WhitelistRepository = InMemoryWhitelistRepository()
profile_repository: ProfileRepository = InMemoryProfileRepository()
reconciliation_repository: ReconciliationRepository = InMemoryReconciliationRepository()
