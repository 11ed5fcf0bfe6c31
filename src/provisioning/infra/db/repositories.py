from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Mapping, Optional
from uuid import UUID

from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase
from src.provisioning.domain.models.whitelist_entry import WhitelistEntry, WhitelistStatus


class RecordStoreError(Exception):
    """Any failure talking to the record store."""


class DuplicateRecordError(RecordStoreError):
    """Insert violated a unique key or constraint."""


class ConditionFailedError(RecordStoreError):
    """Conditional update found the row in an unexpected state."""


class WhitelistRepository(ABC):
    @abstractmethod
    def insert(self, entry: WhitelistEntry) -> WhitelistEntry:
        raise NotImplementedError

    @abstractmethod
    def get(self, entry_id: UUID) -> Optional[WhitelistEntry]:
        raise NotImplementedError

    @abstractmethod
    def find_by_email(self, email: str) -> List[WhitelistEntry]:
        """Return every entry for ``email`` (case-insensitive), oldest first."""
        raise NotImplementedError

    @abstractmethod
    def list_by_status(self, status: Optional[WhitelistStatus] = None) -> Iterable[WhitelistEntry]:
        raise NotImplementedError

    @abstractmethod
    def update_if_status(
        self,
        entry_id: UUID,
        expected_status: WhitelistStatus,
        changes: Mapping[str, Any],
    ) -> WhitelistEntry:
        """Apply ``changes`` only while the entry still has ``expected_status``.

        Raises ConditionFailedError when the entry is missing or its status
        differs, so two racing decisions can never both succeed.
        """
        raise NotImplementedError


class ProfileRepository(ABC):
    @abstractmethod
    def insert(self, profile: Profile) -> Profile:
        raise NotImplementedError

    @abstractmethod
    def get(self, profile_id: str) -> Optional[Profile]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, profile_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def has_admin(self) -> bool:
        raise NotImplementedError


class ReconciliationRepository(ABC):
    @abstractmethod
    def insert(self, case: ReconciliationCase) -> ReconciliationCase:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> Iterable[ReconciliationCase]:
        raise NotImplementedError
