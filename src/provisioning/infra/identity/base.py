from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from src.provisioning.domain.models.account import Account


class IdentityStoreError(Exception):
    """Any failure talking to the identity store."""


class DuplicateAccountError(IdentityStoreError):
    """An account with this email already exists."""


class IdentityStoreTimeout(IdentityStoreError):
    """The call did not complete in time; its outcome is unknown."""


class IdentityStore(ABC):
    @abstractmethod
    def create_account(
        self,
        email: str,
        password: str,
        email_confirmed: bool,
        metadata: Mapping[str, Any],
    ) -> str:
        """Create a credentialed account and return its opaque id."""
        raise NotImplementedError

    @abstractmethod
    def delete_account(self, account_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def resolve_token(self, token: str) -> Optional[str]:
        """Return the account id an access token belongs to, or None."""
        raise NotImplementedError

    @abstractmethod
    def find_account_by_email(self, email: str) -> Optional[Account]:
        raise NotImplementedError
