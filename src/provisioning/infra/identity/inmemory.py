from __future__ import annotations

import secrets
from threading import Lock
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from src.provisioning.domain.models.account import Account
from src.provisioning.infra.identity.base import (
    DuplicateAccountError,
    IdentityStore,
    IdentityStoreError,
)


class InMemoryIdentityStore(IdentityStore):
    """Identity store for tests and local development.

    Passwords are kept only to mirror the real contract; nothing in this
    service ever reads them back. Access tokens are random strings handed out
    by :meth:`issue_token`.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, Account] = {}
        self._passwords: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = Lock()

    def create_account(
        self,
        email: str,
        password: str,
        email_confirmed: bool,
        metadata: Mapping[str, Any],
    ) -> str:
        with self._lock:
            if any(a.email.lower() == email.lower() for a in self._accounts.values()):
                raise DuplicateAccountError("A user with this email address has already been registered")
            account_id = str(uuid4())
            self._accounts[account_id] = Account(
                id=account_id,
                email=email,
                email_confirmed=email_confirmed,
                metadata=dict(metadata),
            )
            self._passwords[account_id] = password
        return account_id

    def delete_account(self, account_id: str) -> None:
        with self._lock:
            if account_id not in self._accounts:
                raise IdentityStoreError(f"account {account_id} not found")
            del self._accounts[account_id]
            self._passwords.pop(account_id, None)
            self._tokens = {t: a for t, a in self._tokens.items() if a != account_id}

    def resolve_token(self, token: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(token)

    def find_account_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            for account in self._accounts.values():
                if account.email.lower() == email.lower():
                    return account.model_copy()
        return None

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return account.model_copy() if account is not None else None

    def account_count(self) -> int:
        with self._lock:
            return len(self._accounts)

    def issue_token(self, account_id: str) -> str:
        with self._lock:
            if account_id not in self._accounts:
                raise IdentityStoreError(f"account {account_id} not found")
            token = secrets.token_urlsafe(24)
            self._tokens[token] = account_id
        return token


identity_store: IdentityStore = InMemoryIdentityStore()
