from __future__ import annotations

import logging
from typing import Optional

from pydantic import validate_email

from src.provisioning.errors import InvalidInput, StorageError
from src.provisioning.infra.identity.base import IdentityStore, IdentityStoreError

logger = logging.getLogger("accounts")


class AccountLookupService:
    """Answers whether an account already exists for an email address.

    Used by the sign-up screens before they offer registration.
    """

    def __init__(self, identity_store: IdentityStore) -> None:
        self._identity = identity_store

    def email_exists(self, email: Optional[str]) -> bool:
        email = (email or "").strip()
        if not email:
            raise InvalidInput("email", "Email is required")
        try:
            _, address = validate_email(email)
        except ValueError as exc:
            raise InvalidInput("email", "Invalid email address") from exc

        try:
            return self._identity.find_account_by_email(address) is not None
        except IdentityStoreError as exc:
            logger.error("Failed to check email existence: %s", exc)
            raise StorageError("Failed to check email existence") from exc
