from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from src.provisioning.config import settings
from src.provisioning.domain.models.account import Account
from src.provisioning.infra.identity.base import (
    DuplicateAccountError,
    IdentityStore,
    IdentityStoreError,
    IdentityStoreTimeout,
)

logger = logging.getLogger("identity")

_USERS_PAGE_SIZE = 1000

# 422 also covers weak passwords and malformed emails; only these codes mean
# the email is taken.
_DUPLICATE_ERROR_CODES = frozenset({"email_exists", "user_already_exists"})


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("error_code") if isinstance(body, dict) else None


@dataclass
class GoTrueConfig:
    """Connection settings for a GoTrue (Supabase Auth) admin endpoint."""

    base_url: str
    service_key: str
    timeout_seconds: float

    @classmethod
    def from_settings(cls) -> "GoTrueConfig":
        if not settings.gotrue_url or not settings.gotrue_service_key:
            raise IdentityStoreError("GOTRUE_URL and GOTRUE_SERVICE_KEY must be set for the gotrue identity backend")
        return cls(
            base_url=settings.gotrue_url.rstrip("/"),
            service_key=settings.gotrue_service_key,
            timeout_seconds=settings.identity_timeout_seconds,
        )


class GoTrueIdentityStore(IdentityStore):
    """Identity store backed by the GoTrue admin REST API.

    Every request is bounded by ``timeout_seconds``. Transport failures are
    raised as IdentityStoreError; a timeout is raised as IdentityStoreTimeout
    because the server may still have applied the request.
    """

    def __init__(self, config: GoTrueConfig, client: Optional[httpx.Client] = None) -> None:
        self._config = config
        self._client = client or httpx.Client(timeout=config.timeout_seconds)

    def _admin_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.service_key}",
            "apikey": self._config.service_key,
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._config.base_url}/auth/v1{path}"
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("GoTrue %s %s timed out", method, path)
            raise IdentityStoreTimeout(f"GoTrue {method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            logger.exception("Error calling GoTrue %s %s", method, path)
            raise IdentityStoreError(f"GoTrue {method} {path} failed") from exc

    def create_account(
        self,
        email: str,
        password: str,
        email_confirmed: bool,
        metadata: Mapping[str, Any],
    ) -> str:
        response = self._request(
            "POST",
            "/admin/users",
            headers=self._admin_headers(),
            json={
                "email": email,
                "password": password,
                "email_confirm": email_confirmed,
                "user_metadata": dict(metadata),
            },
        )
        if response.status_code == 409 or (
            response.status_code == 422 and _error_code(response) in _DUPLICATE_ERROR_CODES
        ):
            raise DuplicateAccountError(f"GoTrue rejected user creation with status {response.status_code}")
        if response.status_code >= 300:
            logger.error("GoTrue user creation failed with status %s", response.status_code)
            raise IdentityStoreError(f"GoTrue user creation failed with status {response.status_code}")

        try:
            return str(response.json()["id"])
        except (ValueError, KeyError) as exc:
            raise IdentityStoreError("GoTrue user creation returned an unexpected body") from exc

    def delete_account(self, account_id: str) -> None:
        response = self._request("DELETE", f"/admin/users/{account_id}", headers=self._admin_headers())
        if response.status_code >= 300:
            logger.error("GoTrue user deletion of %s failed with status %s", account_id, response.status_code)
            raise IdentityStoreError(f"GoTrue user deletion failed with status {response.status_code}")

    def resolve_token(self, token: str) -> Optional[str]:
        response = self._request(
            "GET",
            "/user",
            headers={"Authorization": f"Bearer {token}", "apikey": self._config.service_key},
        )
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 300:
            raise IdentityStoreError(f"GoTrue token lookup failed with status {response.status_code}")
        try:
            return str(response.json()["id"])
        except (ValueError, KeyError) as exc:
            raise IdentityStoreError("GoTrue token lookup returned an unexpected body") from exc

    def find_account_by_email(self, email: str) -> Optional[Account]:
        # The admin API has no reliable email filter, so walk the user pages.
        page = 1
        wanted = email.lower()
        while True:
            response = self._request(
                "GET",
                "/admin/users",
                headers=self._admin_headers(),
                params={"page": page, "per_page": _USERS_PAGE_SIZE},
            )
            if response.status_code >= 300:
                raise IdentityStoreError(f"GoTrue user listing failed with status {response.status_code}")
            try:
                users = response.json().get("users") or []
            except ValueError as exc:
                raise IdentityStoreError("GoTrue user listing returned non-JSON body") from exc

            for user in users:
                if str(user.get("email", "")).lower() == wanted:
                    return Account(
                        id=str(user["id"]),
                        email=user["email"],
                        email_confirmed=user.get("email_confirmed_at") is not None,
                        metadata=user.get("user_metadata") or {},
                    )
            if len(users) < _USERS_PAGE_SIZE:
                return None
            page += 1
