from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.provisioning.domain.models.user import CallerContext
from src.provisioning.errors import Unauthorized
from src.provisioning.infra.db import inmemory as record_stores
from src.provisioning.infra.identity import inmemory as identity_stores
from src.provisioning.infra.identity.base import IdentityStoreError
from src.provisioning.services.admission.service import AdmissionGuard

logger = logging.getLogger("admission")

# Access token is expected as "Authorization: Bearer <token>", issued by the
# identity store when the user signed in.
_bearer = HTTPBearer(auto_error=False)

# Both dependencies below call the identity and record stores synchronously,
# so they are plain functions and FastAPI runs them in its threadpool.


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(_bearer),
) -> str:
    """Resolve the bearer token to an account id or fail with Unauthorized."""

    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    try:
        identity = identity_stores.identity_store.resolve_token(credentials.credentials)
    except IdentityStoreError as exc:
        logger.error("Token resolution failed: %s", exc)
        raise Unauthorized() from exc

    if identity is None:
        raise Unauthorized()
    return identity


def require_admin(identity: str = Depends(get_current_identity)) -> CallerContext:
    """FastAPI dependency that admits only callers whose profile is an admin."""

    guard = AdmissionGuard(record_stores.profile_repository)
    return guard.require_admin(identity)
