from __future__ import annotations

import logging
from typing import Optional

from src.provisioning.domain.models.user import CallerContext, UserType
from src.provisioning.errors import Forbidden, StorageError, Unauthorized
from src.provisioning.infra.db.repositories import ProfileRepository, RecordStoreError

logger = logging.getLogger("admission")


class AdmissionGuard:
    """Decides whether a resolved identity may run admin operations.

    Only lookups happen here: the caller's profile is read to find its role.
    No profile means the caller has no role in the application at all, which
    is treated the same as a non-admin role.
    """

    def __init__(self, profile_repository: ProfileRepository) -> None:
        self._profiles = profile_repository

    def resolve_caller(self, identity: Optional[str]) -> CallerContext:
        if not identity:
            raise Unauthorized()

        try:
            profile = self._profiles.get(identity)
        except RecordStoreError as exc:
            logger.error("Profile lookup for caller %s failed: %s", identity, exc)
            raise StorageError("Failed to look up caller profile") from exc

        if profile is None:
            raise Forbidden()
        return CallerContext(identity=identity, role=profile.user_type)

    def require_admin(self, identity: Optional[str]) -> CallerContext:
        caller = self.resolve_caller(identity)
        if caller.role != UserType.ADMIN:
            raise Forbidden()
        return caller


def ensure_admin(caller: CallerContext) -> None:
    """Raise Forbidden unless ``caller`` is an admin.

    Services call this on entry so that a mis-wired route can never reach a
    store write with a non-admin caller.
    """

    if not caller.is_admin:
        raise Forbidden()
