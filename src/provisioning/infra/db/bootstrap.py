from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from src.provisioning.config import settings
from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.user import UserType
from src.provisioning.infra.db import inmemory as inmemory_repos
from src.provisioning.infra.db.models import Base
from src.provisioning.infra.db.repositories import RecordStoreError
from src.provisioning.infra.db.session import create_sqlalchemy_session_factory, create_store_engine
from src.provisioning.infra.db.sql_profiles import SqlProfileRepository, SqlReconciliationRepository
from src.provisioning.infra.db.sql_whitelist import SqlWhitelistRepository
from src.provisioning.infra.identity import inmemory as identity_stores
from src.provisioning.infra.identity.base import IdentityStoreError
from src.provisioning.infra.identity.gotrue import GoTrueConfig, GoTrueIdentityStore

logger = logging.getLogger("bootstrap")


def init_sql_repositories(database_url: Optional[str] = None) -> None:
    """Optionally switch in-memory repositories to SQL-backed implementations.

    If USE_SQL_REPOS is not enabled or DATABASE_URL is not configured, this is
    a no-op and the in-memory repositories remain active.
    """

    if not settings.use_sql_repos:
        return

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is true but DATABASE_URL is not set; keeping in-memory repositories")
        return

    engine = create_store_engine(db_url, settings.store_timeout_seconds)

    # Create tables if they do not exist. Real deployments should manage the
    # schema with migrations.
    Base.metadata.create_all(engine)

    session_factory = create_sqlalchemy_session_factory(engine)

    # Swap repository singletons so that every consumer that reads them
    # through the inmemory module now gets the SQL-backed implementation.
    inmemory_repos.whitelist_repository = SqlWhitelistRepository(session_factory)
    inmemory_repos.profile_repository = SqlProfileRepository(session_factory)
    inmemory_repos.reconciliation_repository = SqlReconciliationRepository(session_factory)
    logger.info("SQL repositories enabled")


def init_identity_store() -> None:
    """Switch to the GoTrue identity store when IDENTITY_BACKEND=gotrue."""

    if settings.identity_backend == "memory":
        return
    if settings.identity_backend != "gotrue":
        raise ValueError(f"Unknown IDENTITY_BACKEND: {settings.identity_backend}")

    identity_stores.identity_store = GoTrueIdentityStore(GoTrueConfig.from_settings())
    logger.info("GoTrue identity store enabled")


def bootstrap_admin_if_needed() -> Optional[str]:
    """Create the first admin from BOOTSTRAP_ADMIN_* when no admin exists yet.

    Returns the admin's account id when one was created (or an existing
    account was promoted), otherwise None.
    """

    email = (settings.bootstrap_admin_email or "").strip().lower()
    password = settings.bootstrap_admin_password
    if not email or not password:
        return None

    profiles = inmemory_repos.profile_repository
    identity = identity_stores.identity_store
    try:
        if profiles.has_admin():
            return None

        existing = identity.find_account_by_email(email)
        if existing is not None:
            account_id = existing.id
        else:
            account_id = identity.create_account(
                email,
                password,
                True,
                {"user_type": UserType.ADMIN.value, "full_name": "Administrator"},
            )
        profiles.insert(
            Profile(
                id=account_id,
                email=email,
                full_name="Administrator",
                user_type=UserType.ADMIN,
                created_at=datetime.now(timezone.utc),
            )
        )
    except (IdentityStoreError, RecordStoreError):
        logger.exception("Bootstrap admin creation for %s failed", email)
        raise

    logger.info("Bootstrap admin %s created as account %s", email, account_id)
    return account_id
