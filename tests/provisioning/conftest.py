from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Tuple

import pytest

from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.user import CallerContext, UserType
from src.provisioning.domain.models.whitelist_entry import InviteRequest
from src.provisioning.infra.db import inmemory as record_stores
from src.provisioning.infra.db.inmemory import (
    InMemoryProfileRepository,
    InMemoryReconciliationRepository,
    InMemoryWhitelistRepository,
)
from src.provisioning.infra.identity import inmemory as identity_stores
from src.provisioning.infra.identity.inmemory import InMemoryIdentityStore
from src.provisioning.services.approval.locks import KeyedLock
from src.provisioning.services.approval.service import ApprovalService
from src.provisioning.services.whitelist.service import WhitelistService


@pytest.fixture
def stores(monkeypatch):
    """Fresh in-memory stores, also wired into the module-level singletons used by the API."""

    ns = SimpleNamespace(
        whitelist=InMemoryWhitelistRepository(),
        profiles=InMemoryProfileRepository(),
        reconciliation=InMemoryReconciliationRepository(),
        identity=InMemoryIdentityStore(),
    )
    monkeypatch.setattr(record_stores, "whitelist_repository", ns.whitelist)
    monkeypatch.setattr(record_stores, "profile_repository", ns.profiles)
    monkeypatch.setattr(record_stores, "reconciliation_repository", ns.reconciliation)
    monkeypatch.setattr(identity_stores, "identity_store", ns.identity)
    return ns


def make_user(stores, user_type: UserType, email: str) -> Tuple[CallerContext, str]:
    """Create an account + profile directly in the stores; return its caller context and token."""

    account_id = stores.identity.create_account(email, "password123", True, {"user_type": user_type.value})
    stores.profiles.insert(
        Profile(
            id=account_id,
            email=email,
            full_name=email.split("@")[0],
            user_type=user_type,
            created_at=datetime.now(timezone.utc),
        )
    )
    token = stores.identity.issue_token(account_id)
    return CallerContext(identity=account_id, role=user_type), token


@pytest.fixture
def admin(stores) -> CallerContext:
    caller, _ = make_user(stores, UserType.ADMIN, "root@clinic.example")
    return caller


@pytest.fixture
def admin_token(stores) -> str:
    _, token = make_user(stores, UserType.ADMIN, "admin@clinic.example")
    return token


@pytest.fixture
def doctor_token(stores) -> str:
    _, token = make_user(stores, UserType.DOCTOR, "house@clinic.example")
    return token


@pytest.fixture
def whitelist_service(stores) -> WhitelistService:
    return WhitelistService(stores.whitelist, allow_reinvite_after_rejection=True)


@pytest.fixture
def approval_service(stores) -> ApprovalService:
    return ApprovalService(
        stores.whitelist,
        stores.profiles,
        stores.identity,
        stores.reconciliation,
        locks=KeyedLock(),
        min_password_length=6,
    )


@pytest.fixture
def pending_entry(whitelist_service, admin):
    return whitelist_service.invite(
        admin,
        InviteRequest(
            email="a@x.com",
            user_type="doctor",
            full_name="A B",
            phone="+15550100",
            department_id="cardiology",
            specialization="Cardiology",
            license_number="MD-1234",
        ),
    )


@pytest.fixture
def user_factory(stores):
    def _make(user_type: UserType, email: str) -> Tuple[CallerContext, str]:
        return make_user(stores, user_type, email)

    return _make
