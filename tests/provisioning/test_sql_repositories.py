from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase, ReconciliationKind
from src.provisioning.domain.models.user import CallerContext, UserType
from src.provisioning.domain.models.whitelist_entry import InviteRequest, WhitelistEntry, WhitelistStatus
from src.provisioning.infra.db.models import Base
from src.provisioning.infra.db.repositories import ConditionFailedError, DuplicateRecordError
from src.provisioning.infra.db.session import create_sqlalchemy_session_factory, create_store_engine
from src.provisioning.infra.db.sql_profiles import SqlProfileRepository, SqlReconciliationRepository
from src.provisioning.infra.db.sql_whitelist import SqlWhitelistRepository
from src.provisioning.infra.identity.inmemory import InMemoryIdentityStore
from src.provisioning.services.approval.locks import KeyedLock
from src.provisioning.services.approval.service import ApprovalService
from src.provisioning.services.whitelist.service import WhitelistService


@pytest.fixture
def sql(tmp_path):
    engine = create_store_engine(f"sqlite:///{tmp_path / 'provisioning.db'}", timeout_seconds=5)
    Base.metadata.create_all(engine)
    session_factory = create_sqlalchemy_session_factory(engine)
    yield SimpleNamespace(
        whitelist=SqlWhitelistRepository(session_factory),
        profiles=SqlProfileRepository(session_factory),
        reconciliation=SqlReconciliationRepository(session_factory),
    )
    engine.dispose()


def _entry(email: str, status: WhitelistStatus = WhitelistStatus.PENDING) -> WhitelistEntry:
    return WhitelistEntry(
        id=uuid4(),
        email=email,
        user_type=UserType.STAFF,
        full_name="Someone",
        invited_by="admin-1",
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def _admin_profile(account_id: str = "admin-1") -> Profile:
    return Profile(
        id=account_id,
        email=f"{account_id}@clinic.example",
        full_name="Admin",
        user_type=UserType.ADMIN,
        created_at=datetime.now(timezone.utc),
    )


def test_insert_and_get_whitelist_entry(sql):
    entry = _entry("a@x.com")
    sql.whitelist.insert(entry)

    loaded = sql.whitelist.get(entry.id)

    assert loaded.id == entry.id
    assert loaded.email == "a@x.com"
    assert loaded.user_type == UserType.STAFF
    assert loaded.status == WhitelistStatus.PENDING
    assert sql.whitelist.get(uuid4()) is None


def test_only_one_pending_entry_per_email(sql):
    sql.whitelist.insert(_entry("a@x.com"))

    with pytest.raises(DuplicateRecordError):
        sql.whitelist.insert(_entry("a@x.com"))


def test_decided_entries_do_not_block_a_new_pending_one(sql):
    sql.whitelist.insert(_entry("a@x.com", WhitelistStatus.REJECTED))
    sql.whitelist.insert(_entry("a@x.com", WhitelistStatus.REJECTED))
    sql.whitelist.insert(_entry("a@x.com"))

    assert len(sql.whitelist.find_by_email("A@X.com")) == 3


def test_list_by_status(sql):
    pending = _entry("p@x.com")
    rejected = _entry("r@x.com", WhitelistStatus.REJECTED)
    sql.whitelist.insert(pending)
    sql.whitelist.insert(rejected)

    assert [e.id for e in sql.whitelist.list_by_status(WhitelistStatus.PENDING)] == [pending.id]
    assert {e.id for e in sql.whitelist.list_by_status()} == {pending.id, rejected.id}


def test_update_if_status_applies_once(sql):
    entry = _entry("a@x.com")
    sql.whitelist.insert(entry)

    updated = sql.whitelist.update_if_status(
        entry.id,
        WhitelistStatus.PENDING,
        {"status": WhitelistStatus.REJECTED, "approved_by": "admin-1"},
    )
    assert updated.status == WhitelistStatus.REJECTED
    assert updated.approved_by == "admin-1"

    with pytest.raises(ConditionFailedError):
        sql.whitelist.update_if_status(entry.id, WhitelistStatus.PENDING, {"status": WhitelistStatus.APPROVED})
    assert sql.whitelist.get(entry.id).status == WhitelistStatus.REJECTED


def test_update_if_status_on_missing_entry(sql):
    with pytest.raises(ConditionFailedError):
        sql.whitelist.update_if_status(uuid4(), WhitelistStatus.PENDING, {"status": WhitelistStatus.REJECTED})


def test_profiles_round_trip(sql):
    assert sql.profiles.has_admin() is False

    sql.profiles.insert(_admin_profile())
    assert sql.profiles.has_admin() is True
    assert sql.profiles.get("admin-1").user_type == UserType.ADMIN

    with pytest.raises(DuplicateRecordError):
        sql.profiles.insert(_admin_profile())

    sql.profiles.delete("admin-1")
    assert sql.profiles.get("admin-1") is None
    assert sql.profiles.has_admin() is False


def test_reconciliation_cases_are_listed(sql):
    case = ReconciliationCase(
        id=uuid4(),
        kind=ReconciliationKind.ORPHANED_ACCOUNT,
        whitelist_id=uuid4(),
        account_id="acc-1",
        email="a@x.com",
        detail="profile insert failed",
        created_at=datetime.now(timezone.utc),
    )
    sql.reconciliation.insert(case)

    listed = list(sql.reconciliation.list_all())

    assert [c.id for c in listed] == [case.id]
    assert listed[0].kind == ReconciliationKind.ORPHANED_ACCOUNT


def test_approval_flow_over_sql_repositories(sql):
    sql.profiles.insert(_admin_profile())
    admin = CallerContext(identity="admin-1", role=UserType.ADMIN)
    identity = InMemoryIdentityStore()
    whitelist = WhitelistService(sql.whitelist, allow_reinvite_after_rejection=True)
    approvals = ApprovalService(
        sql.whitelist,
        sql.profiles,
        identity,
        sql.reconciliation,
        locks=KeyedLock(),
        min_password_length=6,
    )

    entry = whitelist.invite(
        admin,
        InviteRequest(email="Doc@X.com", user_type="doctor", full_name="Doc", specialization="Neurology"),
    )
    result = approvals.decide(admin, entry.id, "approve", "s3cret1")

    assert result.status == WhitelistStatus.APPROVED
    assert result.reconciliation_required is False
    stored = sql.whitelist.get(entry.id)
    assert stored.status == WhitelistStatus.APPROVED
    assert stored.approved_by == "admin-1"
    assert stored.approved_at is not None

    profile = sql.profiles.get(result.account_id)
    assert profile.email == "doc@x.com"
    assert profile.user_type == UserType.DOCTOR
    assert profile.specialization == "Neurology"
    assert identity.get_account(result.account_id).email_confirmed is True
    assert list(sql.reconciliation.list_all()) == []
