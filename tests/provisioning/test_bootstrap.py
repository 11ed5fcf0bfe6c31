import pytest

from src.provisioning.domain.models.user import UserType
from src.provisioning.infra.db import bootstrap
from src.provisioning.infra.db import inmemory as record_stores
from src.provisioning.infra.db.sql_whitelist import SqlWhitelistRepository
from src.provisioning.infra.identity import inmemory as identity_stores
from src.provisioning.infra.identity.gotrue import GoTrueIdentityStore


@pytest.fixture
def bootstrap_settings(monkeypatch):
    def _set(**values):
        for name, value in values.items():
            monkeypatch.setattr(bootstrap.settings, name, value)

    return _set


def test_bootstrap_is_noop_without_credentials(stores, bootstrap_settings):
    bootstrap_settings(bootstrap_admin_email=None, bootstrap_admin_password=None)

    assert bootstrap.bootstrap_admin_if_needed() is None
    assert stores.identity.account_count() == 0


def test_bootstrap_creates_first_admin(stores, bootstrap_settings):
    bootstrap_settings(bootstrap_admin_email=" Root@Clinic.Example ", bootstrap_admin_password="changeme")

    account_id = bootstrap.bootstrap_admin_if_needed()

    assert account_id is not None
    profile = stores.profiles.get(account_id)
    assert profile.user_type == UserType.ADMIN
    assert profile.email == "root@clinic.example"
    assert stores.identity.get_account(account_id).email_confirmed is True

    # A second start finds the admin and does nothing.
    assert bootstrap.bootstrap_admin_if_needed() is None
    assert stores.identity.account_count() == 1


def test_bootstrap_promotes_existing_account(stores, bootstrap_settings):
    existing_id = stores.identity.create_account("root@clinic.example", "old-password", True, {})
    bootstrap_settings(bootstrap_admin_email="root@clinic.example", bootstrap_admin_password="changeme")

    assert bootstrap.bootstrap_admin_if_needed() == existing_id
    assert stores.profiles.get(existing_id).user_type == UserType.ADMIN
    assert stores.identity.account_count() == 1


def test_bootstrap_skipped_when_admin_exists(stores, admin, bootstrap_settings):
    bootstrap_settings(bootstrap_admin_email="other@clinic.example", bootstrap_admin_password="changeme")
    accounts_before = stores.identity.account_count()

    assert bootstrap.bootstrap_admin_if_needed() is None
    assert stores.identity.account_count() == accounts_before


def test_sql_repositories_stay_in_memory_by_default(stores, bootstrap_settings):
    bootstrap_settings(use_sql_repos=False)

    bootstrap.init_sql_repositories("sqlite://")

    assert record_stores.whitelist_repository is stores.whitelist


def test_sql_repositories_are_swapped_in(stores, bootstrap_settings, tmp_path):
    bootstrap_settings(use_sql_repos=True, store_timeout_seconds=5)

    bootstrap.init_sql_repositories(f"sqlite:///{tmp_path / 'store.db'}")

    assert isinstance(record_stores.whitelist_repository, SqlWhitelistRepository)
    assert list(record_stores.whitelist_repository.list_by_status()) == []
    assert record_stores.profile_repository.has_admin() is False


def test_identity_backend_selection(stores, bootstrap_settings):
    bootstrap_settings(identity_backend="memory")
    bootstrap.init_identity_store()
    assert identity_stores.identity_store is stores.identity

    bootstrap_settings(
        identity_backend="gotrue",
        gotrue_url="https://auth.example/",
        gotrue_service_key="service-role-key",
        identity_timeout_seconds=3,
    )
    bootstrap.init_identity_store()
    assert isinstance(identity_stores.identity_store, GoTrueIdentityStore)

    bootstrap_settings(identity_backend="ldap")
    with pytest.raises(ValueError):
        bootstrap.init_identity_store()
