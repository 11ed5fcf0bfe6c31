import json

import httpx
import pytest

from src.provisioning.infra.identity import gotrue
from src.provisioning.infra.identity.base import DuplicateAccountError, IdentityStoreError, IdentityStoreTimeout
from src.provisioning.infra.identity.gotrue import GoTrueConfig, GoTrueIdentityStore


SERVICE_KEY = "service-role-key"


def _store(handler) -> GoTrueIdentityStore:
    config = GoTrueConfig(base_url="https://auth.example", service_key=SERVICE_KEY, timeout_seconds=2)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoTrueIdentityStore(config, client=client)


def test_create_account_posts_admin_user():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "acc-1", "email": "a@x.com"})

    account_id = _store(handler).create_account("a@x.com", "s3cret1", True, {"user_type": "doctor"})

    assert account_id == "acc-1"
    assert seen["method"] == "POST"
    assert seen["url"] == "https://auth.example/auth/v1/admin/users"
    assert seen["headers"]["authorization"] == f"Bearer {SERVICE_KEY}"
    assert seen["headers"]["apikey"] == SERVICE_KEY
    assert seen["body"] == {
        "email": "a@x.com",
        "password": "s3cret1",
        "email_confirm": True,
        "user_metadata": {"user_type": "doctor"},
    }


@pytest.mark.parametrize(
    "status_code, body",
    [
        (409, {"msg": "already registered"}),
        (422, {"code": 422, "error_code": "email_exists", "msg": "already registered"}),
        (422, {"code": 422, "error_code": "user_already_exists", "msg": "already registered"}),
    ],
)
def test_create_account_duplicate(status_code, body):
    store = _store(lambda request: httpx.Response(status_code, json=body))

    with pytest.raises(DuplicateAccountError):
        store.create_account("a@x.com", "s3cret1", True, {})


@pytest.mark.parametrize(
    "body",
    [
        {"code": 422, "error_code": "weak_password", "msg": "Password should be at least 6 characters"},
        {"code": 422, "error_code": "validation_failed", "msg": "Unable to validate email address"},
        {"msg": "Unprocessable"},
    ],
)
def test_create_account_other_422_is_not_duplicate(body):
    store = _store(lambda request: httpx.Response(422, json=body))

    with pytest.raises(IdentityStoreError) as exc_info:
        store.create_account("a@x.com", "s3cret1", True, {})
    assert not isinstance(exc_info.value, DuplicateAccountError)


def test_create_account_server_error():
    store = _store(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(IdentityStoreError) as exc_info:
        store.create_account("a@x.com", "s3cret1", True, {})
    assert not isinstance(exc_info.value, DuplicateAccountError)


def test_timeout_is_reported_as_indeterminate():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(IdentityStoreTimeout):
        _store(handler).create_account("a@x.com", "s3cret1", True, {})


def test_connection_failure_is_identity_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IdentityStoreError) as exc_info:
        _store(handler).delete_account("acc-1")
    assert not isinstance(exc_info.value, IdentityStoreTimeout)


def test_delete_account():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={})

    _store(handler).delete_account("acc-1")

    assert seen == [("DELETE", "/auth/v1/admin/users/acc-1")]


def test_delete_account_failure():
    store = _store(lambda request: httpx.Response(404, json={"msg": "User not found"}))

    with pytest.raises(IdentityStoreError):
        store.delete_account("acc-1")


def test_resolve_token_uses_callers_token():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers["authorization"] != "Bearer user-token":
            return httpx.Response(401, json={"msg": "invalid JWT"})
        assert request.headers["apikey"] == SERVICE_KEY
        return httpx.Response(200, json={"id": "acc-7", "email": "a@x.com"})

    store = _store(handler)

    assert store.resolve_token("user-token") == "acc-7"
    assert store.resolve_token("expired") is None


def test_find_account_by_email_walks_pages(monkeypatch):
    monkeypatch.setattr(gotrue, "_USERS_PAGE_SIZE", 2)
    pages = {
        "1": [{"id": "u1", "email": "one@x.com"}, {"id": "u2", "email": "two@x.com"}],
        "2": [
            {
                "id": "u3",
                "email": "Three@x.com",
                "email_confirmed_at": "2024-01-01T00:00:00Z",
                "user_metadata": {"user_type": "staff"},
            }
        ],
    }
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        requested.append(page)
        assert request.url.params["per_page"] == "2"
        return httpx.Response(200, json={"users": pages.get(page, [])})

    store = _store(handler)
    account = store.find_account_by_email("three@x.com")

    assert account is not None
    assert account.id == "u3"
    assert account.email_confirmed is True
    assert account.metadata == {"user_type": "staff"}
    assert requested == ["1", "2"]

    requested.clear()
    assert store.find_account_by_email("nobody@x.com") is None
    assert requested == ["1", "2"]


def test_config_requires_url_and_key(monkeypatch):
    monkeypatch.setattr(gotrue.settings, "gotrue_url", None)
    monkeypatch.setattr(gotrue.settings, "gotrue_service_key", None)

    with pytest.raises(IdentityStoreError):
        GoTrueConfig.from_settings()
