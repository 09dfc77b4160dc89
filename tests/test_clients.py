try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from ltiadvantage.clients import (
    HttpxTransport,
    RequestSigner,
    ServiceFailure,
    SigningError,
    SQLiteUserResultStore,
)
from ltiadvantage.clients.signing import load_private_key, media_headers
from ltiadvantage.models.token import AccessToken
from ltiadvantage.models.user import UserResult


def _user(user_id: str, resource_link_id="rl-1") -> UserResult:
    return UserResult(
        platform_id="https://lms.example.com",
        resource_link_id=resource_link_id,
        lti_user_id=user_id,
        fullname=f"User {user_id}",
    )


def test_store_round_trip_and_listing(tmp_path: Path) -> None:
    store = SQLiteUserResultStore(str(tmp_path / "nested" / "users.sqlite3"))

    saved = store.save(_user("u2"))
    store.save(_user("u1"))
    store.save(_user("u3", resource_link_id="rl-2"))

    assert saved.created is not None
    assert saved.updated == saved.created
    loaded = store.load("https://lms.example.com", "rl-1", "u2")
    assert loaded is not None
    assert loaded.fullname == "User u2"
    assert [user.lti_user_id for user in store.list_for_resource_link("https://lms.example.com", "rl-1")] == [
        "u1",
        "u2",
    ]


def test_store_keeps_created_stamp_and_deletes(tmp_path: Path) -> None:
    store = SQLiteUserResultStore(str(tmp_path / "users.sqlite3"))
    user = store.save(_user("u1"))
    created = user.created

    user.email = "u1@example.com"
    store.save(user)
    store.delete(_user("u1"))

    assert user.created == created
    assert store.load("https://lms.example.com", "rl-1", "u1") is None


def test_store_accepts_context_level_records(tmp_path: Path) -> None:
    store = SQLiteUserResultStore(str(tmp_path / "users.sqlite3"))

    store.save(_user("u1", resource_link_id=None))

    loaded = store.load("https://lms.example.com", None, "u1")
    assert loaded is not None
    assert loaded.resource_link_id is None


@pytest.mark.asyncio
async def test_httpx_transport_records_response() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"members": []},
            headers={"Link": '<https://lms.example.com/m?page=2>; rel="next"'},
        )

    transport = HttpxTransport(user_agent="lti-tests", transport=httpx.MockTransport(handler))

    http = await transport.send(
        "https://lms.example.com/m", "POST", {"Accept": "application/json"}, '{"a": 1}'
    )

    assert http.ok
    assert http.status == 200
    assert http.response_json == {"members": []}
    assert http.relative_link("next") == "https://lms.example.com/m?page=2"
    assert http.header("LINK") is not None
    assert seen[0].headers["User-Agent"] == "lti-tests"
    assert seen[0].content == b'{"a": 1}'


@pytest.mark.asyncio
async def test_httpx_transport_maps_every_link_relation() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[],
            headers={
                "Link": (
                    '<https://lms.example.com/x?page=3>; rel="next", '
                    '<https://lms.example.com/x?page=1>; rel="first prev"'
                )
            },
        )

    http = await HttpxTransport(transport=httpx.MockTransport(handler)).send(
        "https://lms.example.com/x?page=2"
    )

    assert http.links == {
        "next": "https://lms.example.com/x?page=3",
        "first": "https://lms.example.com/x?page=1",
        "prev": "https://lms.example.com/x?page=1",
    }
    assert http.has_relative_link("prev")
    assert not http.has_relative_link("last")


@pytest.mark.asyncio
async def test_httpx_transport_reports_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = HttpxTransport(transport=httpx.MockTransport(handler))

    http = await transport.send("https://lms.example.com/m")

    assert not http.ok
    assert http.failure is ServiceFailure.TRANSPORT
    assert http.error == "connection refused"


def test_media_headers() -> None:
    assert media_headers(None) == {}
    assert media_headers("application/json") == {"Accept": "application/json"}
    assert media_headers("application/json", True) == {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def test_oauth1_signing_requires_credentials() -> None:
    with pytest.raises(SigningError):
        RequestSigner(consumer_key="key").sign_oauth1("https://lms.example.com/x", "GET", {})


def test_bearer_signing_keeps_other_headers() -> None:
    headers = RequestSigner.sign_bearer("abc", {"Accept": "application/json"})

    assert headers == {"Accept": "application/json", "Authorization": "Bearer abc"}


def test_invalid_private_key_is_rejected() -> None:
    with pytest.raises(SigningError):
        load_private_key("not a key")


def test_access_token_scope_coverage() -> None:
    token = AccessToken()
    assert not token.has_scope("a")

    token.assign("abc", ["scope/lineitem"], 60)
    assert token.has_scope("scope/lineitem")
    assert token.has_scope("scope/lineitem.readonly")
    assert not token.has_scope("scope/score")

    token.expire()
    assert not token.has_scope("scope/lineitem")


def test_access_token_expiry() -> None:
    token = AccessToken(
        token="abc",
        scopes=["a"],
        expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
    )

    assert token.is_expired()
    token.reset()
    assert token.token is None
    assert token.scopes == []
