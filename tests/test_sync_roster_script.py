"""Tests for the roster synchronisation command."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from ltiadvantage.clients import HttpMessage, PlatformConnection
from ltiadvantage.core.diagnostics import DiagnosticLog
from ltiadvantage.models.user import MEMBERSHIP_ROLE_PREFIX, UserResult
from ltiadvantage.services import MembershipSyncResult, ServiceRequestError
from scripts import sync_roster


class UnusedTransport:
    async def send(self, url, method="GET", headers=None, body=None) -> HttpMessage:
        raise AssertionError("no request expected")


def _patch_connection(monkeypatch: pytest.MonkeyPatch) -> DiagnosticLog:
    diagnostics = DiagnosticLog()
    connection = PlatformConnection(
        platform_id="https://lms.example.com",
        transport=UnusedTransport(),
        diagnostics=diagnostics,
    )
    monkeypatch.setattr(sync_roster, "get_platform_connection", lambda: connection)
    return diagnostics


def test_prints_synchronised_roster(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    diagnostics = _patch_connection(monkeypatch)
    seen = {}

    async def fake_sync(args):
        seen["args"] = args
        diagnostics.warning("The 'member/roles' element must be an array (string found)")
        learner = UserResult(
            platform_id="https://lms.example.com",
            lti_user_id="u1",
            fullname="Ann Lee",
            roles=[MEMBERSHIP_ROLE_PREFIX + "Learner"],
            groups=["g1"],
        )
        gone = UserResult(platform_id="https://lms.example.com", lti_user_id="u9", fullname="Old")
        return MembershipSyncResult(users=[learner], deleted=[gone], next_page=None)

    monkeypatch.setattr(sync_roster, "_sync", fake_sync)

    exit_code = sync_roster.main(
        ["https://lms.example.com/nrps", "--context-id", "7", "--format", "v1", "--limit", "20"]
    )

    assert exit_code == sync_roster.EXIT_OK
    assert seen["args"].limit == 20
    assert seen["args"].format == "v1"
    out, err = capsys.readouterr()
    assert "u1" in out and "learner" in out and "groups=g1" in out
    assert "1 members, 1 removed." in out
    assert "[warning]" in err


def test_request_failure_exit_code(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _patch_connection(monkeypatch)

    async def failing_sync(args):
        raise ServiceRequestError(HttpMessage(url="https://lms.example.com/nrps", status=403))

    monkeypatch.setattr(sync_roster, "_sync", failing_sync)

    exit_code = sync_roster.main(["https://lms.example.com/nrps", "--context-id", "7"])

    assert exit_code == sync_roster.EXIT_REQUEST_ERROR
    assert "HTTP 403" in capsys.readouterr().err
