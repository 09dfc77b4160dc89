try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from ltiadvantage.clients import AccessTokenManager
from ltiadvantage.dependencies import clients as factories
from ltiadvantage.models.context import ResourceLink
from ltiadvantage.services.membership import MEDIA_TYPE_MEMBERSHIPS_V1


def test_connection_uses_token_manager_for_jwt_signing(
    fresh_factories, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LTI_REQUIRED_SCOPES", "scope/a,scope/b")

    connection = factories.get_platform_connection()

    assert isinstance(connection.tokens, AccessTokenManager)
    assert connection.tokens.required_scopes == ["scope/a", "scope/b"]
    assert not connection.uses_oauth1
    assert factories.get_platform_connection() is connection


def test_oauth1_connection_has_no_token_manager(
    fresh_factories, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LTI_SIGNATURE_METHOD", "HMAC-SHA1")

    connection = factories.get_platform_connection()

    assert connection.tokens is None
    assert connection.uses_oauth1


def test_membership_service_for_resource_link(fresh_factories) -> None:
    service = factories.get_membership_service(
        "https://lms.example.com/nrps",
        context_id="7",
        resource_link_id="rl-1",
        media_type=MEDIA_TYPE_MEMBERSHIPS_V1,
    )

    assert isinstance(service.source, ResourceLink)
    assert service.source.context.lti_context_id == "7"
    assert service.media_type == MEDIA_TYPE_MEMBERSHIPS_V1
    assert service.connection is factories.get_platform_connection()


def test_connection_diagnostics_are_bounded(
    fresh_factories, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LTI_DIAGNOSTICS_LIMIT", "2")

    diagnostics = factories.get_platform_connection().diagnostics
    for index in range(5):
        diagnostics.warning(f"warning {index}")

    assert diagnostics.warnings == ["warning 3", "warning 4"]
