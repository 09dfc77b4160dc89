try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import datetime, timedelta, timezone

import pytest

from ltiadvantage.clients import HttpMessage, PlatformConnection, TokenGrant
from ltiadvantage.core.diagnostics import DiagnosticLog
from ltiadvantage.models.context import Context, ResourceLink
from ltiadvantage.models.grades import AssessmentAction, AssessmentControlAction
from ltiadvantage.models.groups import Group, GroupSet
from ltiadvantage.schemas import ContentItem, LtiLinkContentItem, LtiLinkItem
from ltiadvantage.services import (
    AssessmentControlService,
    CollectionPage,
    GroupsService,
    LinkContentService,
    ServiceRequestError,
    ToolSettingsMode,
    ToolSettingsService,
)
from ltiadvantage.services import link_content, tool_settings

PLATFORM = "https://lms.example.com"


class RecordingTokens:
    def __init__(self) -> None:
        self.scopes: list[str] = []

    async def ensure(self, scope: str) -> TokenGrant:
        self.scopes.append(scope)
        return TokenGrant(token="token", scopes=[scope], fresh=True)


class RecordingTransport:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.requests: list[HttpMessage] = []

    async def send(self, url, method="GET", headers=None, body=None) -> HttpMessage:
        message = HttpMessage(
            url=url, method=method, request_headers=dict(headers or {}), request_body=body
        )
        self.requests.append(message)
        status, payload = self.responses.get((method, url), (404, None))
        message.status = status
        message.response_body = json.dumps(payload) if payload is not None else ""
        return message


def _connection(responses: dict, *, strict: bool = False):
    transport = RecordingTransport(responses)
    tokens = RecordingTokens()
    connection = PlatformConnection(
        platform_id=PLATFORM,
        transport=transport,
        tokens=tokens,
        diagnostics=DiagnosticLog(strict_mode=strict),
    )
    return connection, transport, tokens


# -- groups --------------------------------------------------------------

GROUPS = f"{PLATFORM}/api/lti/courses/7/groups"
GROUP_SETS = f"{PLATFORM}/api/lti/courses/7/group_sets"


@pytest.mark.asyncio
async def test_groups_and_sets_are_loaded() -> None:
    connection, transport, _ = _connection(
        {
            ("GET", GROUP_SETS): (200, {"sets": [{"id": "s1", "name": "Projects"}]}),
            ("GET", GROUPS): (
                200,
                {
                    "groups": [
                        {"id": "g1", "name": "Team 1", "set_id": "s1", "tag": "red"},
                        {"id": "g2", "name": "Loners"},
                        {"name": "no id"},
                    ]
                },
            ),
        }
    )
    context = Context(platform_id=PLATFORM, lti_context_id="7")

    await GroupsService(connection, context, GROUPS, GROUP_SETS).get()

    assert context.group_sets["s1"].title == "Projects"
    assert context.group_sets["s1"].groups == ["g1"]
    assert context.groups["g1"].set_id == "s1"
    assert context.groups["g1"].tag == "red"
    assert context.groups["g2"].set_id is None
    assert set(context.groups) == {"g1", "g2"}
    assert [request.request_headers["Accept"] for request in transport.requests] == [
        "application/vnd.ims.lti-gs.v1.contextgroupsetcontainer+json",
        "application/vnd.ims.lti-gs.v1.contextgroupcontainer+json",
    ]


@pytest.mark.asyncio
async def test_groups_failure_clears_previous_groups() -> None:
    connection, _, _ = _connection({("GET", GROUPS): (500, None)})
    context = Context(
        platform_id=PLATFORM,
        lti_context_id="7",
        group_sets={"s1": GroupSet(title="Old")},
        groups={"g1": Group(title="Old")},
    )

    with pytest.raises(ServiceRequestError):
        await GroupsService(connection, context, GROUPS).get()

    assert context.group_sets is None
    assert context.groups is None


# -- tool settings -------------------------------------------------------

SETTINGS = f"{PLATFORM}/api/lti/tool_settings/links/rl-1"


@pytest.mark.asyncio
async def test_simple_settings_with_bubble_mode() -> None:
    connection, transport, tokens = _connection(
        {("GET", f"{SETTINGS}?bubble=all"): (200, {"colour": "blue"})}
    )
    link = ResourceLink(platform_id=PLATFORM, lti_resource_link_id="rl-1")

    settings = await ToolSettingsService(connection, link, SETTINGS).get(ToolSettingsMode.ALL)

    assert settings == {"colour": "blue"}
    assert transport.requests[0].request_headers["Accept"] == tool_settings.MEDIA_TYPE_SIMPLE
    assert tokens.scopes == [tool_settings.SCOPE]


@pytest.mark.asyncio
async def test_full_settings_are_keyed_by_level() -> None:
    graph = {
        "@context": tool_settings.TOOL_SETTINGS_CONTEXT,
        "@graph": [
            {"@type": "ToolProxy", "custom": {"@id": f"{PLATFORM}/tp", "theme": "dark"}},
            {"@type": "LtiLink", "custom": {"attempts": "3"}},
            {"@type": "Unknown", "custom": {"ignored": "1"}},
        ],
    }
    connection, _, _ = _connection({("GET", SETTINGS): (200, graph)})
    link = ResourceLink(platform_id=PLATFORM, lti_resource_link_id="rl-1")

    settings = await ToolSettingsService(connection, link, SETTINGS, simple=False).get()

    assert settings == {"system": {"theme": "dark"}, "link": {"attempts": "3"}}


@pytest.mark.asyncio
async def test_full_settings_document_names_the_context_level() -> None:
    connection, transport, _ = _connection({("PUT", SETTINGS): (200, None)})
    context = Context(platform_id=PLATFORM, lti_context_id="7")

    await ToolSettingsService(connection, context, SETTINGS, simple=False).set({"a": "1"})

    body = json.loads(transport.requests[0].request_body)
    assert body["@graph"] == [{"@type": "ToolProxyBinding", "@id": SETTINGS, "custom": {"a": "1"}}]
    assert transport.requests[0].request_headers["Content-Type"] == tool_settings.MEDIA_TYPE_FULL


@pytest.mark.asyncio
async def test_simple_settings_must_be_an_object() -> None:
    connection, _, _ = _connection({("GET", SETTINGS): (200, ["not", "an", "object"])})

    with pytest.raises(ServiceRequestError):
        await ToolSettingsService(connection, connection, SETTINGS).get()


# -- assessment control --------------------------------------------------

CONTROL = f"{PLATFORM}/api/lti/assessment_control"


@pytest.mark.asyncio
async def test_assessment_control_action_is_reported_in_utc() -> None:
    connection, transport, tokens = _connection(
        {("POST", CONTROL): (200, {"status": "paused"})}
    )
    link = ResourceLink(platform_id=PLATFORM, lti_resource_link_id="rl-1")
    action = AssessmentControlAction(
        action=AssessmentAction.PAUSE,
        date=datetime(2024, 5, 1, 12, 30, tzinfo=timezone(timedelta(hours=2))),
        severity=0.5,
        code="NOISE",
        message="Background noise detected",
    )

    response = await AssessmentControlService(connection, link, CONTROL).submit(action, "u1", 2)

    body = json.loads(transport.requests[0].request_body)
    assert body == {
        "user": {"iss": PLATFORM, "sub": "u1"},
        "resource_link": {"id": "rl-1"},
        "attempt_number": 2,
        "action": "pause",
        "incident_time": "2024-05-01T10:30:00Z",
        "incident_severity": 0.5,
        "reason_code": "NOISE",
        "reason_msg": "Background noise detected",
    }
    assert response == {"status": "paused"}
    assert tokens.scopes == ["https://purl.imsglobal.org/spec/lti-ap/scope/control.all"]


# -- link and content ----------------------------------------------------

ITEMS = f"{PLATFORM}/api/lti/courses/7/content_items"
ITEM_URL = f"{ITEMS}/1"

LINK_ITEM_JSON = {
    "type": "ltiResourceLink",
    "id": ITEM_URL,
    "title": "Quiz",
    "url": "https://tool.example.com/launch",
    "custom": {"quiz_id": "42"},
    "resourceLinkId": "rl-1",
    "lineItemIds": ["li-1"],
}


@pytest.mark.asyncio
async def test_content_items_are_decoded_by_type() -> None:
    connection, transport, tokens = _connection(
        {
            ("GET", f"{ITEMS}?resource_link_id=rl-1"): (
                200,
                {"items": [LINK_ITEM_JSON, {"type": "mystery", "id": f"{ITEMS}/2"}, 5]},
            )
        }
    )

    items = await LinkContentService(connection, ITEMS).get_all(resource_link_id="rl-1")

    assert len(items) == 2
    link = items[0]
    assert isinstance(link, LtiLinkContentItem)
    assert link.id == ITEM_URL
    assert link.resource_link_id == "rl-1"
    assert link.line_item_ids == ["li-1"]
    assert link.item.custom == {"quiz_id": "42"}
    assert items[1].item.type == "mystery"
    assert any("mystery" in warning for warning in connection.diagnostics.warnings)
    assert connection.diagnostics.errors
    assert tokens.scopes == [link_content.SCOPE_READ]


@pytest.mark.asyncio
async def test_content_items_page_in_paging_mode() -> None:
    connection, _, _ = _connection({("GET", ITEMS): (200, {"items": [LINK_ITEM_JSON]})})

    page = await LinkContentService(connection, ITEMS, paging_mode=True).get_all()

    assert isinstance(page, CollectionPage)
    assert len(page.items) == 1
    assert page.next_page is None


@pytest.mark.asyncio
async def test_items_element_must_be_an_array_in_strict_mode() -> None:
    connection, _, _ = _connection({("GET", ITEMS): (200, {"items": {}})}, strict=True)

    with pytest.raises(ServiceRequestError):
        await LinkContentService(connection, ITEMS).get_all()


@pytest.mark.asyncio
async def test_create_and_delete_content_item() -> None:
    connection, transport, tokens = _connection(
        {("POST", ITEMS): (201, LINK_ITEM_JSON), ("DELETE", ITEM_URL): (204, None)}
    )
    service = LinkContentService(connection, ITEMS)
    draft = ContentItem.from_type("ltiResourceLink")
    draft.item.title = "Quiz"
    draft.item.url = "https://tool.example.com/launch"

    created = await service.create(draft)
    await service.delete(created)

    sent = json.loads(transport.requests[0].request_body)
    assert sent == {"type": "ltiResourceLink", "title": "Quiz", "url": "https://tool.example.com/launch"}
    assert created.id == ITEM_URL
    assert transport.requests[1].method == "DELETE"
    assert transport.requests[1].url == ITEM_URL
    assert tokens.scopes == [link_content.SCOPE_CREATE, link_content.SCOPE_DELETE]
    assert service.endpoint == ITEMS


@pytest.mark.asyncio
async def test_get_single_content_item() -> None:
    connection, _, _ = _connection({("GET", ITEM_URL): (200, LINK_ITEM_JSON)})

    item = await LinkContentService(connection, ITEMS).get(ITEM_URL)

    assert isinstance(item.item, LtiLinkItem)
    assert item.item.title == "Quiz"
