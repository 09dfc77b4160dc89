"""
Tool Settings service: custom settings stored by the platform at the
system (tool proxy), context (binding) or link level.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional, Union

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.context import Context, ResourceLink
from ltiadvantage.services.service import Service, ServiceRequestError

SCOPE = "https://purl.imsglobal.org/spec/lti-ts/scope/toolsetting"
MEDIA_TYPE_SIMPLE = "application/vnd.ims.lti.v2.toolsettings.simple+json"
MEDIA_TYPE_FULL = "application/vnd.ims.lti.v2.toolsettings+json"
TOOL_SETTINGS_CONTEXT = "http://purl.imsglobal.org/ctx/lti/v2/ToolSettings"

LEVEL_NAMES = {
    "ToolProxy": "system",
    "ToolProxyBinding": "context",
    "LtiLink": "link",
}


class ToolSettingsMode(str, Enum):
    """How settings of enclosing levels are merged into the response."""

    ALL = "all"
    DISTINCT = "distinct"


SettingsSource = Union[PlatformConnection, Context, ResourceLink]


class ToolSettingsService(Service):
    def __init__(
        self,
        connection: PlatformConnection,
        source: SettingsSource,
        endpoint: str,
        simple: bool = True,
    ) -> None:
        super().__init__(
            connection, endpoint, MEDIA_TYPE_SIMPLE if simple else MEDIA_TYPE_FULL, SCOPE
        )
        self.source = source
        self.simple = simple

    async def get(self, mode: Optional[ToolSettingsMode] = None) -> Dict[str, Any]:
        """
        Read the settings.

        The simple format returns the settings themselves; the full format
        returns them keyed by level name (``system``, ``context``, ``link``).
        """
        parameters = {"bubble": mode.value} if mode else None
        http = Service.raise_for_failure(await self.send("GET", parameters))
        body = http.response_json
        if self.simple:
            if body is None:
                return {}
            if not isinstance(body, dict):
                raise ServiceRequestError(http, "Tool settings must be a JSON object")
            return body
        settings: Dict[str, Any] = {}
        graph = body.get("@graph") if isinstance(body, dict) else None
        for level in graph or []:
            if not isinstance(level, dict):
                continue
            name = LEVEL_NAMES.get(level.get("@type"))
            if name is None:
                continue
            custom = dict(level.get("custom") or {})
            custom.pop("@id", None)
            settings[name] = custom
        return settings

    async def set(self, settings: Dict[str, Any]) -> None:
        if self.simple:
            body = json.dumps(settings)
        else:
            body = json.dumps(
                {
                    "@context": TOOL_SETTINGS_CONTEXT,
                    "@graph": [
                        {
                            "@type": self._level_type(),
                            "@id": self.endpoint,
                            "custom": settings,
                        }
                    ],
                }
            )
        Service.raise_for_failure(await self.send("PUT", body=body))

    def _level_type(self) -> str:
        if isinstance(self.source, PlatformConnection):
            return "ToolProxy"
        if isinstance(self.source, Context):
            return "ToolProxyBinding"
        return "LtiLink"


__all__ = [
    "LEVEL_NAMES",
    "MEDIA_TYPE_FULL",
    "MEDIA_TYPE_SIMPLE",
    "SCOPE",
    "ToolSettingsMode",
    "ToolSettingsService",
]
