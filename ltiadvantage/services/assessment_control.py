"""
Assessment Control service used by proctoring tools.
"""

from __future__ import annotations

import json
import logging
from datetime import timezone
from typing import Any, Dict

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.context import ResourceLink
from ltiadvantage.models.grades import AssessmentControlAction
from ltiadvantage.services.service import Service

logger = logging.getLogger(__name__)

SCOPE = "https://purl.imsglobal.org/spec/lti-ap/scope/control.all"
MEDIA_TYPE_CONTROL = "application/vnd.ims.lti-ap.v1.control+json"


class AssessmentControlService(Service):
    def __init__(
        self, connection: PlatformConnection, resource_link: ResourceLink, endpoint: str
    ) -> None:
        super().__init__(connection, endpoint, MEDIA_TYPE_CONTROL, SCOPE)
        self.resource_link = resource_link

    def payload(
        self, action: AssessmentControlAction, user_id: str, attempt_number: int
    ) -> Dict[str, Any]:
        incident_time = action.date
        if incident_time.tzinfo is not None:
            incident_time = incident_time.astimezone(timezone.utc)
        body: Dict[str, Any] = {
            "user": {"iss": self.resource_link.platform_id, "sub": user_id},
            "resource_link": {"id": self.resource_link.lti_resource_link_id},
            "attempt_number": attempt_number,
            "action": action.action.value,
            "incident_time": incident_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "incident_severity": action.severity,
        }
        if action.extra_time:
            body["extra_time"] = action.extra_time
        if action.code:
            body["reason_code"] = action.code
        if action.message:
            body["reason_msg"] = action.message
        return body

    async def submit(
        self, action: AssessmentControlAction, user_id: str, attempt_number: int
    ) -> Dict[str, Any]:
        """Report an action; returns the platform's response document, if any."""
        http = Service.raise_for_failure(
            await self.send("POST", body=json.dumps(self.payload(action, user_id, attempt_number)))
        )
        logger.info(
            "Reported %s for user %s on resource link %s",
            action.action.value,
            user_id,
            self.resource_link.lti_resource_link_id,
        )
        body = http.response_json
        return body if isinstance(body, dict) else {}


__all__ = ["AssessmentControlService", "MEDIA_TYPE_CONTROL", "SCOPE"]
