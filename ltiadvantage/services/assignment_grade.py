"""
Base class for Assignment and Grade services sharing a line item endpoint.
"""

from __future__ import annotations

from typing import Any, List, Optional

from ltiadvantage.clients.http import HttpMessage
from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.services.service import Service
from ltiadvantage.utils.http import add_path


def json_array(http: HttpMessage) -> List[Any]:
    """Items of a container response whose body is a bare JSON array."""
    body = http.response_json
    return list(body) if isinstance(body, list) else []


class AssignmentGradeService(Service):
    """A service whose endpoint is a line item URL plus a fixed path suffix."""

    path: str = ""

    def __init__(
        self,
        connection: PlatformConnection,
        endpoint: str,
        media_type: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> None:
        super().__init__(connection, add_path(endpoint, self.path), media_type, scope)


__all__ = ["AssignmentGradeService", "json_array"]
