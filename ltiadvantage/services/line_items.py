"""
Line item (gradebook column) service.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.grades import LineItem
from ltiadvantage.services.assignment_grade import AssignmentGradeService, json_array
from ltiadvantage.services.pagination import PaginatedCollectionFetcher
from ltiadvantage.services.service import Service, ServiceRequestError

logger = logging.getLogger(__name__)

SCOPE = "https://purl.imsglobal.org/spec/lti-ags/scope/lineitem"
SCOPE_READONLY = "https://purl.imsglobal.org/spec/lti-ags/scope/lineitem.readonly"
MEDIA_TYPE_LINE_ITEM = "application/vnd.ims.lis.v2.lineitem+json"
MEDIA_TYPE_LINE_ITEMS = "application/vnd.ims.lis.v2.lineitemcontainer+json"


class LineItemService(AssignmentGradeService):
    """Create, read, update and delete line items of a context."""

    def __init__(
        self,
        connection: PlatformConnection,
        endpoint: str,
        limit: Optional[int] = None,
    ) -> None:
        super().__init__(connection, endpoint, MEDIA_TYPE_LINE_ITEMS, SCOPE_READONLY)
        self.limit = limit

    async def get_all(
        self,
        resource_link_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[LineItem]:
        """Line items of the context, optionally filtered."""
        parameters = {}
        if resource_link_id:
            parameters["resource_link_id"] = resource_link_id
        if resource_id:
            parameters["resource_id"] = resource_id
        if tag:
            parameters["tag"] = tag
        self.scope = SCOPE_READONLY
        self.media_type = MEDIA_TYPE_LINE_ITEMS
        fetcher = PaginatedCollectionFetcher(self, json_array, limit=limit or self.limit)
        line_items = []
        for item in await fetcher.fetch_all(parameters):
            line_item = LineItem.from_json(item)
            if line_item is None:
                logger.warning("Skipping incomplete line item in container from %s", self.endpoint)
                continue
            line_items.append(line_item)
        return line_items

    async def create(self, line_item: LineItem) -> LineItem:
        """Create ``line_item`` on the platform and bind the returned identifier into it."""
        line_item.endpoint = None
        self.scope = SCOPE
        self.media_type = MEDIA_TYPE_LINE_ITEM
        try:
            http = Service.raise_for_failure(
                await self.send("POST", body=json.dumps(line_item.to_json()))
            )
        finally:
            self.scope = SCOPE_READONLY
        created = LineItem.from_json(http.response_json)
        if created is None:
            raise ServiceRequestError(http, "The platform did not return the created line item")
        line_item.bind(created)
        return line_item

    async def save(self, line_item: LineItem) -> LineItem:
        """Update an existing line item at its own endpoint."""
        http = await self._send_to_item(line_item, "PUT", json.dumps(line_item.to_json()))
        saved = LineItem.from_json(http.response_json)
        if saved is not None:
            line_item.bind(saved)
        return line_item

    async def delete(self, line_item: LineItem) -> None:
        await self._send_to_item(line_item, "DELETE")

    async def get(self, endpoint: str) -> Optional[LineItem]:
        """Fetch a single line item by its URL."""
        original = self.endpoint
        self.endpoint = endpoint
        self.scope = SCOPE_READONLY
        self.media_type = MEDIA_TYPE_LINE_ITEM
        try:
            http = Service.raise_for_failure(await self.send("GET"))
        finally:
            self.endpoint = original
        return LineItem.from_json(http.response_json)

    async def _send_to_item(self, line_item: LineItem, method: str, body: Optional[str] = None):
        if not line_item.endpoint:
            raise ValueError("The line item has not been created on the platform yet.")
        original = self.endpoint
        self.endpoint = line_item.endpoint
        self.scope = SCOPE
        self.media_type = MEDIA_TYPE_LINE_ITEM
        try:
            return Service.raise_for_failure(await self.send(method, body=body))
        finally:
            self.endpoint = original
            self.scope = SCOPE_READONLY


__all__ = [
    "LineItemService",
    "MEDIA_TYPE_LINE_ITEM",
    "MEDIA_TYPE_LINE_ITEMS",
    "SCOPE",
    "SCOPE_READONLY",
]
