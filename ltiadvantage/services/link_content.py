"""
Link and Content service: manage the content items a tool placed in a course.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from ltiadvantage.clients.http import HttpMessage
from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.schemas.content_item import ContentItem
from ltiadvantage.services.pagination import CollectionPage, PaginatedCollectionFetcher
from ltiadvantage.services.service import Service, ServiceRequestError

logger = logging.getLogger(__name__)

MEDIA_TYPE_CONTENT_ITEM = "application/json"
MEDIA_TYPE_CONTENT_ITEMS = "application/json"
SCOPE_READ = "https://purl.imsglobal.org/spec/lti/scope/contentitem.read"
SCOPE_CREATE = "https://purl.imsglobal.org/spec/lti/scope/contentitem.create"
SCOPE_UPDATE = "https://purl.imsglobal.org/spec/lti/scope/contentitem.update"
SCOPE_DELETE = "https://purl.imsglobal.org/spec/lti/scope/contentitem.delete"


class LinkContentService(Service):
    def __init__(
        self,
        connection: PlatformConnection,
        endpoint: str,
        limit: Optional[int] = None,
        paging_mode: bool = False,
    ) -> None:
        super().__init__(connection, endpoint, MEDIA_TYPE_CONTENT_ITEMS, SCOPE_READ)
        self.limit = limit
        self.paging_mode = paging_mode

    def _items(self, http: HttpMessage) -> List[ContentItem]:
        body = http.response_json
        diagnostics = self.connection.diagnostics
        items = body.get("items") if isinstance(body, Mapping) else None
        if not isinstance(items, list):
            message = "The 'items' element must be an array"
            if diagnostics.deviation(message):
                raise ServiceRequestError(http, message)
            return []
        content_items = []
        for obj in items:
            if not isinstance(obj, Mapping):
                diagnostics.error(
                    f"The items array must comprise an array of objects ({type(obj).__name__} found)"
                )
                continue
            content_item = ContentItem.from_json_item(obj, diagnostics)
            if content_item is not None:
                content_items.append(content_item)
        return content_items

    async def get_all(
        self,
        resource_link_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_page: Optional[str] = None,
    ) -> Union[List[ContentItem], CollectionPage]:
        """All content items, or one ``CollectionPage`` of them in paging mode."""
        self.scope = SCOPE_READ
        self.media_type = MEDIA_TYPE_CONTENT_ITEMS
        parameters = {"resource_link_id": resource_link_id} if resource_link_id else {}
        fetcher = PaginatedCollectionFetcher(self, self._items, limit=limit or self.limit)
        if self.paging_mode:
            return await fetcher.fetch_page(parameters, url=next_page)
        return await fetcher.fetch_all(parameters)

    async def create(self, content_item: ContentItem) -> ContentItem:
        """Create an item; returns the platform's version of it."""
        http = await self._send(SCOPE_CREATE, "POST", body=content_item.to_json())
        created = self._decode(http)
        if created is None:
            raise ServiceRequestError(http, "The platform did not return the created content item")
        return created

    async def save(self, content_item: ContentItem) -> ContentItem:
        """Update the item at its own URL (its id)."""
        http = await self._send(SCOPE_UPDATE, "PUT", body=content_item.to_json(), endpoint=content_item.id)
        return self._decode(http) or content_item

    async def delete(self, content_item: Optional[ContentItem] = None) -> None:
        endpoint = content_item.id if content_item is not None else None
        await self._send(SCOPE_DELETE, "DELETE", endpoint=endpoint)

    async def get(self, endpoint: Optional[str] = None) -> ContentItem:
        http = await self._send(SCOPE_READ, "GET", endpoint=endpoint)
        if not isinstance(http.response_json, Mapping):
            raise ServiceRequestError(http, "The response must be an object")
        content_item = self._decode(http)
        if content_item is None:
            raise ServiceRequestError(http, "The response is not a valid content item")
        return content_item

    async def _send(
        self,
        scope: str,
        method: str,
        body: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> HttpMessage:
        original = self.endpoint
        if endpoint:
            self.endpoint = endpoint
        self.scope = scope
        self.media_type = MEDIA_TYPE_CONTENT_ITEM
        try:
            return Service.raise_for_failure(await self.send(method, body=body))
        finally:
            self.endpoint = original
            self.scope = SCOPE_READ

    def _decode(self, http: HttpMessage) -> Optional[ContentItem]:
        body: Any = http.response_json
        if not isinstance(body, Mapping) or not body:
            return None
        return ContentItem.from_json_item(body, self.connection.diagnostics)


__all__ = [
    "LinkContentService",
    "SCOPE_CREATE",
    "SCOPE_DELETE",
    "SCOPE_READ",
    "SCOPE_UPDATE",
]
