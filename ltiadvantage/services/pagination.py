"""
Retrieval of collections split across several responses.

Platforms signal the next page either with an HTTP ``Link: <url>; rel="next"``
header or, for legacy LIS membership containers, a ``nextPage`` member of the
JSON body. The body member is checked first. Relative continuations are
resolved against the URL of the response that carried them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

import httpx
from pydantic import BaseModel, Field

from ltiadvantage.clients.http import HttpMessage
from ltiadvantage.services.service import Service

logger = logging.getLogger(__name__)

ItemExtractor = Callable[[HttpMessage], List[Any]]


class CollectionPage(BaseModel):
    """Items from one response and the URL of the following page, if any."""

    items: List[Any] = Field(default_factory=list)
    next_page: Optional[str] = None


def next_page_url(http: HttpMessage) -> Optional[str]:
    next_page = None
    body = http.response_json
    if isinstance(body, Mapping) and isinstance(body.get("nextPage"), str):
        next_page = body["nextPage"]
    if not next_page:
        next_page = http.relative_link("next")
    if not next_page:
        return None
    if httpx.URL(next_page).is_relative_url:
        return str(httpx.URL(http.url).join(next_page))
    return next_page


def items_under(key: str) -> ItemExtractor:
    """Extractor returning the list found under ``key`` of the JSON body."""

    def extract(http: HttpMessage) -> List[Any]:
        body = http.response_json
        if isinstance(body, Mapping) and isinstance(body.get(key), list):
            return list(body[key])
        return []

    return extract


class PaginatedCollectionFetcher:
    """Fetch every page of a service collection, or one page at a time."""

    def __init__(
        self,
        service: Service,
        extract: ItemExtractor,
        *,
        limit: Optional[int] = None,
    ) -> None:
        self.service = service
        self.extract = extract
        self.limit = limit

    def _parameters(self, parameters: Optional[Mapping[str, object]]) -> dict:
        params = dict(parameters or {})
        if self.limit and "limit" not in params:
            params["limit"] = self.limit
        return params

    async def fetch_all(self, parameters: Optional[Mapping[str, object]] = None) -> List[Any]:
        """
        Follow continuations until the collection is exhausted.

        Raises ``ServiceRequestError`` if any page fails; items from earlier
        pages are discarded.
        """
        endpoint = self.service.endpoint
        params: Optional[dict] = self._parameters(parameters)
        items: List[Any] = []
        visited = set()
        try:
            while True:
                http = Service.raise_for_failure(await self.service.send("GET", params))
                visited.add(http.url)
                items.extend(self.extract(http))
                url = next_page_url(http)
                if not url or url in visited:
                    break
                logger.debug("Following next page %s", url)
                self.service.endpoint = url
                params = None
        finally:
            self.service.endpoint = endpoint
        return items

    async def fetch_page(
        self,
        parameters: Optional[Mapping[str, object]] = None,
        url: Optional[str] = None,
    ) -> CollectionPage:
        """Fetch a single page; ``url`` continues from an earlier ``next_page``."""
        endpoint = self.service.endpoint
        params: Optional[dict] = self._parameters(parameters)
        if url:
            self.service.endpoint = url
            params = None
        try:
            http = Service.raise_for_failure(await self.service.send("GET", params))
        finally:
            self.service.endpoint = endpoint
        next_page = next_page_url(http)
        if next_page == http.url:
            next_page = None
        return CollectionPage(items=self.extract(http), next_page=next_page)


__all__ = ["CollectionPage", "PaginatedCollectionFetcher", "items_under", "next_page_url"]
