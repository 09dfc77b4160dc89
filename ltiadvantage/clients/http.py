"""
HTTP transport for platform service calls.

The service layer only depends on the ``Transport`` protocol; ``HttpxTransport``
is the production implementation built on ``httpx.AsyncClient``.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ServiceFailure(str, Enum):
    """Why a request produced no usable response."""

    TRANSPORT = "transport"
    AUTHORIZATION = "authorization"


class HttpMessage(BaseModel):
    """One request/response exchange with a platform."""

    url: str
    method: str = "GET"
    request_headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Optional[str] = None
    status: int = 0
    response_headers: Dict[str, str] = Field(
        default_factory=dict, description="Response headers with lower-cased names."
    )
    response_body: str = ""
    links: Dict[str, str] = Field(
        default_factory=dict, description="Target URL of each Link header relation."
    )
    error: Optional[str] = None
    failure: Optional[ServiceFailure] = None

    @property
    def response_json(self) -> Any:
        """Decoded response body, or None when it is empty or not JSON."""
        if not self.response_body.strip():
            return None
        try:
            return json.loads(self.response_body)
        except ValueError:
            return None

    @property
    def ok(self) -> bool:
        """True for a 2xx response whose body is empty or valid JSON."""
        if self.failure is not None or not 200 <= self.status < 300:
            return False
        if not self.response_body.strip():
            return True
        return self.response_json is not None

    def header(self, name: str) -> Optional[str]:
        return self.response_headers.get(name.lower())

    def has_relative_link(self, rel: str) -> bool:
        return rel in self.links

    def relative_link(self, rel: str) -> Optional[str]:
        return self.links.get(rel)

    def describe_error(self) -> str:
        if self.error:
            return self.error
        if self.failure is None and 200 <= self.status < 300:
            return "Response body is not valid JSON"
        return f"HTTP {self.status} returned by {self.method} {self.url}"


class Transport(Protocol):
    """Anything able to perform a single HTTP exchange."""

    async def send(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> HttpMessage:
        ...


def _relations(response: httpx.Response) -> Dict[str, str]:
    links: Dict[str, str] = {}
    for link in response.links.values():
        url = link.get("url")
        for rel in (link.get("rel") or "").split():
            if url:
                links.setdefault(rel, url)
    return links


class HttpxTransport:
    """Perform platform requests with ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    async def send(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> HttpMessage:
        request_headers = dict(headers or {})
        if self._user_agent and "User-Agent" not in request_headers:
            request_headers["User-Agent"] = self._user_agent
        message = HttpMessage(
            url=url,
            method=method,
            request_headers=request_headers,
            request_body=body,
        )
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=request_headers,
                    content=body.encode("utf-8") if body is not None else None,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            message.failure = ServiceFailure.TRANSPORT
            message.error = str(exc) or exc.__class__.__name__
            return message

        message.status = response.status_code
        message.response_headers = {name.lower(): value for name, value in response.headers.items()}
        message.response_body = response.text
        message.links = _relations(response)
        if not message.ok:
            logger.info("%s %s returned HTTP %s", method, url, response.status_code)
        return message


__all__ = ["HttpMessage", "HttpxTransport", "ServiceFailure", "Transport"]
