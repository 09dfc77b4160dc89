"""
Request engine shared by every platform service.

``Service.send`` signs a request for the connection (unsigned, OAuth 1 HMAC
or OAuth 2 bearer), obtains a token covering the service scope and retries
when the platform rejects the call: a token reused from an earlier call is
refreshed, and a multi-scope token is narrowed to the service scope. A
logical call never dispatches more than three requests.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ltiadvantage.clients.http import HttpMessage, ServiceFailure
from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.clients.signing import media_headers
from ltiadvantage.clients.token_endpoint import TokenGrant, TokenRequestError
from ltiadvantage.utils.http import append_query

logger = logging.getLogger(__name__)


class ServiceRequestError(Exception):
    """Raised when a service operation did not get a usable response."""

    def __init__(self, http: HttpMessage, message: Optional[str] = None) -> None:
        self.http = http
        super().__init__(message or http.describe_error())


class AccessTokenError(ServiceRequestError):
    """Raised when no access token covering the service scope could be obtained."""


def access_token_error_message(scope: str) -> str:
    return f"Unable to obtain an access token for scope: {scope}"


class Service:
    """A service endpoint on a platform, with its scope and media type."""

    def __init__(
        self,
        connection: PlatformConnection,
        endpoint: str,
        media_type: Optional[str] = None,
        scope: Optional[str] = None,
        *,
        unsigned: bool = False,
    ) -> None:
        self.connection = connection
        self.endpoint = endpoint
        self.media_type = media_type
        self.scope = scope
        self.unsigned = unsigned
        self.http: Optional[HttpMessage] = None

    async def send(
        self,
        method: str = "GET",
        parameters: Optional[Mapping[str, object]] = None,
        body: Optional[str] = None,
    ) -> HttpMessage:
        """Send a request to the endpoint; failures are reported on the returned message."""
        url = append_query(self.endpoint, parameters)
        headers = media_headers(self.media_type, body is not None)
        if self.unsigned:
            http = await self._dispatch(url, method, headers, body)
        elif self.connection.uses_oauth1:
            signed = self.connection.signer.sign_oauth1(url, method, headers, body)
            http = await self._dispatch(url, method, signed, body)
        else:
            http = await self._send_with_token(url, method, headers, body)
        self.http = http
        return http

    async def _send_with_token(
        self, url: str, method: str, headers: dict, body: Optional[str]
    ) -> HttpMessage:
        tokens = self.connection.tokens
        if tokens is None:
            raise TokenRequestError(
                f"Platform {self.connection.platform_id} has no token endpoint configured."
            )
        scope = self.scope or ""

        grant = await tokens.ensure(scope)
        if grant is None:
            return self._unauthorized(url, method, headers, body, scope)
        http = await self._dispatch_with(grant, url, method, headers, body)
        if http.ok or grant.scope_only:
            return http

        if not grant.fresh:
            # Only tokens reused from earlier calls are refreshed.
            logger.debug("Retrying %s %s with a refreshed access token", method, url)
            grant = await tokens.refresh(scope, grant.token)
            if grant is None:
                return self._unauthorized(url, method, headers, body, scope)
            http = await self._dispatch_with(grant, url, method, headers, body)
            if http.ok or grant.scope_only:
                return http
        if len(grant.scopes) <= 1:
            return http

        logger.debug("Retrying %s %s with a token for scope %s only", method, url, scope)
        grant = await tokens.narrow(scope, grant.token)
        if grant is None:
            return self._unauthorized(url, method, headers, body, scope)
        return await self._dispatch_with(grant, url, method, headers, body)

    async def _dispatch_with(
        self, grant: TokenGrant, url: str, method: str, headers: dict, body: Optional[str]
    ) -> HttpMessage:
        signed = self.connection.signer.sign_bearer(grant.token, headers)
        return await self._dispatch(url, method, signed, body)

    async def _dispatch(
        self, url: str, method: str, headers: Mapping[str, str], body: Optional[str]
    ) -> HttpMessage:
        return await self.connection.transport.send(url, method, dict(headers), body)

    @staticmethod
    def _unauthorized(
        url: str, method: str, headers: Mapping[str, str], body: Optional[str], scope: str
    ) -> HttpMessage:
        message = access_token_error_message(scope)
        logger.warning(message)
        return HttpMessage(
            url=url,
            method=method,
            request_headers=dict(headers),
            request_body=body,
            failure=ServiceFailure.AUTHORIZATION,
            error=message,
        )

    @staticmethod
    def raise_for_failure(http: HttpMessage) -> HttpMessage:
        """Return ``http`` when it succeeded, otherwise raise the matching error."""
        if http.ok:
            return http
        if http.failure is ServiceFailure.AUTHORIZATION:
            raise AccessTokenError(http)
        raise ServiceRequestError(http)


__all__ = [
    "AccessTokenError",
    "Service",
    "ServiceRequestError",
    "access_token_error_message",
]
