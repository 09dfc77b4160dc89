"""
OAuth 2 client-credentials token acquisition for a platform connection.

The manager owns the connection's ``AccessToken``. Every mutation happens
under one ``asyncio.Lock`` so concurrent service calls never request tokens
in parallel; callers pass the token string that failed them so a refresh
already done by another caller is reused.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field

from ltiadvantage.clients.http import Transport
from ltiadvantage.clients.signing import (
    CLIENT_ASSERTION_TYPE,
    build_client_assertion,
    load_private_key,
)
from ltiadvantage.models.token import AccessToken

logger = logging.getLogger(__name__)

_READONLY_SUFFIX = ".readonly"
DEFAULT_EXPIRES_IN = 3600


class TokenRequestError(Exception):
    """Raised when the token endpoint cannot be used (missing URL or key)."""


class TokenGrant(BaseModel):
    """Token available to a caller for one scope."""

    token: str
    scopes: List[str]
    scope_only: bool = False
    fresh: bool = Field(False, description="Obtained from the token endpoint during this call.")


def _covers(scopes: Iterable[str], scope: str) -> bool:
    scopes = list(scopes)
    if scope in scopes:
        return True
    return scope.endswith(_READONLY_SUFFIX) and scope[: -len(_READONLY_SUFFIX)] in scopes


class AccessTokenManager:
    """Obtain, extend, refresh and narrow the bearer token of one platform."""

    def __init__(
        self,
        *,
        client_id: str,
        token_url: Optional[str],
        private_key: Optional[str],
        transport: Transport,
        key_id: Optional[str] = None,
        required_scopes: Iterable[str] = (),
        token: Optional[AccessToken] = None,
    ) -> None:
        self._client_id = client_id
        self._token_url = token_url
        self._private_key_pem = private_key
        self._private_key = None
        self._transport = transport
        self._key_id = key_id
        self.required_scopes = list(required_scopes)
        self.token = token or AccessToken()
        self._lock = asyncio.Lock()

    async def ensure(self, scope: str) -> Optional[TokenGrant]:
        """Return a token covering ``scope``, acquiring one when needed."""
        async with self._lock:
            if self.token.has_scope(scope):
                return self._grant()
            return await self._acquire(scope)

    async def refresh(self, scope: str, stale_token: Optional[str]) -> Optional[TokenGrant]:
        """Replace a token the platform rejected."""
        async with self._lock:
            if self.token.token != stale_token and self.token.has_scope(scope):
                return self._grant()
            self.token.expire()
            return await self._acquire(scope)

    async def narrow(self, scope: str, stale_token: Optional[str]) -> Optional[TokenGrant]:
        """Replace a rejected multi-scope token with one for ``scope`` alone."""
        async with self._lock:
            if (
                self.token.token != stale_token
                and self.token.has_scope(scope)
                and len(self.token.scopes) <= 1
            ):
                return self._grant(scope_only=True)
            self.token.expire()
            return await self._request_scope_only(scope)

    async def _acquire(self, scope: str) -> Optional[TokenGrant]:
        scopes = self.requested_scopes(scope)
        if await self.request(scopes) and self.token.has_scope(scope):
            return self._grant(fresh=True)
        if len(scopes) > 1:
            self.token.expire()
            return await self._request_scope_only(scope)
        return None

    async def _request_scope_only(self, scope: str) -> Optional[TokenGrant]:
        if await self.request([scope]) and self.token.has_scope(scope):
            return self._grant(scope_only=True, fresh=True)
        return None

    def requested_scopes(self, scope: str) -> List[str]:
        """The tool's required scopes extended with ``scope`` when not already covered."""
        scopes = list(self.required_scopes)
        if scope and not _covers(scopes, scope):
            scopes.append(scope)
        return scopes

    def _grant(self, scope_only: bool = False, fresh: bool = False) -> TokenGrant:
        return TokenGrant(
            token=self.token.token or "",
            scopes=list(self.token.scopes),
            scope_only=scope_only,
            fresh=fresh,
        )

    async def request(self, scopes: List[str]) -> bool:
        """Ask the token endpoint for ``scopes``; the held token is replaced either way."""
        if not self._token_url:
            raise TokenRequestError("No access token URL is configured for the platform.")
        if self._private_key is None:
            if not self._private_key_pem:
                raise TokenRequestError("No private key is configured to sign client assertions.")
            self._private_key = load_private_key(self._private_key_pem)

        assertion = build_client_assertion(
            client_id=self._client_id,
            audience=self._token_url,
            private_key=self._private_key,
            key_id=self._key_id,
        )
        form = {
            "grant_type": "client_credentials",
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": assertion,
            "scope": " ".join(scopes),
        }
        http = await self._transport.send(
            self._token_url,
            "POST",
            {
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            urlencode(form),
        )
        payload = http.response_json if http.ok else None
        if not isinstance(payload, dict) or not payload.get("access_token"):
            logger.warning(
                "Token request for scopes %s failed: %s", " ".join(scopes), http.describe_error()
            )
            self.token.reset()
            return False

        granted = payload.get("scope")
        if isinstance(granted, str) and granted.strip():
            granted_scopes = granted.split()
        else:
            granted_scopes = list(scopes)
        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        self.token.assign(str(payload["access_token"]), granted_scopes, expires_in)
        logger.debug("Obtained access token for scopes %s", " ".join(granted_scopes))
        return True


__all__ = ["AccessTokenManager", "TokenGrant", "TokenRequestError"]
