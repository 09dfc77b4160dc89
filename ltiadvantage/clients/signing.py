"""
Request signing for platform service calls.

OAuth 1.0a HMAC signatures are produced by ``oauthlib`` (JSON bodies carry an
``oauth_body_hash``); OAuth 2 requests carry a bearer token. Client assertions
for the token endpoint are RS256 JWTs built with ``PyJWT``.
"""

from __future__ import annotations

import time
import uuid
from typing import Dict, Mapping, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from oauthlib import oauth1

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
JWT_ALGORITHM = "RS256"


class SigningError(Exception):
    """Raised when a request cannot be signed with the configured credentials."""


def media_headers(media_type: Optional[str], has_body: bool = False) -> Dict[str, str]:
    """Accept (and Content-Type for requests with a body) for a service media type."""
    headers: Dict[str, str] = {}
    if media_type:
        headers["Accept"] = media_type
        if has_body:
            headers["Content-Type"] = media_type
    return headers


class RequestSigner:
    """Add authentication headers to outgoing service requests."""

    def __init__(
        self,
        *,
        consumer_key: Optional[str] = None,
        shared_secret: Optional[str] = None,
    ) -> None:
        self._consumer_key = consumer_key
        self._shared_secret = shared_secret

    def sign_oauth1(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[str] = None,
    ) -> Dict[str, str]:
        if not self._consumer_key or not self._shared_secret:
            raise SigningError("OAuth 1 signing requires a consumer key and shared secret.")
        client = oauth1.Client(
            self._consumer_key,
            client_secret=self._shared_secret,
            signature_method=oauth1.SIGNATURE_HMAC_SHA1,
        )
        _, signed_headers, _ = client.sign(
            url,
            http_method=method,
            body=body,
            headers=dict(headers),
        )
        return dict(signed_headers)

    @staticmethod
    def sign_bearer(token: str, headers: Mapping[str, str]) -> Dict[str, str]:
        signed = dict(headers)
        signed["Authorization"] = f"Bearer {token}"
        return signed


def load_private_key(pem: str) -> rsa.RSAPrivateKey:
    """Load and validate the tool's RSA private key."""
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except ValueError as exc:
        raise SigningError(f"Unable to load private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("Client assertions require an RSA private key.")
    return key


def build_client_assertion(
    *,
    client_id: str,
    audience: str,
    private_key: rsa.RSAPrivateKey,
    key_id: Optional[str] = None,
    lifetime_seconds: int = 60,
) -> str:
    """Create the signed JWT presented to the platform's token endpoint."""
    now = int(time.time())
    claims = {
        "iss": client_id,
        "sub": client_id,
        "aud": audience,
        "iat": now,
        "exp": now + lifetime_seconds,
        "jti": str(uuid.uuid4()),
    }
    headers = {"kid": key_id} if key_id else None
    return jwt.encode(claims, private_key, algorithm=JWT_ALGORITHM, headers=headers)


__all__ = [
    "CLIENT_ASSERTION_TYPE",
    "RequestSigner",
    "SigningError",
    "build_client_assertion",
    "load_private_key",
    "media_headers",
]
