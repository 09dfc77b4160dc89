"""Expose constructed client wrappers."""

from .http import HttpMessage, HttpxTransport, ServiceFailure, Transport
from .platform import PlatformConnection
from .signing import RequestSigner, SigningError
from .sqlite_store import SQLiteUserResultStore, UserResultStore
from .token_endpoint import AccessTokenManager, TokenGrant, TokenRequestError

__all__ = [
    "AccessTokenManager",
    "HttpMessage",
    "HttpxTransport",
    "PlatformConnection",
    "RequestSigner",
    "SQLiteUserResultStore",
    "ServiceFailure",
    "SigningError",
    "TokenGrant",
    "TokenRequestError",
    "Transport",
    "UserResultStore",
]
