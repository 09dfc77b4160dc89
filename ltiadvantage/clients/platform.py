"""
A registered platform and everything a service needs to talk to it.
"""

from __future__ import annotations

from typing import Optional

from ltiadvantage.clients.http import Transport
from ltiadvantage.clients.signing import RequestSigner
from ltiadvantage.clients.sqlite_store import UserResultStore
from ltiadvantage.clients.token_endpoint import AccessTokenManager
from ltiadvantage.core.diagnostics import DiagnosticLog
from ltiadvantage.models.user import LtiVersion


class PlatformConnection:
    """Identity, signing mode and collaborators for one platform registration."""

    def __init__(
        self,
        *,
        platform_id: str,
        transport: Transport,
        signer: Optional[RequestSigner] = None,
        tokens: Optional[AccessTokenManager] = None,
        store: Optional[UserResultStore] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        lti_version: LtiVersion = LtiVersion.V1P3,
        signature_method: str = "RS256",
        default_email: Optional[str] = None,
        membership_limit: int = 100,
    ) -> None:
        self.platform_id = platform_id
        self.transport = transport
        self.signer = signer or RequestSigner()
        self.tokens = tokens
        self.store = store
        self.diagnostics = diagnostics or DiagnosticLog()
        self.lti_version = lti_version
        self.signature_method = signature_method
        self.default_email = default_email
        self.membership_limit = membership_limit

    @property
    def uses_oauth1(self) -> bool:
        """OAuth 1 HMAC signing unless an RS* (JWT) signature method is configured."""
        return not (self.signature_method or "").upper().startswith("RS")

    @property
    def strict_mode(self) -> bool:
        return self.diagnostics.strict_mode


__all__ = ["PlatformConnection"]
