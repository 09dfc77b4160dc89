"""
Factory functions to provide the shared platform connection and its collaborators.
"""

from functools import lru_cache
from typing import Optional

from ltiadvantage.clients import (
    AccessTokenManager,
    HttpxTransport,
    PlatformConnection,
    RequestSigner,
    SQLiteUserResultStore,
)
from ltiadvantage.core.config import get_settings
from ltiadvantage.core.diagnostics import DiagnosticLog
from ltiadvantage.models.context import Context, ResourceLink
from ltiadvantage.services import Membership
from ltiadvantage.services.membership import MEDIA_TYPE_MEMBERSHIPS_NRPS


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_transport() -> HttpxTransport:
    """Provide the HTTP transport used for every platform request."""
    settings = _settings()
    return HttpxTransport(
        timeout=settings.http.timeout_seconds,
        user_agent=settings.http.user_agent,
    )


@lru_cache()
def get_user_result_store() -> SQLiteUserResultStore:
    """Provide shared SQLite user record store."""
    settings = _settings()
    return SQLiteUserResultStore(settings.store_path)


@lru_cache()
def get_token_manager() -> Optional[AccessTokenManager]:
    """Provide the token manager when the platform uses OAuth 2."""
    settings = _settings()
    platform = settings.platform
    if platform.uses_oauth1:
        return None
    return AccessTokenManager(
        client_id=platform.client_id,
        token_url=str(platform.access_token_url) if platform.access_token_url else None,
        private_key=settings.tool.load_private_key(),
        key_id=settings.tool.key_id,
        required_scopes=settings.tool.required_scopes,
        transport=get_transport(),
    )


@lru_cache()
def get_platform_connection() -> PlatformConnection:
    """Create the singleton connection to the configured platform."""
    settings = _settings()
    platform = settings.platform
    return PlatformConnection(
        platform_id=platform.platform_id,
        transport=get_transport(),
        signer=RequestSigner(
            consumer_key=platform.consumer_key,
            shared_secret=platform.shared_secret,
        ),
        tokens=get_token_manager(),
        store=get_user_result_store(),
        diagnostics=DiagnosticLog(
            strict_mode=settings.strict_mode, max_messages=settings.diagnostics_limit
        ),
        lti_version=platform.lti_version,
        signature_method=platform.signature_method,
        default_email=platform.default_email,
        membership_limit=settings.membership_limit,
    )


def get_membership_service(
    endpoint: str,
    *,
    context_id: str,
    resource_link_id: Optional[str] = None,
    media_type: str = MEDIA_TYPE_MEMBERSHIPS_NRPS,
    paging_mode: bool = False,
) -> Membership:
    """Build a membership service for a context, or a resource link within it."""
    connection = get_platform_connection()
    context = Context(platform_id=connection.platform_id, lti_context_id=context_id)
    source = context
    if resource_link_id:
        source = ResourceLink(
            platform_id=connection.platform_id,
            lti_resource_link_id=resource_link_id,
            context=context,
        )
    return Membership(connection, source, endpoint, media_type, paging_mode=paging_mode)


__all__ = [
    "get_membership_service",
    "get_platform_connection",
    "get_token_manager",
    "get_transport",
    "get_user_result_store",
]
