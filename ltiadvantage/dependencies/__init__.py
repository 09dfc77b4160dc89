"""Expose dependency helpers."""

from .clients import (
    get_membership_service,
    get_platform_connection,
    get_token_manager,
    get_transport,
    get_user_result_store,
)

__all__ = [
    "get_membership_service",
    "get_platform_connection",
    "get_token_manager",
    "get_transport",
    "get_user_result_store",
]
