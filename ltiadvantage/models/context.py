"""
Membership sources: platform contexts (courses) and resource links.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from ltiadvantage.models.groups import GroupHolder


class Context(GroupHolder):
    """A platform context such as a course section."""

    platform_id: str
    lti_context_id: str
    title: Optional[str] = None


class ResourceLink(GroupHolder):
    """A placement of the tool within a context."""

    platform_id: str
    lti_resource_link_id: str
    context: Optional[Context] = Field(None, description="Owning context, when known.")
    title: Optional[str] = None


__all__ = ["Context", "ResourceLink"]
