"""Content-item schemas."""

from .content import (
    ContentLineItem,
    DocumentTarget,
    FileItem,
    Image,
    Item,
    ItemType,
    LtiAssignmentItem,
    LtiLinkItem,
    Placement,
    TimePeriod,
)
from .content_item import ContentItem, LtiLinkContentItem

__all__ = [
    "ContentItem",
    "ContentLineItem",
    "DocumentTarget",
    "FileItem",
    "Image",
    "Item",
    "ItemType",
    "LtiAssignmentItem",
    "LtiLinkContentItem",
    "LtiLinkItem",
    "Placement",
    "TimePeriod",
]
