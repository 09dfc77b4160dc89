"""
Content items as resources of the Link and Content service.

A ``ContentItem`` wraps an ``Item`` with the identifier the platform assigned
to it; LTI links additionally report their resource link and line items.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from ltiadvantage.core.diagnostics import DiagnosticLog, check_string
from ltiadvantage.schemas.content import ITEM_TYPES, Item, ItemType, LtiLinkItem

_KNOWN_TYPES = (
    ItemType.LINK.value,
    ItemType.LTI_LINK.value,
    ItemType.FILE.value,
    ItemType.HTML.value,
    ItemType.IMAGE.value,
)


class ContentItem(BaseModel):
    item: Item
    readonly: Optional[List[str]] = None

    @property
    def id(self) -> Optional[str]:
        return self.item.id

    def to_json_object(self) -> Dict[str, Any]:
        obj = self.item.to_json_object()
        if self.item.id:
            obj["id"] = self.item.id
        if self.readonly is not None:
            obj["readonly"] = list(self.readonly)
        return obj

    def to_json(self) -> str:
        return json.dumps(self.to_json_object())

    @classmethod
    def from_type(cls, item_type: str, id: Optional[str] = None) -> "ContentItem":
        item_cls = ITEM_TYPES.get(item_type, Item)
        item = item_cls.create(item_type, id)
        if item_type == ItemType.LTI_LINK.value:
            return LtiLinkContentItem(item=item)
        return ContentItem(item=item)

    @classmethod
    def from_json_item(
        cls, obj: Any, diagnostics: Optional[DiagnosticLog] = None
    ) -> Optional["ContentItem"]:
        """Decode one service resource; None when it has no usable ``type``."""
        diagnostics = diagnostics or DiagnosticLog()
        if not isinstance(obj, Mapping):
            diagnostics.error(f"A content item must be an object ({type(obj).__name__} found)")
            return None
        item_type = check_string(obj, "type", diagnostics, required=True, context="Item")
        if item_type is None:
            return None
        if item_type not in _KNOWN_TYPES:
            diagnostics.warning(f"Value of the 'Item/type' element not recognised ('{item_type}' found)")
        content_item = cls.from_type(item_type, check_string(obj, "id", diagnostics, context="Item"))
        content_item.read_json_object(obj, diagnostics)
        return content_item

    def read_json_object(self, obj: Mapping[str, Any], diagnostics: DiagnosticLog) -> None:
        self.item.read_json_object(obj, diagnostics)
        readonly = obj.get("readonly")
        if isinstance(readonly, list):
            self.readonly = [str(name) for name in readonly]
        elif readonly is not None:
            diagnostics.warning("The 'readonly' element must be an array")


class LtiLinkContentItem(ContentItem):
    item: LtiLinkItem
    resource_link_id: Optional[str] = None
    line_item_ids: Optional[List[str]] = None

    def to_json_object(self) -> Dict[str, Any]:
        obj = super().to_json_object()
        obj.setdefault("title", "Untitled")
        obj.setdefault("url", "")
        if self.resource_link_id is not None:
            obj["resourceLinkId"] = self.resource_link_id
        if self.line_item_ids is not None:
            obj["lineItemIds"] = list(self.line_item_ids)
        return obj

    def read_json_object(self, obj: Mapping[str, Any], diagnostics: DiagnosticLog) -> None:
        super().read_json_object(obj, diagnostics)
        if "resourceLinkId" in obj:
            self.resource_link_id = check_string(obj, "resourceLinkId", diagnostics, context="Item")
        line_item_ids = obj.get("lineItemIds")
        if isinstance(line_item_ids, list):
            self.line_item_ids = [str(line_item_id) for line_item_id in line_item_ids]
        elif line_item_ids is not None:
            diagnostics.error("The 'lineItemIds' element must be an array")


__all__ = ["ContentItem", "LtiLinkContentItem"]
