"""
Content-item descriptors exchanged through deep linking and the Link and Content service.

Every item serialises two ways: the legacy JSON-LD shape of the
``application/vnd.ims.lti.v1.contentitems+json`` media type (``@type``,
``@id``, a merged ``placementAdvice``) and the LTI 1.3 JSON shape (``type``
plus one key per placement). Decoding detects the shape from the object.
"""

from __future__ import annotations

import html as html_lib
import json
import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, Field, field_validator

from ltiadvantage.core.diagnostics import DiagnosticLog
from ltiadvantage.models.grades import format_datetime, parse_datetime
from ltiadvantage.models.user import LtiVersion

logger = logging.getLogger(__name__)

LTI_LINK_MEDIA_TYPE = "application/vnd.ims.lti.v1.ltilink"
LTI_ASSIGNMENT_MEDIA_TYPE = "application/vnd.ims.lti.v1.ltiassignment"
JSONLD_CONTEXT = "http://purl.imsglobal.org/ctx/lti/v1/ContentItem"
NORMAL_SCORE_METHOD = "http://purl.imsglobal.org/ctx/lis/v2p1/Result#normalScore"

_TAG_PATTERN = re.compile(r"<[^>]*>")


def _warn(diagnostics: Optional[DiagnosticLog], message: str) -> None:
    if diagnostics is not None:
        diagnostics.warning(message)
    else:
        logger.warning(message)


def _error(diagnostics: Optional[DiagnosticLog], message: str) -> None:
    if diagnostics is not None:
        diagnostics.error(message)
    else:
        logger.error(message)


def strip_html(value: str) -> str:
    return html_lib.unescape(_TAG_PATTERN.sub("", value)).strip()


class DocumentTarget(str, Enum):
    EMBED = "embed"
    IFRAME = "iframe"
    FRAME = "frame"
    WINDOW = "window"
    POPUP = "popup"
    OVERLAY = "overlay"


# Placement keys carried by the LTI 1.3 JSON shape.
JSON_PLACEMENT_TARGETS = (
    DocumentTarget.EMBED.value,
    DocumentTarget.IFRAME.value,
    DocumentTarget.WINDOW.value,
    DocumentTarget.FRAME.value,
)


class Placement(BaseModel):
    """Presentation advice for one document target."""

    document_target: str
    display_width: Optional[int] = None
    display_height: Optional[int] = None
    window_target: Optional[str] = None
    window_features: Optional[str] = None
    url: Optional[str] = None
    html: Optional[str] = None

    def to_jsonld_object(self) -> Optional[Dict[str, Any]]:
        if not self.document_target:
            return None
        placement: Dict[str, Any] = {"presentationDocumentTarget": self.document_target}
        if self.display_height is not None:
            placement["displayHeight"] = self.display_height
        if self.display_width is not None:
            placement["displayWidth"] = self.display_width
        if self.window_target:
            placement["windowTarget"] = self.window_target
        return placement

    def to_json_object(self) -> Optional[Dict[str, Any]]:
        if not self.document_target:
            return None
        placement: Dict[str, Any] = {}
        if self.document_target == DocumentTarget.EMBED:
            if self.html is not None:
                placement["html"] = self.html
        elif self.document_target == DocumentTarget.IFRAME:
            if self.url is not None:
                placement["src"] = self.url
            self._add_dimensions(placement)
        elif self.document_target == DocumentTarget.WINDOW:
            self._add_dimensions(placement)
            if self.window_target is not None:
                placement["targetName"] = self.window_target
            if self.window_features is not None:
                placement["windowFeatures"] = self.window_features
        return placement

    def _add_dimensions(self, placement: Dict[str, Any]) -> None:
        if self.display_width is not None:
            placement["width"] = self.display_width
        if self.display_height is not None:
            placement["height"] = self.display_height

    @classmethod
    def from_json_object(
        cls, obj: Mapping[str, Any], document_target: Optional[str] = None
    ) -> List["Placement"]:
        """
        Decode placement advice.

        With ``document_target`` the advice is read from ``obj[document_target]``
        (JSON shape); otherwise ``obj`` itself is a JSON-LD ``placementAdvice``
        whose ``presentationDocumentTarget`` may list several targets.
        """
        if document_target is not None:
            advice = obj.get(document_target)
            if not isinstance(advice, Mapping):
                return []
            targets = [document_target]
        else:
            advice = obj
            raw = advice.get("presentationDocumentTarget") or advice.get("documentTarget")
            if not isinstance(raw, str):
                return []
            targets = [target.strip() for target in raw.split(",") if target.strip()]
        values: Dict[str, Any] = {}
        for name, value in advice.items():
            if name in ("displayWidth", "width"):
                values["display_width"] = value
            elif name in ("displayHeight", "height"):
                values["display_height"] = value
            elif name in ("windowTarget", "targetName"):
                values["window_target"] = value
            elif name == "windowFeatures":
                values["window_features"] = value
            elif name in ("url", "src"):
                values["url"] = value
            elif name == "html":
                values["html"] = value
        return [cls(document_target=target, **values) for target in targets]


class Image(BaseModel):
    """Icon or thumbnail reference."""

    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    def to_jsonld_object(self) -> Dict[str, Any]:
        image: Dict[str, Any] = {"@id": self.url}
        if self.width is not None:
            image["width"] = self.width
        if self.height is not None:
            image["height"] = self.height
        return image

    def to_json_object(self) -> Dict[str, Any]:
        image: Dict[str, Any] = {"url": self.url}
        if self.width is not None:
            image["width"] = self.width
        if self.height is not None:
            image["height"] = self.height
        return image

    @classmethod
    def from_json_object(cls, value: Any) -> Optional["Image"]:
        if isinstance(value, str):
            return cls(url=value) if value else None
        if not isinstance(value, Mapping):
            return None
        url = value.get("@id") or value.get("url")
        if not url:
            return None
        return cls(url=url, width=value.get("width"), height=value.get("height"))


class TimePeriod(BaseModel):
    """Window during which an item is available or accepts submissions."""

    start_date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None

    def to_json_object(self) -> Dict[str, Any]:
        period: Dict[str, Any] = {}
        if self.start_date_time is not None:
            period["startDateTime"] = format_datetime(self.start_date_time)
        if self.end_date_time is not None:
            period["endDateTime"] = format_datetime(self.end_date_time)
        return period

    @classmethod
    def from_json_object(cls, value: Any) -> Optional["TimePeriod"]:
        if not isinstance(value, Mapping):
            return None
        start = parse_datetime(value.get("startDateTime"))
        end = parse_datetime(value.get("endDateTime"))
        if start is None and end is None:
            return None
        return cls(start_date_time=start, end_date_time=end)


class ContentLineItem(BaseModel):
    """Line item to be created alongside an LTI link."""

    label: Optional[str] = None
    score_maximum: Union[int, float]
    resource_id: Optional[str] = None
    tag: Optional[str] = None

    def to_jsonld_object(self) -> Dict[str, Any]:
        line_item: Dict[str, Any] = {
            "@type": "LineItem",
            "label": self.label,
            "reportingMethod": NORMAL_SCORE_METHOD,
        }
        if self.resource_id:
            line_item["assignedActivity"] = {"activityId": self.resource_id}
        line_item["scoreConstraints"] = {
            "@type": "NumericLimits",
            "normalMaximum": self.score_maximum,
        }
        return line_item

    def to_json_object(self) -> Dict[str, Any]:
        line_item: Dict[str, Any] = {"label": self.label, "scoreMaximum": self.score_maximum}
        if self.resource_id:
            line_item["resourceId"] = self.resource_id
        if self.tag:
            line_item["tag"] = self.tag
        return line_item

    @classmethod
    def from_json_object(cls, value: Any) -> Optional["ContentLineItem"]:
        if not isinstance(value, Mapping):
            return None
        score_maximum = value.get("scoreMaximum")
        resource_id = value.get("resourceId")
        activity = value.get("assignedActivity")
        if isinstance(activity, Mapping) and activity.get("activityId"):
            resource_id = activity["activityId"]
        reporting_method = value.get("reportingMethod")
        constraints = value.get("scoreConstraints")
        if (
            score_maximum is None
            and value.get("label")
            and isinstance(reporting_method, str)
            and isinstance(constraints, Mapping)
        ):
            # normalMaximum pairs with ...#normalScore, totalMaximum with ...#totalScore.
            for name, limit in constraints.items():
                if reporting_method.endswith(name.replace("Maximum", "Score")):
                    score_maximum = limit
                    break
        if score_maximum is None:
            return None
        return cls(
            label=value.get("label"),
            score_maximum=score_maximum,
            resource_id=resource_id,
            tag=value.get("tag"),
        )


class ItemType(str, Enum):
    LINK = "link"
    LTI_LINK = "ltiResourceLink"
    LTI_ASSIGNMENT = "ltiAssignment"
    FILE = "file"
    HTML = "html"
    IMAGE = "image"


class Item(BaseModel):
    """A content item; ``link``, ``html`` and ``image`` items use this class directly."""

    type: str = ItemType.LINK.value
    id: Optional[str] = None
    placements: Dict[str, Placement] = Field(default_factory=dict)
    url: Optional[str] = None
    media_type: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    icon: Optional[Image] = None
    thumbnail: Optional[Image] = None
    hide_on_create: Optional[bool] = None

    jsonld_type: ClassVar[str] = "ContentItem"

    @field_validator("placements", mode="before")
    @classmethod
    def _key_placements(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Placement):
            value = [value]
        if isinstance(value, (list, tuple)):
            return {placement.document_target: placement for placement in value}
        return value

    def add_placement(self, placement: Optional[Placement]) -> None:
        """Add placement advice, replacing any advice for the same document target."""
        if placement is not None:
            self.placements[placement.document_target] = placement

    # -- serialisation -------------------------------------------------

    def to_jsonld_object(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {}
        if self.id:
            item["@id"] = self.id
        item["@type"] = self.jsonld_type
        if self.title:
            item["title"] = self.title
        if self.text:
            item["text"] = self.text
        elif self.html:
            item["text"] = self.html
        if self.url:
            item["url"] = self.url
        if self.media_type:
            item["mediaType"] = self.media_type
        advice: Dict[str, Any] = {}
        targets: List[str] = []
        for placement in self.placements.values():
            obj = placement.to_jsonld_object()
            if obj:
                targets.append(placement.document_target)
                advice.update(obj)
        if advice:
            advice["presentationDocumentTarget"] = ",".join(targets)
            item["placementAdvice"] = advice
        if self.icon:
            item["icon"] = self.icon.to_jsonld_object()
        if self.thumbnail:
            item["thumbnail"] = self.thumbnail.to_jsonld_object()
        if self.hide_on_create is not None:
            item["hideOnCreate"] = self.hide_on_create
        return item

    def to_json_object(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"type": self.type}
        if self.title:
            item["title"] = self.title
        if self.text:
            item["text"] = strip_html(self.text)
        if self.html:
            item["html"] = self.html
        if self.url:
            item["url"] = self.url
        for target, placement in self.placements.items():
            if target not in JSON_PLACEMENT_TARGETS:
                continue
            obj = placement.to_json_object()
            if obj is not None:
                item[target] = obj
        if self.icon:
            item["icon"] = self.icon.to_json_object()
        if self.thumbnail:
            item["thumbnail"] = self.thumbnail.to_json_object()
        if self.hide_on_create is not None:
            item["hideOnCreate"] = self.hide_on_create
        return item

    @staticmethod
    def to_json(
        items: Union["Item", Iterable["Item"]], lti_version: LtiVersion = LtiVersion.V1
    ) -> str:
        """Serialise items as a JSON-LD graph (LTI 1.x) or a JSON array (LTI 1.3)."""
        if isinstance(items, Item):
            items = [items]
        if lti_version is LtiVersion.V1P3:
            payload: Any = [item.to_json_object() for item in items]
        else:
            payload = {
                "@context": JSONLD_CONTEXT,
                "@graph": [item.to_jsonld_object() for item in items],
            }
        return json.dumps(payload)

    # -- deserialisation -----------------------------------------------

    @staticmethod
    def from_json(value: Any, diagnostics: Optional[DiagnosticLog] = None) -> List["Item"]:
        """Decode a JSON-LD graph, a JSON array or a single item object."""
        if isinstance(value, str):
            value = json.loads(value)
        if isinstance(value, Mapping) and "@graph" in value:
            value = value["@graph"]
        if not isinstance(value, list):
            value = [value]
        items: List[Item] = []
        for obj in value:
            item = Item.from_json_item(obj, diagnostics)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def from_json_item(obj: Any, diagnostics: Optional[DiagnosticLog] = None) -> Optional["Item"]:
        if not isinstance(obj, Mapping):
            _error(diagnostics, f"A content item must be an object ({type(obj).__name__} found)")
            return None
        if "@type" in obj:
            item_cls, item_type = _jsonld_variant(obj, diagnostics)
        elif "type" in obj:
            item_type = obj["type"]
            if not isinstance(item_type, str):
                _error(diagnostics, "The 'Item/type' element must be a string")
                return None
            item_cls = ITEM_TYPES.get(item_type)
            if item_cls is None:
                _warn(diagnostics, f"Value of the 'Item/type' element not recognised ('{item_type}' found)")
                item_cls = Item
        else:
            _error(diagnostics, "A content item must have a '@type' or 'type' element")
            return None
        item = item_cls.create(item_type)
        item.read_json_object(obj, diagnostics)
        return item

    @classmethod
    def create(cls, item_type: str, id: Optional[str] = None) -> "Item":
        return cls(type=item_type, id=id)

    def read_json_object(
        self, obj: Mapping[str, Any], diagnostics: Optional[DiagnosticLog] = None
    ) -> None:
        if isinstance(obj.get("@id"), str):
            self.id = obj["@id"]
        for name, value in obj.items():
            if name in ("title", "text", "html", "url"):
                if isinstance(value, str):
                    setattr(self, name, value)
                else:
                    _warn(diagnostics, f"The '{name}' element must be a string")
            elif name == "mediaType":
                self.media_type = value if isinstance(value, str) else None
            elif name == "hideOnCreate":
                self.hide_on_create = bool(value) if value is not None else None
            elif name == "placementAdvice" and isinstance(value, Mapping):
                for placement in Placement.from_json_object(value):
                    self.add_placement(placement)
            elif name in JSON_PLACEMENT_TARGETS:
                for placement in Placement.from_json_object(obj, name):
                    self.add_placement(placement)
            elif name in ("icon", "thumbnail"):
                if isinstance(value, (Mapping, str)):
                    setattr(self, name, Image.from_json_object(value))
                else:
                    _error(diagnostics, f"The {name} element must be a simple object or string")


class LtiLinkItem(Item):
    """A launchable LTI resource link."""

    type: str = ItemType.LTI_LINK.value
    custom: Dict[str, str] = Field(default_factory=dict)
    line_item: Optional[ContentLineItem] = None
    available: Optional[TimePeriod] = None
    submission: Optional[TimePeriod] = None

    jsonld_type: ClassVar[str] = "LtiLinkItem"

    def add_custom(self, name: str, value: Optional[str] = None) -> None:
        """Set a custom parameter; an empty value removes it."""
        if not name:
            return
        if value:
            self.custom[name] = value
        else:
            self.custom.pop(name, None)

    def to_jsonld_object(self) -> Dict[str, Any]:
        item = super().to_jsonld_object()
        if self.line_item:
            item["lineItem"] = self.line_item.to_jsonld_object()
        if self.custom:
            item["custom"] = dict(self.custom)
        return item

    def to_json_object(self) -> Dict[str, Any]:
        item = super().to_json_object()
        if self.line_item:
            item["lineItem"] = self.line_item.to_json_object()
        if self.custom:
            item["custom"] = dict(self.custom)
        if self.available:
            item["available"] = self.available.to_json_object()
        if self.submission:
            item["submission"] = self.submission.to_json_object()
        return item

    def read_json_object(
        self, obj: Mapping[str, Any], diagnostics: Optional[DiagnosticLog] = None
    ) -> None:
        super().read_json_object(obj, diagnostics)
        for name, value in obj.items():
            if name == "custom":
                if isinstance(value, Mapping):
                    for param_name, param_value in value.items():
                        self.add_custom(param_name, None if param_value is None else str(param_value))
                else:
                    _error(diagnostics, "The custom element must be a simple object")
            elif name == "lineItem":
                self.line_item = ContentLineItem.from_json_object(value)
            elif name in ("available", "submission"):
                if isinstance(value, Mapping):
                    setattr(self, name, TimePeriod.from_json_object(value))
                elif value is not None:
                    _error(diagnostics, f"The {name} element must be a simple object")


class LtiAssignmentItem(LtiLinkItem):
    """An LTI link which the platform should treat as a gradable assignment."""

    type: str = ItemType.LTI_ASSIGNMENT.value
    media_type: Optional[str] = LTI_ASSIGNMENT_MEDIA_TYPE


class FileItem(Item):
    """A downloadable file."""

    type: str = ItemType.FILE.value
    copy_advice: Optional[bool] = None
    expires_at: Optional[datetime] = None

    jsonld_type: ClassVar[str] = "FileItem"

    def to_jsonld_object(self) -> Dict[str, Any]:
        item = super().to_jsonld_object()
        if self.copy_advice is not None:
            item["copyAdvice"] = self.copy_advice
        if self.expires_at:
            item["expiresAt"] = format_datetime(self.expires_at)
        return item

    def to_json_object(self) -> Dict[str, Any]:
        item = super().to_json_object()
        if self.expires_at:
            item["expiresAt"] = format_datetime(self.expires_at)
        return item

    def read_json_object(
        self, obj: Mapping[str, Any], diagnostics: Optional[DiagnosticLog] = None
    ) -> None:
        super().read_json_object(obj, diagnostics)
        if "copyAdvice" in obj:
            self.copy_advice = bool(obj["copyAdvice"])
        if "expiresAt" in obj:
            self.expires_at = parse_datetime(obj["expiresAt"])


ITEM_TYPES: Dict[str, Type[Item]] = {
    ItemType.LINK.value: Item,
    ItemType.HTML.value: Item,
    ItemType.IMAGE.value: Item,
    ItemType.LTI_LINK.value: LtiLinkItem,
    ItemType.LTI_ASSIGNMENT.value: LtiAssignmentItem,
    ItemType.FILE.value: FileItem,
}


def _jsonld_variant(
    obj: Mapping[str, Any], diagnostics: Optional[DiagnosticLog]
) -> tuple[Type[Item], str]:
    jsonld_type = obj["@type"]
    media_type = obj.get("mediaType") or ""
    if jsonld_type == "LtiLinkItem":
        if media_type == LTI_ASSIGNMENT_MEDIA_TYPE:
            return LtiAssignmentItem, ItemType.LTI_ASSIGNMENT.value
        return LtiLinkItem, ItemType.LTI_LINK.value
    if jsonld_type == "FileItem":
        return FileItem, ItemType.FILE.value
    if jsonld_type != "ContentItem":
        _warn(diagnostics, f"Value of the 'Item/@type' element not recognised ('{jsonld_type}' found)")
    if not obj.get("url"):
        return Item, ItemType.HTML.value
    if isinstance(media_type, str) and media_type.startswith("image"):
        return Item, ItemType.IMAGE.value
    return Item, ItemType.LINK.value


__all__ = [
    "ContentLineItem",
    "DocumentTarget",
    "FileItem",
    "ITEM_TYPES",
    "Image",
    "Item",
    "ItemType",
    "LtiAssignmentItem",
    "LtiLinkItem",
    "Placement",
    "TimePeriod",
]
