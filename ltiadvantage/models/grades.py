"""
Assignment and grade entities exchanged with the AGS and assessment control services.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp as sent by platforms (``Z`` suffix allowed)."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


class SubmissionReview(BaseModel):
    """Where and how the platform can send a user to review a submission."""

    label: Optional[str] = None
    endpoint: Optional[str] = None
    custom: Optional[Dict[str, str]] = None

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "SubmissionReview":
        return cls(
            label=json.get("label") or None,
            endpoint=json.get("url") or None,
            custom=json.get("custom") or None,
        )

    def to_json(self) -> Dict[str, Any]:
        obj: Dict[str, Any] = {}
        if self.label:
            obj["label"] = self.label
        if self.endpoint:
            obj["url"] = self.endpoint
        if self.custom:
            obj["custom"] = self.custom
        return obj


class LineItem(BaseModel):
    """A gradebook column on the platform."""

    label: str
    points_possible: Union[int, float] = 1
    lti_resource_link_id: Optional[str] = None
    resource_id: Optional[str] = None
    tag: Optional[str] = None
    submit_from: Optional[datetime] = None
    submit_until: Optional[datetime] = None
    submission_review: Optional[SubmissionReview] = None
    endpoint: Optional[str] = Field(
        None, description="Platform-assigned line item URL; authoritative once set."
    )

    @classmethod
    def from_json(cls, json: Any) -> Optional["LineItem"]:
        """Build a line item from the AGS JSON shape; None when required fields are missing."""
        if not isinstance(json, Mapping):
            return None
        if not json.get("id") or not json.get("label") or not json.get("scoreMaximum"):
            return None
        review = json.get("submissionReview")
        return cls(
            label=json["label"],
            points_possible=json["scoreMaximum"],
            endpoint=json["id"],
            lti_resource_link_id=json.get("resourceLinkId") or None,
            resource_id=json.get("resourceId") or None,
            tag=json.get("tag") or None,
            submit_from=parse_datetime(json.get("startDateTime")),
            submit_until=parse_datetime(json.get("endDateTime")),
            submission_review=SubmissionReview.from_json(review)
            if isinstance(review, Mapping)
            else None,
        )

    def to_json(self) -> Dict[str, Any]:
        json: Dict[str, Any] = {}
        if self.endpoint:
            json["id"] = self.endpoint
        if self.label:
            json["label"] = self.label
        if self.points_possible:
            json["scoreMaximum"] = self.points_possible
        if self.lti_resource_link_id:
            json["resourceLinkId"] = self.lti_resource_link_id
        if self.resource_id:
            json["resourceId"] = self.resource_id
        if self.tag:
            json["tag"] = self.tag
        if self.submit_from:
            json["startDateTime"] = format_datetime(self.submit_from)
        if self.submit_until:
            json["endDateTime"] = format_datetime(self.submit_until)
        if self.submission_review:
            json["submissionReview"] = self.submission_review.to_json()
        return json

    def bind(self, other: "LineItem") -> None:
        """Copy every field of a platform response into this instance."""
        for name in type(self).model_fields:
            setattr(self, name, getattr(other, name))


class Outcome(BaseModel):
    """A score for one user against a line item."""

    value: Optional[Union[int, float, str]] = None
    points_possible: Union[int, float] = 1
    comment: Optional[str] = None
    activity_progress: str = "Completed"
    grading_progress: str = "FullyGraded"
    lti_user_id: Optional[str] = None


class AssessmentAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    TERMINATE = "terminate"
    UPDATE = "update"
    FLAG = "flag"


class AssessmentControlAction(BaseModel):
    """A proctoring action reported to the platform."""

    action: AssessmentAction
    date: datetime
    severity: float
    extra_time: Optional[int] = None
    code: Optional[str] = None
    message: Optional[str] = None


__all__ = [
    "AssessmentAction",
    "AssessmentControlAction",
    "LineItem",
    "Outcome",
    "SubmissionReview",
    "format_datetime",
    "parse_datetime",
]
