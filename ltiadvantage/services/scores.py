"""
Score service: publish a user's score for one line item.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.grades import Outcome
from ltiadvantage.services.assignment_grade import AssignmentGradeService
from ltiadvantage.services.service import Service

logger = logging.getLogger(__name__)

SCOPE = "https://purl.imsglobal.org/spec/lti-ags/scope/score"
MEDIA_TYPE_SCORE = "application/vnd.ims.lis.v1.score+json"


def score_payload(outcome: Outcome, user_id: str) -> Dict[str, Any]:
    """Score document for ``outcome``, stamped with the current time."""
    if outcome.value is not None:
        payload: Dict[str, Any] = {
            "scoreGiven": outcome.value,
            "scoreMaximum": outcome.points_possible,
            "comment": outcome.comment,
            "activityProgress": outcome.activity_progress,
            "gradingProgress": outcome.grading_progress,
        }
    else:
        payload = {"activityProgress": "Initialized", "gradingProgress": "NotReady"}
    payload["userId"] = user_id
    payload["timestamp"] = datetime.now(timezone.utc).isoformat(timespec="microseconds")
    return payload


class ScoreService(AssignmentGradeService):
    path = "/scores"

    def __init__(self, connection: PlatformConnection, endpoint: str) -> None:
        super().__init__(connection, endpoint, MEDIA_TYPE_SCORE, SCOPE)

    async def submit(self, outcome: Outcome, user_id: str) -> None:
        Service.raise_for_failure(
            await self.send("POST", body=json.dumps(score_payload(outcome, user_id)))
        )
        logger.debug("Submitted score for user %s to %s", user_id, self.endpoint)

    async def delete_outcome(self, user_id: str) -> None:
        """Clear the user's score by submitting an empty outcome."""
        await self.submit(Outcome(), user_id)


__all__ = ["MEDIA_TYPE_SCORE", "SCOPE", "ScoreService", "score_payload"]
