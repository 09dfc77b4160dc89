"""
Result service: the scores recorded against one line item.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.grades import Outcome
from ltiadvantage.services.assignment_grade import AssignmentGradeService, json_array
from ltiadvantage.services.pagination import PaginatedCollectionFetcher
from ltiadvantage.services.service import Service

SCOPE = "https://purl.imsglobal.org/spec/lti-ags/scope/result.readonly"
MEDIA_TYPE_RESULTS = "application/vnd.ims.lis.v2.resultcontainer+json"


def outcome_from_json(json: Mapping[str, Any]) -> Outcome:
    outcome = Outcome(lti_user_id=json.get("userId"))
    if json.get("resultScore") is not None:
        outcome.value = json["resultScore"]
    if json.get("resultMaximum") is not None:
        outcome.points_possible = json["resultMaximum"]
    if json.get("comment") is not None:
        outcome.comment = json["comment"]
    return outcome


class ResultService(AssignmentGradeService):
    path = "/results"

    def __init__(
        self,
        connection: PlatformConnection,
        endpoint: str,
        limit: Optional[int] = None,
    ) -> None:
        super().__init__(connection, endpoint, MEDIA_TYPE_RESULTS, SCOPE)
        self.limit = limit

    async def get_all(self, limit: Optional[int] = None) -> List[Outcome]:
        fetcher = PaginatedCollectionFetcher(self, json_array, limit=limit or self.limit)
        return [
            outcome_from_json(item)
            for item in await fetcher.fetch_all()
            if isinstance(item, Mapping)
        ]

    async def get(self, user_id: str) -> Optional[Outcome]:
        """The result of one user, or None when the platform has none."""
        http = Service.raise_for_failure(await self.send("GET", {"user_id": user_id}))
        for item in json_array(http):
            if isinstance(item, Mapping):
                return outcome_from_json(item)
        return None


__all__ = ["MEDIA_TYPE_RESULTS", "ResultService", "SCOPE", "outcome_from_json"]
