"""
Course Groups service.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.models.context import Context
from ltiadvantage.models.groups import Group, GroupSet
from ltiadvantage.services.pagination import PaginatedCollectionFetcher, items_under
from ltiadvantage.services.service import Service

logger = logging.getLogger(__name__)

MEDIA_TYPE_COURSE_GROUP_SETS = "application/vnd.ims.lti-gs.v1.contextgroupsetcontainer+json"
MEDIA_TYPE_COURSE_GROUPS = "application/vnd.ims.lti-gs.v1.contextgroupcontainer+json"
SCOPE = "https://purl.imsglobal.org/spec/lti-gs/scope/contextgroup.readonly"


class GroupsService(Service):
    """Load the group sets and groups of a context."""

    def __init__(
        self,
        connection: PlatformConnection,
        context: Context,
        groups_endpoint: str,
        group_sets_endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(connection, groups_endpoint, MEDIA_TYPE_COURSE_GROUPS, SCOPE)
        self.context = context
        self.groups_endpoint = groups_endpoint
        self.group_sets_endpoint = group_sets_endpoint

    async def get(self, limit: Optional[int] = None) -> None:
        """
        Rebuild ``context.group_sets`` and ``context.groups``.

        On failure both are reset to None and the error is raised.
        """
        try:
            group_sets = await self._get_group_sets(limit)
            groups = await self._get_groups(limit, group_sets)
        except Exception:
            self.context.group_sets = None
            self.context.groups = None
            raise
        self.context.group_sets = group_sets
        self.context.groups = groups
        logger.debug(
            "Loaded %d group sets and %d groups for context %s",
            len(group_sets),
            len(groups),
            self.context.lti_context_id,
        )

    async def _get_group_sets(self, limit: Optional[int]) -> Dict[str, GroupSet]:
        group_sets: Dict[str, GroupSet] = {}
        if not self.group_sets_endpoint:
            return group_sets
        self.endpoint = self.group_sets_endpoint
        self.media_type = MEDIA_TYPE_COURSE_GROUP_SETS
        fetcher = PaginatedCollectionFetcher(self, items_under("sets"), limit=limit)
        for item in await fetcher.fetch_all():
            set_id = _identifier(item)
            if set_id is None:
                continue
            group_sets[set_id] = GroupSet(title=item.get("name") or f"Set {set_id}")
        return group_sets

    async def _get_groups(
        self, limit: Optional[int], group_sets: Dict[str, GroupSet]
    ) -> Dict[str, Group]:
        self.endpoint = self.groups_endpoint
        self.media_type = MEDIA_TYPE_COURSE_GROUPS
        fetcher = PaginatedCollectionFetcher(self, items_under("groups"), limit=limit)
        groups: Dict[str, Group] = {}
        for item in await fetcher.fetch_all():
            group_id = _identifier(item)
            if group_id is None:
                continue
            group = Group(title=item.get("name") or f"Group {group_id}", tag=item.get("tag") or None)
            set_id = item.get("set_id")
            if set_id:
                set_id = str(set_id)
                if set_id not in group_sets:
                    group_sets[set_id] = GroupSet(title=f"Set {set_id}")
                group_sets[set_id].groups.append(group_id)
                group.set_id = set_id
            groups[group_id] = group
        return groups


def _identifier(item: Any) -> Optional[str]:
    if not isinstance(item, Mapping) or item.get("id") in (None, ""):
        return None
    return str(item["id"])


__all__ = [
    "GroupsService",
    "MEDIA_TYPE_COURSE_GROUPS",
    "MEDIA_TYPE_COURSE_GROUP_SETS",
    "SCOPE",
]
