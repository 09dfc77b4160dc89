"""
Course group sets and groups reported by the Groups service.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class GroupSet(BaseModel):
    """A set of groups with member counters rebuilt on every roster fetch."""

    title: str
    groups: List[str] = Field(default_factory=list)
    num_members: int = 0
    num_staff: int = 0
    num_learners: int = 0


class Group(BaseModel):
    """A single course group, optionally belonging to a set."""

    title: str
    set_id: Optional[str] = None
    tag: Optional[str] = None


class GroupHolder(BaseModel):
    """Mixin for entities which carry group sets and groups."""

    group_sets: Optional[Dict[str, GroupSet]] = None
    groups: Optional[Dict[str, Group]] = None

    def ensure_group(self, group_id: str) -> Group:
        """Return the group, synthesising a placeholder when it was never announced."""
        if self.groups is None:
            self.groups = {}
        group = self.groups.get(group_id)
        if group is None:
            group = Group(title=f"Group {group_id}")
            self.groups[group_id] = group
        return group

    def ensure_group_set(self, set_id: str) -> GroupSet:
        if self.group_sets is None:
            self.group_sets = {}
        group_set = self.group_sets.get(set_id)
        if group_set is None:
            group_set = GroupSet(title=f"Set {set_id}")
            self.group_sets[set_id] = group_set
        return group_set


__all__ = ["Group", "GroupHolder", "GroupSet"]
