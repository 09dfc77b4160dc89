"""
Roster entities: the users a platform reports for a resource link or context.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

ROLE_URN_PREFIX = "urn:lti:role:ims/lis/"
INSTITUTION_ROLE_URN_PREFIX = "urn:lti:instrole:ims/lis/"
SYSTEM_ROLE_URN_PREFIX = "urn:lti:sysrole:ims/lis/"
MEMBERSHIP_ROLE_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/membership#"
INSTITUTION_ROLE_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/institution/person#"
SYSTEM_ROLE_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/system/person#"

_STAFF_ROLES = ("Instructor", "ContentDeveloper", "TeachingAssistant")


class LtiVersion(str, Enum):
    """LTI versions, valued as they appear in launch messages."""

    V1 = "LTI-1p0"
    V2 = "LTI-2p0"
    V1P3 = "1.3.0"


def _is_uri(role: str) -> bool:
    return role.startswith(("urn:", "http://", "https://"))


def parse_roles(
    roles: Union[str, Iterable[str], None], lti_version: LtiVersion = LtiVersion.V1
) -> List[str]:
    """
    Translate role names into fully qualified role URIs.

    Short names become LIS URNs for LTI 1.x/2.0 and LIS v2 membership URIs
    for LTI 1.3; values which already are URNs or URLs are kept.
    """
    if roles is None:
        return []
    if isinstance(roles, str):
        roles = roles.split(",")
    parsed: List[str] = []
    for role in roles:
        role = role.strip()
        if not role:
            continue
        if lti_version is LtiVersion.V1P3:
            if not role.startswith(("http://", "https://")):
                role = MEMBERSHIP_ROLE_PREFIX + role
        elif not _is_uri(role):
            role = ROLE_URN_PREFIX + role
        parsed.append(role)
    return parsed


def _role_variants(role: str) -> set[str]:
    variants = {role}
    if not _is_uri(role):
        variants.add(ROLE_URN_PREFIX + role)
        variants.add(MEMBERSHIP_ROLE_PREFIX + role)
        variants.add(INSTITUTION_ROLE_PREFIX + role)
        variants.add(SYSTEM_ROLE_PREFIX + role)
    elif role.startswith(ROLE_URN_PREFIX):
        variants.add(MEMBERSHIP_ROLE_PREFIX + role[len(ROLE_URN_PREFIX):])
    elif role.startswith(INSTITUTION_ROLE_URN_PREFIX):
        variants.add(INSTITUTION_ROLE_PREFIX + role[len(INSTITUTION_ROLE_URN_PREFIX):])
    elif role.startswith(SYSTEM_ROLE_URN_PREFIX):
        variants.add(SYSTEM_ROLE_PREFIX + role[len(SYSTEM_ROLE_URN_PREFIX):])
    return variants


class UserResult(BaseModel):
    """A user as seen through one resource link (or context) of a platform."""

    platform_id: str
    resource_link_id: Optional[str] = Field(
        None, description="Resource link (or context) the record is scoped to."
    )
    lti_user_id: str
    firstname: str = ""
    middlename: str = ""
    lastname: str = ""
    fullname: str = ""
    email: str = ""
    username: str = ""
    sourced_id: Optional[str] = None
    lti_result_sourced_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    groups: List[str] = Field(default_factory=list)
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, Optional[str], str]:
        return (self.platform_id, self.resource_link_id, self.lti_user_id)

    def set_names(
        self,
        firstname: str = "",
        lastname: str = "",
        fullname: str = "",
        middlename: str = "",
        *,
        allow_empty_name: bool = False,
    ) -> None:
        """Set the name fields, deriving missing parts from the full name."""
        names: List[str] = ["", ""]
        if fullname:
            self.fullname = fullname.strip()
            names = re.split(r"\s+", self.fullname)
        if firstname:
            self.firstname = firstname.strip()
            names[0] = self.firstname
        elif names[0]:
            self.firstname = names[0]
        elif not allow_empty_name:
            self.firstname = "User"
        else:
            self.firstname = ""
        if middlename:
            self.middlename = middlename.strip()
        elif len(names) > 2 and names[1]:
            self.middlename = " ".join(names[1:-1])
        else:
            self.middlename = ""
        if lastname:
            self.lastname = lastname.strip()
        elif len(names) > 1 and names[-1]:
            self.lastname = names[-1]
        elif not allow_empty_name:
            self.lastname = self.lti_user_id
        else:
            self.lastname = ""
        if not self.fullname and (self.firstname or self.lastname):
            self.fullname = " ".join(
                part for part in (self.firstname, self.middlename, self.lastname) if part
            )

    def set_email(self, email: str = "", default_email: Optional[str] = None) -> None:
        """Set the e-mail, falling back to a default address or ``@domain``."""
        if email:
            self.email = email
        elif default_email:
            if default_email.startswith("@"):
                local = self.username or self.lti_user_id
                self.email = f"{local}{default_email}"
            else:
                self.email = default_email
        else:
            self.email = ""

    def has_role(self, role: str) -> bool:
        return any(variant in self.roles for variant in _role_variants(role))

    def is_learner(self) -> bool:
        return self.has_role("Learner")

    def is_staff(self) -> bool:
        return any(self.has_role(role) for role in _STAFF_ROLES)

    def is_admin(self) -> bool:
        return (
            self.has_role("Administrator")
            or self.has_role(SYSTEM_ROLE_URN_PREFIX + "SysAdmin")
            or self.has_role(SYSTEM_ROLE_URN_PREFIX + "Administrator")
            or self.has_role(INSTITUTION_ROLE_URN_PREFIX + "Administrator")
        )


__all__ = [
    "LtiVersion",
    "MEMBERSHIP_ROLE_PREFIX",
    "ROLE_URN_PREFIX",
    "UserResult",
    "parse_roles",
]
