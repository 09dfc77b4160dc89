"""
Roster retrieval and reconciliation.

Two container formats are understood: the legacy LIS v2 membership container
(``pageOf.membershipSubject.membership[]``, roles possibly written with
JSON-LD ``@context`` prefixes) and the NRPS v2 container (``members[]``,
launch messages keyed by LTI claim URIs). Both are parsed into
``MemberRecord`` values and folded into ``UserResult`` records. For a resource
link the records are persisted and, when the whole roster was fetched, local
users missing from it are deleted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from ltiadvantage.clients.http import HttpMessage
from ltiadvantage.clients.platform import PlatformConnection
from ltiadvantage.core.diagnostics import DiagnosticLog, check_string
from ltiadvantage.models.context import Context, ResourceLink
from ltiadvantage.models.user import UserResult, parse_roles
from ltiadvantage.services.groups import GroupsService
from ltiadvantage.services.pagination import PaginatedCollectionFetcher
from ltiadvantage.services.service import Service, ServiceRequestError

logger = logging.getLogger(__name__)

MEDIA_TYPE_MEMBERSHIPS_V1 = "application/vnd.ims.lis.v2.membershipcontainer+json"
MEDIA_TYPE_MEMBERSHIPS_NRPS = "application/vnd.ims.lti-nrps.v2.membershipcontainer+json"
SCOPE = "https://purl.imsglobal.org/spec/lti-nrps/scope/contextmembership.readonly"

LAUNCH_MESSAGE_TYPES = ("basic-lti-launch-request", "LtiResourceLinkRequest")
CLAIM_MESSAGE_TYPE = "https://purl.imsglobal.org/spec/lti/claim/message_type"
CLAIM_BASIC_OUTCOME = "https://purl.imsglobal.org/spec/lti-bo/claim/basicoutcome"
CLAIM_EXT = "https://purl.imsglobal.org/spec/lti/claim/ext"
CLAIM_CUSTOM = "https://purl.imsglobal.org/spec/lti/claim/custom"

_LEGACY_USERNAME_FIELDS = ("ext_username", "ext_user_username", "custom_username", "custom_user_username")
_MESSAGE_USERNAME_FIELDS = ("username", "user_username")

MembershipSource = Union[Context, ResourceLink]


class MemberRecord(BaseModel):
    """One roster entry, normalised from either container format."""

    user_id: str
    firstname: str = ""
    middlename: str = ""
    lastname: str = ""
    fullname: str = ""
    email: str = ""
    sourced_id: Optional[str] = None
    username: str = ""
    roles: List[str] = Field(default_factory=list)
    has_launch_message: bool = False
    result_sourced_id: Optional[str] = None
    fallback_result_sourced_id: Optional[str] = None
    message_usernames: List[str] = Field(default_factory=list)
    group_ids: Optional[List[str]] = None


class MembershipSyncResult(BaseModel):
    """Outcome of a roster fetch."""

    users: List[UserResult] = Field(default_factory=list)
    deleted: List[UserResult] = Field(default_factory=list)
    next_page: Optional[str] = None


def _context_prefixes(context: Any) -> Dict[str, str]:
    if isinstance(context, Mapping):
        context = [context]
    prefixes: Dict[str, str] = {}
    if isinstance(context, list):
        for entry in context:
            if isinstance(entry, Mapping):
                prefixes.update({k: v for k, v in entry.items() if isinstance(v, str)})
    return prefixes


def _expand_prefix(value: str, prefixes: Mapping[str, str]) -> str:
    prefix, sep, rest = value.partition(":")
    if sep and prefix in prefixes:
        return prefixes[prefix] + rest
    return value


def _first_username(source: Any, fields) -> str:
    if not isinstance(source, Mapping):
        return ""
    for name in fields:
        value = source.get(name)
        if isinstance(value, str) and value:
            return value
    return ""


class MembershipSynchronizer:
    """Parse membership containers and reconcile them with stored user records."""

    def __init__(self, connection: PlatformConnection, source: MembershipSource) -> None:
        self.connection = connection
        self.source = source

    @property
    def diagnostics(self) -> DiagnosticLog:
        return self.connection.diagnostics

    @property
    def is_link(self) -> bool:
        return isinstance(self.source, ResourceLink)

    # -- parsing ---------------------------------------------------------

    def parse_page(self, http: HttpMessage) -> List[MemberRecord]:
        """Records from one container response; envelope problems fail the page in strict mode."""
        body = http.response_json
        if isinstance(body, Mapping):
            page_of = body.get("pageOf")
            subject = page_of.get("membershipSubject") if isinstance(page_of, Mapping) else None
            if isinstance(subject, Mapping) and "membership" in subject:
                entries = self._envelope_list(http, subject["membership"], "pageOf/membershipSubject/membership")
                prefixes = _context_prefixes(body.get("@context"))
                return self._collect(entries, lambda entry: self._parse_legacy(entry, prefixes))
            if "members" in body:
                entries = self._envelope_list(http, body["members"], "members")
                return self._collect(entries, self._parse_nrps)
        return self._envelope_list(http, None, "members")

    def _envelope_list(self, http: HttpMessage, value: Any, label: str) -> List[Any]:
        if isinstance(value, list):
            return value
        message = f"The '{label}' element of the membership container must be an array"
        if self.diagnostics.deviation(message):
            raise ServiceRequestError(http, message)
        return []

    @staticmethod
    def _collect(entries: List[Any], parse) -> List[MemberRecord]:
        records = []
        for entry in entries:
            record = parse(entry)
            if record is not None:
                records.append(record)
        return records

    def _parse_roles(self, value: Any, label: str) -> Optional[List[str]]:
        if value is None:
            self.diagnostics.error(f"The '{label}' element is missing")
            return None
        if isinstance(value, str):
            if self.diagnostics.deviation(f"The '{label}' element must be an array (string found)"):
                return None
            return [role for role in value.split(",") if role.strip()]
        if not isinstance(value, list):
            self.diagnostics.error(f"The '{label}' element must be an array ({type(value).__name__} found)")
            return None
        roles = [role for role in value if isinstance(role, str)]
        if len(roles) != len(value):
            if self.diagnostics.deviation(f"The '{label}' element must only contain strings"):
                return None
        return roles

    def _parse_names(self, member: Mapping[str, Any], fields: Dict[str, str], context: str) -> Dict[str, str]:
        values = {}
        for attr, name in fields.items():
            values[attr] = check_string(member, name, self.diagnostics, context=context) or ""
        return values

    def _messages(self, value: Any, label: str) -> Optional[List[Any]]:
        """Launch messages as a list; None rejects the record."""
        if value is None:
            return []
        if isinstance(value, Mapping):
            value = [value]
        if isinstance(value, list) and all(isinstance(item, Mapping) for item in value):
            return value
        if self.diagnostics.deviation(f"The '{label}' element must be an object or array of objects"):
            return None
        return [item for item in value if isinstance(item, Mapping)] if isinstance(value, list) else []

    def _parse_legacy(self, entry: Any, prefixes: Mapping[str, str]) -> Optional[MemberRecord]:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("member"), Mapping):
            self.diagnostics.error("A membership entry must contain a 'member' object")
            return None
        member = entry["member"]
        user_id = check_string(member, "userId", self.diagnostics, required=True, context="member")
        if not user_id:
            return None
        raw_roles = entry.get("role")
        roles = self._parse_roles(raw_roles, "membership/role")
        if roles is None:
            return None
        messages = self._messages(entry.get("message"), "membership/message")
        if messages is None:
            return None

        record = MemberRecord(
            user_id=user_id,
            roles=[_expand_prefix(role, prefixes) for role in roles],
            sourced_id=check_string(member, "sourcedId", self.diagnostics, context="member"),
            username=_first_username(member, _LEGACY_USERNAME_FIELDS),
            fallback_result_sourced_id=check_string(
                member, "resultSourcedId", self.diagnostics, context="member"
            ),
            **self._parse_names(
                member,
                {
                    "firstname": "givenName",
                    "middlename": "middleName",
                    "lastname": "familyName",
                    "fullname": "name",
                    "email": "email",
                },
                "member",
            ),
        )
        for message in messages:
            if message.get("message_type") not in LAUNCH_MESSAGE_TYPES:
                continue
            record.has_launch_message = True
            record.result_sourced_id = message.get("lis_result_sourcedid") or None
            record.message_usernames = [
                name
                for name in (
                    _first_username(message.get("ext"), _MESSAGE_USERNAME_FIELDS),
                    _first_username(message.get("custom"), _MESSAGE_USERNAME_FIELDS),
                )
                if name
            ]
            break
        return record

    def _parse_nrps(self, member: Any) -> Optional[MemberRecord]:
        if not isinstance(member, Mapping):
            self.diagnostics.error("A member must be an object")
            return None
        user_id = check_string(member, "user_id", self.diagnostics, required=True, context="member")
        if not user_id:
            return None
        roles = self._parse_roles(member.get("roles"), "member/roles")
        if roles is None:
            return None
        messages = self._messages(member.get("message"), "member/message")
        if messages is None:
            return None
        group_ids = self._group_ids(member.get("group_enrollments"))
        if group_ids is False:
            return None

        record = MemberRecord(
            user_id=user_id,
            roles=roles,
            sourced_id=check_string(member, "lis_person_sourcedid", self.diagnostics, context="member"),
            group_ids=group_ids,
            **self._parse_names(
                member,
                {
                    "firstname": "given_name",
                    "middlename": "middle_name",
                    "lastname": "family_name",
                    "fullname": "name",
                    "email": "email",
                },
                "member",
            ),
        )
        for message in messages:
            if message.get(CLAIM_MESSAGE_TYPE) not in LAUNCH_MESSAGE_TYPES:
                continue
            record.has_launch_message = True
            outcome = message.get(CLAIM_BASIC_OUTCOME)
            if isinstance(outcome, Mapping) and outcome.get("lis_result_sourcedid"):
                record.result_sourced_id = outcome["lis_result_sourcedid"]
            record.message_usernames = [
                name
                for name in (
                    _first_username(message.get(CLAIM_EXT), _MESSAGE_USERNAME_FIELDS),
                    _first_username(message.get(CLAIM_CUSTOM), _MESSAGE_USERNAME_FIELDS),
                )
                if name
            ]
            break
        return record

    def _group_ids(self, value: Any):
        """Group ids of a member; None when not reported, False to reject the record."""
        if value is None:
            return None
        if not isinstance(value, list):
            if self.diagnostics.deviation("The 'member/group_enrollments' element must be an array"):
                return False
            return None
        group_ids: List[str] = []
        for enrollment in value:
            group_id = enrollment.get("group_id") if isinstance(enrollment, Mapping) else None
            if isinstance(group_id, (str, int)) and not isinstance(group_id, bool):
                group_ids.append(str(group_id))
            elif self.diagnostics.deviation("A group enrollment must contain a 'group_id'"):
                return False
        return group_ids

    # -- reconciliation ------------------------------------------------

    def reset_group_counters(self) -> None:
        for group_set in (self.source.group_sets or {}).values():
            group_set.num_members = 0
            group_set.num_staff = 0
            group_set.num_learners = 0

    def reconcile(self, records: List[MemberRecord], *, evict: bool) -> MembershipSyncResult:
        """Fold parsed records into user records; ``evict`` deletes users absent from them."""
        latest: Dict[str, MemberRecord] = {}
        for record in records:
            if record.user_id in latest:
                logger.debug("Duplicate roster entry for user %s; keeping the last one", record.user_id)
            latest[record.user_id] = record

        store = self.connection.store if self.is_link else None
        platform_id = self.source.platform_id
        resource_link_id = self.source.lti_resource_link_id if self.is_link else None
        old_users: Dict[str, UserResult] = {}
        if store is not None and evict:
            old_users = {
                user.lti_user_id: user
                for user in store.list_for_resource_link(platform_id, resource_link_id)
            }

        users: List[UserResult] = []
        for user_id, record in latest.items():
            user = old_users.pop(user_id, None)
            if user is None and store is not None:
                user = store.load(platform_id, resource_link_id, user_id)
            if user is None:
                user = UserResult(
                    platform_id=platform_id,
                    resource_link_id=resource_link_id,
                    lti_user_id=user_id,
                )
            persist = self._apply(user, record)
            if persist and store is not None:
                user = store.save(user)
            users.append(user)

        deleted: List[UserResult] = []
        if store is not None and evict:
            for user in old_users.values():
                store.delete(user)
                deleted.append(user)
            if deleted:
                logger.info(
                    "Removed %d users no longer in the roster of resource link %s",
                    len(deleted),
                    resource_link_id,
                )
        return MembershipSyncResult(users=users, deleted=deleted)

    def _apply(self, user: UserResult, record: MemberRecord) -> bool:
        """Copy a record onto a user; returns whether the user must be persisted."""
        user.set_names(record.firstname, record.lastname, record.fullname, record.middlename)
        if record.sourced_id:
            user.sourced_id = record.sourced_id
        if record.username:
            user.username = record.username
        elif record.message_usernames:
            user.username = record.message_usernames[0]
        user.set_email(record.email, self.connection.default_email)
        user.roles = parse_roles(record.roles, self.connection.lti_version)
        if record.group_ids is not None:
            self._enrol(user, record.group_ids)

        persist = False
        if record.result_sourced_id:
            user.lti_result_sourced_id = record.result_sourced_id
            persist = True
        elif user.is_learner() and user.created is None:
            # Every new learner gets a row for later grade passback, whatever
            # message types the record carries.
            user.lti_result_sourced_id = user.lti_result_sourced_id or ""
            persist = True
        if not persist and record.fallback_result_sourced_id:
            user.lti_result_sourced_id = record.fallback_result_sourced_id
            persist = True
        return persist

    def _enrol(self, user: UserResult, group_ids: List[str]) -> None:
        user.groups = []
        is_staff = user.is_staff()
        is_learner = user.is_learner()
        for group_id in group_ids:
            if group_id in user.groups:
                continue
            group = self.source.ensure_group(group_id)
            if group.set_id:
                group_set = self.source.ensure_group_set(group.set_id)
                if group_id not in group_set.groups:
                    group_set.groups.append(group_id)
                group_set.num_members += 1
                if is_staff:
                    group_set.num_staff += 1
                if is_learner:
                    group_set.num_learners += 1
            user.groups.append(group_id)


class Membership(Service):
    """Names and Role Provisioning (and legacy LIS membership) service."""

    def __init__(
        self,
        connection: PlatformConnection,
        source: MembershipSource,
        endpoint: str,
        media_type: str = MEDIA_TYPE_MEMBERSHIPS_NRPS,
        *,
        limit: Optional[int] = None,
        paging_mode: bool = False,
    ) -> None:
        super().__init__(connection, endpoint, media_type, SCOPE)
        self.source = source
        self.limit = limit
        self.paging_mode = paging_mode
        self.synchronizer = MembershipSynchronizer(connection, source)

    async def get(
        self,
        role: Optional[str] = None,
        limit: Optional[int] = None,
        next_page: Optional[str] = None,
    ) -> MembershipSyncResult:
        """Fetch the roster (or one page of it in paging mode) and reconcile it."""
        return await self._get_members(False, role, limit, next_page)

    async def get_with_groups(
        self,
        role: Optional[str] = None,
        limit: Optional[int] = None,
        next_page: Optional[str] = None,
        groups: Optional[GroupsService] = None,
    ) -> MembershipSyncResult:
        """As ``get``, loading the context's groups first and asking for enrolments."""
        return await self._get_members(True, role, limit, next_page, groups)

    def _parameters(self, with_groups: bool, role: Optional[str], limit: Optional[int]) -> Dict[str, str]:
        parameters: Dict[str, str] = {}
        if role:
            parameters["role"] = role
        if limit is None:
            limit = self.limit
        if limit is None:
            limit = self.connection.membership_limit
        if limit:
            parameters["limit"] = str(limit)
        if isinstance(self.source, ResourceLink) and self.source.lti_resource_link_id:
            parameters["rlid"] = self.source.lti_resource_link_id
        if with_groups and self.media_type == MEDIA_TYPE_MEMBERSHIPS_NRPS:
            parameters["groups"] = "true"
        return parameters

    async def _get_members(
        self,
        with_groups: bool,
        role: Optional[str],
        limit: Optional[int],
        next_page: Optional[str],
        groups: Optional[GroupsService] = None,
    ) -> MembershipSyncResult:
        if with_groups and groups is not None and self.media_type == MEDIA_TYPE_MEMBERSHIPS_NRPS:
            await groups.get()
            if groups.context is not self.source:
                self.source.group_sets = groups.context.group_sets
                self.source.groups = groups.context.groups
        parameters = self._parameters(with_groups, role, limit)
        fetcher = PaginatedCollectionFetcher(self, self.synchronizer.parse_page)
        if next_page is None:
            self.synchronizer.reset_group_counters()

        if self.paging_mode:
            page = await fetcher.fetch_page(parameters, url=next_page)
            result = self.synchronizer.reconcile(page.items, evict=False)
            result.next_page = page.next_page
        else:
            records = await fetcher.fetch_all(parameters)
            result = self.synchronizer.reconcile(records, evict=True)
        logger.info(
            "Fetched %d members for %s (%d removed)",
            len(result.users),
            getattr(self.source, "lti_resource_link_id", None)
            or getattr(self.source, "lti_context_id", None),
            len(result.deleted),
        )
        return result


__all__ = [
    "MEDIA_TYPE_MEMBERSHIPS_NRPS",
    "MEDIA_TYPE_MEMBERSHIPS_V1",
    "MemberRecord",
    "Membership",
    "MembershipSyncResult",
    "MembershipSynchronizer",
    "SCOPE",
]
