"""Fetch a roster from the configured platform and reconcile the local user records.

Example usage::

    python -m scripts.sync_roster https://lms.example.com/api/lti/courses/7/names_and_roles \
        --context-id 7 --resource-link-id rl-42
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime

from ltiadvantage.core.config import get_settings
from ltiadvantage.core.logging import configure_logging
from ltiadvantage.dependencies.clients import get_membership_service, get_platform_connection
from ltiadvantage.services import GroupsService, MembershipSyncResult, ServiceRequestError
from ltiadvantage.services.membership import (
    MEDIA_TYPE_MEMBERSHIPS_NRPS,
    MEDIA_TYPE_MEMBERSHIPS_V1,
)

EXIT_OK = 0
EXIT_REQUEST_ERROR = 4

MEDIA_TYPES = {
    "nrps": MEDIA_TYPE_MEMBERSHIPS_NRPS,
    "v1": MEDIA_TYPE_MEMBERSHIPS_V1,
}


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_result(result: MembershipSyncResult) -> None:
    _print_header(f"Roster synchronised at {_timestamp()}")
    for user in result.users:
        kind = "staff" if user.is_staff() else "learner" if user.is_learner() else "other"
        groups = f" | groups={','.join(user.groups)}" if user.groups else ""
        print(f"  {user.lti_user_id:<24} {user.fullname:<32} {kind}{groups}")
    if result.deleted:
        _print_header("Removed")
        for user in result.deleted:
            print(f"  {user.lti_user_id:<24} {user.fullname}")
    print(f"\n{len(result.users)} members, {len(result.deleted)} removed.")
    if result.next_page:
        print(f"Next page: {result.next_page}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Synchronise a roster with the platform.")
    parser.add_argument("endpoint", help="Membership service URL from the launch.")
    parser.add_argument("--context-id", required=True, help="LTI context id of the course.")
    parser.add_argument("--resource-link-id", help="Sync the roster of this resource link.")
    parser.add_argument("--format", choices=sorted(MEDIA_TYPES), default="nrps")
    parser.add_argument("--role", help="Only fetch members with this role.")
    parser.add_argument("--limit", type=int, help="Page size requested from the platform.")
    parser.add_argument("--next-page", help="Continue a paged fetch from this URL.")
    parser.add_argument("--paging", action="store_true", help="Fetch one page only.")
    parser.add_argument("--groups-endpoint", help="Groups service URL; enables group enrolments.")
    parser.add_argument("--group-sets-endpoint", help="Group sets service URL.")
    return parser


async def _sync(args: argparse.Namespace) -> MembershipSyncResult:
    service = get_membership_service(
        args.endpoint,
        context_id=args.context_id,
        resource_link_id=args.resource_link_id,
        media_type=MEDIA_TYPES[args.format],
        paging_mode=args.paging or bool(args.next_page),
    )
    if args.groups_endpoint:
        context = getattr(service.source, "context", None) or service.source
        groups = GroupsService(
            get_platform_connection(),
            context,
            args.groups_endpoint,
            args.group_sets_endpoint,
        )
        return await service.get_with_groups(args.role, args.limit, args.next_page, groups)
    return await service.get(args.role, args.limit, args.next_page)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    try:
        result = asyncio.run(_sync(args))
    except ServiceRequestError as exc:
        print(f"Roster request failed: {exc}", file=sys.stderr)
        return EXIT_REQUEST_ERROR
    _print_result(result)
    for message in get_platform_connection().diagnostics.messages:
        print(f"[{message.level}] {message.message}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
