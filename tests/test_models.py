try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

from ltiadvantage.core.diagnostics import DiagnosticLog, check_string
from ltiadvantage.models.context import Context
from ltiadvantage.models.grades import format_datetime, parse_datetime
from ltiadvantage.models.user import (
    MEMBERSHIP_ROLE_PREFIX,
    ROLE_URN_PREFIX,
    LtiVersion,
    UserResult,
    parse_roles,
)


def _user(**values) -> UserResult:
    return UserResult(platform_id="https://lms.example.com", lti_user_id="u1", **values)


def test_parse_roles_per_version() -> None:
    assert parse_roles("Learner, Instructor") == [ROLE_URN_PREFIX + "Learner", ROLE_URN_PREFIX + "Instructor"]
    assert parse_roles(["Learner"], LtiVersion.V1P3) == [MEMBERSHIP_ROLE_PREFIX + "Learner"]
    assert parse_roles(["urn:lti:instrole:ims/lis/Administrator"]) == [
        "urn:lti:instrole:ims/lis/Administrator"
    ]
    assert parse_roles(None) == []


def test_role_checks_accept_either_vocabulary() -> None:
    learner = _user(roles=[MEMBERSHIP_ROLE_PREFIX + "Learner"])
    ta = _user(roles=[ROLE_URN_PREFIX + "TeachingAssistant"])
    admin = _user(roles=["urn:lti:sysrole:ims/lis/SysAdmin"])

    assert learner.is_learner() and not learner.is_staff()
    assert ta.is_staff()
    assert admin.is_admin()


def test_names_are_derived_from_full_name() -> None:
    user = _user()
    user.set_names(fullname="Mary Ann Evans")

    assert (user.firstname, user.middlename, user.lastname) == ("Mary", "Ann", "Evans")

    anonymous = _user()
    anonymous.set_names()
    assert (anonymous.firstname, anonymous.lastname, anonymous.fullname) == ("User", "u1", "User u1")


def test_default_email_domain() -> None:
    user = _user(username="mevans")
    user.set_email(default_email="@example.edu")
    assert user.email == "mevans@example.edu"

    user.set_email("mary@example.com", "@example.edu")
    assert user.email == "mary@example.com"


def test_missing_groups_are_synthesised() -> None:
    context = Context(platform_id="https://lms.example.com", lti_context_id="7")

    group = context.ensure_group("g1")
    group_set = context.ensure_group_set("s1")

    assert group.title == "Group g1"
    assert group_set.title == "Set s1"
    assert context.ensure_group("g1") is group


def test_strict_mode_turns_deviations_into_errors() -> None:
    lenient = DiagnosticLog()
    strict = DiagnosticLog(strict_mode=True)

    assert check_string({"user_id": 42}, "user_id", lenient) == "42"
    assert check_string({"user_id": 42}, "user_id", strict) is None
    assert lenient.warnings and not lenient.errors
    assert strict.errors and not strict.warnings
    assert check_string({}, "user_id", lenient, required=True, context="member") is None
    assert "The 'member/user_id' element is missing" in lenient.errors


def test_diagnostic_log_keeps_only_recent_messages() -> None:
    diagnostics = DiagnosticLog(max_messages=3)

    for index in range(10):
        diagnostics.warning(f"record {index} coerced")
    diagnostics.error("record 10 dropped")

    assert diagnostics.warnings == ["record 8 coerced", "record 9 coerced"]
    assert diagnostics.errors == ["record 10 dropped"]
    assert len(diagnostics.messages) == 3


def test_datetime_helpers() -> None:
    parsed = parse_datetime("2024-02-03T04:05:06Z")

    assert parsed == datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
    assert format_datetime(parsed) == "2024-02-03T04:05:06+00:00"
    assert parse_datetime("yesterday") is None
