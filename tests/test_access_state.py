"""Unit tests for account standing evaluation and permission rules."""

from datetime import datetime, timedelta, timezone

import pytest

from vidsocial.domain.access import (
    DEFAULT_RESTRICTION_REASON,
    AccountStatus,
    Active,
    AdminRole,
    Locked,
    Permission,
    Restricted,
    RestrictionKind,
    Standing,
    build_restriction,
    evaluate,
    has_any_permission,
    parse_permissions,
    parse_role,
    parse_status,
)

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestEvaluate:
    def test_clean_standing_is_active(self):
        result = evaluate(Standing(), NOW)
        assert result.state == Active()
        assert result.allowed
        assert not result.revert_expired

    def test_permanent_restriction(self):
        result = evaluate(Standing(restriction=RestrictionKind.BANNED, reason="spam"), NOW)
        assert isinstance(result.state, Restricted)
        assert result.state.is_permanent
        assert result.state.reason == "spam"
        assert not result.allowed

    def test_future_expiry_keeps_restriction(self):
        expiry = NOW + timedelta(days=3)
        result = evaluate(Standing(restriction=RestrictionKind.SUSPENDED, reason="abuse", expiry=expiry), NOW)
        assert result.state == Restricted(RestrictionKind.SUSPENDED, "abuse", expiry)

    def test_elapsed_restriction_reverts_to_active(self):
        expiry = NOW - timedelta(seconds=1)
        result = evaluate(Standing(restriction=RestrictionKind.BANNED, reason="spam", expiry=expiry), NOW)
        assert result.state == Active()
        assert result.revert_expired

    def test_expiry_equal_to_now_has_elapsed(self):
        result = evaluate(Standing(restriction=RestrictionKind.BANNED, expiry=NOW), NOW)
        assert result.allowed
        assert result.revert_expired

    def test_active_lock(self):
        until = NOW + timedelta(minutes=30)
        result = evaluate(Standing(lock_until=until), NOW)
        assert result.state == Locked(until)

    def test_stale_lock_is_ignored(self):
        result = evaluate(Standing(lock_until=NOW - timedelta(minutes=1)), NOW)
        assert result.allowed

    def test_restriction_reported_before_lock(self):
        standing = Standing(
            restriction=RestrictionKind.BANNED,
            reason="spam",
            lock_until=NOW + timedelta(minutes=30),
        )
        assert isinstance(evaluate(standing, NOW).state, Restricted)

    def test_elapsed_restriction_still_honours_lock(self):
        until = NOW + timedelta(minutes=30)
        standing = Standing(
            restriction=RestrictionKind.SUSPENDED,
            expiry=NOW - timedelta(days=1),
            lock_until=until,
        )
        result = evaluate(standing, NOW)
        assert result.state == Locked(until)
        assert result.revert_expired


class TestPermissions:
    def test_superadmin_bypasses_permission_checks(self):
        assert has_any_permission(AdminRole.SUPERADMIN, frozenset(), [Permission.SETTINGS])

    def test_any_of_semantics(self):
        granted = frozenset({Permission.USERS, Permission.MEDIA})
        assert has_any_permission(AdminRole.MODERATOR, granted, [Permission.SETTINGS, Permission.MEDIA])
        assert not has_any_permission(AdminRole.MODERATOR, granted, [Permission.SETTINGS])

    def test_parse_permissions_rejects_unknown_values(self):
        with pytest.raises(ValueError, match="Invalid permissions: billing"):
            parse_permissions(["users", "billing"])

    def test_parse_permissions_accepts_generators(self):
        parsed = parse_permissions(value for value in ["users", "socialaccounts"])
        assert parsed == frozenset({Permission.USERS, Permission.SOCIAL_ACCOUNTS})

    def test_parse_role(self):
        assert parse_role("moderator") is AdminRole.MODERATOR
        with pytest.raises(ValueError, match="Invalid role"):
            parse_role("owner")


class TestBuildRestriction:
    def test_reactivation_clears_reason_and_expiry(self):
        assert build_restriction(AccountStatus.ACTIVE, "whatever", 3, NOW) == (None, None)

    def test_missing_reason_uses_default(self):
        assert build_restriction(AccountStatus.BANNED, "  ", None, NOW) == (DEFAULT_RESTRICTION_REASON, None)

    def test_duration_sets_expiry(self):
        reason, expiry = build_restriction(AccountStatus.SUSPENDED, "spam", 7, NOW)
        assert reason == "spam"
        assert expiry == NOW + timedelta(days=7)

    def test_out_of_range_duration_is_rejected(self):
        with pytest.raises(ValueError, match="too long"):
            build_restriction(AccountStatus.BANNED, "spam", 3_000_000, NOW)

    def test_invalid_status_message(self):
        with pytest.raises(ValueError) as excinfo:
            parse_status("frozen")
        assert str(excinfo.value) == "Invalid status. Must be one of: active, banned, suspended"
