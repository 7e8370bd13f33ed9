"""SQLite persistence behaviour that the access rules rely on."""

from datetime import datetime, timedelta, timezone

from vidsocial.domain.access import AccountStatus, AdminRole, Permission, utcnow
from vidsocial.domain.models import ActivityLogEntry, PrincipalKind


def test_user_roundtrip_and_defaults(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash="hash")
    loaded = persistence.get_user_by_email("ana@vidsocial.io")
    assert loaded.id == user.id
    assert loaded.status is AccountStatus.ACTIVE
    assert loaded.failed_login_count == 0
    assert loaded.created_at.tzinfo is not None


def test_update_password_records_change_time(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash="old")
    assert user.password_changed_at is None

    changed_at = utcnow()
    updated = persistence.update_user_password(user.id, "new", changed_at)
    assert updated.password_hash == "new"
    assert updated.password_changed_at == changed_at
    assert persistence.get_user_by_id(user.id).password_changed_at == changed_at


def test_datetimes_are_stored_as_utc_isoformat(persistence):
    local = datetime(2030, 1, 1, 9, 30, 15, 250, tzinfo=timezone(timedelta(hours=-3)))
    stored = persistence._format_datetime(local)
    assert stored == "2030-01-01T12:30:15.000250+00:00"
    assert persistence._parse_datetime(stored) == local
    assert persistence._parse_datetime(stored).tzinfo == timezone.utc


def test_list_users_filters(persistence):
    ana = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash=None)
    persistence.create_user(name="Bruno", email="bruno@vidsocial.io", password_hash=None)
    persistence.update_user_status(ana.id, AccountStatus.BANNED, "spam", None)

    banned, total = persistence.list_users(status=AccountStatus.BANNED)
    assert total == 1
    assert [user.email for user in banned] == ["ana@vidsocial.io"]

    found, total = persistence.list_users(search="brun")
    assert total == 1
    assert found[0].name == "Bruno"


def test_clear_expired_status_is_conditional_and_idempotent(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash=None)
    now = utcnow()
    persistence.update_user_status(user.id, AccountStatus.SUSPENDED, "abuse", now + timedelta(days=1))
    assert persistence.clear_expired_user_status(user.id, now) is False

    persistence.update_user_status(user.id, AccountStatus.SUSPENDED, "abuse", now - timedelta(seconds=1))
    assert persistence.clear_expired_user_status(user.id, now) is True
    assert persistence.clear_expired_user_status(user.id, now) is False

    reloaded = persistence.get_user_by_id(user.id)
    assert reloaded.status is AccountStatus.ACTIVE
    assert reloaded.status_reason is None
    assert reloaded.status_expiry is None


def test_login_failures_lock_after_threshold(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash="hash")
    now = utcnow()
    lock_until = now + timedelta(minutes=120)
    for _ in range(4):
        persistence.record_user_login_failure(user.id, now, 5, lock_until)
    assert persistence.get_user_by_id(user.id).lock_until is None

    persistence.record_user_login_failure(user.id, now, 5, lock_until)
    locked = persistence.get_user_by_id(user.id)
    assert locked.failed_login_count == 5
    assert locked.lock_until == lock_until


def test_stale_lock_resets_counter(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash="hash")
    start = utcnow() - timedelta(hours=3)
    for _ in range(5):
        persistence.record_user_login_failure(user.id, start, 5, start + timedelta(minutes=120))

    later = utcnow()
    persistence.record_user_login_failure(user.id, later, 5, later + timedelta(minutes=120))
    reloaded = persistence.get_user_by_id(user.id)
    assert reloaded.failed_login_count == 1
    assert reloaded.lock_until is None


def test_login_success_resets_counters(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash="hash")
    now = utcnow()
    persistence.record_user_login_failure(user.id, now, 5, now + timedelta(minutes=120))
    persistence.record_user_login_success(user.id, now)
    reloaded = persistence.get_user_by_id(user.id)
    assert reloaded.failed_login_count == 0
    assert reloaded.last_login_at == now


def test_admin_permissions_roundtrip(persistence):
    admin = persistence.create_admin(
        name="Mod",
        email="mod@vidsocial.io",
        password_hash="hash",
        role=AdminRole.MODERATOR,
        permissions=frozenset({Permission.USERS, Permission.MEDIA}),
    )
    loaded = persistence.get_admin_by_id(admin.id)
    assert loaded.role is AdminRole.MODERATOR
    assert loaded.permissions == frozenset({Permission.USERS, Permission.MEDIA})

    updated = persistence.update_admin(admin.id, permissions=frozenset({Permission.SETTINGS}), is_active=False)
    assert updated.permissions == frozenset({Permission.SETTINGS})
    assert updated.is_active is False


def test_delete_user_drops_refresh_tokens(persistence):
    user = persistence.create_user(name="Ana", email="ana@vidsocial.io", password_hash=None)
    persistence.create_refresh_token("tok", PrincipalKind.USER, user.id, "fam", utcnow() + timedelta(days=1))
    persistence.delete_user(user.id)
    assert persistence.get_user_by_id(user.id) is None
    assert persistence.get_refresh_token("tok") is None


def test_activity_log_filters(persistence):
    persistence.append_activity(
        ActivityLogEntry(admin_id=1, action="status_change", resource_type="user", resource_id="9", details={"a": 1})
    )
    persistence.append_activity(ActivityLogEntry(admin_id=2, action="login", resource_type="admin", success=False))

    entries, total = persistence.list_activity(action="status_change")
    assert total == 1
    assert entries[0].resource_id == "9"
    assert entries[0].details == {"a": 1}

    entries, total = persistence.list_activity(admin_id=2)
    assert total == 1
    assert entries[0].success is False
