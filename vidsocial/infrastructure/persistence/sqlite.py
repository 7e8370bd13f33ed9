import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ...domain.access import AccountStatus, AdminRole, Permission
from ...domain.models import ActivityLogEntry, AdminUser, PrincipalKind, RefreshTokenRecord, User
from ...domain.ports.persistence import PersistenceGateway


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    status_reason TEXT,
                    status_expiry TEXT,
                    failed_login_count INTEGER NOT NULL DEFAULT 0,
                    lock_until TEXT,
                    last_login_at TEXT,
                    password_changed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_status ON users(status);

                CREATE TABLE IF NOT EXISTS admin_users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'admin',
                    permissions TEXT NOT NULL DEFAULT '[]',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    failed_login_count INTEGER NOT NULL DEFAULT 0,
                    lock_until TEXT,
                    last_login_at TEXT,
                    created_by INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_admin_users_role_active
                    ON admin_users(role, is_active);

                CREATE TABLE IF NOT EXISTS refresh_tokens (
                    id TEXT PRIMARY KEY,
                    principal_kind TEXT NOT NULL,
                    principal_id INTEGER NOT NULL,
                    family_id TEXT NOT NULL,
                    consumed INTEGER NOT NULL DEFAULT 0,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_refresh_tokens_family
                    ON refresh_tokens(family_id);
                CREATE INDEX IF NOT EXISTS idx_refresh_tokens_principal
                    ON refresh_tokens(principal_kind, principal_id);

                CREATE TABLE IF NOT EXISTS admin_activity_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    admin_id INTEGER NOT NULL,
                    action TEXT NOT NULL,
                    resource_type TEXT NOT NULL,
                    resource_id TEXT,
                    details TEXT NOT NULL,
                    ip_address TEXT,
                    user_agent TEXT,
                    success INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_admin_activity_admin_created
                    ON admin_activity_logs(admin_id, created_at DESC);
                """
            )

    def close(self) -> None:
        self._conn.close()

    # SettingsRepository API -------------------------------------------------
    def get_setting(self, key: str) -> Optional[str]:
        with self._lock:
            cur = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cur.fetchone()
        return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def list_settings(self) -> Dict[str, str]:
        with self._lock:
            cur = self._conn.execute("SELECT key, value FROM settings ORDER BY key")
            rows = cur.fetchall()
        return {row["key"]: row["value"] for row in rows}

    # UserRepository API ----------------------------------------------------
    def create_user(self, name: str, email: str, password_hash: Optional[str]) -> User:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO users (name, email, password_hash, status, created_at, updated_at)
                VALUES (?, ?, ?, 'active', ?, ?)
                """,
                (name, email.lower(), password_hash, now, now),
            )
            user_id = cur.lastrowid
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist user.")
        return self._row_to_user(row)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE email = ?", (email.lower(),))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def list_users(
        self,
        *,
        status: Optional[AccountStatus] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[User], int]:
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if search:
            clauses.append("(name LIKE ? OR email LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            total = self._conn.execute(f"SELECT COUNT(*) FROM users{where}", params).fetchone()[0]
            cur = self._conn.execute(
                f"SELECT * FROM users{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = cur.fetchall()
        return [self._row_to_user(row) for row in rows], total

    def update_user_status(
        self,
        user_id: int,
        status: AccountStatus,
        reason: Optional[str],
        expiry: Optional[datetime],
    ) -> User:
        with self._lock, self._conn:
            self._conn.execute(
                """
                UPDATE users
                SET status = ?, status_reason = ?, status_expiry = ?, updated_at = ?
                WHERE id = ?
                """,
                (status.value, reason, self._format_datetime(expiry), self._now(), user_id),
            )
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        if not row:
            raise ValueError("User not found")
        return self._row_to_user(row)

    def update_user_password(self, user_id: int, password_hash: str, changed_at: datetime) -> User:
        with self._lock, self._conn:
            self._conn.execute(
                """
                UPDATE users
                SET password_hash = ?, password_changed_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (password_hash, self._format_datetime(changed_at), self._now(), user_id),
            )
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        if not row:
            raise ValueError("User not found")
        return self._row_to_user(row)

    def clear_expired_user_status(self, user_id: int, now: datetime) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users
                SET status = 'active', status_reason = NULL, status_expiry = NULL, updated_at = ?
                WHERE id = ? AND status != 'active'
                    AND status_expiry IS NOT NULL AND status_expiry <= ?
                """,
                (self._now(), user_id, self._format_datetime(now)),
            )
            return cur.rowcount > 0

    def record_user_login_failure(
        self, user_id: int, now: datetime, max_attempts: int, lock_until: datetime
    ) -> None:
        self._record_login_failure("users", user_id, now, max_attempts, lock_until)

    def record_user_login_success(self, user_id: int, now: datetime) -> None:
        self._record_login_success("users", user_id, now)

    def delete_user(self, user_id: int) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM refresh_tokens WHERE principal_kind = ? AND principal_id = ?",
                (PrincipalKind.USER.value, user_id),
            )
            self._conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    # AdminUserRepository API ------------------------------------------------
    def create_admin(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: AdminRole,
        permissions: FrozenSet[Permission],
        created_by: Optional[int] = None,
    ) -> AdminUser:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO admin_users (
                    name, email, password_hash, role, permissions, is_active,
                    created_by, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    name,
                    email.lower(),
                    password_hash,
                    role.value,
                    self._dump_permissions(permissions),
                    created_by,
                    now,
                    now,
                ),
            )
            admin_id = cur.lastrowid
            cur = self._conn.execute("SELECT * FROM admin_users WHERE id = ?", (admin_id,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist administrator.")
        return self._row_to_admin(row)

    def get_admin_by_id(self, admin_id: int) -> Optional[AdminUser]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM admin_users WHERE id = ?", (admin_id,))
            row = cur.fetchone()
        return self._row_to_admin(row) if row else None

    def get_admin_by_email(self, email: str) -> Optional[AdminUser]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM admin_users WHERE email = ?", (email.lower(),))
            row = cur.fetchone()
        return self._row_to_admin(row) if row else None

    def list_admins(
        self,
        *,
        role: Optional[AdminRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[AdminUser], int]:
        clauses: List[str] = []
        params: List[Any] = []
        if role is not None:
            clauses.append("role = ?")
            params.append(role.value)
        if is_active is not None:
            clauses.append("is_active = ?")
            params.append(int(is_active))
        if search:
            clauses.append("(name LIKE ? OR email LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            total = self._conn.execute(f"SELECT COUNT(*) FROM admin_users{where}", params).fetchone()[0]
            cur = self._conn.execute(
                f"SELECT * FROM admin_users{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = cur.fetchall()
        return [self._row_to_admin(row) for row in rows], total

    def update_admin(
        self,
        admin_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[AdminRole] = None,
        permissions: Optional[FrozenSet[Permission]] = None,
        is_active: Optional[bool] = None,
    ) -> AdminUser:
        updates = []
        params: List[Any] = []
        if name is not None:
            updates.append("name = ?")
            params.append(name)
        if email is not None:
            updates.append("email = ?")
            params.append(email.lower())
        if role is not None:
            updates.append("role = ?")
            params.append(role.value)
        if permissions is not None:
            updates.append("permissions = ?")
            params.append(self._dump_permissions(permissions))
        if is_active is not None:
            updates.append("is_active = ?")
            params.append(int(is_active))

        if updates:
            updates.append("updated_at = ?")
            params.append(self._now())
            params.append(admin_id)
            statement = f"UPDATE admin_users SET {', '.join(updates)} WHERE id = ?"
            with self._lock, self._conn:
                self._conn.execute(statement, params)
        with self._lock:
            cur = self._conn.execute("SELECT * FROM admin_users WHERE id = ?", (admin_id,))
            row = cur.fetchone()
        if not row:
            raise ValueError("Admin not found")
        return self._row_to_admin(row)

    def record_admin_login_failure(
        self, admin_id: int, now: datetime, max_attempts: int, lock_until: datetime
    ) -> None:
        self._record_login_failure("admin_users", admin_id, now, max_attempts, lock_until)

    def record_admin_login_success(self, admin_id: int, now: datetime) -> None:
        self._record_login_success("admin_users", admin_id, now)

    def delete_admin(self, admin_id: int) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM refresh_tokens WHERE principal_kind = ? AND principal_id = ?",
                (PrincipalKind.ADMIN.value, admin_id),
            )
            self._conn.execute("DELETE FROM admin_users WHERE id = ?", (admin_id,))

    # RefreshTokenRepository API ---------------------------------------------
    def create_refresh_token(
        self,
        token_id: str,
        principal_kind: PrincipalKind,
        principal_id: int,
        family_id: str,
        expires_at: datetime,
    ) -> RefreshTokenRecord:
        now = self._now()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO refresh_tokens (
                    id, principal_kind, principal_id, family_id, consumed, expires_at, created_at
                )
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    token_id,
                    principal_kind.value,
                    principal_id,
                    family_id,
                    self._format_datetime(expires_at),
                    now,
                ),
            )
            cur = self._conn.execute("SELECT * FROM refresh_tokens WHERE id = ?", (token_id,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist refresh token.")
        return self._row_to_refresh_token(row)

    def get_refresh_token(self, token_id: str) -> Optional[RefreshTokenRecord]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM refresh_tokens WHERE id = ?", (token_id,))
            row = cur.fetchone()
        return self._row_to_refresh_token(row) if row else None

    def consume_refresh_token(self, token_id: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE refresh_tokens SET consumed = 1 WHERE id = ? AND consumed = 0",
                (token_id,),
            )
            return cur.rowcount == 1

    def revoke_refresh_token_family(self, family_id: str) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE refresh_tokens SET consumed = 1 WHERE family_id = ? AND consumed = 0",
                (family_id,),
            )
            return cur.rowcount

    def revoke_refresh_tokens_for(self, principal_kind: PrincipalKind, principal_id: int) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE refresh_tokens SET consumed = 1
                WHERE principal_kind = ? AND principal_id = ? AND consumed = 0
                """,
                (principal_kind.value, principal_id),
            )
            return cur.rowcount

    # ActivityLogRepository API ---------------------------------------------
    def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        created_at = self._format_datetime(entry.created_at) or self._now()
        details = json.dumps(entry.details, default=str, ensure_ascii=False)
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO admin_activity_logs (
                    admin_id, action, resource_type, resource_id, details,
                    ip_address, user_agent, success, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.admin_id,
                    entry.action,
                    entry.resource_type,
                    entry.resource_id,
                    details,
                    entry.ip_address,
                    entry.user_agent,
                    int(entry.success),
                    created_at,
                ),
            )
            log_id = cur.lastrowid
            cur = self._conn.execute("SELECT * FROM admin_activity_logs WHERE id = ?", (log_id,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to record admin activity.")
        return self._row_to_activity(row)

    def list_activity(
        self,
        *,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        admin_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ActivityLogEntry], int]:
        clauses: List[str] = []
        params: List[Any] = []
        if action:
            clauses.append("action = ?")
            params.append(action)
        if resource_type:
            clauses.append("resource_type = ?")
            params.append(resource_type)
        if admin_id is not None:
            clauses.append("admin_id = ?")
            params.append(admin_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM admin_activity_logs{where}", params
            ).fetchone()[0]
            cur = self._conn.execute(
                f"SELECT * FROM admin_activity_logs{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = cur.fetchall()
        return [self._row_to_activity(row) for row in rows], total

    # Helpers ----------------------------------------------------------------
    def _record_login_failure(
        self,
        table: str,
        row_id: int,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> None:
        # SET expressions see the pre-update row, so the stale-lock reset and
        # the new lock are decided from the same snapshot.
        now_text = self._format_datetime(now)
        with self._lock, self._conn:
            self._conn.execute(
                f"""
                UPDATE {table}
                SET failed_login_count = CASE
                        WHEN lock_until IS NOT NULL AND lock_until <= :now THEN 1
                        ELSE failed_login_count + 1
                    END,
                    lock_until = CASE
                        WHEN lock_until IS NOT NULL AND lock_until <= :now THEN NULL
                        WHEN lock_until IS NULL AND failed_login_count + 1 >= :max_attempts
                            THEN :lock_until
                        ELSE lock_until
                    END,
                    updated_at = :now
                WHERE id = :id
                """,
                {
                    "now": now_text,
                    "max_attempts": max_attempts,
                    "lock_until": self._format_datetime(lock_until),
                    "id": row_id,
                },
            )

    def _record_login_success(self, table: str, row_id: int, now: datetime) -> None:
        now_text = self._format_datetime(now)
        with self._lock, self._conn:
            self._conn.execute(
                f"""
                UPDATE {table}
                SET failed_login_count = 0, lock_until = NULL, last_login_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (now_text, now_text, row_id),
            )

    @classmethod
    def _now(cls) -> str:
        return cls._format_datetime(datetime.now(timezone.utc))  # type: ignore[return-value]

    @staticmethod
    def _format_datetime(value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        result = datetime.fromisoformat(value)
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    @staticmethod
    def _dump_permissions(permissions: FrozenSet[Permission]) -> str:
        return json.dumps(sorted(permission.value for permission in permissions))

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            status=AccountStatus(row["status"]),
            status_reason=row["status_reason"],
            status_expiry=self._parse_datetime(row["status_expiry"]),
            failed_login_count=row["failed_login_count"],
            lock_until=self._parse_datetime(row["lock_until"]),
            last_login_at=self._parse_datetime(row["last_login_at"]),
            created_at=self._parse_datetime(row["created_at"]),  # type: ignore[arg-type]
            updated_at=self._parse_datetime(row["updated_at"]),  # type: ignore[arg-type]
            password_changed_at=self._parse_datetime(row["password_changed_at"]),
        )

    def _row_to_admin(self, row: sqlite3.Row) -> AdminUser:
        return AdminUser(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            role=AdminRole(row["role"]),
            permissions=frozenset(Permission(value) for value in json.loads(row["permissions"])),
            is_active=bool(row["is_active"]),
            failed_login_count=row["failed_login_count"],
            lock_until=self._parse_datetime(row["lock_until"]),
            last_login_at=self._parse_datetime(row["last_login_at"]),
            created_by=row["created_by"],
            created_at=self._parse_datetime(row["created_at"]),  # type: ignore[arg-type]
            updated_at=self._parse_datetime(row["updated_at"]),  # type: ignore[arg-type]
        )

    def _row_to_refresh_token(self, row: sqlite3.Row) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            id=row["id"],
            principal_kind=PrincipalKind(row["principal_kind"]),
            principal_id=row["principal_id"],
            family_id=row["family_id"],
            consumed=bool(row["consumed"]),
            expires_at=self._parse_datetime(row["expires_at"]),  # type: ignore[arg-type]
            created_at=self._parse_datetime(row["created_at"]),  # type: ignore[arg-type]
        )

    def _row_to_activity(self, row: sqlite3.Row) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=row["id"],
            admin_id=row["admin_id"],
            action=row["action"],
            resource_type=row["resource_type"],
            resource_id=row["resource_id"],
            details=json.loads(row["details"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            success=bool(row["success"]),
            created_at=self._parse_datetime(row["created_at"]),
        )
