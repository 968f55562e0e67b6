"""
Business logic for user accounts.

``UserService`` is the credential store (registration, login, password
changes) and the admin‑facing user directory (listing, updates, soft
deletion, statistics).  Users are never physically deleted; deleting
an account sets ``is_active`` to false, which also locks it out of the
access control guard.

E‑mail and phone uniqueness is checked up front to produce a precise
message and is backed by UNIQUE indexes, so two concurrent
registrations with the same e‑mail cannot both succeed.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from catalog_api.app.core.db import get_connection
from catalog_api.app.core.errors import (
    Conflict,
    NotFound,
    SelfDeleteForbidden,
    SelfDemotionForbidden,
    Unauthenticated,
    ValidationFailed,
)
from catalog_api.app.core.query import ListQuery, PageRequest, pagination_meta
from catalog_api.app.core.security import hash_password, verify_password
from catalog_api.app.schemas.user import (
    PasswordChange,
    ProfileUpdate,
    UserAdminUpdate,
    UserRead,
    UserRegister,
    UserRole,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, name, email, phone, role, is_active, last_login, created_at, updated_at"
USERS_MAX_LIMIT = 50
USERS_DEFAULT_LIMIT = 10
USER_SORTS = {
    "createdAt": "created_at",
    "name": "name",
    "email": "email",
    "lastLogin": "last_login",
}


def _to_user(row: sqlite3.Row) -> UserRead:
    return UserRead.model_validate({key: row[key] for key in row.keys() if key != "password"})


def _holder_of(cursor: sqlite3.Cursor, column: str, value: str, exclude_id: Optional[int] = None) -> bool:
    sql = f"SELECT id FROM users WHERE {column} = ?"
    params: list = [value]
    if exclude_id is not None:
        sql += " AND id != ?"
        params.append(exclude_id)
    return cursor.execute(sql, tuple(params)).fetchone() is not None


class UserService:
    """Service for user accounts and the admin user directory."""

    # ------------------------------------------------------------------
    # Credential store
    # ------------------------------------------------------------------

    @classmethod
    async def register(cls, data: UserRegister) -> UserRead:
        """Create a regular user account.

        Raises ``Conflict`` if the e‑mail or phone is already registered.
        """
        logger.info("Registering user %s", data.email)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if _holder_of(cursor, "email", data.email):
                raise Conflict("Email already registered")
            if _holder_of(cursor, "phone", data.phone):
                raise Conflict("Phone number already registered")
            try:
                cursor.execute(
                    "INSERT INTO users (name, email, phone, password, role) VALUES (?, ?, ?, ?, ?)",
                    (data.name, data.email, data.phone, hash_password(data.password), UserRole.USER.value),
                )
            except sqlite3.IntegrityError as exc:
                # Lost a race with a concurrent registration.
                raise Conflict("Email or phone number already registered") from exc
            user_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            return _to_user(row)
        finally:
            conn.close()

    @classmethod
    async def authenticate(cls, email: str, password: str, admin_only: bool = False) -> UserRead:
        """Check credentials and record the login time.

        With ``admin_only`` the account must hold the admin role.
        Raises ``Unauthenticated`` for unknown e‑mails, wrong passwords
        and deactivated accounts.
        """
        prefix = "admin " if admin_only else ""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            sql = "SELECT id, password, is_active FROM users WHERE email = ?"
            params: list = [email.strip().lower()]
            if admin_only:
                sql += " AND role = ?"
                params.append(UserRole.ADMIN.value)
            row = cursor.execute(sql, tuple(params)).fetchone()
            if not row:
                raise Unauthenticated(f"Invalid {prefix}credentials")
            if not row["is_active"]:
                raise Unauthenticated(f"{'Admin account' if admin_only else 'Account'} is deactivated")
            if not verify_password(password, row["password"]):
                raise Unauthenticated(f"Invalid {prefix}credentials")
            cursor.execute(
                "UPDATE users SET last_login = ? WHERE id = ?",
                (datetime.now(timezone.utc).isoformat(), row["id"]),
            )
            conn.commit()
            user = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (row["id"],)).fetchone()
            logger.info("User %s logged in%s", row["id"], " as admin" if admin_only else "")
            return _to_user(user)
        finally:
            conn.close()

    @classmethod
    async def update_profile(cls, user: UserRead, data: ProfileUpdate) -> UserRead:
        """Change the caller's own name and/or phone."""
        updates = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if "phone" in updates and _holder_of(cursor, "phone", updates["phone"], exclude_id=user.id):
                raise Conflict("Phone number already in use")
            try:
                cls._apply_updates(cursor, user.id, updates)
            except sqlite3.IntegrityError as exc:
                # Lost a race with another account claiming the phone.
                raise Conflict("Phone number already in use") from exc
            conn.commit()
            return _to_user(cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user.id,)).fetchone())
        finally:
            conn.close()

    @classmethod
    async def change_password(cls, user: UserRead, data: PasswordChange) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT password FROM users WHERE id = ?", (user.id,)).fetchone()
            if not row:
                raise NotFound("User not found")
            if not verify_password(data.current_password, row["password"]):
                raise ValidationFailed.for_field("currentPassword", "Current password is incorrect")
            cursor.execute(
                "UPDATE users SET password = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (hash_password(data.new_password), user.id),
            )
            conn.commit()
            logger.info("User %s changed their password", user.id)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    @classmethod
    async def find_user(cls, user_id: int) -> Optional[UserRead]:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            return _to_user(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        user = await cls.find_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    @classmethod
    async def list_users(
        cls,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return one page of users, newest first by default.

        ``search`` is a case‑insensitive substring match over name,
        e‑mail and phone.  Inactive users are listed unless
        ``is_active`` says otherwise.
        """
        page_request = PageRequest.build(page, limit, USERS_DEFAULT_LIMIT, USERS_MAX_LIMIT)
        query = (
            ListQuery("users", sortable=USER_SORTS, default_sort="-createdAt")
            .equals("role", role.value if role else None)
            .contains_any(("name", "email", "phone"), search)
            .visible(is_active, default=None)
            .sort(sort)
        )
        conn = get_connection()
        try:
            total = conn.execute(*query.count_sql()).fetchone()[0]
            rows = conn.execute(*query.select_sql(page_request, columns=USER_COLUMNS)).fetchall()
        finally:
            conn.close()
        return {
            "users": [_to_user(row) for row in rows],
            "pagination": pagination_meta(page_request, total, total_key="totalUsers"),
        }

    @classmethod
    async def update_user(cls, actor: UserRead, user_id: int, data: UserAdminUpdate) -> UserRead:
        """Apply an administrator's changes to an account.

        Raises ``SelfDemotionForbidden`` when an admin tries to set their
        own role to ``user``, ``SelfDeleteForbidden`` when they try to
        deactivate themselves and ``Conflict`` when the new e‑mail or
        phone belongs to another account.
        """
        updates = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise NotFound("User not found")
            if actor.id == user_id and updates.get("role") == UserRole.USER:
                raise SelfDemotionForbidden()
            if actor.id == user_id and updates.get("is_active") is False:
                raise SelfDeleteForbidden()
            if "email" in updates and _holder_of(cursor, "email", updates["email"], exclude_id=user_id):
                raise Conflict("Email already in use")
            if "phone" in updates and _holder_of(cursor, "phone", updates["phone"], exclude_id=user_id):
                raise Conflict("Phone number already in use")
            try:
                cls._apply_updates(cursor, user_id, updates)
            except sqlite3.IntegrityError as exc:
                raise Conflict("Email or phone number already in use") from exc
            conn.commit()
            logger.info("Admin %s updated user %s: %s", actor.id, user_id, sorted(updates))
            return _to_user(cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone())
        finally:
            conn.close()

    @classmethod
    async def delete_user(cls, actor: UserRead, user_id: int) -> None:
        """Deactivate an account.  Admins cannot delete themselves."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise NotFound("User not found")
            if actor.id == user_id:
                raise SelfDeleteForbidden()
            cursor.execute(
                "UPDATE users SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (user_id,),
            )
            conn.commit()
            logger.info("Admin %s deactivated user %s", actor.id, user_id)
        finally:
            conn.close()

    @classmethod
    async def stats_overview(cls) -> Dict[str, Any]:
        """Aggregate counts for the admin dashboard.

        Returns the overall totals, account creations per month for the
        twelve most recent months that have any (newest first), and
        total/active counts per role.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            overview = cursor.execute(
                """
                SELECT COUNT(*) AS total_users,
                       COALESCE(SUM(is_active), 0) AS active_users,
                       COALESCE(SUM(role = 'admin'), 0) AS admin_users,
                       COALESCE(SUM(role = 'user'), 0) AS regular_users
                FROM users
                """
            ).fetchone()
            monthly = cursor.execute(
                """
                SELECT CAST(strftime('%Y', created_at) AS INTEGER) AS year,
                       CAST(strftime('%m', created_at) AS INTEGER) AS month,
                       COUNT(*) AS count
                FROM users
                GROUP BY year, month
                ORDER BY year DESC, month DESC
                LIMIT 12
                """
            ).fetchall()
            roles = cursor.execute(
                """
                SELECT role, COUNT(*) AS count, COALESCE(SUM(is_active), 0) AS active
                FROM users GROUP BY role ORDER BY role
                """
            ).fetchall()
        finally:
            conn.close()
        return {
            "overview": {
                "totalUsers": overview["total_users"],
                "activeUsers": overview["active_users"],
                "adminUsers": overview["admin_users"],
                "regularUsers": overview["regular_users"],
            },
            "monthlyStats": [{"year": r["year"], "month": r["month"], "count": r["count"]} for r in monthly],
            "roleStats": [{"role": r["role"], "count": r["count"], "active": r["active"]} for r in roles],
        }

    @staticmethod
    def _apply_updates(cursor: sqlite3.Cursor, user_id: int, updates: Dict[str, Any]) -> None:
        if not updates:
            return
        fields = []
        values = []
        for key, value in updates.items():
            if isinstance(value, UserRole):
                value = value.value
            elif isinstance(value, bool):
                value = 1 if value else 0
            fields.append(f"{key} = ?")
            values.append(value)
        values.append(user_id)
        cursor.execute(
            f"UPDATE users SET {', '.join(fields)}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            tuple(values),
        )
