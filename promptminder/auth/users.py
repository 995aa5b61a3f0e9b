"""Local user records."""

import logging
import uuid
from typing import Any, Optional

import aiosqlite
from pydantic import BaseModel

from promptminder.auth.password import verify_password_async
from promptminder.database import get_database
from promptminder.errors import Conflict
from promptminder.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)


class User(BaseModel):
    """User model for authenticated requests."""
    id: str
    email: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[str] = None
    last_login_at: Optional[str] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: Optional[str]) -> Optional[str]:
    value = (username or "").strip().lower()
    return value or None


def user_from_row(row: Any) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        display_name=row["display_name"],
        avatar_url=row["avatar_url"],
        is_admin=bool(row["is_admin"]),
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


async def get_user_by_id(user_id: str) -> Optional[User]:
    """Get user from database by ID."""
    db = await get_database()
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    return user_from_row(row) if row else None


async def get_user_by_email(email: str) -> Optional[User]:
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
    )
    row = await cursor.fetchone()
    return user_from_row(row) if row else None


async def list_users() -> list[User]:
    db = await get_database()
    cursor = await db.execute("SELECT * FROM users ORDER BY created_at DESC")
    rows = await cursor.fetchall()
    return [user_from_row(row) for row in rows]


async def create_user(
    db: aiosqlite.Connection,
    *,
    email: str,
    password_hash: Optional[str] = None,
    username: Optional[str] = None,
    display_name: Optional[str] = None,
    is_admin: bool = False,
) -> User:
    """Insert a user inside the caller's transaction.

    ``password_hash`` is computed by the caller, before the transaction opens.

    Raises Conflict when the email or username is already taken.
    """
    email = normalize_email(email)
    username = normalize_username(username)

    cursor = await db.execute(
        "SELECT email, username FROM users WHERE email = ? OR (username IS NOT NULL AND username = ?)",
        (email, username),
    )
    existing = await cursor.fetchone()
    if existing:
        if existing["email"] == email:
            raise Conflict("This email is already registered")
        raise Conflict("This username is already taken")

    now = to_iso(utcnow())
    user_id = uuid.uuid4().hex
    await db.execute(
        """INSERT INTO users
           (id, email, username, display_name, password_hash, is_admin, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id,
            email,
            username,
            display_name or username or email.split("@")[0],
            password_hash,
            is_admin,
            now,
            now,
        ),
    )
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    return user_from_row(await cursor.fetchone())


async def authenticate_user(login: str, password: str) -> Optional[User]:
    """Return the user for a username-or-email and password pair."""
    key = (login or "").strip().lower()
    if not key or not password:
        return None

    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM users WHERE username = ? OR email = ?", (key, key)
    )
    row = await cursor.fetchone()
    if row is None or not row["password_hash"]:
        return None
    if not await verify_password_async(password, row["password_hash"]):
        logger.warning(f"Failed password login for user {row['id']}")
        return None
    return user_from_row(row)


async def set_admin_flag(db: aiosqlite.Connection, user_id: str, is_admin: bool) -> bool:
    """Update the persisted admin flag. Returns False if the user is unknown."""
    cursor = await db.execute(
        "UPDATE users SET is_admin = ?, updated_at = ? WHERE id = ?",
        (is_admin, to_iso(utcnow()), user_id),
    )
    return cursor.rowcount > 0


async def touch_last_login(db: aiosqlite.Connection, user_id: str) -> None:
    now = to_iso(utcnow())
    await db.execute(
        "UPDATE users SET last_login_at = ?, updated_at = ? WHERE id = ?",
        (now, now, user_id),
    )
