"""Opaque session tokens backed by the user_sessions table."""

import logging
import secrets
from datetime import timedelta
from typing import Optional

import aiosqlite
from pydantic import BaseModel

from promptminder.auth.users import User
from promptminder.config import get_settings
from promptminder.database import get_database, transaction
from promptminder.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_token"
TOKEN_BYTES = 32


class SessionRecord(BaseModel):
    """A persisted local session."""
    token: str
    user_id: str
    created_at: str
    expires_at: str


def generate_session_token() -> str:
    """Create an unguessable 64-character hex token."""
    return secrets.token_hex(TOKEN_BYTES)


async def create_session(
    user_id: str,
    db: Optional[aiosqlite.Connection] = None,
) -> SessionRecord:
    """Persist a new session for a user.

    Pass ``db`` to join an open transaction; otherwise the insert commits on
    its own.
    """
    settings = get_settings()
    now = utcnow()
    record = SessionRecord(
        token=generate_session_token(),
        user_id=user_id,
        created_at=to_iso(now),
        expires_at=to_iso(now + timedelta(days=settings.session_expire_days)),
    )
    params = (record.token, record.user_id, record.created_at, record.expires_at)
    sql = """INSERT INTO user_sessions (token, user_id, created_at, expires_at)
             VALUES (?, ?, ?, ?)"""

    if db is not None:
        await db.execute(sql, params)
    else:
        async with transaction() as tx:
            await tx.execute(sql, params)
    return record


async def resolve_session(token: Optional[str]) -> Optional[User]:
    """Map a session token to its user, or None if absent or expired.

    Any store error is treated as "no session".
    """
    if not token:
        return None

    try:
        db = await get_database()
        cursor = await db.execute(
            """SELECT s.user_id AS session_user_id, u.*
               FROM user_sessions s
               LEFT JOIN users u ON u.id = s.user_id
               WHERE s.token = ? AND s.expires_at > ?""",
            (token, to_iso(utcnow())),
        )
        row = await cursor.fetchone()
    except Exception as e:
        logger.error(f"Session lookup failed: {e}")
        return None

    if row is None:
        return None

    if row["id"] is None:
        logger.warning(
            f"Session references missing user {row['session_user_id']}, ignoring"
        )
        return None

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


async def invalidate_session(token: Optional[str]) -> None:
    """Delete a session. Unknown tokens are ignored."""
    if not token:
        return
    async with transaction() as db:
        await db.execute("DELETE FROM user_sessions WHERE token = ?", (token,))


async def invalidate_user_sessions(user_id: str) -> int:
    """Delete every session of a user, returning how many were removed."""
    async with transaction() as db:
        cursor = await db.execute(
            "DELETE FROM user_sessions WHERE user_id = ?", (user_id,)
        )
        removed = cursor.rowcount
    logger.info(f"Invalidated {removed} sessions for user {user_id}")
    return removed


async def purge_expired_sessions() -> int:
    """Remove sessions past their expiry."""
    async with transaction() as db:
        cursor = await db.execute(
            "DELETE FROM user_sessions WHERE expires_at <= ?", (to_iso(utcnow()),)
        )
        return cursor.rowcount
