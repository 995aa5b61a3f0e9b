"""Invitation lifecycle.

An invitation starts ``pending`` and can move once, to ``accepted``,
``revoked`` or ``expired``. The transition table below is the only place that
decides which moves are legal. Expiry is evaluated when an invitation is read;
the stored status catches up opportunistically and through the cleanup job.
"""

import logging
import secrets
import uuid
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

import aiosqlite
from pydantic import BaseModel

from promptminder.config import get_settings
from promptminder.database import get_database, transaction
from promptminder.errors import (
    Forbidden,
    InvitationAlreadyUsed,
    InvitationExpired,
    InvitationNotFound,
    InvitationRevoked,
    InvitationUnusable,
)
from promptminder.utils.time import from_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


TRANSITIONS: dict[InvitationStatus, frozenset[InvitationStatus]] = {
    InvitationStatus.PENDING: frozenset(
        {InvitationStatus.ACCEPTED, InvitationStatus.REVOKED, InvitationStatus.EXPIRED}
    ),
    InvitationStatus.ACCEPTED: frozenset(),
    InvitationStatus.REVOKED: frozenset(),
    InvitationStatus.EXPIRED: frozenset(),
}

UNUSABLE_ERRORS: dict[InvitationStatus, type[InvitationUnusable]] = {
    InvitationStatus.ACCEPTED: InvitationAlreadyUsed,
    InvitationStatus.REVOKED: InvitationRevoked,
    InvitationStatus.EXPIRED: InvitationExpired,
}


class IllegalTransition(Exception):
    def __init__(self, current: InvitationStatus, target: InvitationStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move invitation from {current.value} to {target.value}")


class InviterSummary(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None


class Invitation(BaseModel):
    id: str
    email: str
    token: str
    invited_by: str
    status: InvitationStatus
    invited_at: str
    expires_at: str
    accepted_at: Optional[str] = None
    accepted_user_id: Optional[str] = None
    inviter: Optional[InviterSummary] = None

    def current_status(self) -> InvitationStatus:
        """Stored status with expiry applied at read time."""
        if self.status == InvitationStatus.PENDING and utcnow() >= from_iso(self.expires_at):
            return InvitationStatus.EXPIRED
        return self.status

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self.current_status()]

    def check_transition(self, target: InvitationStatus) -> None:
        current = self.current_status()
        if target not in TRANSITIONS[current]:
            raise IllegalTransition(current, target)

    def public_dict(self) -> dict[str, Any]:
        """Fields safe to return to clients; never includes the token."""
        return {
            "id": self.id,
            "email": self.email,
            "status": self.current_status().value,
            "inviter": self.inviter.model_dump() if self.inviter else None,
            "invited_at": self.invited_at,
            "expires_at": self.expires_at,
            "accepted_at": self.accepted_at,
        }


_SELECT = """
    SELECT i.*, u.username AS inviter_username, u.display_name AS inviter_display_name
    FROM user_invitations i
    LEFT JOIN users u ON u.id = i.invited_by
"""


def generate_invitation_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def _from_row(row: Any) -> Invitation:
    return Invitation(
        id=row["id"],
        email=row["email"],
        token=row["token"],
        invited_by=row["invited_by"],
        status=InvitationStatus(row["status"]),
        invited_at=row["invited_at"],
        expires_at=row["expires_at"],
        accepted_at=row["accepted_at"],
        accepted_user_id=row["accepted_user_id"],
        inviter=InviterSummary(
            id=row["invited_by"],
            username=row["inviter_username"],
            display_name=row["inviter_display_name"],
        ),
    )


async def _fetch_one(db: aiosqlite.Connection, where: str, params: tuple) -> Optional[Invitation]:
    cursor = await db.execute(f"{_SELECT} WHERE {where}", params)
    row = await cursor.fetchone()
    return _from_row(row) if row else None


async def issue_invitation(inviter_id: str, email: str) -> Invitation:
    """Create a pending invitation with a fresh token."""
    settings = get_settings()
    now = utcnow()
    invitation_id = uuid.uuid4().hex

    async with transaction() as db:
        await db.execute(
            """INSERT INTO user_invitations
               (id, email, token, invited_by, status, invited_at, expires_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                invitation_id,
                email.strip().lower(),
                generate_invitation_token(),
                inviter_id,
                InvitationStatus.PENDING.value,
                to_iso(now),
                to_iso(now + timedelta(days=settings.invitation_expire_days)),
                to_iso(now),
            ),
        )
        invitation = await _fetch_one(db, "i.id = ?", (invitation_id,))

    logger.info(f"User {inviter_id} invited {invitation.email}")
    return invitation


async def get_invitation(invitation_id: str) -> Optional[Invitation]:
    db = await get_database()
    return await _fetch_one(db, "i.id = ?", (invitation_id,))


async def get_invitation_by_token(
    token: str, db: Optional[aiosqlite.Connection] = None
) -> Optional[Invitation]:
    if not token:
        return None
    db = db or await get_database()
    return await _fetch_one(db, "i.token = ?", (token,))


async def _set_status(
    db: aiosqlite.Connection,
    invitation: Invitation,
    target: InvitationStatus,
    accepted_user_id: Optional[str] = None,
) -> int:
    """Apply a checked transition; only rows still pending are touched."""
    invitation.check_transition(target)
    now = to_iso(utcnow())

    if target == InvitationStatus.ACCEPTED:
        cursor = await db.execute(
            """UPDATE user_invitations
               SET status = ?, accepted_at = ?, accepted_user_id = ?, updated_at = ?
               WHERE id = ? AND status = 'pending' AND expires_at > ?""",
            (target.value, now, accepted_user_id, now, invitation.id, now),
        )
    else:
        cursor = await db.execute(
            """UPDATE user_invitations SET status = ?, updated_at = ?
               WHERE id = ? AND status = 'pending'""",
            (target.value, now, invitation.id),
        )
    return cursor.rowcount


async def _mark_expired(invitation: Invitation) -> None:
    try:
        async with transaction() as db:
            await db.execute(
                """UPDATE user_invitations SET status = 'expired', updated_at = ?
                   WHERE id = ? AND status = 'pending'""",
                (to_iso(utcnow()), invitation.id),
            )
    except Exception as e:
        logger.warning(f"Could not mark invitation {invitation.id} expired: {e}")


async def verify_invitation(
    token: str, db: Optional[aiosqlite.Connection] = None
) -> Invitation:
    """Return a usable invitation or raise a typed error.

    Raises InvitationNotFound for unknown tokens, and InvitationExpired,
    InvitationAlreadyUsed or InvitationRevoked for terminal invitations.
    """
    invitation = await get_invitation_by_token(token, db)
    if invitation is None:
        raise InvitationNotFound()

    status = invitation.current_status()
    if status == InvitationStatus.PENDING:
        return invitation

    # Persist the read-time expiry unless we are inside the caller's transaction
    if status != invitation.status and db is None:
        await _mark_expired(invitation)

    raise UNUSABLE_ERRORS[status]()


async def accept_invitation(
    db: aiosqlite.Connection, token: str, accepted_user_id: str
) -> Invitation:
    """Consume an invitation inside the caller's transaction."""
    invitation = await verify_invitation(token, db)
    updated = await _set_status(db, invitation, InvitationStatus.ACCEPTED, accepted_user_id)
    if updated != 1:
        raise InvitationAlreadyUsed()

    logger.info(f"Invitation {invitation.id} accepted by user {accepted_user_id}")
    return await _fetch_one(db, "i.id = ?", (invitation.id,))


async def revoke_invitation(
    invitation_id: str, actor_id: str, actor_is_admin: bool = False
) -> Invitation:
    """Revoke a pending invitation.

    Only the inviter or an admin may revoke. Revoking an invitation that is
    already accepted, revoked or expired is a no-op.
    """
    invitation = await get_invitation(invitation_id)
    if invitation is None:
        raise InvitationNotFound("Invitation not found")

    if invitation.invited_by != actor_id and not actor_is_admin:
        raise Forbidden("You cannot revoke this invitation")

    if invitation.is_terminal:
        return invitation

    async with transaction() as db:
        await _set_status(db, invitation, InvitationStatus.REVOKED)
        revoked = await _fetch_one(db, "i.id = ?", (invitation.id,))

    logger.info(f"Invitation {invitation.id} revoked by user {actor_id}")
    return revoked


async def find_pending_invitation(email: str) -> Optional[Invitation]:
    """Return a live pending invitation for an email, if any."""
    db = await get_database()
    return await _fetch_one(
        db,
        "i.email = ? AND i.status = 'pending' AND i.expires_at > ? ORDER BY i.invited_at DESC LIMIT 1",
        (email.strip().lower(), to_iso(utcnow())),
    )


async def list_invitations(
    inviter_id: str,
    status: Optional[InvitationStatus] = None,
    limit: int = 50,
) -> list[Invitation]:
    """List invitations sent by a user, newest first."""
    db = await get_database()
    query = f"{_SELECT} WHERE i.invited_by = ?"
    params: list[Any] = [inviter_id]

    if status is not None:
        query += " AND i.status = ?"
        params.append(status.value)

    query += " ORDER BY i.invited_at DESC LIMIT ?"
    params.append(max(1, min(int(limit), 200)))

    cursor = await db.execute(query, params)
    rows = await cursor.fetchall()
    return [_from_row(row) for row in rows]


async def expire_stale_invitations() -> int:
    """Move pending invitations past their expiry to ``expired``."""
    now = to_iso(utcnow())
    async with transaction() as db:
        cursor = await db.execute(
            """UPDATE user_invitations SET status = 'expired', updated_at = ?
               WHERE status = 'pending' AND expires_at <= ?""",
            (now, now),
        )
        return cursor.rowcount
