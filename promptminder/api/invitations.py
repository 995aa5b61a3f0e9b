"""Invitation API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from promptminder.alerts.email import send_invitation_email
from promptminder.auth.deps import get_current_identity
from promptminder.auth.identity import Identity
from promptminder.auth.invitations import (
    InvitationStatus,
    find_pending_invitation,
    issue_invitation,
    list_invitations,
    revoke_invitation,
    verify_invitation,
)
from promptminder.auth.policy import AuthPolicy, get_auth_policy
from promptminder.auth.routes import validate_email_address
from promptminder.auth.users import get_user_by_email
from promptminder.errors import Conflict, InvalidInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/invitations", tags=["invitations"])


class CreateInvitationRequest(BaseModel):
    email: Optional[str] = None


@router.post("")
async def create_invitation(
    request: CreateInvitationRequest,
    identity: Identity = Depends(get_current_identity),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Invite an email address and send the invitation link."""
    email = validate_email_address(request.email)

    if not policy.email_domains.is_allowed(email):
        raise InvalidInput(policy.email_domains.restriction_message())

    if await get_user_by_email(email):
        raise Conflict("This email is already registered")

    if await find_pending_invitation(email):
        raise Conflict("A pending invitation already exists for this email")

    invitation = await issue_invitation(identity.id, email)

    try:
        result = await send_invitation_email(
            email, invitation.token, identity.display_name or identity.email or "A teammate"
        )
    except Exception:
        # An invitation nobody received must not block a retry
        await revoke_invitation(invitation.id, identity.id)
        raise

    return {
        "invitation": invitation.public_dict(),
        "emailSent": result.sent,
        "messageId": result.message_id,
        "isDevMode": result.dev_mode,
        "previewUrl": result.preview_url,
    }


@router.get("")
async def get_invitations(
    status: Optional[InvitationStatus] = None,
    limit: int = Query(default=50, ge=1, le=200),
    identity: Identity = Depends(get_current_identity),
):
    """List invitations sent by the caller."""
    invitations = await list_invitations(identity.id, status=status, limit=limit)
    return {"invitations": [i.public_dict() for i in invitations]}


@router.delete("/{invitation_id}")
async def delete_invitation(
    invitation_id: str,
    identity: Identity = Depends(get_current_identity),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Revoke an invitation. Only the inviter or an admin may do this."""
    invitation = await revoke_invitation(
        invitation_id, identity.id, actor_is_admin=policy.admin.is_admin(identity)
    )
    return {"success": True, "invitation": invitation.public_dict()}


@router.get("/verify/{token}")
async def verify_invitation_token(token: str):
    """Check an invitation link before showing the sign-up form."""
    invitation = await verify_invitation(token)
    return {
        "valid": True,
        "invitation": {
            "id": invitation.id,
            "email": invitation.email,
            "inviter": invitation.inviter.model_dump() if invitation.inviter else None,
            "invited_at": invitation.invited_at,
            "expires_at": invitation.expires_at,
        },
    }
