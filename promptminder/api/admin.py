"""Admin API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from promptminder.alerts.email import check_email_config, send_test_email
from promptminder.auth.deps import require_admin, require_super_admin
from promptminder.auth.identity import Identity
from promptminder.auth.policy import AuthPolicy, get_auth_policy
from promptminder.auth.provider import (
    AuthProvider,
    ProviderError,
    get_auth_provider,
    raise_for_provider_error,
)
from promptminder.auth.session import invalidate_user_sessions
from promptminder.auth.users import list_users, set_admin_flag
from promptminder.database import transaction
from promptminder.errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


class UserSummary(BaseModel):
    """User summary for admin view."""
    id: str
    email: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    is_admin: bool
    is_super_admin: bool
    created_at: Optional[str] = None
    last_login_at: Optional[str] = None


class SetAdminRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    is_admin: Optional[bool] = Field(default=None, validation_alias=AliasChoices("is_admin", "isAdmin"))


class InvalidateSessionRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))


class EmailTestRequest(BaseModel):
    to: Optional[str] = None


@router.get("/check")
async def check_admin(
    admin: Identity = Depends(require_admin),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Confirm the caller is an admin."""
    return {
        "isAdmin": True,
        "isSuperAdmin": policy.admin.is_super_admin(admin),
        "user": {
            "id": admin.id,
            "email": admin.email,
            "display_name": admin.display_name,
        },
    }


@router.get("/users", response_model=list[UserSummary])
async def get_users(
    admin: Identity = Depends(require_admin),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """List local users with their effective admin status."""
    users = await list_users()
    summaries = []
    for user in users:
        identity = Identity.from_user(user)
        summaries.append(
            UserSummary(
                id=user.id,
                email=user.email,
                username=user.username,
                display_name=user.display_name,
                is_admin=policy.admin.is_admin(identity),
                is_super_admin=policy.admin.is_super_admin(identity),
                created_at=user.created_at,
                last_login_at=user.last_login_at,
            )
        )
    return summaries


@router.get("/superadmins")
async def get_super_admins(
    admin: Identity = Depends(require_admin),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Allow-list entries that grant super-admin."""
    return {"superAdmins": list(policy.admin.allow_list.entries)}


@router.post("/set-admin")
async def set_admin(
    request: SetAdminRequest,
    admin: Identity = Depends(require_super_admin),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Grant or revoke the persisted admin flag."""
    if not request.user_id or request.is_admin is None:
        raise InvalidInput("user_id and is_admin are required")

    async with transaction() as db:
        updated = await set_admin_flag(db, request.user_id, request.is_admin)

    if not updated:
        if not provider.admin_configured:
            raise NotFound("User not found")
        try:
            await provider.set_user_admin(request.user_id, request.is_admin)
        except ProviderError as e:
            if e.status_code == 404:
                raise NotFound("User not found")
            raise_for_provider_error(e, "admin update")

    action = "granted" if request.is_admin else "revoked"
    logger.info(f"Admin {admin.id} {action} admin for user {request.user_id}")
    return {"success": True, "userId": request.user_id, "isAdmin": request.is_admin}


@router.post("/invalidate-session")
async def invalidate_session(
    request: InvalidateSessionRequest,
    admin: Identity = Depends(require_super_admin),
):
    """Sign a user out of every local session."""
    if not request.user_id:
        raise InvalidInput("user_id is required")

    removed = await invalidate_user_sessions(request.user_id)
    logger.info(f"Admin {admin.id} invalidated {removed} sessions for user {request.user_id}")
    return {"success": True, "invalidated": removed}


@router.get("/email-test")
async def email_config_status(admin: Identity = Depends(require_admin)):
    """Report whether outbound email is configured."""
    config = check_email_config()
    return {"valid": config.valid, "isDevMode": config.dev_mode, "errors": config.errors}


@router.post("/email-test")
async def email_test(
    request: Optional[EmailTestRequest] = None,
    admin: Identity = Depends(require_admin),
):
    """Send a test email to verify SMTP configuration."""
    to_email = (request.to if request else None) or admin.email
    if not to_email:
        raise InvalidInput("No recipient address")

    result = await send_test_email(to_email)
    return {
        "success": result.sent,
        "messageId": result.message_id,
        "isDevMode": result.dev_mode,
        "message": f"Test email sent to {to_email}",
    }
