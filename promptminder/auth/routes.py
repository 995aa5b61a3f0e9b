"""Authentication routes."""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from promptminder.auth.bearer import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, read_display_claims
from promptminder.auth.cookies import clear_auth_cookies, set_provider_cookies, set_session_cookie
from promptminder.auth.deps import get_current_identity
from promptminder.auth.identity import Identity
from promptminder.auth.invitations import accept_invitation, verify_invitation
from promptminder.auth.password import hash_password_async
from promptminder.auth.policy import AuthPolicy, get_auth_policy
from promptminder.auth.provider import (
    AuthProvider,
    ProviderError,
    get_auth_provider,
    raise_for_provider_error,
)
from promptminder.auth.session import SESSION_COOKIE_NAME, create_session, invalidate_session
from promptminder.auth.users import (
    authenticate_user,
    create_user,
    normalize_email,
    touch_last_login,
)
from promptminder.config import get_settings
from promptminder.database import transaction
from promptminder.errors import InvalidInput, RateLimited, Unauthenticated
from promptminder.limiter import email_rate_limit, limiter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
MIN_PASSWORD_LENGTH = 6

MAGIC_LINK_SENT = "If this email is registered, you will receive a sign-in link."
RESET_LINK_SENT = "If this email is registered, you will receive a password reset email."


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    invitation_token: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class EmailRequest(BaseModel):
    email: Optional[str] = None


class SetSessionRequest(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class UpdatePasswordRequest(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    new_password: Optional[str] = None


def validate_email_address(email: Optional[str]) -> str:
    if not email:
        raise InvalidInput("Please enter an email address")
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise InvalidInput("Please enter a valid email address")
    return email


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def safe_next_path(next_url: Optional[str], default: str = "/prompts") -> str:
    """Only allow same-site relative redirects."""
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return default
    return next_url


def redirect_url(path: str) -> str:
    return f"{get_settings().public_url.rstrip('/')}{path}"


@router.post("/register")
async def register(
    payload: RegisterRequest,
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Create a local account and sign it in.

    When an invitation token is given, the account is created and the
    invitation accepted in one transaction.
    """
    settings = get_settings()
    email = validate_email_address(payload.email)
    password = validate_password(payload.password)

    if payload.username is not None:
        username = payload.username.strip()
        if not 3 <= len(username) <= 50:
            raise InvalidInput("Username must be between 3 and 50 characters")
        if not USERNAME_PATTERN.match(username):
            raise InvalidInput("Username may only contain letters, numbers and underscores")

    if not policy.email_domains.is_allowed(email):
        raise InvalidInput(policy.email_domains.restriction_message())

    token = payload.invitation_token
    if settings.invite_only_registration and not token:
        raise InvalidInput("An invitation is required to register")

    password_hash = await hash_password_async(password)

    async with transaction() as db:
        if token:
            invitation = await verify_invitation(token, db)
            if invitation.email != email:
                raise InvalidInput("This invitation was issued for a different email address")

        user = await create_user(
            db,
            email=email,
            password_hash=password_hash,
            username=payload.username,
            display_name=payload.display_name,
        )
        if token:
            await accept_invitation(db, token, user.id)
        session = await create_session(user.id, db=db)

    logger.info(f"Registered user {user.id}")
    response = JSONResponse({"success": True, "user": user.model_dump()})
    set_session_cookie(response, session.token, settings)
    return response


@router.post("/login")
async def login(payload: LoginRequest):
    """Sign in with username (or email) and password."""
    if not payload.username or not payload.password:
        raise InvalidInput("Username and password are required")

    user = await authenticate_user(payload.username, payload.password)
    if user is None:
        raise Unauthenticated("Invalid username or password")

    async with transaction() as db:
        session = await create_session(user.id, db=db)
        await touch_last_login(db, user.id)

    response = JSONResponse({"success": True, "user": user.model_dump()})
    set_session_cookie(response, session.token, get_settings())
    return response


@router.post("/logout")
async def logout(request: Request, provider: AuthProvider = Depends(get_auth_provider)):
    """Invalidate the local session and clear every auth cookie."""
    await invalidate_session(request.cookies.get(SESSION_COOKIE_NAME))

    access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if access_token and provider.configured:
        try:
            await provider.sign_out(access_token)
        except ProviderError as e:
            logger.warning(f"Provider sign-out failed: {e}")

    response = JSONResponse({"success": True})
    clear_auth_cookies(response)
    return response


@router.get("/me")
async def me(
    identity: Identity = Depends(get_current_identity),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Return the authenticated identity."""
    return {
        "id": identity.id,
        "email": identity.email,
        "display_name": identity.display_name,
        "avatar_url": identity.avatar_url,
        "is_admin": policy.admin.is_admin(identity),
        "source": identity.source,
    }


@router.get("/session")
async def session_status(request: Request):
    """Display-only view of the provider session cookie.

    The claims are not verified here and must not be used for authorization.
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    claims = read_display_claims(token)

    if claims is None:
        response = JSONResponse({"isSignedIn": False, "user": None})
        if token:
            clear_auth_cookies(response)
        return response

    return {
        "isSignedIn": True,
        "user": {
            "id": claims.sub,
            "email": claims.email,
            "display_name": claims.display_name,
            "avatar_url": claims.avatar_url,
        },
    }


@router.post("/set-session")
async def set_session(payload: SetSessionRequest):
    """Store provider tokens obtained client-side as httpOnly cookies."""
    if not payload.access_token:
        raise InvalidInput("access_token is required")

    response = JSONResponse({"success": True})
    set_provider_cookies(
        response,
        get_settings(),
        payload.access_token,
        payload.refresh_token,
        payload.expires_in,
    )
    return response


@router.get("/callback")
async def auth_callback(
    token_hash: Optional[str] = None,
    type: str = "magiclink",
    next: Optional[str] = None,
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Finish an emailed sign-in, signup confirmation or recovery link."""
    if not token_hash:
        return RedirectResponse(url=redirect_url("/sign-in"), status_code=status.HTTP_302_FOUND)

    try:
        data = await provider.verify_token_hash(token_hash, type)
    except ProviderError as e:
        logger.error(f"Email link verification failed: {e}")
        return RedirectResponse(
            url=redirect_url("/sign-in?error=link_invalid"),
            status_code=status.HTTP_302_FOUND,
        )

    access_token = data.get("access_token")
    if not access_token:
        return RedirectResponse(url=redirect_url("/sign-in"), status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(
        url=redirect_url(safe_next_path(next)), status_code=status.HTTP_302_FOUND
    )
    set_provider_cookies(
        response,
        get_settings(),
        access_token,
        data.get("refresh_token"),
        data.get("expires_in"),
    )
    return response


@router.post("/refresh-session")
async def refresh_session(
    request: Request,
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Exchange the refresh cookie for a fresh provider session."""
    refresh_token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not refresh_token:
        raise Unauthenticated("No refresh token")

    try:
        data = await provider.refresh_session(refresh_token)
    except ProviderError as e:
        if e.status_code < 500:
            logger.info(f"Refresh token rejected: {e}")
            raise Unauthenticated("Session could not be refreshed")
        raise_for_provider_error(e, "session refresh")

    access_token = data.get("access_token")
    if not access_token:
        raise Unauthenticated("Session could not be refreshed")

    response = JSONResponse({"success": True})
    set_provider_cookies(
        response,
        get_settings(),
        access_token,
        data.get("refresh_token"),
        data.get("expires_in"),
    )
    return response


@router.post("/magic-link")
@limiter.limit(email_rate_limit)
async def magic_link(
    request: Request,
    payload: EmailRequest,
    provider: AuthProvider = Depends(get_auth_provider),
    policy: AuthPolicy = Depends(get_auth_policy),
):
    """Email a sign-in link.

    The provider creates an account for unknown addresses, so the domain
    policy applies here as it does for registration. The response is the
    same whether or not the address has an account.
    """
    email = validate_email_address(payload.email)
    if not policy.email_domains.is_allowed(email):
        raise InvalidInput(policy.email_domains.restriction_message())

    try:
        await provider.send_magic_link(email, redirect_url("/api/auth/callback"))
    except ProviderError as e:
        logger.error(f"Magic link request failed: {e}")
        if e.is_rate_limited:
            raise RateLimited()

    return {"success": True, "message": MAGIC_LINK_SENT}


@router.post("/reset-password")
@limiter.limit(email_rate_limit)
async def reset_password(
    request: Request,
    payload: EmailRequest,
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Email a password reset link.

    The response is the same whether or not the address has an account.
    """
    email = validate_email_address(payload.email)

    try:
        await provider.send_password_reset(email, redirect_url("/reset-password"))
    except ProviderError as e:
        logger.error(f"Password reset request failed: {e}")
        if e.is_rate_limited:
            raise RateLimited()

    return {"success": True, "message": RESET_LINK_SENT}


@router.post("/update-password")
async def update_password(
    payload: UpdatePasswordRequest,
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Set a new password using the recovery session from a reset link."""
    if not payload.access_token or not payload.new_password:
        raise InvalidInput("access_token and new_password are required")
    validate_password(payload.new_password)

    try:
        user = await provider.get_user(payload.access_token)
    except ProviderError as e:
        logger.warning(f"Recovery token rejected: {e}")
        raise Unauthenticated("The reset link is invalid or has expired")

    try:
        await provider.update_password(
            payload.access_token,
            payload.new_password,
            metadata=user.get("user_metadata") or None,
        )
    except ProviderError as e:
        logger.error(f"Password update failed: {e}")
        if e.is_rate_limited:
            raise RateLimited()
        raise InvalidInput("Password could not be updated")

    # The password changed, so the recovery session must not stay usable
    try:
        await provider.sign_out(payload.access_token)
    except ProviderError as e:
        logger.warning(f"Sign-out after password update failed: {e}")

    return {"success": True}
