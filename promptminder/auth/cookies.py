"""Auth cookie names and attributes."""

from typing import Optional

from starlette.responses import Response

from promptminder.auth.bearer import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from promptminder.auth.session import SESSION_COOKIE_NAME
from promptminder.config import Settings

SEVEN_DAYS = 60 * 60 * 24 * 7
DEFAULT_ACCESS_TOKEN_MAX_AGE = 3600


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
        max_age=settings.session_expire_days * 24 * 60 * 60,
    )


def set_provider_cookies(
    response: Response,
    settings: Settings,
    access_token: str,
    refresh_token: Optional[str] = None,
    expires_in: Optional[int] = None,
) -> None:
    """Store the provider's token pair; refresh token lives for 7 days."""
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
        max_age=int(expires_in or DEFAULT_ACCESS_TOKEN_MAX_AGE),
    )
    if refresh_token:
        response.set_cookie(
            key=REFRESH_TOKEN_COOKIE,
            value=refresh_token,
            httponly=True,
            secure=settings.secure_cookies,
            samesite="lax",
            path="/",
            max_age=SEVEN_DAYS,
        )


def clear_auth_cookies(response: Response) -> None:
    for name in (SESSION_COOKIE_NAME, ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, path="/")
