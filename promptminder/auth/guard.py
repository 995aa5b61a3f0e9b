"""Coarse authentication gate for page routes.

The guard only checks that a session cookie is present. Whether the token is
still valid is decided later by the route's identity resolution.
"""

import logging
import re
from typing import Awaitable, Callable, Sequence
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from promptminder.auth.session import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

SIGN_IN_PATH = "/sign-in"
IMAGE_PATH = re.compile(r"\.(jpg|jpeg|png|webp|avif|gif|svg)$", re.IGNORECASE)

API_HEADERS = {
    "X-DNS-Prefetch-Control": "on",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "origin-when-cross-origin",
}


def is_protected(path: str, prefixes: Sequence[str]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


def sign_in_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{SIGN_IN_PATH}?redirect_url={quote(path, safe='/')}",
        status_code=302,
    )


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Redirect cookie-less requests for protected paths to the sign-in page."""

    def __init__(self, app: ASGIApp, protected_prefixes: Sequence[str] = ("/prompts", "/teams")):
        super().__init__(app)
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path

        if is_protected(path, self.protected_prefixes) and not request.cookies.get(SESSION_COOKIE_NAME):
            logger.debug(f"Redirecting unauthenticated request for {path}")
            return sign_in_redirect(path)

        response = await call_next(request)

        if IMAGE_PATH.search(path):
            response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
            response.headers["X-Content-Type-Options"] = "nosniff"

        if path.startswith("/api/"):
            for name, value in API_HEADERS.items():
                response.headers[name] = value

        return response
