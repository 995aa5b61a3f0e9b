"""Map a request to an authenticated identity.

Route handlers depend on the ``IdentityResolver`` capability, not on a
particular mechanism. Two strategies exist:

- ``LocalSessionResolver`` looks the ``session_token`` cookie up in the
  session store.
- ``BearerCookieResolver`` reads the provider's ``sb-access-token`` cookie and
  only trusts it after signature verification (locally with the provider's
  JWT secret, or by asking the provider).

``CompositeIdentityResolver`` tries strategies in order. Every failure path
resolves to ``None`` so callers treat the request as unauthenticated.
"""

import logging
from typing import Literal, Optional, Protocol, Sequence

from pydantic import BaseModel
from starlette.requests import Request

from promptminder.auth.bearer import (
    ACCESS_TOKEN_COOKIE,
    VerifiedClaims,
    claims_from_payload,
    verify_bearer_claims,
)
from promptminder.auth.provider import AuthProvider, ProviderError
from promptminder.auth.session import SESSION_COOKIE_NAME, resolve_session
from promptminder.auth.users import User
from promptminder.config import Settings

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """The authenticated principal behind a request."""
    id: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False  # persisted flag only; see AdminAuthorizer
    source: Literal["session", "bearer"]

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name or user.username,
            avatar_url=user.avatar_url,
            is_admin=user.is_admin,
            source="session",
        )

    @classmethod
    def from_claims(cls, claims: VerifiedClaims) -> "Identity":
        return cls(
            id=claims.sub,
            email=claims.email,
            display_name=claims.display_name,
            avatar_url=claims.avatar_url,
            is_admin=claims.is_admin,
            source="bearer",
        )


class IdentityResolver(Protocol):
    async def resolve(self, request: Request) -> Optional[Identity]:
        ...


class LocalSessionResolver:
    """Resolve the opaque local session cookie."""

    async def resolve(self, request: Request) -> Optional[Identity]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None
        user = await resolve_session(token)
        return Identity.from_user(user) if user else None


class BearerCookieResolver:
    """Resolve the hosted provider's access-token cookie."""

    def __init__(self, settings: Settings, provider: Optional[AuthProvider] = None):
        self.settings = settings
        self.provider = provider or AuthProvider(settings)

    async def verify(self, token: str) -> Optional[VerifiedClaims]:
        if self.settings.supabase_jwt_secret:
            return verify_bearer_claims(token, self.settings.supabase_jwt_secret)

        if not self.provider.configured:
            return None

        try:
            payload = await self.provider.get_user(token)
        except ProviderError as e:
            logger.info(f"Provider rejected bearer token: {e}")
            return None
        return claims_from_payload(payload)

    async def resolve(self, request: Request) -> Optional[Identity]:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            return None
        claims = await self.verify(token)
        return Identity.from_claims(claims) if claims else None


class CompositeIdentityResolver:
    """Try each strategy in order and return the first identity found."""

    def __init__(self, strategies: Sequence[IdentityResolver]):
        self.strategies = list(strategies)

    async def resolve(self, request: Request) -> Optional[Identity]:
        for strategy in self.strategies:
            try:
                identity = await strategy.resolve(request)
            except Exception as e:
                logger.error(
                    f"Identity strategy {type(strategy).__name__} failed: {e}"
                )
                continue
            if identity is not None:
                return identity
        return None
