"""FastAPI dependencies for identity and privilege checks."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from promptminder.auth.identity import (
    BearerCookieResolver,
    CompositeIdentityResolver,
    Identity,
    IdentityResolver,
    LocalSessionResolver,
)
from promptminder.auth.policy import AuthPolicy, get_auth_policy
from promptminder.config import get_settings
from promptminder.errors import Forbidden, Unauthenticated


@lru_cache()
def get_identity_resolver() -> IdentityResolver:
    """Local sessions first, then the provider's bearer cookie."""
    return CompositeIdentityResolver(
        [LocalSessionResolver(), BearerCookieResolver(get_settings())]
    )


async def get_current_identity_optional(
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[Identity]:
    return await resolver.resolve(request)


async def get_current_identity(
    identity: Optional[Identity] = Depends(get_current_identity_optional),
) -> Identity:
    """Require an authenticated identity, raising 401 otherwise."""
    if identity is None:
        raise Unauthenticated()
    return identity


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    policy: AuthPolicy = Depends(get_auth_policy),
) -> Identity:
    """Require admin privileges (persisted flag or allow-list)."""
    if not policy.admin.is_admin(identity):
        raise Forbidden("Admin privileges required")
    return identity


async def require_super_admin(
    identity: Identity = Depends(get_current_identity),
    policy: AuthPolicy = Depends(get_auth_policy),
) -> Identity:
    """Require allow-list membership; the persisted flag is not enough."""
    if not policy.admin.is_super_admin(identity):
        raise Forbidden("Only super admins listed in ADMIN_USERNAMES may do this")
    return identity
