"""Claims carried by the hosted provider's access token.

Two readings of the same token are kept apart on purpose:

- ``read_display_claims`` only base64url-decodes the payload. Its result is
  fine for showing a name and avatar, never for deciding privileges.
- ``verify_bearer_claims`` checks the HS256 signature, expiry and audience.
  Only ``VerifiedClaims`` can be turned into an authenticated identity.
"""

import logging
from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"

ALGORITHM = "HS256"
AUDIENCE = "authenticated"


class DisplayClaims(BaseModel):
    """Unverified claims, for display only."""
    sub: Optional[str] = None
    email: str
    display_name: str
    avatar_url: Optional[str] = None


class VerifiedClaims(BaseModel):
    """Claims whose signature has been checked."""
    sub: str
    email: str
    display_name: str
    avatar_url: Optional[str] = None
    is_admin: bool = False


def _metadata(payload: dict[str, Any], key: str = "user_metadata") -> dict[str, Any]:
    metadata = payload.get(key)
    return metadata if isinstance(metadata, dict) else {}


def _display_name(email: str, metadata: dict[str, Any]) -> str:
    return metadata.get("display_name") or email.split("@")[0]


def read_display_claims(token: Optional[str]) -> Optional[DisplayClaims]:
    """Decode the token payload without verifying its signature."""
    if not token:
        return None

    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.debug(f"Undecodable bearer token: {e}")
        return None

    email = payload.get("email")
    if not email or not isinstance(email, str):
        return None

    metadata = _metadata(payload)
    return DisplayClaims(
        sub=payload.get("sub"),
        email=email,
        display_name=_display_name(email, metadata),
        avatar_url=metadata.get("avatar_url"),
    )


def claims_from_payload(payload: dict[str, Any]) -> Optional[VerifiedClaims]:
    """Build VerifiedClaims from a payload already validated upstream."""
    sub = payload.get("sub") or payload.get("id")
    email = payload.get("email")
    if not sub or not email:
        return None

    metadata = _metadata(payload)
    return VerifiedClaims(
        sub=str(sub),
        email=email,
        display_name=_display_name(email, metadata),
        avatar_url=metadata.get("avatar_url"),
        # user_metadata is writable by the user; only app_metadata is trusted.
        is_admin=_metadata(payload, "app_metadata").get("is_admin") is True,
    )


def verify_bearer_claims(token: Optional[str], secret: Optional[str]) -> Optional[VerifiedClaims]:
    """Verify the token signature and return its claims, or None."""
    if not token or not secret:
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], audience=AUDIENCE)
    except JWTError as e:
        logger.warning(f"Invalid bearer token: {e}")
        return None

    return claims_from_payload(payload)
