"""Authentication module."""

from promptminder.auth.deps import (
    get_current_identity,
    get_current_identity_optional,
    require_admin,
    require_super_admin,
)
from promptminder.auth.identity import Identity

__all__ = [
    "Identity",
    "get_current_identity",
    "get_current_identity_optional",
    "require_admin",
    "require_super_admin",
]
