"""Process-wide authorization configuration, built once at startup."""

from dataclasses import dataclass
from functools import lru_cache

from promptminder.auth.admin import AdminAllowList, AdminAuthorizer
from promptminder.auth.email_policy import EmailDomainPolicy
from promptminder.config import Settings, get_settings


@dataclass(frozen=True)
class AuthPolicy:
    admin: AdminAuthorizer
    email_domains: EmailDomainPolicy
    protected_prefixes: tuple[str, ...]

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthPolicy":
        prefixes = tuple(
            p.strip() for p in settings.protected_path_prefixes.split(",") if p.strip()
        )
        return cls(
            admin=AdminAuthorizer(AdminAllowList.from_settings(settings)),
            email_domains=EmailDomainPolicy.from_settings(settings),
            protected_prefixes=prefixes,
        )


@lru_cache()
def get_auth_policy() -> AuthPolicy:
    """Get the cached policy derived from settings."""
    return AuthPolicy.from_settings(get_settings())
