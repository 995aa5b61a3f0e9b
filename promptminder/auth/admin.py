"""Admin privilege resolution.

A user is an admin when either signal holds:

1. the persisted ``is_admin`` flag on their record, or
2. their email matches an entry of the ``ADMIN_USERNAMES`` allow-list.

An entry containing ``@`` must equal the email exactly. A bare entry matches
any email whose local part equals it, whatever the domain (``alice`` matches
``alice@anything.io``). Operators can grant admin through configuration
without touching the database.

Super-admin is the allow-list signal alone. It gates promoting and demoting
other users and invalidating their sessions.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from promptminder.auth.identity import Identity
from promptminder.config import Settings, parse_list


@dataclass(frozen=True)
class AdminAllowList:
    entries: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminAllowList":
        return cls(entries=parse_list(settings.admin_usernames))

    @classmethod
    def of(cls, entries: Iterable[str]) -> "AdminAllowList":
        normalized = tuple(e.strip().lower() for e in entries if e and e.strip())
        return cls(entries=normalized)

    def matches(self, email: Optional[str]) -> bool:
        if not email:
            return False
        candidate = email.strip().lower()
        for entry in self.entries:
            if "@" in entry:
                if candidate == entry:
                    return True
            elif candidate.startswith(f"{entry}@"):
                return True
        return False


@dataclass(frozen=True)
class AdminAuthorizer:
    allow_list: AdminAllowList

    def is_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        return identity.is_admin or self.allow_list.matches(identity.email)

    def is_super_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        return self.allow_list.matches(identity.email)
