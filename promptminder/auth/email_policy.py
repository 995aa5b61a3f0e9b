"""Restrict registration to configured email domains."""

from dataclasses import dataclass
from typing import Optional

from promptminder.config import Settings, parse_list

DEFAULT_ALLOWED_DOMAINS = ("dev.zo",)


@dataclass(frozen=True)
class EmailDomainPolicy:
    domains: tuple[str, ...] = DEFAULT_ALLOWED_DOMAINS

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailDomainPolicy":
        domains = tuple(d.lstrip("@") for d in parse_list(settings.allowed_email_domains))
        return cls(domains=domains or DEFAULT_ALLOWED_DOMAINS)

    def is_allowed(self, email: Optional[str]) -> bool:
        if not email or not isinstance(email, str):
            return False

        _, sep, domain = email.strip().lower().partition("@")
        if not sep or not domain:
            return False
        return domain in self.domains

    def restriction_message(self) -> str:
        if len(self.domains) == 1:
            return f"Only @{self.domains[0]} email addresses may register"
        listed = ", ".join(f"@{d}" for d in self.domains)
        return f"Only email addresses from these domains may register: {listed}"
