"""Application configuration management."""

import re
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_path: str = "/data/promptminder.db"

    # Server
    public_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("PUBLIC_URL", "NEXT_PUBLIC_BASE_URL"),
    )
    log_level: str = "info"
    cookie_secure: Optional[bool] = None  # Derived from public_url if not set

    # Sessions and invitations
    session_expire_days: int = 7
    invitation_expire_days: int = 7
    invite_only_registration: bool = False
    protected_path_prefixes: str = "/prompts,/teams"

    # Authorization
    admin_usernames: str = ""
    allowed_email_domains: str = Field(
        default="dev.zo",
        validation_alias=AliasChoices(
            "NEXT_PUBLIC_ALLOWED_EMAIL_DOMAINS", "ALLOWED_EMAIL_DOMAINS"
        ),
    )

    # Signing key for locally issued tokens (offline tooling only)
    jwt_secret: Optional[str] = None

    # Hosted auth provider
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None

    # Outbound email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_address: Optional[str] = None

    # Rate limiting
    rate_limit_enabled: bool = True
    email_rate_limit: str = "5/minute"

    # Retention
    cleanup_interval_minutes: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def secure_cookies(self) -> bool:
        """Whether auth cookies carry the Secure attribute."""
        if self.cookie_secure is not None:
            return self.cookie_secure
        return self.public_url.lower().startswith("https://")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def parse_list(raw: Optional[str]) -> tuple[str, ...]:
    """Parse comma/newline/semicolon separated values, lowercased, order kept."""
    if not raw:
        return ()

    values: list[str] = []
    for token in re.split(r"[,\n;]+", raw):
        value = token.strip().lower()
        if value and value not in values:
            values.append(value)
    return tuple(values)
