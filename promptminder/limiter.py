"""Shared rate limiter for routes that trigger outbound email."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from promptminder.config import get_settings


limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


def email_rate_limit() -> str:
    return get_settings().email_rate_limit
