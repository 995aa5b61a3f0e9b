"""Retention cleanup job."""

import logging

from promptminder.auth.invitations import expire_stale_invitations
from promptminder.auth.session import purge_expired_sessions

logger = logging.getLogger(__name__)


async def run_retention_cleanup() -> dict:
    """
    Run retention cleanup.

    - Sessions past their expiry are deleted
    - Pending invitations past their expiry are marked expired
    """
    summary = {
        "expired_sessions": await purge_expired_sessions(),
        "expired_invitations": await expire_stale_invitations(),
    }

    logger.info(f"Retention cleanup completed: {summary}")
    return summary
