"""Public client configuration."""

from fastapi import APIRouter, Depends

from promptminder.auth.policy import AuthPolicy, get_auth_policy

router = APIRouter(prefix="/config", tags=["config"])


@router.get("")
async def get_public_config(policy: AuthPolicy = Depends(get_auth_policy)):
    """Settings the sign-up form needs before the user is known."""
    domains = policy.email_domains
    return {
        "allowedEmailDomains": list(domains.domains),
        "restrictionMessage": domains.restriction_message(),
    }
