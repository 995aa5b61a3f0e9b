"""Tests for admin privilege resolution and the FastAPI guards."""

import pytest

from promptminder.auth.admin import AdminAllowList, AdminAuthorizer
from promptminder.auth.deps import get_current_identity, require_admin, require_super_admin
from promptminder.auth.identity import Identity
from promptminder.auth.policy import AuthPolicy
from promptminder.config import Settings
from promptminder.errors import Forbidden, Unauthenticated


def _identity(email: str, is_admin: bool = False) -> Identity:
    return Identity(id=email, email=email, is_admin=is_admin, source="session")


def _policy(entries: str) -> AuthPolicy:
    return AuthPolicy.from_settings(Settings(admin_usernames=entries))


def test_bare_entry_matches_any_domain():
    allow = AdminAllowList.of(["alice"])
    assert allow.matches("alice@anything.io")
    assert allow.matches("ALICE@Dev.Zo")
    assert not allow.matches("alicex@dev.zo")
    assert not allow.matches("malice@dev.zo")


def test_full_email_entry_matches_exactly():
    allow = AdminAllowList.of(["bob@corp.io"])
    assert allow.matches("bob@corp.io")
    assert allow.matches(" Bob@Corp.IO ")
    assert not allow.matches("bob@other.io")
    assert not allow.matches("bob@corp.io.evil")


def test_empty_allow_list_matches_nothing():
    allow = AdminAllowList.of([])
    assert not allow.matches("anyone@dev.zo")
    assert not AdminAllowList.of(["root"]).matches(None)


def test_allow_list_parsed_from_settings():
    """Entries may be separated by commas, semicolons or newlines."""
    allow = AdminAllowList.from_settings(Settings(admin_usernames="Root; boss@dev.zo\nops,,root"))
    assert allow.entries == ("root", "boss@dev.zo", "ops")


def test_admin_is_flag_or_allow_list():
    authorizer = AdminAuthorizer(AdminAllowList.of(["root"]))

    assert authorizer.is_admin(_identity("root@dev.zo"))
    assert authorizer.is_admin(_identity("flagged@dev.zo", is_admin=True))
    assert not authorizer.is_admin(_identity("plain@dev.zo"))
    assert not authorizer.is_admin(None)


def test_super_admin_ignores_persisted_flag():
    authorizer = AdminAuthorizer(AdminAllowList.of(["root"]))

    assert authorizer.is_super_admin(_identity("root@dev.zo"))
    assert not authorizer.is_super_admin(_identity("flagged@dev.zo", is_admin=True))
    assert not authorizer.is_super_admin(None)


@pytest.mark.asyncio
async def test_get_current_identity_requires_identity():
    with pytest.raises(Unauthenticated):
        await get_current_identity(None)


@pytest.mark.asyncio
async def test_require_admin_dependency():
    policy = _policy("root")

    admin = _identity("root@dev.zo")
    assert await require_admin(admin, policy) is admin

    flagged = _identity("flag@dev.zo", is_admin=True)
    assert await require_admin(flagged, policy) is flagged

    with pytest.raises(Forbidden):
        await require_admin(_identity("user@dev.zo"), policy)


@pytest.mark.asyncio
async def test_require_super_admin_dependency():
    policy = _policy("root")

    root = _identity("root@dev.zo")
    assert await require_super_admin(root, policy) is root

    with pytest.raises(Forbidden):
        await require_super_admin(_identity("flag@dev.zo", is_admin=True), policy)
