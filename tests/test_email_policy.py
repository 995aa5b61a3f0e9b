"""Tests for registration email-domain policy and list parsing."""

import pytest

from promptminder.auth.email_policy import EmailDomainPolicy
from promptminder.config import Settings, parse_list


def test_default_domain():
    policy = EmailDomainPolicy()
    assert policy.domains == ("dev.zo",)
    assert policy.is_allowed("someone@dev.zo")
    assert policy.is_allowed("  Someone@DEV.ZO ")
    assert not policy.is_allowed("someone@gmail.com")


@pytest.mark.parametrize("email", [None, "", "no-at-sign", "trailing@", 42])
def test_malformed_emails_are_rejected(email):
    assert EmailDomainPolicy().is_allowed(email) is False


def test_subdomains_are_not_implicitly_allowed():
    assert not EmailDomainPolicy(("dev.zo",)).is_allowed("x@mail.dev.zo")


def test_from_settings_strips_at_prefix():
    policy = EmailDomainPolicy.from_settings(Settings(allowed_email_domains="@a.io, b.io"))
    assert policy.domains == ("a.io", "b.io")


def test_from_settings_falls_back_to_default():
    policy = EmailDomainPolicy.from_settings(Settings(allowed_email_domains=" , "))
    assert policy.domains == ("dev.zo",)


def test_restriction_message_singular_and_plural():
    assert EmailDomainPolicy(("dev.zo",)).restriction_message() == (
        "Only @dev.zo email addresses may register"
    )
    assert EmailDomainPolicy(("a.io", "b.io")).restriction_message() == (
        "Only email addresses from these domains may register: @a.io, @b.io"
    )


def test_parse_list_separators_and_dedupe():
    assert parse_list("B, a;\nb ;; c") == ("b", "a", "c")
    assert parse_list("") == ()
    assert parse_list(None) == ()


def test_secure_cookies_follow_public_url():
    assert Settings(public_url="https://app.example").secure_cookies is True
    assert Settings(public_url="http://localhost:3000").secure_cookies is False
    assert Settings(public_url="http://localhost:3000", cookie_secure=True).secure_cookies is True
