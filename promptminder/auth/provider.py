"""Client for the hosted auth provider (Supabase GoTrue REST API)."""

import logging
from typing import Any, Optional

import httpx

from promptminder.config import Settings, get_settings
from promptminder.errors import RateLimited, UpstreamFailure

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A non-success answer from the provider."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or "rate limit" in self.message.lower()


class ProviderNotConfigured(UpstreamFailure):
    default_detail = "Authentication provider is not configured"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(
            body.get("msg")
            or body.get("error_description")
            or body.get("message")
            or body.get("error")
            or body
        )
    return str(body)


class AuthProvider:
    """Thin async wrapper around the provider endpoints this app needs."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return bool(self.settings.supabase_url and self.settings.supabase_anon_key)

    @property
    def admin_configured(self) -> bool:
        return bool(self.settings.supabase_url and self.settings.supabase_service_role_key)

    def _url(self, path: str) -> str:
        return f"{self.settings.supabase_url.rstrip('/')}/auth/v1{path}"

    def _headers(self, bearer: Optional[str] = None, admin: bool = False) -> dict[str, str]:
        key = self.settings.supabase_service_role_key if admin else self.settings.supabase_anon_key
        headers = {"apikey": key or "", "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {bearer or key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        bearer: Optional[str] = None,
        admin: bool = False,
    ) -> dict[str, Any]:
        if not (self.admin_configured if admin else self.configured):
            raise ProviderNotConfigured()

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method,
                    self._url(path),
                    json=json,
                    params=params,
                    headers=self._headers(bearer, admin),
                )
        except httpx.HTTPError as e:
            raise ProviderError(503, f"transport error: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(response.status_code, _error_message(response))

        if not response.content:
            return {}
        return response.json()

    async def send_magic_link(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/otp",
            json={"email": email, "create_user": True},
            params={"redirect_to": redirect_to},
        )

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST", "/recover", json={"email": email}, params={"redirect_to": redirect_to}
        )

    async def verify_token_hash(self, token_hash: str, otp_type: str) -> dict[str, Any]:
        """Exchange an emailed token hash for a session."""
        return await self._request(
            "POST", "/verify", json={"type": otp_type, "token_hash": token_hash}
        )

    async def refresh_session(self, refresh_token: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        """Ask the provider to validate an access token and return its user."""
        return await self._request("GET", "/user", bearer=access_token)

    async def update_password(
        self, access_token: str, new_password: str, metadata: Optional[dict] = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"password": new_password}
        if metadata:
            body["data"] = metadata
        return await self._request("PUT", "/user", json=body, bearer=access_token)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", bearer=access_token)

    async def set_user_admin(self, user_id: str, is_admin: bool) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/admin/users/{user_id}",
            json={"app_metadata": {"is_admin": is_admin}},
            admin=True,
        )


def raise_for_provider_error(error: ProviderError, action: str) -> None:
    """Log a provider failure and re-raise it as a user-safe error."""
    logger.error(f"Auth provider {action} failed: {error}")
    if error.is_rate_limited:
        raise RateLimited() from error
    raise UpstreamFailure() from error


def get_auth_provider() -> AuthProvider:
    return AuthProvider()
