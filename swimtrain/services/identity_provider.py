"""
External identity provider capability.

The provider owns accounts and passwords; the local users table owns
application data. ``IdentityProvider`` is the only surface the rest of the
backend sees. ``SupabaseIdentityProvider`` implements it against the Supabase
Auth (GoTrue) REST API.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class ProviderUser:
    """A provider account: stable subject id plus the profile claims we use."""

    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProviderError(Exception):
    """The provider call failed (network, configuration or unexpected response)."""


class ProviderUserExistsError(ProviderError):
    """create_user was refused because the email is already registered."""


class ProviderAuthError(ProviderError):
    """Credentials or access token were rejected."""


class IdentityProvider(ABC):
    """Capability surface of the external identity provider."""

    @abstractmethod
    async def create_user(
        self, email: str, password: str, email_confirm: bool = True
    ) -> ProviderUser:
        """Create an account. Raises ProviderUserExistsError if the email is taken."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> ProviderUser:
        """Verify email/password. Raises ProviderAuthError on rejection."""

    @abstractmethod
    async def get_user(self, access_token: str) -> ProviderUser:
        """Resolve an access token (e.g. from Google OAuth) to its account."""

    @abstractmethod
    async def update_user(
        self, user_id: str, password: Optional[str] = None, email: Optional[str] = None
    ) -> ProviderUser:
        """Administrative update of an account."""

    @abstractmethod
    async def list_users(self, page: int = 1, per_page: int = 100) -> List[ProviderUser]:
        """One page of accounts, for administrative reconciliation."""


class SupabaseIdentityProvider(IdentityProvider):
    """Supabase Auth (GoTrue) over REST."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        anon_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.service_role_key = service_role_key
        self.anon_key = anon_key or service_role_key
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
        api_key: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {
            "apikey": api_key or self.service_role_key,
            "Authorization": f"Bearer {bearer or self.service_role_key}",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.url, timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.request(method, path, headers=headers, json=json, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Identity provider request failed: {e}") from e

    @staticmethod
    def _error_details(resp: httpx.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _raise_for_status(self, resp: httpx.Response, operation: str) -> None:
        if resp.is_success:
            return
        details = self._error_details(resp)
        message = details.get("msg") or details.get("error_description") or resp.text
        logger.warning(f"Identity provider {operation} failed: {resp.status_code} {message}")
        raise ProviderError(f"{operation} failed with status {resp.status_code}")

    @staticmethod
    def _to_provider_user(data: Dict[str, Any]) -> ProviderUser:
        metadata = data.get("user_metadata") or {}
        return ProviderUser(
            id=data["id"],
            email=(data.get("email") or "").strip().lower(),
            full_name=metadata.get("full_name") or metadata.get("name"),
            avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
        )

    async def create_user(
        self, email: str, password: str, email_confirm: bool = True
    ) -> ProviderUser:
        resp = await self._request(
            "POST",
            "/auth/v1/admin/users",
            json={"email": email, "password": password, "email_confirm": email_confirm},
        )
        if resp.status_code in (400, 422):
            details = self._error_details(resp)
            if details.get("error_code") == "email_exists":
                raise ProviderUserExistsError(f"Email already registered: {email}")
        self._raise_for_status(resp, "create_user")
        return self._to_provider_user(resp.json())

    async def sign_in(self, email: str, password: str) -> ProviderUser:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            api_key=self.anon_key,
            bearer=self.anon_key,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if resp.status_code in (400, 401):
            raise ProviderAuthError("Invalid login credentials")
        self._raise_for_status(resp, "sign_in")
        return self._to_provider_user(resp.json()["user"])

    async def get_user(self, access_token: str) -> ProviderUser:
        resp = await self._request(
            "GET", "/auth/v1/user", api_key=self.anon_key, bearer=access_token
        )
        if resp.status_code in (401, 403):
            raise ProviderAuthError("Access token rejected")
        self._raise_for_status(resp, "get_user")
        return self._to_provider_user(resp.json())

    async def update_user(
        self, user_id: str, password: Optional[str] = None, email: Optional[str] = None
    ) -> ProviderUser:
        attributes: Dict[str, Any] = {}
        if password is not None:
            attributes["password"] = password
        if email is not None:
            attributes["email"] = email
        resp = await self._request("PUT", f"/auth/v1/admin/users/{user_id}", json=attributes)
        self._raise_for_status(resp, "update_user")
        return self._to_provider_user(resp.json())

    async def list_users(self, page: int = 1, per_page: int = 100) -> List[ProviderUser]:
        resp = await self._request(
            "GET", "/auth/v1/admin/users", params={"page": page, "per_page": per_page}
        )
        self._raise_for_status(resp, "list_users")
        return [self._to_provider_user(u) for u in resp.json().get("users", [])]


_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """
    Get the global identity provider, built from the environment on first use.

    Raises:
        ProviderError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing
    """
    global _identity_provider
    if _identity_provider is None:
        url = os.getenv("SUPABASE_URL")
        service_role_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not url or not service_role_key:
            raise ProviderError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _identity_provider = SupabaseIdentityProvider(
            url=url,
            service_role_key=service_role_key,
            anon_key=os.getenv("SUPABASE_ANON_KEY"),
            timeout=float(os.getenv("IDENTITY_PROVIDER_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
        )
    return _identity_provider
