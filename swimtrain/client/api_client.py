"""
Async HTTP client for the SwimTrain API.

Authentication calls feed the returned token into the AuthSession; every
other call sends the session's bearer header. Non-2xx responses raise
ApiError carrying the server's error message.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from swimtrain.client.session_context import AuthSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in data.items()}


class SwimTrainClient:
    """Client for every API endpoint, bound to one AuthSession."""

    def __init__(
        self,
        base_url: str,
        auth: AuthSession,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.auth = auth
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SwimTrainClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.auth.auth_headers())
        resp = await self._client.request(method, path, headers=headers, **kwargs)
        if resp.is_success:
            return resp.json() if resp.content else None

        try:
            message = resp.json().get("error") or resp.reason_phrase
        except (ValueError, AttributeError):
            message = resp.text or resp.reason_phrase
        logger.debug(f"{method} {path} failed: {resp.status_code} {message}")
        raise ApiError(resp.status_code, message)

    # Auth

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Dict:
        body = {"email": email, "password": password, "username": username}
        if first_name is not None:
            body["firstName"] = first_name
        if last_name is not None:
            body["lastName"] = last_name
        data = await self._request("POST", "/api/auth/register", json=body)
        self.auth.start(data["token"])
        return data

    async def login(self, email: str, password: str) -> Dict:
        data = await self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.auth.start(data["token"])
        return data

    async def google_auth(self, access_token: str) -> Dict:
        data = await self._request("POST", "/api/auth/google", json={"token": access_token})
        self.auth.start(data["token"])
        return data

    async def logout(self) -> None:
        """Tell the server, then discard the token locally whatever the server said."""
        try:
            if self.auth.is_authenticated:
                await self._request("POST", "/api/auth/logout")
        finally:
            self.auth.end()

    async def get_profile(self) -> Dict:
        return (await self._request("GET", "/api/auth/profile"))["user"]

    async def update_profile(
        self,
        username: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Dict:
        body = {"username": username, "firstName": first_name, "lastName": last_name, "avatar": avatar}
        return (await self._request("PUT", "/api/auth/profile", json=body))["user"]

    async def change_password(self, current_password: str, new_password: str) -> None:
        await self._request(
            "PUT",
            "/api/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    # Sessions

    async def list_sessions(self) -> List[Dict]:
        return (await self._request("GET", "/api/sessions"))["sessions"]

    async def create_session(self, session: Dict[str, Any]) -> Dict:
        return (await self._request("POST", "/api/sessions", json=_jsonable(session)))["session"]

    async def get_session(self, session_id: str) -> Dict:
        return (await self._request("GET", f"/api/sessions/{session_id}"))["session"]

    async def update_session(self, session_id: str, changes: Dict[str, Any]) -> Dict:
        return (await self._request("PUT", f"/api/sessions/{session_id}", json=_jsonable(changes)))["session"]

    async def delete_session(self, session_id: str) -> None:
        await self._request("DELETE", f"/api/sessions/{session_id}")

    async def get_user_stats(self) -> Dict:
        return await self._request("GET", "/api/sessions/stats")

    # Teams

    async def get_team(self) -> Optional[Dict]:
        return (await self._request("GET", "/api/teams"))["team"]

    async def create_team(self, name: str, description: Optional[str] = None, avatar: Optional[str] = None) -> Dict:
        body = {"name": name, "description": description, "avatar": avatar}
        return (await self._request("POST", "/api/teams", json=body))["team"]

    async def join_team(self, invite_code: str) -> Dict:
        return (await self._request("POST", "/api/teams/join", json={"inviteCode": invite_code}))["team"]

    async def leave_team(self) -> None:
        await self._request("DELETE", "/api/teams/leave")

    async def get_team_stats(self) -> Dict:
        return await self._request("GET", "/api/teams/stats")

    async def get_leaderboard(self, period: str = "week") -> List[Dict]:
        return (await self._request("GET", "/api/teams/leaderboard", params={"period": period}))["entries"]

    async def set_member_role(self, user_id: str, role: str) -> Dict:
        return (await self._request("PUT", f"/api/teams/members/{user_id}/role", json={"role": role}))["team"]

    # Users

    async def get_member_profile(self, user_id: str) -> Dict:
        return (await self._request("GET", f"/api/users/{user_id}/profile"))["profile"]

    async def health(self) -> Dict:
        return await self._request("GET", "/api/health")
