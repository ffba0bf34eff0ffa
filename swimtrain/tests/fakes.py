"""
Test doubles.
"""

import uuid
from typing import Dict, List, Optional

from swimtrain.services.identity_provider import (
    IdentityProvider,
    ProviderAuthError,
    ProviderError,
    ProviderUser,
    ProviderUserExistsError,
)


class InMemoryIdentityProvider(IdentityProvider):
    """
    Identity provider backed by dicts.

    ``add_account`` seeds an account directly; ``issue_access_token`` creates
    an OAuth-style token for get_user. Set ``fail`` to make every call raise
    ProviderError. Calls are recorded in ``calls``.
    """

    def __init__(self):
        self.accounts: Dict[str, Dict] = {}  # by id
        self.access_tokens: Dict[str, str] = {}  # token -> id
        self.calls: List[tuple] = []
        self.fail = False

    def add_account(
        self,
        email: str,
        password: str,
        user_id: Optional[str] = None,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> ProviderUser:
        user_id = user_id or str(uuid.uuid4())
        self.accounts[user_id] = {
            "id": user_id,
            "email": email.lower(),
            "password": password,
            "full_name": full_name,
            "avatar_url": avatar_url,
        }
        return self._to_user(self.accounts[user_id])

    def issue_access_token(self, user_id: str) -> str:
        token = f"access-{uuid.uuid4().hex}"
        self.access_tokens[token] = user_id
        return token

    def password_of(self, user_id: str) -> str:
        return self.accounts[user_id]["password"]

    def _by_email(self, email: str) -> Optional[Dict]:
        email = email.lower()
        for account in self.accounts.values():
            if account["email"] == email:
                return account
        return None

    @staticmethod
    def _to_user(account: Dict) -> ProviderUser:
        return ProviderUser(
            id=account["id"],
            email=account["email"],
            full_name=account["full_name"],
            avatar_url=account["avatar_url"],
        )

    def _record(self, *call):
        self.calls.append(call)
        if self.fail:
            raise ProviderError("provider unavailable")

    async def create_user(self, email: str, password: str, email_confirm: bool = True) -> ProviderUser:
        self._record("create_user", email)
        if self._by_email(email):
            raise ProviderUserExistsError(f"Email already registered: {email}")
        return self.add_account(email, password)

    async def sign_in(self, email: str, password: str) -> ProviderUser:
        self._record("sign_in", email)
        account = self._by_email(email)
        if account is None or account["password"] != password:
            raise ProviderAuthError("Invalid login credentials")
        return self._to_user(account)

    async def get_user(self, access_token: str) -> ProviderUser:
        self._record("get_user", access_token)
        user_id = self.access_tokens.get(access_token)
        if user_id is None:
            raise ProviderAuthError("Access token rejected")
        return self._to_user(self.accounts[user_id])

    async def update_user(
        self, user_id: str, password: Optional[str] = None, email: Optional[str] = None
    ) -> ProviderUser:
        self._record("update_user", user_id)
        account = self.accounts.get(user_id)
        if account is None:
            raise ProviderError(f"update_user failed: unknown user {user_id}")
        if password is not None:
            account["password"] = password
        if email is not None:
            account["email"] = email.lower()
        return self._to_user(account)

    async def list_users(self, page: int = 1, per_page: int = 100) -> List[ProviderUser]:
        self._record("list_users", page)
        accounts = list(self.accounts.values())
        start = (page - 1) * per_page
        return [self._to_user(a) for a in accounts[start:start + per_page]]
