"""
Client-side session context.

Tracks whether the user has never logged in, is logged in, or explicitly
logged out, and keeps the session token in pluggable secure storage. Only a
LOGGED_IN state with a stored token resumes automatically on restart; an
explicit logout is remembered so the app does not sign the user back in.
"""

import enum
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

TOKEN_KEY = "swimtrain.auth_token"
STATE_KEY = "swimtrain.auth_state"


class AuthState(str, enum.Enum):
    NEVER_LOGGED_IN = "NEVER_LOGGED_IN"
    LOGGED_IN = "LOGGED_IN"
    EXPLICITLY_LOGGED_OUT = "EXPLICITLY_LOGGED_OUT"


class SecureStorage(ABC):
    """Key/value storage for secrets."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStorage(SecureStorage):
    """Process-local storage; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage(SecureStorage):
    """
    JSON file readable only by the owner (mode 0600).

    An unreadable or corrupt file is treated as empty.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(data, f)
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class AuthSession:
    """Session token and auth state, persisted through a SecureStorage."""

    def __init__(self, storage: SecureStorage):
        self.storage = storage
        self.token: Optional[str] = None
        self.state = AuthState.NEVER_LOGGED_IN

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.LOGGED_IN and self.token is not None

    def start(self, token: str) -> None:
        """Record a successful login or registration."""
        if not token:
            raise ValueError("token is required")
        self.token = token
        self.state = AuthState.LOGGED_IN
        self.storage.set(TOKEN_KEY, token)
        self.storage.set(STATE_KEY, self.state.value)

    def end(self) -> None:
        """Explicit logout: discard the token and remember the choice."""
        self.token = None
        self.state = AuthState.EXPLICITLY_LOGGED_OUT
        self.storage.delete(TOKEN_KEY)
        self.storage.set(STATE_KEY, self.state.value)

    def restore(self) -> AuthState:
        """
        Load the persisted state on startup.

        A LOGGED_IN state without a token is reset to NEVER_LOGGED_IN; a token
        left behind in any other state is deleted.
        """
        raw_state = self.storage.get(STATE_KEY)
        try:
            state = AuthState(raw_state) if raw_state else AuthState.NEVER_LOGGED_IN
        except ValueError:
            logger.warning(f"Unknown stored auth state {raw_state!r}, resetting")
            state = AuthState.NEVER_LOGGED_IN

        token = self.storage.get(TOKEN_KEY)

        if state == AuthState.LOGGED_IN and not token:
            state = AuthState.NEVER_LOGGED_IN
            self.storage.set(STATE_KEY, state.value)
        elif state != AuthState.LOGGED_IN and token:
            self.storage.delete(TOKEN_KEY)
            token = None

        self.state = state
        self.token = token if state == AuthState.LOGGED_IN else None
        return self.state

    def should_auto_resume(self) -> bool:
        return self.is_authenticated

    def auth_headers(self) -> Dict[str, str]:
        if not self.is_authenticated:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
