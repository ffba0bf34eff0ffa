"""
Authentication helpers: session tokens, email normalization and
username derivation.

Passwords never pass through here; the identity provider is the only
password authority.
"""

import logging
import os
import re
from datetime import timedelta
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from jose import JWTError, jwt

from swimtrain.utils.constants import MIN_USERNAME_LENGTH, SESSION_TOKEN_EXPIRATION_DAYS
from swimtrain.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_SECRET = os.getenv("JWT_SECRET", "")
if not JWT_SECRET:
    logger.warning("JWT_SECRET not set - using an insecure development secret")
    JWT_SECRET = "swimtrain-development-secret-change-me"

TOKEN_EXPIRATION_DAYS = int(
    os.getenv("SESSION_TOKEN_EXPIRATION_DAYS", str(SESSION_TOKEN_EXPIRATION_DAYS))
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_DISALLOWED = re.compile(r"[^a-z0-9_.]")


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed session token.

    Args:
        data: Claims to embed (must include user_id)
        expires_delta: Lifetime override; defaults to TOKEN_EXPIRATION_DAYS

    Returns:
        Encoded JWT
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(days=TOKEN_EXPIRATION_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """Decode a session token. Returns None if it is malformed, tampered or expired."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def issue_session_token(user: Dict) -> str:
    """Session token bound to a local user id."""
    return create_access_token({"user_id": user["id"], "email": user["email"]})


def validate_email(email: str) -> bool:
    """Check basic email shape (local@domain.tld, no whitespace)."""
    if not email:
        return False
    return EMAIL_PATTERN.match(email.strip()) is not None


def normalize_email(email: str) -> str:
    """
    Normalize an email address to lowercase with surrounding whitespace removed.

    Raises:
        ValueError: If the email is not valid
    """
    if not validate_email(email):
        raise ValueError("Invalid email address")
    return email.strip().lower()


def username_from_email(email: str) -> str:
    """
    Derive a username candidate from the email local-part.

    "Jane.Doe+swim@example.com" -> "jane.doeswim". Short results are padded so
    the candidate always satisfies the minimum username length.
    """
    local_part = (email or "").split("@", 1)[0].lower()
    candidate = USERNAME_DISALLOWED.sub("", local_part)
    if len(candidate) < MIN_USERNAME_LENGTH:
        candidate = f"{candidate}_swimmer" if candidate else "swimmer"
    return candidate


def split_full_name(full_name: Optional[str]) -> Tuple[str, str]:
    """
    Split a display name into (first_name, last_name).

    The first space-delimited token is the first name; the rest, joined by
    single spaces, is the last name. Both default to "".
    """
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
