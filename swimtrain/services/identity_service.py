"""
Identity bridge between the external identity provider and the local users table.

The provider is the only password authority. Every successful authentication
event ends with a local user row and a session token bound to that row's id.
When the provider and the local table disagree (a row keyed by an old local
id, or a concurrent request creating the same row) the bridge falls back to a
single lookup by email instead of failing.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.services import auth_service, user_service
from swimtrain.services.errors import (
    Conflict,
    Internal,
    NotFound,
    Unauthorized,
    ValidationError,
)
from swimtrain.services.identity_provider import (
    IdentityProvider,
    ProviderAuthError,
    ProviderError,
    ProviderUser,
    ProviderUserExistsError,
)
from swimtrain.utils.constants import MIN_PASSWORD_LENGTH, MIN_USERNAME_LENGTH

logger = logging.getLogger(__name__)

EMAIL_ALREADY_REGISTERED = "Email already registered. Please login or reset your password."
USER_UNAVAILABLE = "User not available after authentication"


@dataclass
class AuthResult:
    """Outcome of an authentication event."""

    token: str
    user: Dict
    implicit_login: bool = False
    is_new_user: bool = False


def _validate_password(password: str, field: str = "Password") -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"{field} must be at least {MIN_PASSWORD_LENGTH} characters long")


def _validate_registration(email: str, password: str, username: str) -> str:
    try:
        email = auth_service.normalize_email(email)
    except ValueError as e:
        raise ValidationError(str(e))
    _validate_password(password)
    if not username or len(username.strip()) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
    return email


async def _derive_username(session: AsyncSession, provider_user: ProviderUser) -> str:
    """Username from the email local-part, suffixed with a provider id fragment when taken."""
    candidate = auth_service.username_from_email(provider_user.email)
    if await user_service.is_username_available(session, candidate):
        return candidate
    fragment = provider_user.id.replace("-", "")[:6].lower()
    return f"{candidate}_{fragment}"


async def resolve_or_create_user(
    session: AsyncSession,
    provider_user: ProviderUser,
    operation: str,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    avatar: Optional[str] = None,
) -> Tuple[Optional[Dict], bool]:
    """
    Find the local row for a provider account, creating it if missing.

    Order: by provider id, then by email, then create keyed by provider id. A
    unique-constraint violation on create is treated as a concurrent create and
    resolved by one more lookup by email. Calling it twice for the same
    account yields the same row.

    Args:
        session: Database session
        provider_user: Authenticated provider account
        operation: Name of the calling operation (for logs)
        username: Username to use on create; derived from the email when None
        first_name: Optional first name for a new row
        last_name: Optional last name for a new row
        avatar: Optional avatar URL for a new row

    Returns:
        (user, created): the user dictionary, or None if the row could not be
        created or found, and whether this call inserted it
    """
    user = await user_service.get_user_by_id(session, provider_user.id)
    if user:
        return user, False

    user = await user_service.get_user_by_email(session, provider_user.email)
    if user:
        logger.warning(
            f"{operation}: no local user for provider id {provider_user.id}, "
            f"reusing local user {user['id']} matched by email {provider_user.email}"
        )
        return user, False

    logger.warning(
        f"{operation}: creating missing local user for provider id {provider_user.id} "
        f"({provider_user.email})"
    )
    try:
        user = await user_service.upsert_user(
            session,
            user_id=provider_user.id,
            email=provider_user.email,
            username=username or await _derive_username(session, provider_user),
            first_name=first_name,
            last_name=last_name,
            avatar=avatar,
        )
        return user, True
    except IntegrityError as e:
        logger.warning(
            f"{operation}: unique violation creating user {provider_user.id} "
            f"({provider_user.email}), retrying lookup by email: {e.orig}"
        )

    user = await user_service.get_user_by_email(session, provider_user.email)
    if user is None:
        logger.error(
            f"{operation}: user {provider_user.id} ({provider_user.email}) "
            f"not found after email fallback"
        )
    return user, False


async def register(
    session: AsyncSession,
    provider: IdentityProvider,
    email: str,
    password: str,
    username: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> AuthResult:
    """
    Register a new account, or log in implicitly when the email already exists
    and the password matches.

    Raises:
        ValidationError: Malformed email, short password or short username
        Conflict: Email registered with a different password, or username/email in use
        Internal: Provider failure
    """
    email = _validate_registration(email, password, username)
    username = username.strip()

    try:
        provider_user = await provider.create_user(email, password, email_confirm=True)
    except ProviderUserExistsError:
        return await _implicit_login(session, provider, email, password, username)
    except ProviderError as e:
        logger.error(f"register: provider create_user failed for {email}: {e}")
        raise Internal("Registration failed")

    try:
        user = await user_service.upsert_user(
            session,
            user_id=provider_user.id,
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
        )
        is_new_user = True
    except IntegrityError as e:
        logger.warning(
            f"register: unique violation writing user {provider_user.id} ({email}), "
            f"falling back to email lookup: {e.orig}"
        )
        user = await user_service.get_user_by_email(session, email)
        if user is None:
            raise Conflict("Username or email is already in use")
        is_new_user = False

    logger.info(f"Registered user {user['id']} ({email})")
    return AuthResult(
        token=auth_service.issue_session_token(user), user=user, is_new_user=is_new_user
    )


async def _implicit_login(
    session: AsyncSession,
    provider: IdentityProvider,
    email: str,
    password: str,
    username: str,
) -> AuthResult:
    try:
        provider_user = await provider.sign_in(email, password)
    except ProviderError:
        raise Conflict(EMAIL_ALREADY_REGISTERED)

    user, created = await resolve_or_create_user(session, provider_user, "register", username=username)
    if user is None:
        raise Conflict(EMAIL_ALREADY_REGISTERED)

    logger.info(f"register: implicit login for existing account {user['id']} ({email})")
    return AuthResult(
        token=auth_service.issue_session_token(user),
        user=user,
        implicit_login=True,
        is_new_user=created,
    )


async def login(
    session: AsyncSession, provider: IdentityProvider, email: str, password: str
) -> AuthResult:
    """
    Log in with email and password.

    Raises:
        Unauthorized: Credentials rejected
        Internal: Provider failure, or no local user after the email fallback
    """
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email and password are required")

    try:
        provider_user = await provider.sign_in(email, password)
    except ProviderAuthError:
        raise Unauthorized("Invalid email or password")
    except ProviderError as e:
        logger.error(f"login: provider sign_in failed for {email}: {e}")
        raise Internal("Login failed")

    user, created = await resolve_or_create_user(session, provider_user, "login")
    if user is None:
        raise Internal(USER_UNAVAILABLE)

    return AuthResult(token=auth_service.issue_session_token(user), user=user, is_new_user=created)


async def google_auth(
    session: AsyncSession, provider: IdentityProvider, access_token: str
) -> AuthResult:
    """
    Authenticate with a provider access token obtained through Google OAuth.

    The display name is split into first and last name; names and avatar are
    refreshed on every sign-in, the username is only set on first sign-in.

    Raises:
        Unauthorized: Token rejected
        Internal: Provider failure, or no local user after the email fallback
    """
    if not access_token:
        raise ValidationError("Token is required")

    try:
        provider_user = await provider.get_user(access_token)
    except ProviderAuthError:
        raise Unauthorized("Invalid Google token")
    except ProviderError as e:
        logger.error(f"google_auth: provider get_user failed: {e}")
        raise Internal("Google authentication failed")

    first_name, last_name = auth_service.split_full_name(provider_user.full_name)
    existing = await user_service.get_user_by_id(session, provider_user.id)

    if existing is None:
        user, created = await resolve_or_create_user(
            session,
            provider_user,
            "google_auth",
            first_name=first_name,
            last_name=last_name,
            avatar=provider_user.avatar_url,
        )
        if user is None:
            raise Internal(USER_UNAVAILABLE)
        return AuthResult(
            token=auth_service.issue_session_token(user),
            user=user,
            is_new_user=created,
        )

    try:
        user = await user_service.upsert_user(
            session,
            user_id=provider_user.id,
            email=provider_user.email,
            first_name=first_name,
            last_name=last_name,
            avatar=provider_user.avatar_url,
        )
    except IntegrityError as e:
        logger.warning(
            f"google_auth: unique violation updating user {provider_user.id} "
            f"({provider_user.email}), keeping stored profile: {e.orig}"
        )
        user = await user_service.get_user_by_email(session, provider_user.email) or existing

    return AuthResult(token=auth_service.issue_session_token(user), user=user)


async def change_password(
    session: AsyncSession,
    provider: IdentityProvider,
    user_id: str,
    current_password: str,
    new_password: str,
) -> None:
    """
    Change the password of the authenticated user.

    The current password is verified by signing in with the provider; the
    update targets the subject id the provider returned, which may differ from
    the local id for rows created before the provider knew the user.

    Raises:
        NotFound: Local user missing
        ValidationError: New password too short
        Unauthorized: Current password rejected (status 400, so a typo is not
            mistaken for an expired session)
        Internal: Provider failure
    """
    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise NotFound("User not found")

    _validate_password(new_password, field="New password")

    try:
        provider_user = await provider.sign_in(user["email"], current_password or "")
    except ProviderAuthError:
        raise Unauthorized("Current password is incorrect", status_code=400)
    except ProviderError as e:
        logger.error(f"change_password: provider sign_in failed for {user_id}: {e}")
        raise Internal("Password change failed")

    try:
        await provider.update_user(provider_user.id, password=new_password)
    except ProviderError as e:
        logger.error(
            f"change_password: provider update_user failed for {user_id} "
            f"(provider id {provider_user.id}): {e}"
        )
        raise Internal("Password change failed")

    logger.info(f"Password changed for user {user_id}")
