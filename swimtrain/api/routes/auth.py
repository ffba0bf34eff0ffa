"""Authentication and profile route handlers."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.api.routes import limiter, to_http_exception, internal_error
from swimtrain.api.auth_dependencies import require_user, get_provider
from swimtrain.database.db import get_db_session
from swimtrain.models.schemas import (
    RegisterRequest,
    LoginRequest,
    GoogleAuthRequest,
    ChangePasswordRequest,
    UpdateProfileRequest,
    AuthResponse,
    ProfileResponse,
    MessageResponse,
)
from swimtrain.services import identity_service, user_service
from swimtrain.services.errors import ServiceError
from swimtrain.services.identity_provider import IdentityProvider

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit("10/minute")
async def register(
    request: Request,
    payload: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
    provider: IdentityProvider = Depends(get_provider),
):
    """
    Register with email and password.

    Returns 201 for a new account. If the email is already registered and the
    password matches, the caller is logged in instead and 200 is returned with
    implicitLogin set.
    """
    try:
        result = await identity_service.register(
            session,
            provider,
            email=payload.email,
            password=payload.password,
            username=payload.username,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        if result.implicit_login:
            response.status_code = 200
        return AuthResponse(
            token=result.token,
            user=result.user,
            implicit_login=result.implicit_login,
            is_new_user=result.is_new_user,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("register", e, email=payload.email)


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
    provider: IdentityProvider = Depends(get_provider),
):
    """Login with email and password."""
    try:
        result = await identity_service.login(session, provider, payload.email, payload.password)
        return AuthResponse(token=result.token, user=result.user, is_new_user=result.is_new_user)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("login", e, email=payload.email)


@router.post("/api/auth/google", response_model=AuthResponse)
@limiter.limit("10/minute")
async def google_auth(
    request: Request,
    payload: GoogleAuthRequest,
    session: AsyncSession = Depends(get_db_session),
    provider: IdentityProvider = Depends(get_provider),
):
    """Sign in with a provider access token obtained through Google OAuth."""
    try:
        result = await identity_service.google_auth(session, provider, payload.token)
        return AuthResponse(token=result.token, user=result.user, is_new_user=result.is_new_user)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("google_auth", e)


@router.post("/api/auth/logout", response_model=MessageResponse)
async def logout(user: dict = Depends(require_user)):
    """
    Acknowledge a logout. Tokens are stateless and stay valid until they
    expire; the client discards its copy.
    """
    logger.info(f"User {user['id']} logged out")
    return MessageResponse(message="Logged out")


@router.get("/api/auth/profile", response_model=ProfileResponse)
async def get_profile(user: dict = Depends(require_user)):
    """Get the caller's own user record."""
    return ProfileResponse(user=user)


@router.put("/api/auth/profile", response_model=ProfileResponse)
async def update_profile(
    payload: UpdateProfileRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update username, names and avatar. A username taken by someone else is 400."""
    try:
        updated = await user_service.update_profile(
            session,
            user["id"],
            username=payload.username,
            first_name=payload.first_name,
            last_name=payload.last_name,
            avatar=payload.avatar,
        )
        return ProfileResponse(user=updated)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("update_profile", e, user_id=user["id"])


@router.put("/api/auth/change-password", response_model=MessageResponse)
@limiter.limit("10/minute")
async def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
    provider: IdentityProvider = Depends(get_provider),
):
    """Change password after verifying the current one with the identity provider."""
    try:
        await identity_service.change_password(
            session, provider, user["id"], payload.current_password, payload.new_password
        )
        return MessageResponse(message="Password updated successfully")
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("change_password", e, user_id=user["id"])
