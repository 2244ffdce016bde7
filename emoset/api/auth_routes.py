"""Sign-in and session endpoints."""

from __future__ import annotations

import logging
from datetime import timedelta

from litestar import Response, get, post
from litestar.datastructures import Cookie
from litestar.exceptions import NotAuthorizedException
from sqlmodel.ext.asyncio.session import AsyncSession

from ..auth import (
    TOKEN_COOKIE,
    authenticate_credentials,
    create_jwt_token,
    decode_jwt_token,
    extract_token_from_request,
    is_auth_bypassed,
)
from ..db.config import get_engine
from ..db.operations import upsert_user
from .models import AuthStatusResponse, LoginRequest, LoginResponse, LogoutResponse
from .state import AppState
from .types import AppRequest

logger = logging.getLogger(__name__)


@get("/auth/status")
async def auth_status(request: AppRequest, state: AppState) -> AuthStatusResponse:
    """Get current auth status and user info"""
    if is_auth_bypassed():
        return AuthStatusResponse(
            authenticated=True,
            user={"name": "Development User", "email": "dev@localhost"},
        )

    token = extract_token_from_request(request)
    if not token or state.config.auth is None:
        return AuthStatusResponse(authenticated=False)

    try:
        token_data = decode_jwt_token(token, state.config.auth.jwt_secret)
    except NotAuthorizedException:
        return AuthStatusResponse(authenticated=False)

    return AuthStatusResponse(
        authenticated=True,
        user={
            "name": token_data.name or token_data.email.split("@")[0],
            "email": token_data.email,
        },
    )


@post("/auth/login", status_code=200)
async def auth_login(data: LoginRequest, state: AppState) -> Response[LoginResponse]:
    """Sign in with email and password.

    The JWT is returned in the body and also set as an HTTP-only cookie.
    """
    config = state.config
    user = authenticate_credentials(data.email, data.password, config)
    assert config.auth is not None

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        _ = await upsert_user(session, user.email, user.name)

    token = create_jwt_token(
        user.email,
        config.auth.jwt_secret,
        user.name,
        expires_delta=timedelta(days=config.auth.token_days),
    )
    logger.info(f"User signed in: {user.email}")

    return Response(
        LoginResponse(token=token, user={"email": user.email, "name": user.name}),
        cookies=[
            Cookie(
                key=TOKEN_COOKIE,
                value=token,
                httponly=True,
                samesite="lax",
                max_age=config.auth.token_days * 24 * 3600,
            )
        ],
    )


@post("/auth/logout", status_code=200)
async def auth_logout() -> Response[LogoutResponse]:
    """Logout user by expiring the session cookie."""
    return Response(
        LogoutResponse(success=True),
        cookies=[Cookie(key=TOKEN_COOKIE, value="", max_age=0, httponly=True, samesite="lax")],
    )
