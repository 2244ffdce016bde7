# pyright: reportUnreachable=false
"""Authentication module: password sign-in and JWT sessions."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import jwt
from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException
from litestar.middleware.authentication import AbstractAuthenticationMiddleware, AuthenticationResult
from pydantic import BaseModel

from .api.types import AuthenticatedUser

if TYPE_CHECKING:
    from .config import Config

TOKEN_COOKIE = "emoset_token"
PBKDF2_ITERATIONS = 260_000


class TokenData(BaseModel):
    """JWT token payload data."""

    email: str
    name: str | None = None
    exp: datetime


def is_auth_bypassed() -> bool:
    """Check if auth is bypassed via environment variable."""
    return os.getenv("EMOSET_BYPASS_AUTH", "false").lower() in ("true", "1", "yes")


def hash_password(password: str, salt: str | None = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored pbkdf2 hash."""
    try:
        scheme, iterations, salt, expected = password_hash.split("$", 3)
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    candidate = hash_password(password, salt, int(iterations))
    return hmac.compare_digest(candidate.rsplit("$", 1)[1], expected)


def authenticate_credentials(email: str, password: str, config: Config) -> AuthenticatedUser:
    """Sign in with email and password.

    Raises:
        NotAuthorizedException: If auth is not configured or the credentials are wrong
    """
    if config.auth is None:
        raise NotAuthorizedException(detail="Authentication not configured")

    account = config.auth.find_user(email)
    if account is None or not verify_password(password, account.password_hash):
        raise NotAuthorizedException(detail="Invalid email or password")

    return AuthenticatedUser(email=account.email, name=account.name)


def create_jwt_token(
    email: str, secret: str, name: str | None = None, expires_delta: timedelta | None = None
) -> str:
    """Create a JWT token for the user.

    Args:
        email: User's email address
        secret: JWT secret key
        name: User's display name
        expires_delta: Token expiration time (default: 30 days)

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(days=30)
    expire = datetime.now(UTC) + expires_delta
    payload = {"email": email, "name": name, "exp": expire}
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_jwt_token(token: str, secret: str) -> TokenData:
    """Decode and validate a JWT token.

    Raises:
        NotAuthorizedException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
        return TokenData(
            email=payload["email"],
            name=payload.get("name"),
            exp=datetime.fromtimestamp(payload["exp"], UTC),
        )
    except jwt.ExpiredSignatureError as e:
        raise NotAuthorizedException(detail="Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise NotAuthorizedException(detail="Invalid token") from e


def extract_token_from_request(connection: ASGIConnection) -> str | None:
    """Extract JWT token from request cookies or Authorization header."""
    token = connection.cookies.get(TOKEN_COOKIE)
    if token:
        return token

    auth_header = connection.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]  # Remove "Bearer " prefix

    return None


class JWTAuthenticationMiddleware(AbstractAuthenticationMiddleware):
    """Litestar authentication middleware using JWT tokens.

    This middleware:
    1. Bypasses auth if EMOSET_BYPASS_AUTH=true
    2. Extracts JWT from cookie or Authorization header
    3. Validates JWT and checks the account still exists
    4. Populates request.user with AuthenticatedUser
    """

    async def authenticate_request(self, connection: ASGIConnection) -> AuthenticationResult:
        if is_auth_bypassed():
            return AuthenticationResult(
                user=AuthenticatedUser(email="dev@localhost", name="Development User"),
                auth=None,
            )

        token = extract_token_from_request(connection)
        if not token:
            raise NotAuthorizedException(detail="No authentication token provided")

        from .config import get_config

        config = get_config()
        if config.auth is None:
            raise NotAuthorizedException(detail="Authentication not configured")

        token_data = decode_jwt_token(token, config.auth.jwt_secret)

        if config.auth.find_user(token_data.email) is None:
            raise NotAuthorizedException(detail="Email not authorized")

        return AuthenticationResult(
            user=AuthenticatedUser(email=token_data.email, name=token_data.name),
            auth=token,
        )
