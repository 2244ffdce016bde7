from typing import Any, TypeAlias

from litestar.connection import ASGIConnection
from litestar.connection.request import Request
from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """Authenticated user model for request.user."""

    email: str
    name: str | None = None


AppRequest: TypeAlias = Request[AuthenticatedUser, str, Any]  # pyright: ignore[reportExplicitAny]

AuthConnection: TypeAlias = ASGIConnection[Any, AuthenticatedUser, str, Any]  # pyright: ignore[reportExplicitAny]
