# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.services.user_service import UserService

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)

user_service = UserService(UserRepository())


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token (JWT) issued by the auth service.

    Verification:
      - signature (JWT_ALGORITHM using JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified

    Raises:
        UnauthorizedException: if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        raise UnauthorizedException("Invalid or expired token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a bearer JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' (user id) and 'email'.
      3. Convert 'sub' to UUID to match User.id type.
      4. Find or auto-provision the profile row.

    Raises:
        UnauthorizedException: if token is malformed or missing required claims.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise UnauthorizedException("Token missing sub/email")

    try:
        sub_uuid = uuid.UUID(str(sub))
    except ValueError:
        raise UnauthorizedException("Invalid sub in token")

    return user_service.get_or_provision(session, sub_uuid, email)


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Guests (missing JWT) are rejected with 401.
    """
    if user is None:
        raise UnauthorizedException("Access denied. No token provided.")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        ForbiddenException: if role is not admin.
    """
    if user.role != "admin":
        raise ForbiddenException("Admin access required")
    return user
