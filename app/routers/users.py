# app/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.common import ApiResponse
from app.schemas.user import UserRead, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

repo = UserRepository()
service = UserService(repo)


@router.get("/me", response_model=ApiResponse[UserRead])
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.

    The profile row is auto-created on the first authenticated request,
    with a name derived from the email and role="user".
    """
    user = service.get_me(current_user)
    return ApiResponse(data=UserRead.model_validate(user), message="Profile retrieved successfully")


@router.patch("/me", response_model=ApiResponse[UserRead])
def update_me(
    payload: UserUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Update the authenticated user's profile (partial update).

    Currently, only `name` is editable.
    """
    user = service.update_me(session, current_user, payload)
    return ApiResponse(data=UserRead.model_validate(user), message="Profile updated successfully")
