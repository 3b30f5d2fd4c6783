# app/services/user_service.py
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserUpdate


def default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email if the user has not
    completed their profile yet.
    """
    if "@" in email:
        return email.split("@", 1)[0][:50]
    return email[:50]


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - mirror token identities into the users table
      - profile edits (name only; email belongs to the auth service)
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def get_or_provision(
        self,
        session: Session,
        user_id: uuid.UUID,
        email: str,
    ) -> User:
        """
        Return the profile for a token subject, creating it on first sight.
        Default role = "user" (admin must be promoted in the database).
        """
        user = self.repo.get_by_id(session, user_id)
        if user is not None:
            return user

        email = email.strip().lower()
        try:
            return self.repo.create(
                session,
                User(
                    id=user_id,
                    email=email,
                    name=default_name_from_email(email),
                    role="user",
                ),
            )
        except IntegrityError:
            # Concurrent first request provisioned it already
            session.rollback()
            user = self.repo.get_by_id(session, user_id)
            if user is None:
                raise
            return user

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    def update_me(
        self,
        session: Session,
        current_user: User,
        payload: UserUpdate,
    ) -> User:
        """
        Partial update for profile edits.
        Currently, only `name` is editable.
        """
        if payload.name is not None:
            current_user.name = payload.name

        current_user.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, current_user)
