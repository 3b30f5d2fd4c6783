# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Pharmacy customer or staff member, keyed by the access token subject.

    Rows are created on the first authenticated request; credentials stay
    with the identity provider. Only `role == "admin"` unlocks catalog
    management, everyone else just shops.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(primary_key=True)

    # Lowercased at provisioning
    email: str = Field(unique=True, index=True, max_length=255)

    name: str = Field(max_length=50)

    role: str = Field(default="user", max_length=20)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = Field(default=None)
