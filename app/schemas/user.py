# app/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from app.schemas.common import CamelModel

# App-level roles. "guest" = no token, so we don't store it here.
Role = Literal["user", "admin"]


class UserRead(CamelModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    name: str
    role: Role
    created_at: datetime
    updated_at: datetime | None = None


class UserUpdate(CamelModel):
    """
    Partial profile update for authenticated users.
    Only editable field is `name` here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v
