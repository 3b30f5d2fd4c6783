# app/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Cart(SQLModel, table=True):
    """
    One shopping cart per user.

    Totals are derived from the lines and recomputed by the service
    before every write; they are never taken from client input.
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    owner_id: uuid.UUID = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
        description="A user owns at most one cart",
    )

    total_item_count: int = Field(default=0, ge=0)
    total_amount: float = Field(default=0.0, ge=0)

    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class CartLine(SQLModel, table=True):
    """
    One medication line within a cart.
    A cart cannot have 2 lines for the same medication.
    """

    __tablename__ = "cart_lines"
    __table_args__ = (
        UniqueConstraint("cart_id", "medication_id", name="uq_cart_line_medication"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    medication_id: uuid.UUID = Field(
        foreign_key="medications.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    unit_price: float = Field(
        ge=0,
        description="Price snapshot taken when the line was added or last touched",
    )

    position: int = Field(
        default=0,
        ge=0,
        description="Display order within the cart",
    )

    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
