# app/schemas/cart.py
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from app.schemas.common import CamelModel


# ----- Requests -----


class CartItemAdd(CamelModel):
    """
    Payload for POST /cart/add.

    Quantity defaults to 1 like the storefront "Add to cart" button.
    Range checks happen in the service so the error message is the
    same whether the caller is the router or sync.
    """

    medication_id: uuid.UUID
    quantity: int = 1


class CartItemUpdate(CamelModel):
    """
    Payload for PUT /cart/item/{medicationId}.

    quantity <= 0 removes the line.
    """

    quantity: int


class CartSyncLine(CamelModel):
    """
    One line of a guest cart.

    Fields are untyped: guest carts come from client storage and may
    hold stale or malformed entries, which sync skips instead of
    rejecting the whole request.
    """

    medication_id: Any = None
    quantity: Any = None

    @model_validator(mode="before")
    @classmethod
    def tolerate_non_objects(cls, data: Any) -> Any:
        if isinstance(data, (dict, cls)):
            return data
        return {}


class CartSyncRequest(CamelModel):
    """Payload for POST /cart/sync."""

    items: list[CartSyncLine]


# ----- Responses -----


class MedicationImageSummary(CamelModel):
    url: str
    alt: str | None = None
    is_primary: bool = False


class MedicationSummary(CamelModel):
    """
    Live catalog data joined onto a cart line at read time.
    `price` is the current catalog price, not the line snapshot.
    """

    id: uuid.UUID
    name: str
    price: float
    stock: int
    is_active: bool
    images: list[MedicationImageSummary] = []


class CartLineRead(CamelModel):
    """
    Read model for a single cart line.

    unit_price is the snapshot used for totals; medication.price is the
    live price. medication is None when the catalog row is gone.
    """

    medication_id: uuid.UUID
    quantity: int
    unit_price: float
    line_total: float
    added_at: datetime
    medication: MedicationSummary | None = None


class CartRead(CamelModel):
    """Full cart response with derived totals."""

    id: uuid.UUID
    owner_id: uuid.UUID
    items: list[CartLineRead]
    total_item_count: int
    total_amount: float
    last_updated: datetime
    created_at: datetime


class CartCount(CamelModel):
    count: int


class SyncStatus(str, Enum):
    """
    Outcome of merging a guest cart.

    applied  : every incoming line was kept
    partial  : some lines were skipped
    rejected : lines were sent but none survived validation
    """

    APPLIED = "applied"
    PARTIAL = "partial"
    REJECTED = "rejected"


class SkippedLine(CamelModel):
    medication_id: Any = None
    quantity: Any = None
    reason: str


class CartSyncResult(CamelModel):
    status: SyncStatus
    cart: CartRead
    skipped: list[SkippedLine] = Field(default_factory=list)


class CartPruneResult(CamelModel):
    removed: int
    cart: CartRead
