# app/models/medication.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Medication(SQLModel, table=True):
    """
    Catalog entry for a medication (the "product" sold by the pharmacy).

    The cart reads price, stock and is_active from here and never
    writes back. Rows are soft-deleted (is_active=False) so cart lines
    keep a valid foreign key.
    """

    __tablename__ = "medications"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name",
    )

    generic_name: str | None = Field(default=None, max_length=200, index=True)
    brand_name: str | None = Field(default=None, max_length=200)

    description: str = Field(description="Long description shown on the product page")

    category: str = Field(
        max_length=50,
        index=True,
        description="Category slug, e.g. pain-relief",
    )

    dosage_form: str = Field(max_length=30, description="Tablet, Capsule, Syrup, ...")
    strength: str = Field(max_length=50, description='e.g. "500mg", "10ml", "2.5%"')
    package_size: str | None = Field(default=None, max_length=100)

    sku: str = Field(
        max_length=64,
        unique=True,
        index=True,
        description="Stock keeping unit (upper-case, unique)",
    )

    price: float = Field(
        ge=0,
        index=True,
        description="Current unit price",
    )

    stock: int = Field(
        default=0,
        ge=0,
        index=True,
        description="Units currently available",
    )

    requires_prescription: bool = Field(default=False, index=True)

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this medication can be sold",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last modification timestamp (UTC)",
    )


class MedicationImage(SQLModel, table=True):
    """
    Gallery image for a medication, stored in Supabase Storage.
    """

    __tablename__ = "medication_images"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    medication_id: uuid.UUID = Field(
        foreign_key="medications.id",
        index=True,
        description="FK to medications.id",
    )

    url: str = Field(description="Public URL in Supabase Storage")
    alt: str | None = Field(default=None, max_length=200)
    is_primary: bool = Field(default=False)

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Ordering index within the gallery",
    )
