# app/schemas/medication.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from app.schemas.common import CamelModel

Category = Literal[
    "pain-relief",
    "cold-and-flu",
    "vitamins-and-supplements",
    "skin-care",
]

DosageForm = Literal[
    "Tablet",
    "Capsule",
    "Liquid",
    "Syrup",
    "Cream",
    "Ointment",
    "Gel",
    "Drops",
    "Spray",
    "Injection",
    "Inhaler",
    "Patch",
    "Suppository",
    "Powder",
]


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


class MedicationImageRead(CamelModel):
    """
    Read model for gallery images.
    """

    id: uuid.UUID
    medication_id: uuid.UUID
    url: str
    alt: str | None = None
    is_primary: bool
    sort_order: int


class MedicationCreate(CamelModel):
    """
    Payload for creating a medication (admin).

    SKU is normalized to upper-case and must be unique.
    """

    name: str = Field(max_length=200)
    generic_name: str | None = Field(default=None, max_length=200)
    brand_name: str | None = Field(default=None, max_length=200)
    description: str
    category: Category
    dosage_form: DosageForm
    strength: str = Field(max_length=50)
    package_size: str | None = Field(default=None, max_length=100)
    sku: str = Field(max_length=64)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    requires_prescription: bool = False
    is_active: bool = True

    @field_validator("name", "description", "strength")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return _strip_required(v).upper()


class MedicationUpdate(CamelModel):
    """
    Partial update payload for medications.
    All fields are optional.
    """

    name: str | None = Field(default=None, max_length=200)
    generic_name: str | None = Field(default=None, max_length=200)
    brand_name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category: Category | None = None
    dosage_form: DosageForm | None = None
    strength: str | None = Field(default=None, max_length=50)
    package_size: str | None = Field(default=None, max_length=100)
    price: float | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)
    requires_prescription: bool | None = None
    is_active: bool | None = None

    @field_validator("name", "description", "strength")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _strip_required(v)


class MedicationRead(CamelModel):
    """
    Medication representation for clients.
    """

    id: uuid.UUID
    name: str
    generic_name: str | None = None
    brand_name: str | None = None
    description: str
    category: str
    dosage_form: str
    strength: str
    package_size: str | None = None
    sku: str
    price: float
    stock: int
    requires_prescription: bool
    is_active: bool
    images: list[MedicationImageRead] = []
    created_at: datetime
    updated_at: datetime
