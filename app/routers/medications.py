# app/routers/medications.py
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.core.exceptions import BadRequestException
from app.database import get_session
from app.repositories.medication_repo import MedicationRepository
from app.schemas.common import ApiResponse, Page
from app.schemas.medication import (
    Category,
    MedicationCreate,
    MedicationImageRead,
    MedicationRead,
    MedicationUpdate,
)
from app.services.medication_service import MedicationService

router = APIRouter(prefix="/medications", tags=["Medications"])

repo = MedicationRepository()
service = MedicationService(repo)


# -------- Public endpoints --------


@router.get("", response_model=ApiResponse[Page[MedicationRead]])
def list_medications(
    session: Session = Depends(get_session),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Category | None = None,
    search: str | None = None,
    requires_prescription: bool | None = Query(None, alias="requiresPrescription"),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    in_stock: bool = Query(False, alias="inStock"),
    sort_by: Literal["name", "price", "stock", "created_at"] = Query("name", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("asc", alias="sortOrder"),
):
    """
    List active medications with filters and pagination.

    - Public endpoint.
    - `search` matches name, generic name, brand name and description.
    """
    result = service.list_medications(
        session,
        page=page,
        limit=limit,
        category=category,
        search=search,
        requires_prescription=requires_prescription,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ApiResponse(data=result, message="Medications retrieved successfully")


@router.get("/{medication_id}", response_model=ApiResponse[MedicationRead])
def get_medication(
    medication_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single medication by id.
    """
    medication = service.get_medication(session, medication_id)
    return ApiResponse(data=medication, message="Medication retrieved successfully")


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ApiResponse[MedicationRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_medication(
    payload: MedicationCreate,
    session: Session = Depends(get_session),
):
    """
    Create a new medication (admin only).
    """
    medication = service.create_medication(session, payload)
    return ApiResponse(data=medication, message="Medication created successfully")


@router.patch(
    "/{medication_id}",
    response_model=ApiResponse[MedicationRead],
    dependencies=[Depends(require_admin)],
)
def update_medication(
    medication_id: uuid.UUID,
    payload: MedicationUpdate,
    session: Session = Depends(get_session),
):
    """
    Update an existing medication (admin only).
    """
    medication = service.update_medication(session, medication_id, payload)
    return ApiResponse(data=medication, message="Medication updated successfully")


@router.delete(
    "/{medication_id}",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_admin)],
)
def deactivate_medication(
    medication_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Soft delete: the medication is hidden and can no longer be added
    to carts, but existing rows keep referencing it.
    """
    service.deactivate_medication(session, medication_id)
    return ApiResponse(message="Medication deleted successfully")


@router.post(
    "/{medication_id}/images",
    response_model=ApiResponse[list[MedicationImageRead]],
    dependencies=[Depends(require_admin)],
    summary="Upload one or more gallery images for a medication",
)
def upload_images(
    medication_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
):
    """
    Upload gallery images (JPEG, PNG, WEBP; 5MB max each).
    """
    if not files:
        raise BadRequestException("No files uploaded")

    payload: list[tuple[str, bytes]] = []
    for f in files:
        if not f.content_type:
            raise BadRequestException("Missing content-type for uploaded file")
        payload.append((f.content_type, f.file.read()))

    images = service.add_images(session, medication_id, payload)
    return ApiResponse(data=images, message="Images uploaded successfully")


@router.delete(
    "/{medication_id}/images/{image_id}",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_admin)],
)
def delete_image(
    medication_id: uuid.UUID,
    image_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a gallery image (admin only).
    """
    service.remove_image(session, medication_id, image_id)
    return ApiResponse(message="Image deleted successfully")
