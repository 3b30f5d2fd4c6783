# app/services/medication_service.py
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlmodel import Session

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    PayloadTooLargeException,
)
from app.core.storage_utils import (
    delete_public_url,
    generate_filename,
    upload_to_storage,
)
from app.models.medication import Medication, MedicationImage
from app.repositories.medication_repo import MedicationRepository
from app.schemas.common import Page, Pagination
from app.schemas.medication import (
    MedicationCreate,
    MedicationImageRead,
    MedicationRead,
    MedicationUpdate,
)

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class MedicationService:
    """
    Business logic for the medication catalog.

    Responsibilities:
      - filtered, paginated listing for the storefront
      - SKU uniqueness
      - soft delete (is_active=False) so cart lines keep their FK
      - gallery upload/delete orchestration with Supabase Storage
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(self, repo: MedicationRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise BadRequestException("Unsupported image type. Allowed: JPEG, PNG, WEBP.")

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise PayloadTooLargeException("Image too large (max 5MB).")

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    def _to_read(self, session: Session, medication: Medication) -> MedicationRead:
        images = self.repo.list_images(session, medication.id)
        return MedicationRead.model_validate(
            {
                **medication.model_dump(),
                "images": [MedicationImageRead.model_validate(img) for img in images],
            }
        )

    def _get(self, session: Session, medication_id: uuid.UUID) -> Medication:
        medication = self.repo.get_by_id(session, medication_id)
        if not medication:
            raise NotFoundException("Medication not found")
        return medication

    # ----- Medications -----

    def list_medications(
        self,
        session: Session,
        *,
        page: int = 1,
        limit: int = 10,
        category: str | None = None,
        search: str | None = None,
        requires_prescription: bool | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        in_stock: bool = False,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> Page[MedicationRead]:
        rows, total = self.repo.search(
            session,
            skip=(page - 1) * limit,
            limit=limit,
            category=category,
            search=search,
            requires_prescription=requires_prescription,
            min_price=min_price,
            max_price=max_price,
            in_stock=in_stock,
            sort_by=sort_by,
            descending=sort_order == "desc",
        )
        return Page[MedicationRead](
            items=[self._to_read(session, m) for m in rows],
            pagination=Pagination(
                current=page,
                pages=math.ceil(total / limit) if limit else 0,
                total=total,
                limit=limit,
            ),
        )

    def get_medication(self, session: Session, medication_id: uuid.UUID) -> MedicationRead:
        return self._to_read(session, self._get(session, medication_id))

    def create_medication(
        self,
        session: Session,
        payload: MedicationCreate,
    ) -> MedicationRead:
        if self.repo.get_by_sku(session, payload.sku) is not None:
            raise ConflictException(f"SKU {payload.sku} already exists")

        medication = self.repo.create(session, Medication(**payload.model_dump()))
        logger.info("Created medication %s (%s)", medication.id, medication.sku)
        return self._to_read(session, medication)

    def update_medication(
        self,
        session: Session,
        medication_id: uuid.UUID,
        payload: MedicationUpdate,
    ) -> MedicationRead:
        """
        Partial update. Price changes do not touch existing cart lines;
        they keep their snapshot until re-added or updated.
        """
        medication = self._get(session, medication_id)

        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(medication, field, value)
        medication.updated_at = datetime.now(timezone.utc)

        return self._to_read(session, self.repo.update(session, medication))

    def deactivate_medication(
        self,
        session: Session,
        medication_id: uuid.UUID,
    ) -> None:
        medication = self._get(session, medication_id)
        medication.is_active = False
        medication.updated_at = datetime.now(timezone.utc)
        self.repo.update(session, medication)

    # ----- Gallery images -----

    def add_images(
        self,
        session: Session,
        medication_id: uuid.UUID,
        files: Iterable[tuple[str, bytes]],
    ) -> list[MedicationImageRead]:
        """
        Upload one or more gallery images for a medication.

        Args:
            files: iterable of (content_type, file_bytes)

        New images are appended after the existing ones; the first image
        of an empty gallery becomes the primary image.
        """
        medication = self._get(session, medication_id)
        existing = self.repo.list_images(session, medication.id)
        next_order = len(existing)
        has_primary = any(img.is_primary for img in existing)

        # Validate everything before uploading anything
        validated = [
            (content_type, file_bytes, self._validate_and_get_ext(content_type, file_bytes))
            for content_type, file_bytes in files
        ]

        created: list[MedicationImageRead] = []
        for idx, (content_type, file_bytes, ext) in enumerate(validated):
            path = f"medications/{medication.id}/gallery/{generate_filename(ext)}"
            url = upload_to_storage(path, file_bytes, content_type)

            image = MedicationImage(
                medication_id=medication.id,
                url=url,
                alt=medication.name,
                is_primary=not has_primary and idx == 0,
                sort_order=next_order + idx,
            )
            created.append(
                MedicationImageRead.model_validate(self.repo.create_image(session, image))
            )

        return created

    def remove_image(
        self,
        session: Session,
        medication_id: uuid.UUID,
        image_id: uuid.UUID,
    ) -> None:
        """
        Delete a single gallery image and its Storage file.

        If the primary image is removed, the next image in order
        is promoted.
        """
        image = self.repo.get_image_by_id(session, image_id)
        if not image or image.medication_id != medication_id:
            raise NotFoundException("Image not found for this medication")

        delete_public_url(image.url)
        was_primary = image.is_primary
        self.repo.delete_image(session, image)

        if was_primary:
            remaining = self.repo.list_images(session, medication_id)
            if remaining:
                remaining[0].is_primary = True
                self.repo.update_image(session, remaining[0])
