# app/repositories/medication_repo.py
import uuid

from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.models.medication import Medication, MedicationImage

SORTABLE_FIELDS = {
    "name": Medication.name,
    "price": Medication.price,
    "stock": Medication.stock,
    "created_at": Medication.created_at,
}


class MedicationRepository:
    """
    Data access layer for Medication & MedicationImage.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Medications -----

    def get_by_id(self, session: Session, medication_id: uuid.UUID) -> Medication | None:
        return session.get(Medication, medication_id)

    def get_many(
        self, session: Session, medication_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, Medication]:
        """Fetch several medications in one query, keyed by id."""
        if not medication_ids:
            return {}
        stmt = select(Medication).where(Medication.id.in_(medication_ids))
        return {m.id: m for m in session.exec(stmt).all()}

    def get_by_sku(self, session: Session, sku: str) -> Medication | None:
        stmt = select(Medication).where(Medication.sku == sku)
        return session.exec(stmt).first()

    def search(
        self,
        session: Session,
        *,
        skip: int = 0,
        limit: int = 10,
        category: str | None = None,
        search: str | None = None,
        requires_prescription: bool | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        in_stock: bool = False,
        sort_by: str = "name",
        descending: bool = False,
    ) -> tuple[list[Medication], int]:
        """
        Filtered listing of active medications.

        Returns:
            (page of rows, total rows matching the filters)
        """
        conditions = [Medication.is_active == True]

        if category:
            conditions.append(Medication.category == category)
        if requires_prescription is not None:
            conditions.append(Medication.requires_prescription == requires_prescription)
        if min_price is not None:
            conditions.append(Medication.price >= min_price)
        if max_price is not None:
            conditions.append(Medication.price <= max_price)
        if in_stock:
            conditions.append(Medication.stock > 0)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Medication.name).like(pattern),
                    func.lower(Medication.generic_name).like(pattern),
                    func.lower(Medication.brand_name).like(pattern),
                    func.lower(Medication.description).like(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(Medication).where(*conditions)
        total = session.exec(count_stmt).one()

        column = SORTABLE_FIELDS.get(sort_by, Medication.name)
        stmt = (
            select(Medication)
            .where(*conditions)
            .order_by(column.desc() if descending else column.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all()), total

    def create(self, session: Session, medication: Medication) -> Medication:
        session.add(medication)
        session.commit()
        session.refresh(medication)
        return medication

    def update(self, session: Session, medication: Medication) -> Medication:
        session.add(medication)
        session.commit()
        session.refresh(medication)
        return medication

    # ----- Images -----

    def list_images(
        self,
        session: Session,
        medication_id: uuid.UUID,
    ) -> list[MedicationImage]:
        stmt = (
            select(MedicationImage)
            .where(MedicationImage.medication_id == medication_id)
            .order_by(MedicationImage.sort_order)
        )
        return list(session.exec(stmt).all())

    def images_for(
        self,
        session: Session,
        medication_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, list[MedicationImage]]:
        """Gallery images for several medications, grouped by medication id."""
        grouped: dict[uuid.UUID, list[MedicationImage]] = {m: [] for m in medication_ids}
        if not medication_ids:
            return grouped
        stmt = (
            select(MedicationImage)
            .where(MedicationImage.medication_id.in_(medication_ids))
            .order_by(MedicationImage.sort_order)
        )
        for image in session.exec(stmt).all():
            grouped[image.medication_id].append(image)
        return grouped

    def get_image_by_id(
        self,
        session: Session,
        image_id: uuid.UUID,
    ) -> MedicationImage | None:
        return session.get(MedicationImage, image_id)

    def create_image(
        self,
        session: Session,
        image: MedicationImage,
    ) -> MedicationImage:
        session.add(image)
        session.commit()
        session.refresh(image)
        return image

    def update_image(
        self,
        session: Session,
        image: MedicationImage,
    ) -> MedicationImage:
        session.add(image)
        session.commit()
        session.refresh(image)
        return image

    def delete_image(
        self,
        session: Session,
        image: MedicationImage,
    ) -> None:
        session.delete(image)
        session.commit()
