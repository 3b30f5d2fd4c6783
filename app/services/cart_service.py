# app/services/cart_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.exceptions import (
    BadRequestException,
    NotFoundException,
    ProductUnavailableException,
    StockExceededException,
)
from app.models.cart import Cart, CartLine
from app.models.medication import Medication
from app.repositories.cart_repo import CartRepository
from app.repositories.medication_repo import MedicationRepository
from app.schemas.cart import (
    CartLineRead,
    CartPruneResult,
    CartRead,
    CartSyncLine,
    CartSyncResult,
    MedicationImageSummary,
    MedicationSummary,
    SkippedLine,
    SyncStatus,
)

logger = logging.getLogger(__name__)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - get-or-create the single cart of a user
      - validate medication existence, active flag and stock
      - snapshot unit_price from the live catalog price on add/update
      - recompute total_item_count / total_amount before every write
      - merge guest carts (best effort) on login

    Mutations lock the cart row (SELECT ... FOR UPDATE) and commit once,
    so two requests for the same user do not interleave their
    read-modify-write of the lines.
    """

    def __init__(self, cart_repo: CartRepository, medication_repo: MedicationRepository):
        self.cart_repo = cart_repo
        self.medication_repo = medication_repo

    # ---- internal helpers ----

    def _find_or_create(self, session: Session, user_id: uuid.UUID) -> Cart:
        cart = self.cart_repo.get_by_owner(session, user_id)
        if cart is not None:
            return cart

        try:
            cart = self.cart_repo.create(session, Cart(owner_id=user_id))
            logger.info("Created cart %s for user %s", cart.id, user_id)
            return cart
        except IntegrityError:
            # Another request created it first (unique owner_id)
            session.rollback()
            cart = self.cart_repo.get_by_owner(session, user_id)
            if cart is None:
                raise
            return cart

    def _lock_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        create: bool = False,
    ) -> Cart:
        if create:
            self._find_or_create(session, user_id)

        cart = self.cart_repo.get_by_owner(session, user_id, for_update=True)
        if cart is None:
            raise NotFoundException("Cart not found")
        return cart

    def _get_medication(self, session: Session, medication_id: uuid.UUID) -> Medication:
        medication = self.medication_repo.get_by_id(session, medication_id)
        if not medication:
            raise NotFoundException("Medication not found")
        return medication

    @staticmethod
    def _recompute_totals(cart: Cart, lines: list[CartLine]) -> None:
        cart.total_item_count = sum(line.quantity for line in lines)
        cart.total_amount = round(sum(line.unit_price * line.quantity for line in lines), 2)
        cart.last_updated = datetime.now(timezone.utc)

    def _persist(self, session: Session, cart: Cart) -> Cart:
        lines = self.cart_repo.list_lines(session, cart.id)
        self._recompute_totals(cart, lines)
        return self.cart_repo.save(session, cart)

    def _stage_add(
        self,
        session: Session,
        cart: Cart,
        medication_id: uuid.UUID,
        quantity: int,
    ) -> CartLine:
        """
        Validate and stage an addition without committing.

        Rules:
          - quantity >= 1
          - medication must exist and be active
          - quantity already in cart + quantity <= stock (never clamped)
          - existing line: quantity merged, unit_price re-snapshotted
        """
        if quantity < 1:
            raise BadRequestException("Quantity must be at least 1")

        medication = self._get_medication(session, medication_id)
        if not medication.is_active:
            raise ProductUnavailableException()

        line = self.cart_repo.get_line(session, cart.id, medication.id)
        in_cart = line.quantity if line else 0

        if in_cart + quantity > medication.stock:
            max_addable = max(medication.stock - in_cart, 0)
            raise StockExceededException(
                f"Cannot add {quantity} items. Maximum available: {max_addable}",
                max_addable=max_addable,
            )

        if line:
            line.quantity = in_cart + quantity
            line.unit_price = medication.price
            session.add(line)
            return line

        line = CartLine(
            cart_id=cart.id,
            medication_id=medication.id,
            quantity=quantity,
            unit_price=medication.price,
            position=self.cart_repo.next_position(session, cart.id),
        )
        return self.cart_repo.add_line(session, line)

    def _build_read(self, session: Session, cart: Cart) -> CartRead:
        """
        Join each line to live medication data for display.
        """
        lines = self.cart_repo.list_lines(session, cart.id)
        medications = self.medication_repo.get_many(
            session, [line.medication_id for line in lines]
        )
        images = self.medication_repo.images_for(session, list(medications))

        items: list[CartLineRead] = []
        for line in lines:
            medication = medications.get(line.medication_id)
            summary = None
            if medication is not None:
                summary = MedicationSummary(
                    id=medication.id,
                    name=medication.name,
                    price=medication.price,
                    stock=medication.stock,
                    is_active=medication.is_active,
                    images=[
                        MedicationImageSummary(
                            url=img.url, alt=img.alt, is_primary=img.is_primary
                        )
                        for img in images.get(medication.id, [])
                    ],
                )

            items.append(
                CartLineRead(
                    medication_id=line.medication_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=round(line.unit_price * line.quantity, 2),
                    added_at=line.added_at,
                    medication=summary,
                )
            )

        return CartRead(
            id=cart.id,
            owner_id=cart.owner_id,
            items=items,
            total_item_count=cart.total_item_count,
            total_amount=cart.total_amount,
            last_updated=cart.last_updated,
            created_at=cart.created_at,
        )

    # ---- public operations ----

    def get_or_create_cart(self, session: Session, user_id: uuid.UUID) -> CartRead:
        """
        Return the user's cart, creating an empty one on first access.
        """
        cart = self._find_or_create(session, user_id)
        return self._build_read(session, cart)

    def get_item_count(self, session: Session, user_id: uuid.UUID) -> int:
        return self._find_or_create(session, user_id).total_item_count

    def add_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        medication_id: uuid.UUID,
        quantity: int,
    ) -> CartRead:
        """
        Add a medication to the user's cart (merging into an existing line).

        Rejections leave the cart unchanged.
        """
        cart = self._lock_cart(session, user_id, create=True)
        self._stage_add(session, cart, medication_id, quantity)
        cart = self._persist(session, cart)
        return self._build_read(session, cart)

    def update_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        medication_id: uuid.UUID,
        quantity: int,
    ) -> CartRead:
        """
        Set the quantity of a line (absolute, not a delta).

        quantity <= 0 removes the line. Stock is re-checked against the
        current catalog, and the line is re-priced.
        """
        if quantity <= 0:
            return self.remove_item(session, user_id, medication_id)

        cart = self._lock_cart(session, user_id)
        line = self.cart_repo.get_line(session, cart.id, medication_id)
        if not line:
            raise NotFoundException("Item not found in cart")

        medication = self._get_medication(session, medication_id)
        if quantity > medication.stock:
            raise StockExceededException(
                f"Only {medication.stock} items available in stock",
                max_addable=medication.stock,
            )

        line.quantity = quantity
        line.unit_price = medication.price
        session.add(line)

        cart = self._persist(session, cart)
        return self._build_read(session, cart)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        medication_id: uuid.UUID,
    ) -> CartRead:
        """
        Remove a medication from the cart. Absent lines are a no-op.
        """
        cart = self._lock_cart(session, user_id)
        line = self.cart_repo.get_line(session, cart.id, medication_id)
        if line:
            self.cart_repo.delete_line(session, line)

        cart = self._persist(session, cart)
        return self._build_read(session, cart)

    def clear_cart(self, session: Session, user_id: uuid.UUID) -> CartRead:
        """
        Remove every line; the cart row itself is kept.
        """
        cart = self._lock_cart(session, user_id)
        self.cart_repo.delete_all_lines(session, cart.id)
        cart = self._persist(session, cart)
        return self._build_read(session, cart)

    def sync_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        incoming: list[CartSyncLine],
    ) -> CartSyncResult:
        """
        Replace the server cart with a guest cart, best effort.

        The cart is cleared, then each incoming line goes through the same
        checks as add_item. Lines that fail are skipped and reported.
        Clearing and re-adding commit together: if storage fails halfway,
        the previous cart is rolled back rather than lost.
        """
        cart = self._lock_cart(session, user_id, create=True)
        self.cart_repo.delete_all_lines(session, cart.id)

        skipped: list[SkippedLine] = []
        for entry in incoming:
            reason = self._apply_sync_line(session, cart, entry)
            if reason is not None:
                logger.warning(
                    "Skipping guest cart line for user %s: medication=%s quantity=%s (%s)",
                    user_id,
                    entry.medication_id,
                    entry.quantity,
                    reason,
                )
                skipped.append(
                    SkippedLine(
                        medication_id=entry.medication_id,
                        quantity=entry.quantity,
                        reason=reason,
                    )
                )

        cart = self._persist(session, cart)

        if not skipped:
            outcome = SyncStatus.APPLIED
        elif len(skipped) == len(incoming):
            outcome = SyncStatus.REJECTED
        else:
            outcome = SyncStatus.PARTIAL

        logger.info(
            "Synced guest cart for user %s: %d received, %d skipped",
            user_id,
            len(incoming),
            len(skipped),
        )
        return CartSyncResult(
            status=outcome,
            cart=self._build_read(session, cart),
            skipped=skipped,
        )

    def _apply_sync_line(
        self,
        session: Session,
        cart: Cart,
        entry: CartSyncLine,
    ) -> str | None:
        """Stage one guest line; return the skip reason, or None if kept."""
        parsed = self._parse_sync_line(entry)
        if parsed is None:
            return "invalid_line"
        medication_id, quantity = parsed

        try:
            self._stage_add(session, cart, medication_id, quantity)
        except StockExceededException:
            return "stock_exceeded"
        except ProductUnavailableException:
            return "inactive"
        except NotFoundException:
            return "not_found"
        except BadRequestException:
            return "invalid_line"
        return None

    @staticmethod
    def _parse_sync_line(entry: CartSyncLine) -> tuple[uuid.UUID, int] | None:
        """
        Coerce a raw guest line into (medication_id, quantity).

        Accepts a UUID string and a positive whole number (int, integral
        float or digit string). Anything else returns None.
        """
        if not isinstance(entry.medication_id, str):
            return None
        try:
            medication_id = uuid.UUID(entry.medication_id)
        except ValueError:
            return None

        raw = entry.quantity
        if isinstance(raw, bool):
            return None
        if isinstance(raw, float):
            if not raw.is_integer():
                return None
            quantity = int(raw)
        elif isinstance(raw, (int, str)):
            try:
                quantity = int(raw)
            except ValueError:
                return None
        else:
            return None

        if quantity < 1:
            return None
        return medication_id, quantity

    def prune_unavailable(self, session: Session, user_id: uuid.UUID) -> CartPruneResult:
        """
        Drop lines whose medication is gone, inactive, or out of stock.
        """
        cart = self._lock_cart(session, user_id, create=True)
        lines = self.cart_repo.list_lines(session, cart.id)
        medications = self.medication_repo.get_many(
            session, [line.medication_id for line in lines]
        )

        removed = 0
        for line in lines:
            medication = medications.get(line.medication_id)
            if medication is None or not medication.is_active or medication.stock <= 0:
                self.cart_repo.delete_line(session, line)
                removed += 1

        cart = self._persist(session, cart)
        if removed:
            logger.info("Pruned %d unavailable lines from cart %s", removed, cart.id)
        return CartPruneResult(removed=removed, cart=self._build_read(session, cart))
