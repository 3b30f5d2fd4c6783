# app/repositories/cart_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.cart import Cart, CartLine


class CartRepository:
    """
    Data access layer for Cart & CartLine.

    Line-level writes only stage changes on the session; `save` commits
    the cart and its lines together so that a mutation is one
    transaction.
    """

    # ----- Carts -----

    def get_by_owner(
        self,
        session: Session,
        owner_id: uuid.UUID,
        for_update: bool = False,
    ) -> Cart | None:
        """
        Return the user's cart, or None.

        With for_update=True the row is locked until the transaction
        ends (no-op on SQLite) and reloaded from the database.
        """
        stmt = select(Cart).where(Cart.owner_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return session.exec(stmt).first()

    def create(self, session: Session, cart: Cart) -> Cart:
        """Insert a new cart. Raises IntegrityError if the owner already has one."""
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart

    def save(self, session: Session, cart: Cart) -> Cart:
        """Commit the cart row together with any staged line changes."""
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart

    # ----- Lines -----

    def list_lines(self, session: Session, cart_id: uuid.UUID) -> list[CartLine]:
        stmt = (
            select(CartLine)
            .where(CartLine.cart_id == cart_id)
            .order_by(CartLine.position, CartLine.added_at)
        )
        return list(session.exec(stmt).all())

    def get_line(
        self, session: Session, cart_id: uuid.UUID, medication_id: uuid.UUID
    ) -> CartLine | None:
        stmt = select(CartLine).where(
            CartLine.cart_id == cart_id, CartLine.medication_id == medication_id
        )
        return session.exec(stmt).first()

    def next_position(self, session: Session, cart_id: uuid.UUID) -> int:
        stmt = select(func.max(CartLine.position)).where(CartLine.cart_id == cart_id)
        current = session.exec(stmt).one()
        return 0 if current is None else current + 1

    def add_line(self, session: Session, line: CartLine) -> CartLine:
        session.add(line)
        session.flush()
        return line

    def delete_line(self, session: Session, line: CartLine) -> None:
        session.delete(line)
        session.flush()

    def delete_all_lines(self, session: Session, cart_id: uuid.UUID) -> None:
        for line in self.list_lines(session, cart_id):
            session.delete(line)
        session.flush()
