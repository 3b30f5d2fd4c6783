"""
Service tests for the cart aggregate.

These call CartService directly with a real Session so the stock,
snapshot-price and totals rules are checked without the HTTP layer.
"""
import uuid

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from app.core.exceptions import (
    BadRequestException,
    NotFoundException,
    ProductUnavailableException,
    StockExceededException,
)
from app.models.cart import Cart
from app.repositories.cart_repo import CartRepository
from app.repositories.medication_repo import MedicationRepository
from app.schemas.cart import CartRead, CartSyncLine, SyncStatus
from app.services.cart_service import CartService


@pytest.fixture
def service() -> CartService:
    return CartService(CartRepository(), MedicationRepository())


def assert_totals_consistent(cart: CartRead):
    assert cart.total_item_count == sum(line.quantity for line in cart.items)
    assert cart.total_amount == pytest.approx(
        sum(line.unit_price * line.quantity for line in cart.items)
    )
    medication_ids = [line.medication_id for line in cart.items]
    assert len(medication_ids) == len(set(medication_ids))


class TestGetOrCreate:
    def test_creates_empty_cart_on_first_access(self, session, service, user_id):
        cart = service.get_or_create_cart(session, user_id)

        assert cart.owner_id == user_id
        assert cart.items == []
        assert cart.total_item_count == 0
        assert cart.total_amount == 0

    def test_second_call_returns_same_cart(self, session, service, user_id):
        first = service.get_or_create_cart(session, user_id)
        second = service.get_or_create_cart(session, user_id)

        assert first.id == second.id
        carts = session.exec(select(Cart).where(Cart.owner_id == user_id)).all()
        assert len(carts) == 1

    def test_concurrent_first_access_reuses_existing_cart(
        self, session, service, user_id, monkeypatch
    ):
        existing = service.get_or_create_cart(session, user_id)

        original_get = service.cart_repo.get_by_owner
        calls = {"n": 0}

        def stale_get(s, owner_id, for_update=False):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original_get(s, owner_id, for_update=for_update)

        monkeypatch.setattr(service.cart_repo, "get_by_owner", stale_get)

        cart = service.get_or_create_cart(session, user_id)

        assert cart.id == existing.id
        assert calls["n"] == 2
        carts = session.exec(select(Cart).where(Cart.owner_id == user_id)).all()
        assert len(carts) == 1

    def test_lines_carry_live_medication_summary(self, session, service, user_id, make_medication):
        med = make_medication(name="Ibuprofen", price=5.5, stock=7)
        service.add_item(session, user_id, med.id, 1)

        cart = service.get_or_create_cart(session, user_id)

        summary = cart.items[0].medication
        assert summary.name == "Ibuprofen"
        assert summary.price == 5.5
        assert summary.stock == 7
        assert summary.is_active is True


class TestAddItem:
    def test_add_to_empty_cart(self, session, service, user_id, make_medication):
        med = make_medication(price=9.99, stock=10)

        cart = service.add_item(session, user_id, med.id, 2)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.items[0].unit_price == 9.99
        assert cart.total_item_count == 2
        assert cart.total_amount == pytest.approx(19.98)

    def test_adding_existing_product_merges_line(self, session, service, user_id, make_medication):
        med = make_medication(price=9.99, stock=10)
        service.add_item(session, user_id, med.id, 2)

        cart = service.add_item(session, user_id, med.id, 3)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5
        assert cart.total_amount == pytest.approx(49.95)
        assert_totals_consistent(cart)

    def test_stock_ceiling_rejects_without_clamping(self, session, service, user_id, make_medication):
        med = make_medication(stock=5)
        service.add_item(session, user_id, med.id, 5)

        with pytest.raises(StockExceededException) as exc_info:
            service.add_item(session, user_id, med.id, 1)

        assert exc_info.value.max_addable == 0
        cart = service.get_or_create_cart(session, user_id)
        assert cart.items[0].quantity == 5

    def test_stock_ceiling_reports_remaining_quantity(self, session, service, user_id, make_medication):
        med = make_medication(stock=10)
        service.add_item(session, user_id, med.id, 4)

        with pytest.raises(StockExceededException) as exc_info:
            service.add_item(session, user_id, med.id, 7)

        assert exc_info.value.max_addable == 6
        assert "Maximum available: 6" in exc_info.value.detail

    def test_inactive_medication_rejected(self, session, service, user_id, make_medication):
        med = make_medication(is_active=False)

        with pytest.raises(ProductUnavailableException):
            service.add_item(session, user_id, med.id, 1)

        assert service.get_or_create_cart(session, user_id).items == []

    def test_unknown_medication_rejected(self, session, service, user_id):
        with pytest.raises(NotFoundException):
            service.add_item(session, user_id, uuid.uuid4(), 1)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, session, service, user_id, make_medication, quantity):
        med = make_medication()

        with pytest.raises(BadRequestException):
            service.add_item(session, user_id, med.id, quantity)

    def test_lines_keep_insertion_order(self, session, service, user_id, make_medication):
        first = make_medication(name="First")
        second = make_medication(name="Second")
        third = make_medication(name="Third")

        for med in (second, first, third):
            service.add_item(session, user_id, med.id, 1)
        cart = service.add_item(session, user_id, first.id, 1)

        assert [line.medication_id for line in cart.items] == [second.id, first.id, third.id]


class TestPriceSnapshot:
    def test_untouched_line_keeps_snapshot(self, session, service, user_id, make_medication):
        med = make_medication(price=9.99, stock=10)
        service.add_item(session, user_id, med.id, 2)

        med.price = 12.0
        session.add(med)
        session.commit()

        cart = service.get_or_create_cart(session, user_id)
        line = cart.items[0]
        assert line.unit_price == 9.99
        assert line.medication.price == 12.0
        assert cart.total_amount == pytest.approx(19.98)

    def test_re_adding_reprices_line(self, session, service, user_id, make_medication):
        med = make_medication(price=9.99, stock=10)
        service.add_item(session, user_id, med.id, 2)

        med.price = 12.0
        session.add(med)
        session.commit()

        cart = service.add_item(session, user_id, med.id, 1)
        assert cart.items[0].unit_price == 12.0
        assert cart.total_amount == pytest.approx(36.0)

    def test_update_reprices_line(self, session, service, user_id, make_medication):
        med = make_medication(price=4.0, stock=10)
        service.add_item(session, user_id, med.id, 1)

        med.price = 5.0
        session.add(med)
        session.commit()

        cart = service.update_item(session, user_id, med.id, 2)
        assert cart.items[0].unit_price == 5.0
        assert cart.total_amount == pytest.approx(10.0)


class TestUpdateItem:
    def test_update_sets_absolute_quantity(self, session, service, user_id, make_medication):
        med = make_medication(stock=10)
        service.add_item(session, user_id, med.id, 1)

        service.update_item(session, user_id, med.id, 5)
        cart = service.update_item(session, user_id, med.id, 3)

        assert cart.items[0].quantity == 3
        assert cart.total_item_count == 3
        assert_totals_consistent(cart)

    def test_zero_quantity_removes_line(self, session, service, user_id, make_medication):
        med = make_medication()
        service.add_item(session, user_id, med.id, 3)

        cart = service.update_item(session, user_id, med.id, 0)

        assert cart.items == []
        assert cart.total_item_count == 0
        assert cart.total_amount == 0

    def test_negative_quantity_removes_line(self, session, service, user_id, make_medication):
        med = make_medication()
        service.add_item(session, user_id, med.id, 3)

        cart = service.update_item(session, user_id, med.id, -1)

        assert cart.items == []

    def test_stock_rechecked_at_update_time(self, session, service, user_id, make_medication):
        med = make_medication(stock=10)
        service.add_item(session, user_id, med.id, 2)

        med.stock = 3
        session.add(med)
        session.commit()

        with pytest.raises(StockExceededException) as exc_info:
            service.update_item(session, user_id, med.id, 4)

        assert exc_info.value.max_addable == 3
        assert service.get_or_create_cart(session, user_id).items[0].quantity == 2

    def test_missing_line_is_not_found(self, session, service, user_id, make_medication):
        med = make_medication()
        other = make_medication()
        service.add_item(session, user_id, med.id, 1)

        with pytest.raises(NotFoundException) as exc_info:
            service.update_item(session, user_id, other.id, 2)

        assert exc_info.value.detail == "Item not found in cart"

    def test_update_without_cart_is_not_found(self, session, service, user_id, make_medication):
        med = make_medication()

        with pytest.raises(NotFoundException) as exc_info:
            service.update_item(session, user_id, med.id, 2)

        assert exc_info.value.detail == "Cart not found"


class TestRemoveAndClear:
    def test_remove_absent_item_is_noop(self, session, service, user_id, make_medication):
        med = make_medication()
        service.add_item(session, user_id, med.id, 2)
        absent = uuid.uuid4()

        first = service.remove_item(session, user_id, absent)
        second = service.remove_item(session, user_id, absent)

        assert first.items == second.items
        assert second.total_item_count == 2

    def test_remove_existing_item(self, session, service, user_id, make_medication):
        keep = make_medication(price=2.5)
        drop = make_medication(price=7.0)
        service.add_item(session, user_id, keep.id, 2)
        service.add_item(session, user_id, drop.id, 1)

        cart = service.remove_item(session, user_id, drop.id)

        assert [line.medication_id for line in cart.items] == [keep.id]
        assert cart.total_amount == pytest.approx(5.0)

    def test_clear_keeps_cart_record(self, session, service, user_id, make_medication):
        med = make_medication()
        before = service.add_item(session, user_id, med.id, 2)

        after = service.clear_cart(session, user_id)

        assert after.id == before.id
        assert after.items == []
        assert after.total_item_count == 0
        assert after.total_amount == 0

    def test_count_reflects_total_quantity(self, session, service, user_id, make_medication):
        a = make_medication()
        b = make_medication()
        service.add_item(session, user_id, a.id, 2)
        service.add_item(session, user_id, b.id, 3)

        assert service.get_item_count(session, user_id) == 5


class TestSync:
    def test_sync_replaces_server_cart(self, session, service, user_id, make_medication):
        old = make_medication()
        new = make_medication(price=3.0)
        service.add_item(session, user_id, old.id, 1)

        result = service.sync_cart(
            session, user_id, [CartSyncLine(medication_id=str(new.id), quantity=2)]
        )

        assert result.status == SyncStatus.APPLIED
        assert result.skipped == []
        assert [line.medication_id for line in result.cart.items] == [new.id]
        assert result.cart.total_amount == pytest.approx(6.0)

    def test_inactive_line_is_skipped(self, session, service, user_id, make_medication):
        med = make_medication(is_active=False)

        result = service.sync_cart(
            session, user_id, [CartSyncLine(medication_id=str(med.id), quantity=4)]
        )

        assert result.status == SyncStatus.REJECTED
        assert result.cart.items == []
        assert result.skipped[0].reason == "inactive"

    def test_partial_sync_reports_skipped_lines(self, session, service, user_id, make_medication):
        ok = make_medication(stock=5)
        low = make_medication(stock=1)
        missing = uuid.uuid4()

        result = service.sync_cart(
            session,
            user_id,
            [
                CartSyncLine(medication_id=str(ok.id), quantity=2),
                CartSyncLine(medication_id=str(low.id), quantity=3),
                CartSyncLine(medication_id=str(missing), quantity=1),
                CartSyncLine(medication_id="not-a-uuid", quantity=1),
                CartSyncLine(medication_id=str(ok.id), quantity=None),
            ],
        )

        assert result.status == SyncStatus.PARTIAL
        assert [line.medication_id for line in result.cart.items] == [ok.id]
        assert [s.reason for s in result.skipped] == [
            "stock_exceeded",
            "not_found",
            "invalid_line",
            "invalid_line",
        ]
        assert_totals_consistent(result.cart)

    def test_loosely_typed_quantities_are_coerced(self, session, service, user_id, make_medication):
        a = make_medication(stock=10)
        b = make_medication(stock=10)

        result = service.sync_cart(
            session,
            user_id,
            [
                CartSyncLine(medication_id=str(a.id), quantity="3"),
                CartSyncLine(medication_id=str(b.id), quantity=2.0),
                CartSyncLine(medication_id=str(a.id), quantity=1.5),
                CartSyncLine(medication_id=str(b.id), quantity=True),
                CartSyncLine(medication_id=uuid.uuid4().int, quantity=1),
            ],
        )

        assert result.status == SyncStatus.PARTIAL
        assert [(line.medication_id, line.quantity) for line in result.cart.items] == [
            (a.id, 3),
            (b.id, 2),
        ]
        assert [s.reason for s in result.skipped] == ["invalid_line"] * 3
        assert_totals_consistent(result.cart)

    def test_duplicate_lines_merge_with_cumulative_stock_check(
        self, session, service, user_id, make_medication
    ):
        med = make_medication(stock=5)

        result = service.sync_cart(
            session,
            user_id,
            [
                CartSyncLine(medication_id=str(med.id), quantity=3),
                CartSyncLine(medication_id=str(med.id), quantity=2),
                CartSyncLine(medication_id=str(med.id), quantity=1),
            ],
        )

        assert len(result.cart.items) == 1
        assert result.cart.items[0].quantity == 5
        assert [s.reason for s in result.skipped] == ["stock_exceeded"]

    def test_empty_sync_clears_cart(self, session, service, user_id, make_medication):
        med = make_medication()
        service.add_item(session, user_id, med.id, 1)

        result = service.sync_cart(session, user_id, [])

        assert result.status == SyncStatus.APPLIED
        assert result.cart.items == []

    def test_storage_failure_mid_sync_keeps_previous_cart(
        self, session, service, user_id, make_medication, monkeypatch
    ):
        kept = make_medication()
        incoming = make_medication()
        service.add_item(session, user_id, kept.id, 2)

        original_get = service.medication_repo.get_by_id
        calls = {"n": 0}

        def flaky_get(s, medication_id):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("SELECT", None, Exception("connection lost"))
            return original_get(s, medication_id)

        monkeypatch.setattr(service.medication_repo, "get_by_id", flaky_get)

        with pytest.raises(OperationalError):
            service.sync_cart(
                session,
                user_id,
                [
                    CartSyncLine(medication_id=str(incoming.id), quantity=1),
                    CartSyncLine(medication_id=str(kept.id), quantity=1),
                ],
            )

        session.rollback()
        monkeypatch.undo()

        cart = service.get_or_create_cart(session, user_id)
        assert [(line.medication_id, line.quantity) for line in cart.items] == [(kept.id, 2)]


class TestPrune:
    def test_prune_removes_unavailable_lines(self, session, service, user_id, make_medication):
        available = make_medication(stock=5)
        discontinued = make_medication(stock=5)
        sold_out = make_medication(stock=5)
        for med in (available, discontinued, sold_out):
            service.add_item(session, user_id, med.id, 1)

        discontinued.is_active = False
        sold_out.stock = 0
        session.add(discontinued)
        session.add(sold_out)
        session.commit()

        result = service.prune_unavailable(session, user_id)

        assert result.removed == 2
        assert [line.medication_id for line in result.cart.items] == [available.id]
        assert result.cart.total_item_count == 1
