# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.medication_repo import MedicationRepository
from app.schemas.cart import (
    CartCount,
    CartItemAdd,
    CartItemUpdate,
    CartPruneResult,
    CartRead,
    CartSyncRequest,
    CartSyncResult,
)
from app.schemas.common import ApiResponse
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
medication_repo = MedicationRepository()
service = CartService(cart_repo, medication_repo)


@router.get("", response_model=ApiResponse[CartRead])
def get_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get the current user's cart (created empty on first access).
    """
    cart = service.get_or_create_cart(session, current_user.id)
    return ApiResponse(data=cart, message="Cart retrieved successfully")


@router.get("/count", response_model=ApiResponse[CartCount])
def get_cart_count(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Total quantity across all lines (header badge).
    """
    count = service.get_item_count(session, current_user.id)
    return ApiResponse(data=CartCount(count=count), message="Cart count retrieved successfully")


@router.post("/add", response_model=ApiResponse[CartRead])
def add_to_cart(
    payload: CartItemAdd,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Add a medication to the cart.

    Returns the updated cart.
    """
    cart = service.add_item(session, current_user.id, payload.medication_id, payload.quantity)
    return ApiResponse(data=cart, message="Item added to cart successfully")


@router.post("/sync", response_model=ApiResponse[CartSyncResult])
def sync_cart(
    payload: CartSyncRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Replace the server cart with the guest cart kept by the client.

    Unavailable lines are skipped and listed in `skipped`.
    """
    result = service.sync_cart(session, current_user.id, payload.items)
    return ApiResponse(data=result, message="Cart synced successfully")


@router.post("/prune", response_model=ApiResponse[CartPruneResult])
def prune_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Remove lines for medications that are inactive or out of stock.
    """
    result = service.prune_unavailable(session, current_user.id)
    return ApiResponse(data=result, message="Unavailable items removed")


@router.put("/item/{medication_id}", response_model=ApiResponse[CartRead])
def update_cart_item(
    medication_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Set the quantity of a cart line. quantity <= 0 removes it.

    Returns the updated cart.
    """
    cart = service.update_item(
        session=session,
        user_id=current_user.id,
        medication_id=medication_id,
        quantity=payload.quantity,
    )
    return ApiResponse(data=cart, message="Cart updated successfully")


@router.delete("/item/{medication_id}", response_model=ApiResponse[CartRead])
def remove_cart_item(
    medication_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Remove a medication from the cart (no-op if absent).
    """
    cart = service.remove_item(session, current_user.id, medication_id)
    return ApiResponse(data=cart, message="Item removed from cart successfully")


@router.delete("", response_model=ApiResponse[CartRead])
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Clear the entire cart.

    Returns the empty cart.
    """
    cart = service.clear_cart(session, current_user.id)
    return ApiResponse(data=cart, message="Cart cleared successfully")
