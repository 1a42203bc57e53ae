"""
storefront/routers/carts.py
Cart endpoints (logged-in users): get, add, update/remove a line, clear, sync a guest cart,
and a count/total summary.

Behavior
- Cart lines are stored as items[product_id][size] = quantity, one document per user.
- Add accumulates onto the existing line; PUT sets the absolute quantity (0 removes the line).
- Every response is enriched from the live catalog: name, price, first image, stock and
  `available` (stock >= quantity). Lines of deleted/unpublished products are hidden, not deleted.
- Every response carries `success` and `message`; rejections are raised as CartError and
  rendered by the handlers registered in storefront.main.
"""
from fastapi import APIRouter, Depends

from storefront.config import settings, get_db
from storefront.core.auth import get_principal
from storefront.repositories.carts import FirestoreCartStore
from storefront.repositories.products import FirestoreProductLookup
from storefront.schemas.cart import (
    AddItemBody, CartData, CartResponse, CartSummaryResponse,
    RemoveItemBody, SyncCartBody, UpdateItemBody,
)
from storefront.schemas.principal import Principal
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

_service = None


def get_cart_service() -> CartService:
    """Firestore-backed service, built on first use and shared by all requests."""
    global _service
    if _service is None:
        db = get_db()
        _service = CartService(
            store=FirestoreCartStore(db, settings.collection_name(settings.carts_collection)),
            products=FirestoreProductLookup(db, settings.collection_name(settings.products_collection)),
        )
    return _service


def _ok(cart, message: str) -> CartResponse:
    return CartResponse(success=True, message=message, data=CartData(cart=cart))


@router.get("", response_model=CartResponse)
def get_cart(
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    """Current cart, enriched with live product data."""
    return _ok(service.get_cart(principal.uid), "Cart fetched successfully")


@router.post("", response_model=CartResponse)
def add_to_cart(
    payload: AddItemBody,
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    cart = service.add(principal.uid, payload.itemId, payload.size, payload.quantity)
    return _ok(cart, "Item added to cart successfully")


@router.put("", response_model=CartResponse)
def update_cart_item(
    payload: UpdateItemBody,
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    """quantity=0 removes the line; quantity>0 replaces it (checked against stock)."""
    cart = service.update(principal.uid, payload.itemId, payload.size, payload.quantity)
    message = "Item removed from cart successfully" if payload.quantity == 0 else "Cart updated successfully"
    return _ok(cart, message)


@router.delete("", response_model=CartResponse)
def clear_cart(
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    return _ok(service.clear(principal.uid), "Cart cleared successfully")


@router.post("/remove", response_model=CartResponse)
def remove_cart_item(
    payload: RemoveItemBody,
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    cart = service.remove(principal.uid, payload.itemId, payload.size)
    return _ok(cart, "Item removed from cart successfully")


@router.post("/sync", response_model=CartResponse)
def sync_cart(
    payload: SyncCartBody,
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    """Merge the cart a guest built before logging in."""
    return _ok(service.sync(principal.uid, payload.guestCart), "Cart synced successfully")


@router.get("/summary", response_model=CartSummaryResponse)
def cart_summary(
    principal: Principal = Depends(get_principal),
    service: CartService = Depends(get_cart_service),
):
    """Item count and total computed from the enriched (live) cart."""
    return CartSummaryResponse(
        success=True,
        message="Cart summary fetched successfully",
        data=service.summary(principal.uid),
    )
