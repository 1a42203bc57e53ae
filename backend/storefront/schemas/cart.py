"""
storefront/schemas/cart.py - Pydantic models for the cart.

Stored shape:   items = {product_id: {size: quantity}}
Response shape: items = {product_id: {size: EnrichedCartEntry}}
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

# product_id -> size label -> positive quantity
CartItems = Dict[str, Dict[str, int]]

_INVISIBLE_CHARS = ("\u200b", "\u200c", "\u200d", "\ufeff", "\xa0")


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    for ch in _INVISIBLE_CHARS:
        v = v.replace(ch, "")
    return v


class Cart(BaseModel):
    """Persisted cart record (one per user)."""
    id: str = Field(..., description="Cart document id")
    user_id: str = Field(..., description="ID of the user who owns this cart")
    items: CartItems = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------- request bodies ----------
class _ItemRef(BaseModel):
    itemId: Optional[str] = Field(None, description="Product ID")
    size: Optional[str] = Field(None, description="Size label (e.g. 'M')")

    @field_validator("itemId", "size", mode="before")
    @classmethod
    def _clean(cls, v):
        return _clean_text(v)


class AddItemBody(_ItemRef):
    quantity: int = Field(1, description="Quantity to add (>0)")


class UpdateItemBody(_ItemRef):
    quantity: int = Field(..., description="New quantity; 0 removes the line")


class RemoveItemBody(_ItemRef):
    pass


class SyncCartBody(BaseModel):
    """Guest cart collected before login: {product_id: {size: quantity}}."""
    guestCart: Dict[str, Dict[str, Any]] = Field(..., description="Guest cart items")


# ---------- responses ----------
class EnrichedCartEntry(BaseModel):
    quantity: int
    name: str
    price: float
    image: Optional[str] = None
    stock: int
    available: bool
    size: str


EnrichedItems = Dict[str, Dict[str, EnrichedCartEntry]]


class CartOut(BaseModel):
    id: str
    userId: str
    items: EnrichedItems = Field(default_factory=dict)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class CartData(BaseModel):
    cart: CartOut


class CartSummary(BaseModel):
    totalItems: int = 0
    totalAmount: float = 0.0
    itemsCount: int = 0


class CartResponse(BaseModel):
    success: bool = True
    message: str = ""
    data: CartData


class CartSummaryResponse(BaseModel):
    success: bool = True
    message: str = ""
    data: CartSummary


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
