"""
# `storefront/schemas/product.py` — Product record as seen by the cart

The cart only reads products; it never creates or edits them.

| Field        | Type        | Description |
|--------------|-------------|-------------|
| id           | `str`       | Firestore document id |
| name         | `str`       | Display name |
| price        | `float`     | Current unit price |
| images       | `list[str]` | Image URLs, first one is the primary image |
| stock        | `int`       | Units available for purchase |
| sizes        | `list[str]` | Valid size labels; empty means the product is not sized |
| is_published | `bool`      | Visible/purchasable flag |
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Fields projected when the cart reads products
CART_PRODUCT_FIELDS = ["name", "price", "images", "stock", "sizes", "is_published"]


def _as_list(value: Any) -> List[Any]:
    # A lone string is one entry; anything else that is not a list is ignored
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


class Product(BaseModel):
    id: str
    name: str = ""
    price: float = Field(0.0, ge=0)
    images: List[str] = []
    stock: int = 0
    sizes: List[str] = []
    is_published: bool = False

    @property
    def primary_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @classmethod
    def from_document(cls, doc_id: str, src: Dict[str, Any]) -> "Product":
        """
        Builds a Product from a raw Firestore document, tolerating missing fields.
        Raises ValueError / TypeError when price or stock cannot be read as numbers.
        """
        images = _as_list(src.get("images"))
        sizes = _as_list(src.get("sizes"))
        return cls(
            id=doc_id,
            name=src.get("name", "") or "",
            price=max(0.0, float(src.get("price", 0) or 0)),
            images=[str(i) for i in images if i],
            stock=max(0, int(src.get("stock", 0) or 0)),
            sizes=[str(s).strip() for s in sizes if str(s).strip()],
            is_published=bool(src.get("is_published", False)),
        )
