# storefront/repositories/products.py
"""Read-only product lookup used by the cart (Firestore `products` collection)."""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from pydantic import ValidationError

from storefront.schemas.product import CART_PRODUCT_FIELDS, Product

logger = logging.getLogger("storefront.products")

_MAX_ID_BYTES = 1500


def is_valid_product_id(product_id) -> bool:
    """Firestore document id rules: non-empty, no '/', not '.'/'..', not '__x__', <= 1500 bytes."""
    if not isinstance(product_id, str) or not product_id.strip():
        return False
    if "/" in product_id or product_id in (".", ".."):
        return False
    if product_id.startswith("__") and product_id.endswith("__"):
        return False
    return len(product_id.encode("utf-8")) <= _MAX_ID_BYTES


class ProductLookup(ABC):

    @abstractmethod
    def find_by_id(self, product_id: str) -> Optional[Product]:
        ...

    @abstractmethod
    def find_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        """Batch read; unknown ids are simply absent from the result."""
        ...


class FirestoreProductLookup(ProductLookup):

    def __init__(self, db, collection: str = "products"):
        self._db = db
        self._collection = collection

    def _ref(self, product_id: str):
        return self._db.collection(self._collection).document(product_id)

    @staticmethod
    def _parse(snap) -> Optional[Product]:
        """A document that cannot be read as a Product is treated as missing."""
        try:
            return Product.from_document(snap.id, snap.to_dict() or {})
        except (TypeError, ValueError, ValidationError) as e:
            logger.warning("Skipping malformed product %s: %s", snap.id, e)
            return None

    def find_by_id(self, product_id: str) -> Optional[Product]:
        if not is_valid_product_id(product_id):
            return None
        snap = self._ref(product_id).get(field_paths=CART_PRODUCT_FIELDS)
        if not snap.exists:
            return None
        return self._parse(snap)

    def find_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        ids = list(dict.fromkeys(pid for pid in product_ids if is_valid_product_id(pid)))
        if not ids:
            return []
        refs = [self._ref(pid) for pid in ids]
        out: List[Product] = []
        for snap in self._db.get_all(refs, field_paths=CART_PRODUCT_FIELDS):
            product = self._parse(snap) if snap.exists else None
            if product is not None:
                out.append(product)
        return out
