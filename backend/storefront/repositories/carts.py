"""
storefront/repositories/carts.py
Cart persistence: one Firestore document per user, `carts/{uid}`.

Document layout:
    {
      "user_id": "<uid>",
      "items": {"<product_id>": {"<size>": <quantity>}},
      "created_at": <timestamp>,
      "updated_at": <timestamp>
    }

No versioning: `replace` overwrites the whole items map (last writer wins).
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from google.api_core.exceptions import AlreadyExists

from storefront.schemas.cart import Cart, CartItems

logger = logging.getLogger("storefront.carts")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_dt(ts) -> Optional[datetime]:
    if ts is None:
        return None
    if isinstance(ts, datetime):
        return ts
    try:
        return ts.to_datetime()
    except AttributeError:
        return None


def coerce_items(raw: Any) -> CartItems:
    """
    Reduces whatever is stored under `items` to {product_id: {size: positive int}}.
    Drops non-map levels, '$'-prefixed keys, and quantities that are not positive integers.
    Product entries left without sizes are dropped too.
    """
    if not isinstance(raw, dict):
        return {}
    items: CartItems = {}
    for pid, sizes in raw.items():
        if not isinstance(pid, str) or pid.startswith("$") or not isinstance(sizes, dict):
            continue
        clean = {}
        for size, qty in sizes.items():
            if not isinstance(size, str) or size.startswith("$"):
                continue
            if isinstance(qty, bool):
                continue
            if isinstance(qty, float) and qty.is_integer():
                qty = int(qty)
            if isinstance(qty, int) and qty > 0:
                clean[size] = qty
        if clean:
            items[pid] = clean
    return items


class CartStore(ABC):

    @abstractmethod
    def get(self, user_id: str) -> Cart:
        """Existing cart, or a freshly provisioned empty one."""
        ...

    @abstractmethod
    def exists(self, user_id: str) -> bool:
        ...

    @abstractmethod
    def replace(self, user_id: str, items: CartItems) -> Cart:
        """Overwrites the stored items map; no merge."""
        ...

    def clear(self, user_id: str) -> Cart:
        return self.replace(user_id, {})


class FirestoreCartStore(CartStore):

    def __init__(self, db, collection: str = "carts"):
        self._db = db
        self._collection = collection

    def _ref(self, user_id: str):
        return self._db.collection(self._collection).document(user_id)

    @staticmethod
    def _from_snapshot(user_id: str, snap) -> Cart:
        data = snap.to_dict() or {}
        return Cart(
            id=snap.id,
            user_id=data.get("user_id") or user_id,
            items=coerce_items(data.get("items")),
            created_at=_to_dt(data.get("created_at")),
            updated_at=_to_dt(data.get("updated_at")),
        )

    def get(self, user_id: str) -> Cart:
        ref = self._ref(user_id)
        snap = ref.get()
        if snap.exists:
            return self._from_snapshot(user_id, snap)

        now = _now()
        data = {"user_id": user_id, "items": {}, "created_at": now, "updated_at": now}
        try:
            ref.create(data)
        except AlreadyExists:
            # Provisioned by a concurrent request
            return self._from_snapshot(user_id, ref.get())
        logger.debug("Provisioned empty cart for user %s", user_id)
        return Cart(id=ref.id, user_id=user_id, items={}, created_at=now, updated_at=now)

    def exists(self, user_id: str) -> bool:
        return self._ref(user_id).get().exists

    def replace(self, user_id: str, items: CartItems) -> Cart:
        ref = self._ref(user_id)
        # merge with explicit field paths replaces `items` as a whole
        ref.set(
            {"user_id": user_id, "items": items, "updated_at": _now()},
            merge=["user_id", "items", "updated_at"],
        )
        return self._from_snapshot(user_id, ref.get())
