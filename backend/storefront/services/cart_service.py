"""
storefront/services/cart_service.py
Business rules for cart mutations (add / update / remove / clear / sync) and cart reads.

Every mutation reads the cart, re-reads the product(s) it touches, validates, and then
writes once. A rejected mutation raises a CartError before anything is written.

Mutations of the same user are serialized by an in-process lock, so two quick
"increase quantity" clicks on one worker cannot lose an update. Separate worker
processes still race at the store's last-writer-wins granularity.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

from storefront.core.errors import CartNotFoundError, CartRuleError, CartValidationError
from storefront.repositories.carts import CartStore
from storefront.repositories.products import ProductLookup, is_valid_product_id
from storefront.schemas.cart import Cart, CartItems, CartOut, CartSummary
from storefront.schemas.product import Product
from storefront.services.cart_enrichment import enrich_cart_items, summarize, to_cart_out

logger = logging.getLogger("storefront.cart")

# Size label for products that define no sizes
DEFAULT_SIZE = "default"

_LOCK_STRIPES = 64


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_product_id(product_id: Optional[str]) -> str:
    if not product_id:
        raise CartValidationError("Product ID is required")
    return product_id


def resolve_size(product: Product, size: Optional[str]) -> str:
    """Validates `size` against the product's size list (if it has one)."""
    size = (size or "").strip()
    if product.sizes:
        allowed = ", ".join(product.sizes)
        if not size:
            raise CartValidationError(f"Size is required. Available sizes: {allowed}")
        if size not in product.sizes:
            raise CartValidationError(f"Invalid size '{size}'. Available sizes: {allowed}")
        return size
    return size or DEFAULT_SIZE


def _set_quantity(items: CartItems, product_id: str, size: str, quantity: int) -> None:
    """Writes one line; zero deletes it and drops the product once it has no sizes left."""
    if quantity > 0:
        items.setdefault(product_id, {})[size] = quantity
        return
    sizes = items.get(product_id)
    if sizes is None:
        return
    sizes.pop(size, None)
    if not sizes:
        del items[product_id]


class CartService:

    def __init__(self, store: CartStore, products: ProductLookup):
        self.store = store
        self.products = products
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        with self._locks[hash(user_id) % _LOCK_STRIPES]:
            yield

    def _load_product(self, product_id: str) -> Product:
        product = self.products.find_by_id(product_id) if is_valid_product_id(product_id) else None
        if product is None:
            raise CartNotFoundError("Product not found")
        if not product.is_published:
            raise CartRuleError("Product is not available")
        return product

    def _view(self, cart: Cart) -> CartOut:
        return to_cart_out(cart, enrich_cart_items(cart.items, self.products))

    # ---------- reads ----------
    def get_cart(self, user_id: str) -> CartOut:
        cart = self.store.get(user_id)
        return self._view(cart)

    def summary(self, user_id: str) -> CartSummary:
        cart = self.store.get(user_id)
        return summarize(enrich_cart_items(cart.items, self.products))

    # ---------- mutations ----------
    def add(self, user_id: str, product_id: Optional[str], size: Optional[str], quantity: int = 1) -> CartOut:
        product_id = _require_product_id(product_id)
        if not _is_count(quantity) or quantity <= 0:
            raise CartValidationError("Quantity must be greater than 0")

        with self._user_lock(user_id):
            product = self._load_product(product_id)
            size = resolve_size(product, size)

            if quantity > product.stock:
                raise CartRuleError(f"Insufficient stock. Only {product.stock} left in stock")

            cart = self.store.get(user_id)
            current = cart.items.get(product_id, {}).get(size, 0)
            if current + quantity > product.stock:
                raise CartRuleError(
                    f"Cannot add {quantity} more. You already have {current} in your cart "
                    f"and only {product.stock} left in stock"
                )

            items = copy.deepcopy(cart.items)
            _set_quantity(items, product_id, size, current + quantity)
            saved = self.store.replace(user_id, items)

        logger.debug("user=%s add %s/%s -> %d", user_id, product_id, size, current + quantity)
        return self._view(saved)

    def update(self, user_id: str, product_id: Optional[str], size: Optional[str], quantity: int) -> CartOut:
        """Sets the absolute quantity of one line; 0 removes it."""
        product_id = _require_product_id(product_id)
        if not _is_count(quantity) or quantity < 0:
            raise CartValidationError("Quantity cannot be negative")

        with self._user_lock(user_id):
            saved = self._set_line(user_id, product_id, size, quantity)
        return self._view(saved)

    def remove(self, user_id: str, product_id: Optional[str], size: Optional[str]) -> CartOut:
        """Update with quantity 0, except that a user without a cart record gets "Cart not found"."""
        product_id = _require_product_id(product_id)
        with self._user_lock(user_id):
            if not self.store.exists(user_id):
                raise CartNotFoundError("Cart not found")
            saved = self._set_line(user_id, product_id, size, 0)
        return self._view(saved)

    def _set_line(self, user_id: str, product_id: str, size: Optional[str], quantity: int) -> Cart:
        # Caller holds the user lock
        if quantity == 0:
            # Removal needs no product lookup so lines of deleted products can be dropped
            size = (size or "").strip() or DEFAULT_SIZE
        else:
            product = self._load_product(product_id)
            size = resolve_size(product, size)
            if quantity > product.stock:
                raise CartRuleError(f"Insufficient stock. Only {product.stock} left in stock")

        cart = self.store.get(user_id)
        items = copy.deepcopy(cart.items)
        _set_quantity(items, product_id, size, quantity)
        saved = self.store.replace(user_id, items) if items != cart.items else cart
        logger.debug("user=%s set %s/%s -> %d", user_id, product_id, size, quantity)
        return saved

    def clear(self, user_id: str) -> CartOut:
        with self._user_lock(user_id):
            if not self.store.exists(user_id):
                raise CartNotFoundError("Cart not found")
            cart = self.store.clear(user_id)
        return to_cart_out(cart, {})

    def sync(self, user_id: str, guest_items: Mapping[str, Mapping[str, Any]]) -> CartOut:
        """
        Merges a guest cart into the user's cart. Lines for unknown or unpublished
        products, unknown sizes or non-positive quantities are skipped; merged
        quantities are capped at the product's stock, but a line already in the
        cart is never lowered or dropped.
        """
        if not isinstance(guest_items, Mapping):
            raise CartValidationError("Valid guest cart data is required")

        with self._user_lock(user_id):
            cart = self.store.get(user_id)
            items = copy.deepcopy(cart.items)
            wanted = [pid for pid in guest_items if is_valid_product_id(pid)]
            catalog: Dict[str, Product] = {p.id: p for p in self.products.find_by_ids(wanted)} if wanted else {}

            for pid, sizes in guest_items.items():
                product = catalog.get(pid)
                if product is None or not product.is_published or not isinstance(sizes, Mapping):
                    logger.info("user=%s sync skipped product %s", user_id, pid)
                    continue
                for raw_size, qty in sizes.items():
                    if not _is_count(qty) or qty <= 0:
                        logger.info("user=%s sync skipped %s/%s: bad quantity %r", user_id, pid, raw_size, qty)
                        continue
                    try:
                        size = resolve_size(product, raw_size)
                    except CartValidationError as exc:
                        logger.info("user=%s sync skipped %s: %s", user_id, pid, exc.message)
                        continue
                    # Only the guest quantity is capped; an existing line is never lowered
                    existing = items.get(pid, {}).get(size, 0)
                    merged = max(existing, min(existing + qty, product.stock))
                    if merged > existing:
                        _set_quantity(items, pid, size, merged)

            saved = self.store.replace(user_id, items)

        return self._view(saved)
