"""
storefront/services/cart_enrichment.py
Read-time join of stored cart lines with live product data.

Stale lines (product deleted or unpublished) are left out of the view but stay in
storage until the user next mutates the cart. Nothing here writes or caches.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List

from storefront.repositories.products import ProductLookup, is_valid_product_id
from storefront.schemas.cart import (
    Cart, CartItems, CartOut, CartSummary, EnrichedCartEntry, EnrichedItems,
)
from storefront.schemas.product import Product

logger = logging.getLogger("storefront.cart.enrichment")


def collect_product_ids(items: CartItems) -> List[str]:
    return [pid for pid in items if is_valid_product_id(pid)]


def enrich_items(items: CartItems, products: Iterable[Product]) -> EnrichedItems:
    """Pure: same (items, products) always gives the same view."""
    catalog: Dict[str, Product] = {p.id: p for p in products}

    enriched: EnrichedItems = {}
    for pid, sizes in items.items():
        product = catalog.get(pid)
        if product is None or not product.is_published:
            logger.debug("Skipping stale cart line for product %s", pid)
            continue
        lines = {
            size: EnrichedCartEntry(
                quantity=qty,
                name=product.name,
                price=product.price,
                image=product.primary_image,
                stock=product.stock,
                available=product.stock >= qty,
                size=size,
            )
            for size, qty in sizes.items()
        }
        if lines:
            enriched[pid] = lines
    return enriched


def enrich_cart_items(items: CartItems, lookup: ProductLookup) -> EnrichedItems:
    """One batched product read for every product referenced by the cart."""
    ids = collect_product_ids(items)
    if not ids:
        return {}
    return enrich_items(items, lookup.find_by_ids(ids))


def to_cart_out(cart: Cart, enriched: EnrichedItems) -> CartOut:
    return CartOut(
        id=cart.id,
        userId=cart.user_id,
        items=enriched,
        createdAt=cart.created_at,
        updatedAt=cart.updated_at,
    )


def summarize(enriched: EnrichedItems) -> CartSummary:
    total_items = 0
    items_count = 0
    total_amount = Decimal("0")
    for sizes in enriched.values():
        for entry in sizes.values():
            total_items += entry.quantity
            items_count += 1
            total_amount += Decimal(str(entry.price)) * entry.quantity
    return CartSummary(
        totalItems=total_items,
        totalAmount=float(total_amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        itemsCount=items_count,
    )
