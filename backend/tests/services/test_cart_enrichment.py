"""Cart enrichment (read-side join) tests."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

from storefront.repositories.products import FirestoreProductLookup
from storefront.schemas.cart import Cart
from storefront.schemas.product import Product
from storefront.services.cart_enrichment import (
    collect_product_ids, enrich_cart_items, enrich_items, summarize, to_cart_out,
)


def _snap(doc_id, data):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = True
    snap.to_dict.return_value = data
    return snap


def _product(pid: str, **overrides) -> Product:
    fields = {"name": pid, "price": 12.5, "images": [f"{pid}-1.jpg", f"{pid}-2.jpg"],
              "stock": 3, "sizes": ["S", "M"], "is_published": True}
    fields.update(overrides)
    return Product(id=pid, **fields)


class TestEnrichItems:

    def test_entry_fields(self):
        enriched = enrich_items({"P1": {"M": 2}}, [_product("P1")])

        entry = enriched["P1"]["M"]
        assert entry.model_dump() == {
            "quantity": 2,
            "name": "P1",
            "price": 12.5,
            "image": "P1-1.jpg",
            "stock": 3,
            "available": True,
            "size": "M",
        }

    def test_no_images_gives_null_image(self):
        enriched = enrich_items({"P1": {"M": 1}}, [_product("P1", images=[])])
        assert enriched["P1"]["M"].image is None

    def test_available_is_stock_ge_quantity(self):
        enriched = enrich_items({"P1": {"S": 3, "M": 4}}, [_product("P1", stock=3)])
        assert enriched["P1"]["S"].available is True
        assert enriched["P1"]["M"].available is False

    def test_missing_and_unpublished_products_are_skipped(self):
        items = {"P1": {"M": 1}, "P2": {"M": 1}, "P3": {"S": 2}}
        products = [_product("P1"), _product("P2", is_published=False)]

        enriched = enrich_items(items, products)

        assert list(enriched) == ["P1"]

    def test_is_pure_and_repeatable(self):
        items = {"P1": {"M": 1}, "P2": {"S": 2}}
        products = [_product("P1"), _product("P2", stock=0)]

        first = enrich_items(items, products)
        second = enrich_items(items, products)

        assert first == second
        assert items == {"P1": {"M": 1}, "P2": {"S": 2}}


class TestEnrichCartItems:

    def test_single_batch_lookup(self, catalog):
        catalog.put("P1")
        catalog.put("P2")

        enriched = enrich_cart_items({"P1": {"default": 1}, "P2": {"default": 1}}, catalog)

        assert set(enriched) == {"P1", "P2"}
        assert catalog.batch_calls == 1

    def test_empty_cart_skips_lookup(self, catalog):
        assert enrich_cart_items({}, catalog) == {}
        assert catalog.batch_calls == 0

    def test_malformed_product_document_is_omitted(self):
        db = MagicMock()
        db.get_all.return_value = [
            _snap("P1", {"name": "One", "price": 4, "stock": 3, "images": "one.jpg", "is_published": True}),
            _snap("P2", {"name": "Two", "price": "n/a", "stock": 3, "is_published": True}),
        ]

        enriched = enrich_cart_items({"P1": {"default": 1}, "P2": {"default": 1}}, FirestoreProductLookup(db))

        assert list(enriched) == ["P1"]
        assert enriched["P1"]["default"].image == "one.jpg"

    def test_malformed_ids_are_discarded(self):
        assert collect_product_ids({"ok": {"M": 1}, "a/b": {"M": 1}, "..": {"M": 1}}) == ["ok"]


def test_summary_rounds_total():
    enriched = enrich_items({"P1": {"S": 3}}, [_product("P1", price=0.1, stock=10)])

    summary = summarize(enriched)

    assert summary.totalAmount == 0.3
    assert summary.totalItems == 3
    assert summary.itemsCount == 1


def test_to_cart_out_maps_record_fields():
    ts = datetime(2024, 5, 1, tzinfo=timezone.utc)
    cart = Cart(id="u1", user_id="u1", items={}, created_at=ts, updated_at=ts)

    out = to_cart_out(cart, {})

    assert (out.id, out.userId, out.createdAt, out.updatedAt) == ("u1", "u1", ts, ts)
