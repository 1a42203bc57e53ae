"""Shared fixtures: in-memory cart store / product lookup and an authenticated test client."""
import copy
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from storefront.core.auth import get_principal
from storefront.main import app
from storefront.repositories.carts import CartStore
from storefront.repositories.products import ProductLookup
from storefront.routers.carts import get_cart_service
from storefront.schemas.cart import Cart, CartItems
from storefront.schemas.principal import Principal
from storefront.schemas.product import Product
from storefront.services.cart_service import CartService

USER_ID = "user-1"


class InMemoryCartStore(CartStore):
    """Test cart store keeping one Cart per user in a dict."""

    def __init__(self) -> None:
        self._carts: Dict[str, Cart] = {}
        self.writes = 0

    def seed(self, user_id: str, items: CartItems) -> None:
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._carts[user_id] = Cart(id=user_id, user_id=user_id, items=copy.deepcopy(items),
                                    created_at=now, updated_at=now)

    def raw_items(self, user_id: str) -> Optional[CartItems]:
        cart = self._carts.get(user_id)
        return copy.deepcopy(cart.items) if cart else None

    def get(self, user_id: str) -> Cart:
        if user_id not in self._carts:
            self.seed(user_id, {})
        return self._carts[user_id].model_copy(deep=True)

    def exists(self, user_id: str) -> bool:
        return user_id in self._carts

    def replace(self, user_id: str, items: CartItems) -> Cart:
        self.writes += 1
        current = self.get(user_id)
        self._carts[user_id] = Cart(
            id=current.id,
            user_id=user_id,
            items=copy.deepcopy(items),
            created_at=current.created_at,
            updated_at=datetime.now(timezone.utc),
        )
        return self._carts[user_id].model_copy(deep=True)


class InMemoryProductLookup(ProductLookup):
    """Test catalog; counts batch reads to check enrichment does one query."""

    def __init__(self) -> None:
        self.products: Dict[str, Product] = {}
        self.batch_calls = 0

    def put(self, product_id: str, **fields) -> Product:
        defaults = {
            "name": f"Product {product_id}",
            "price": 10.0,
            "images": [f"https://img.example.com/{product_id}.jpg"],
            "stock": 5,
            "sizes": [],
            "is_published": True,
        }
        defaults.update(fields)
        product = Product(id=product_id, **defaults)
        self.products[product_id] = product
        return product

    def find_by_id(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    def find_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        self.batch_calls += 1
        return [self.products[pid] for pid in product_ids if pid in self.products]


@pytest.fixture
def store() -> InMemoryCartStore:
    return InMemoryCartStore()


@pytest.fixture
def catalog() -> InMemoryProductLookup:
    return InMemoryProductLookup()


@pytest.fixture
def service(store, catalog) -> CartService:
    return CartService(store=store, products=catalog)


@pytest.fixture
def client(service):
    """TestClient authenticated as USER_ID and wired to the in-memory service."""
    app.dependency_overrides[get_principal] = lambda: Principal(uid=USER_ID, role="user")
    app.dependency_overrides[get_cart_service] = lambda: service
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()
