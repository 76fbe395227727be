"""Shared fixtures: a small catalog, order history and users.

All dates are relative to a fixed mid-July clock, so seasonal
recommendations resolve to summer.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from recoengine.recommender.cache import InMemoryCache
from recoengine.recommender.engine import RecommendationEngine
from recoengine.recommender.models import Order, OrderItem, Product, User
from recoengine.recommender.stores import (
    InMemoryCatalogStore,
    InMemoryOrderStore,
    InMemoryUserStore,
    OrderStore,
)

NOW = datetime(2024, 7, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def make_products():
    return [
        Product(id="p1", name="Summer shorts", category="boys", price=35, brand="KidCo",
                age_range="3-5", gender="boy", tags=["summer"], stock_quantity=10),
        Product(id="p2", name="Winter coat", category="boys", price=80, brand="Sprout",
                age_range="6-8", gender="boy", tags=["winter"], stock_quantity=5),
        Product(id="p3", name="Beach dress", category="girls", price=15, old_price=25, brand="KidCo",
                age_range="3-5", gender="girl", tags=["beach"], stock_quantity=3),
        Product(id="p4", name="Warm sweater", category="girls", price=120, brand="Playday",
                age_range="9-12", gender="girl", stock_quantity=0),
        Product(id="p5", name="Light t-shirt", category="baby", price=45, old_price=50, brand="Sprout",
                age_range="0-2", gender="unisex", stock_quantity=7),
        Product(id="p6", name="Sandals", category="boys", price=60, brand="KidCo",
                age_range="3-5", gender="boy", stock_quantity=4, status="inactive"),
        Product(id="p7", name="Outdoor boots", category="shoes", price=30, brand="TinyTrail",
                age_range="6-8", gender="unisex", stock_quantity=20),
    ]


def make_order(order_id, user_id, status, days_ago, *lines):
    items = [OrderItem(product_id=pid, quantity=qty, price=price) for pid, qty, price in lines]
    return Order(
        id=order_id,
        user_id=user_id,
        status=status,
        items=items,
        total=sum(i.quantity * i.price for i in items),
        created_at=NOW - timedelta(days=days_ago),
    )


def make_orders():
    return [
        make_order("o1", "u1", "delivered", 5, ("p1", 2, 35.0)),
        make_order("o2", "u1", "processing", 2, ("p3", 1, 15.0)),
        make_order("o3", "u2", "delivered", 3, ("p1", 1, 35.0), ("p2", 1, 80.0)),
        make_order("o4", "u3", "shipped", 1, ("p5", 3, 45.0)),
        make_order("o5", "u2", "cancelled", 1, ("p7", 5, 30.0)),
        make_order("o6", "u4", "delivered", 40, ("p7", 1, 30.0)),
    ]


def make_users():
    return [
        User(id="u1", age=32, gender="female", city="Rabat", created_at=NOW - timedelta(days=200)),
        User(id="u2", age=28, gender="male", city="Fes", created_at=NOW - timedelta(days=90)),
        User(id="u3", age=50, city="Tangier"),
        User(id="u4"),
    ]


class FailingOrderStore(OrderStore):
    """Order store whose every call raises."""

    async def find_orders_by_user(self, user_id, statuses):
        raise RuntimeError("order store unavailable")

    async def aggregate_product_sales(self, since, statuses):
        raise RuntimeError("order store unavailable")

    async def daily_product_orders(self, since, statuses):
        raise RuntimeError("order store unavailable")

    async def purchased_products_by_user(self, statuses, exclude_user_id=None):
        raise RuntimeError("order store unavailable")


class BrokenCache(InMemoryCache):
    """Cache whose every call fails as if the server were unreachable."""

    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, ttl_seconds=300):
        raise ConnectionError("cache down")

    async def delete(self, key):
        raise ConnectionError("cache down")

    async def delete_pattern(self, pattern):
        raise ConnectionError("cache down")


class RecordingMetrics:
    def __init__(self):
        self.fallbacks = []

    def record_fallback(self, algorithm):
        self.fallbacks.append(algorithm)


@pytest.fixture
def products():
    return make_products()


@pytest.fixture
def catalog():
    return InMemoryCatalogStore(make_products())


@pytest.fixture
def orders():
    return InMemoryOrderStore(make_orders())


@pytest.fixture
def users():
    return InMemoryUserStore(make_users())


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def make_engine():
    """Factory for engines over the fixture data; keyword overrides replace collaborators."""

    def factory(**overrides):
        params = {
            "catalog": InMemoryCatalogStore(make_products()),
            "orders": InMemoryOrderStore(make_orders()),
            "users": InMemoryUserStore(make_users()),
            "cache": InMemoryCache(),
            "clock": fixed_clock,
            "rng": random.Random(7),
        }
        params.update(overrides)
        return RecommendationEngine(**params)

    return factory


@pytest.fixture
def engine(make_engine):
    return make_engine()
