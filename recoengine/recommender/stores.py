"""Collaborator contracts for catalog, order and user data.

The engine never talks to a database directly. It is constructed with
objects implementing these abstract stores; the in-memory implementations
here back the tests, the CLI and the bundled API server.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

import pandas as pd

from recoengine.recommender.models import (
    DailyProductOrders,
    Order,
    PersonalizationSnapshot,
    Product,
    ProductSales,
    User,
)

# Configure module logger
logger = logging.getLogger(__name__)

ORDER_LINE_COLUMNS = [
    "order_id",
    "user_id",
    "status",
    "created_at",
    "product_id",
    "quantity",
    "price",
]


@dataclass(frozen=True)
class ProductFilter:
    """Optional constraints for catalog scans; all unset means every active product."""

    ids: Optional[Sequence[str]] = None
    categories: Optional[Sequence[str]] = None
    exclude_ids: Optional[Sequence[str]] = None
    on_sale: bool = False

    def matches(self, product: Product) -> bool:
        if self.ids is not None and product.id not in self.ids:
            return False
        if self.categories is not None and product.category not in self.categories:
            return False
        if self.exclude_ids is not None and product.id in self.exclude_ids:
            return False
        if self.on_sale and not product.on_sale:
            return False
        return True


class CatalogStore(ABC):
    @abstractmethod
    async def find_active_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        """Active products matching the filter."""

    @abstractmethod
    async def find_product_by_id(self, product_id: str) -> Optional[Product]:
        """A product in any status, or None."""

    @abstractmethod
    async def find_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        """Products in any status for the given ids; unknown ids are skipped."""


class OrderStore(ABC):
    @abstractmethod
    async def find_orders_by_user(self, user_id: str, statuses: Sequence[str]) -> List[Order]:
        """A user's orders whose status is in ``statuses``."""

    @abstractmethod
    async def aggregate_product_sales(self, since: datetime, statuses: Sequence[str]) -> List[ProductSales]:
        """Per-product order-line count, quantity and revenue since a time."""

    @abstractmethod
    async def daily_product_orders(self, since: datetime, statuses: Sequence[str]) -> List[DailyProductOrders]:
        """Per-product, per-day order-line counts since a time."""

    @abstractmethod
    async def purchased_products_by_user(
        self,
        statuses: Sequence[str],
        exclude_user_id: Optional[str] = None,
    ) -> Dict[str, Set[str]]:
        """Map of user id to the set of product ids they ordered."""


class UserStore(ABC):
    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        """The user record, or None."""

    @abstractmethod
    async def save_personalization(self, user_id: str, snapshot: PersonalizationSnapshot) -> None:
        """Persist the denormalized profile snapshot on the user record."""


class InMemoryCatalogStore(CatalogStore):
    """Catalog held in a dict keyed by product id."""

    def __init__(self, products: Iterable[Product] = ()):
        self.products: Dict[str, Product] = {p.id: p for p in products}

    async def find_active_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        product_filter = product_filter or ProductFilter()
        return [
            p for p in self.products.values()
            if p.is_active and product_filter.matches(p)
        ]

    async def find_product_by_id(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    async def find_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        return [self.products[pid] for pid in product_ids if pid in self.products]


class InMemoryOrderStore(OrderStore):
    """Orders held in a list; aggregates are computed with pandas."""

    def __init__(self, orders: Iterable[Order] = ()):
        self.orders: List[Order] = list(orders)

    def _order_lines(self, statuses: Sequence[str], since: Optional[datetime] = None) -> pd.DataFrame:
        """Flatten matching orders into one row per order line."""
        rows = [
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "status": order.status,
                "created_at": order.created_at,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "price": item.price,
            }
            for order in self.orders
            if order.status in statuses and (since is None or order.created_at >= since)
            for item in order.items
        ]
        return pd.DataFrame(rows, columns=ORDER_LINE_COLUMNS)

    async def find_orders_by_user(self, user_id: str, statuses: Sequence[str]) -> List[Order]:
        return [o for o in self.orders if o.user_id == user_id and o.status in statuses]

    async def aggregate_product_sales(self, since: datetime, statuses: Sequence[str]) -> List[ProductSales]:
        lines = self._order_lines(statuses, since)
        if lines.empty:
            return []

        lines["revenue"] = lines["quantity"] * lines["price"]
        grouped = lines.groupby("product_id", sort=False).agg(
            order_count=("order_id", "size"),
            total_quantity=("quantity", "sum"),
            total_revenue=("revenue", "sum"),
        )

        return [
            ProductSales(
                product_id=str(product_id),
                order_count=int(row.order_count),
                total_quantity=int(row.total_quantity),
                total_revenue=float(row.total_revenue),
            )
            for product_id, row in grouped.iterrows()
        ]

    async def daily_product_orders(self, since: datetime, statuses: Sequence[str]) -> List[DailyProductOrders]:
        lines = self._order_lines(statuses, since)
        if lines.empty:
            return []

        lines["day"] = pd.to_datetime(lines["created_at"], utc=True).dt.date
        daily = lines.groupby(["product_id", "day"], sort=False).size()

        return [
            DailyProductOrders(product_id=str(product_id), day=day, orders=int(count))
            for (product_id, day), count in daily.items()
        ]

    async def purchased_products_by_user(
        self,
        statuses: Sequence[str],
        exclude_user_id: Optional[str] = None,
    ) -> Dict[str, Set[str]]:
        lines = self._order_lines(statuses)
        if exclude_user_id is not None:
            lines = lines[lines["user_id"] != exclude_user_id]
        if lines.empty:
            return {}

        return {
            str(user_id): set(product_ids)
            for user_id, product_ids in lines.groupby("user_id", sort=False)["product_id"]
        }


class InMemoryUserStore(UserStore):
    """Users held in a dict keyed by user id."""

    def __init__(self, users: Iterable[User] = ()):
        self.users: Dict[str, User] = {u.id: u for u in users}

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def save_personalization(self, user_id: str, snapshot: PersonalizationSnapshot) -> None:
        user = self.users.get(user_id)
        if user is None:
            logger.debug(f"No user record for {user_id}, skipping snapshot")
            return
        self.users[user_id] = user.model_copy(update={"personalization": snapshot})
