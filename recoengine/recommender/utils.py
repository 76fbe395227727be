"""Utility functions for the recommendation engine.

This module provides CSV loaders that turn flat exports of the catalog,
order lines and users into domain models and in-memory stores.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from recoengine.recommender.models import Order, OrderItem, Product, User
from recoengine.recommender.stores import (
    InMemoryCatalogStore,
    InMemoryOrderStore,
    InMemoryUserStore,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Data filenames inside a data directory
PRODUCTS_FILENAME = "products.csv"
ORDERS_FILENAME = "orders.csv"
USERS_FILENAME = "users.csv"

PRODUCT_COLUMNS = {"id", "name", "category", "price"}
ORDER_LINE_COLUMNS = {"order_id", "user_id", "status", "created_at", "product_id", "quantity", "price"}
USER_COLUMNS = {"id"}

# Tags are stored as a single pipe-separated column
TAG_SEPARATOR = "|"


def parse_tags(value: Optional[str]) -> List[str]:
    return [t for t in str(value or "").split(TAG_SEPARATOR) if t]


def _read_csv(csv_path: str, required_columns: Iterable[str], id_columns: Iterable[str]) -> pd.DataFrame:
    """Read a CSV, validate its columns and replace missing values with None.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If the CSV is missing required columns.
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading CSV from {csv_path}")
    df = pd.read_csv(csv_path, dtype={col: str for col in id_columns})

    required = set(required_columns)
    if not required.issubset(df.columns):
        missing = required - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")

    return df.astype(object).where(pd.notna(df), None)


def load_products(csv_path: str) -> List[Product]:
    """Load catalog products from CSV.

    Args:
        csv_path: Path to a CSV with at least id, name, category and price.
            ``tags`` is pipe-separated when present.

    Returns:
        Products in file order.
    """
    df = _read_csv(csv_path, PRODUCT_COLUMNS, id_columns=("id",))

    products = []
    for record in df.to_dict(orient="records"):
        record["tags"] = parse_tags(record.pop("tags", None))
        products.append(Product.model_validate({k: v for k, v in record.items() if v is not None}))

    logger.info(f"Loaded {len(products)} products")
    return products


def load_orders(csv_path: str) -> List[Order]:
    """Load orders from a CSV of order lines.

    Each row is one line item; rows sharing an ``order_id`` form one order
    whose total is the sum of ``quantity * price``.

    Example:
        >>> orders = load_orders("data/orders.csv")
        >>> print(f"Number of orders: {len(orders)}")
    """
    df = _read_csv(csv_path, ORDER_LINE_COLUMNS, id_columns=("order_id", "user_id", "product_id"))

    orders = []
    for order_id, lines in df.groupby("order_id", sort=False):
        first = lines.iloc[0]
        items = [
            OrderItem(product_id=row.product_id, quantity=int(row.quantity), price=float(row.price))
            for row in lines.itertuples()
        ]
        orders.append(
            Order(
                id=str(order_id),
                user_id=first["user_id"],
                status=first["status"],
                items=items,
                total=sum(i.quantity * i.price for i in items),
                created_at=pd.Timestamp(first["created_at"]).to_pydatetime(),
            )
        )

    logger.info(f"Loaded {len(orders)} orders from {len(df)} order lines")
    return orders


def load_users(csv_path: str) -> List[User]:
    """Load user records from CSV."""
    df = _read_csv(csv_path, USER_COLUMNS, id_columns=("id",))

    users = []
    for record in df.to_dict(orient="records"):
        if record.get("created_at") is not None:
            record["created_at"] = pd.Timestamp(record["created_at"]).to_pydatetime()
        if record.get("age") is not None:
            record["age"] = int(record["age"])
        users.append(User.model_validate({k: v for k, v in record.items() if v is not None}))

    logger.info(f"Loaded {len(users)} users")
    return users


def load_stores(
    data_dir: str,
) -> Tuple[InMemoryCatalogStore, InMemoryOrderStore, InMemoryUserStore]:
    """Build in-memory stores from a data directory.

    ``products.csv`` is required; ``orders.csv`` and ``users.csv`` are
    optional and default to empty stores.

    Raises:
        FileNotFoundError: If the directory or products file is missing.
    """
    data_path = Path(data_dir)
    if not data_path.exists():
        raise FileNotFoundError(f"Data directory does not exist: {data_dir}")

    products = load_products(str(data_path / PRODUCTS_FILENAME))
    orders = _load_optional(data_path / ORDERS_FILENAME, load_orders)
    users = _load_optional(data_path / USERS_FILENAME, load_users)

    return InMemoryCatalogStore(products), InMemoryOrderStore(orders), InMemoryUserStore(users)


def _load_optional(path: Path, loader) -> list:
    if not path.exists():
        logger.warning(f"{path.name} not found in {path.parent}, starting empty")
        return []
    return loader(str(path))


def check_data_exists(data_dir: str) -> bool:
    """Check if the data directory holds at least a product catalog."""
    return (Path(data_dir) / PRODUCTS_FILENAME).exists()
