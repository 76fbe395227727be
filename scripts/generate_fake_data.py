"""Generate a fake catalog, order history and user base.

Creates the three CSV files the API loads from its data directory:
products.csv, orders.csv (one row per order line) and users.csv.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_products
        products = generate_fake_products(num_products=200)
"""

import argparse
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_PRODUCTS = 100
DEFAULT_NUM_ORDERS = 400
DEFAULT_DAYS_BACK = 90
SECONDS_PER_DAY = 86400

CATEGORIES = ["boys", "girls", "baby", "shoes", "accessories"]
BRANDS = ["LittleSteps", "KidCo", "Sprout", "Playday", "TinyTrail"]
AGE_RANGES = ["0-2", "3-5", "6-8", "9-12"]
GENDERS = ["boy", "girl", "unisex"]
CITIES = ["Casablanca", "Rabat", "Marrakesh", "Tangier", "Fes"]
ORDER_STATUSES = ["delivered", "delivered", "delivered", "processing", "shipped", "cancelled"]

# Item words; several double as seasonal keywords
ITEM_WORDS = [
    "t-shirt", "shorts", "jacket", "coat", "sweater", "boots", "sandals",
    "swimwear", "hat", "dress", "pajamas", "long-sleeve",
]
STYLE_WORDS = ["summer", "winter", "spring", "autumn", "casual", "warm", "light", "beach", "holiday", "outdoor"]


def generate_fake_products(num_products: int = DEFAULT_NUM_PRODUCTS) -> pd.DataFrame:
    """Generate a synthetic children's clothing catalog.

    Roughly a quarter of the products are on sale (``old_price`` above
    ``price``) and a few are out of stock or inactive.

    Raises:
        ValueError: If ``num_products`` is not positive.
    """
    if num_products <= 0:
        raise ValueError("num_products must be positive")

    rows = []
    for i in range(1, num_products + 1):
        item = random.choice(ITEM_WORDS)
        style = random.choice(STYLE_WORDS)
        category = random.choice(CATEGORIES)
        price = round(random.uniform(8, 140), 2)
        on_sale = random.random() < 0.25

        rows.append({
            "id": f"p{i}",
            "name": f"{style.title()} {item}",
            "description": f"A {style} {item} for the {category} collection",
            "category": category,
            "price": price,
            "old_price": round(price * random.uniform(1.1, 1.6), 2) if on_sale else None,
            "brand": random.choice(BRANDS),
            "age_range": random.choice(AGE_RANGES),
            "gender": random.choice(GENDERS),
            "tags": "|".join(sorted({item, style})),
            "stock_quantity": 0 if random.random() < 0.05 else random.randint(1, 50),
            "status": "inactive" if random.random() < 0.03 else "active",
        })

    return pd.DataFrame(rows)


def generate_fake_users(num_users: int = DEFAULT_NUM_USERS) -> pd.DataFrame:
    """Generate synthetic users with an age, gender and city."""
    if num_users <= 0:
        raise ValueError("num_users must be positive")

    now = datetime.now(timezone.utc)
    return pd.DataFrame([
        {
            "id": f"u{i}",
            "age": random.randint(22, 55),
            "gender": random.choice(["male", "female"]),
            "city": random.choice(CITIES),
            "created_at": now - timedelta(days=random.randint(30, 720)),
        }
        for i in range(1, num_users + 1)
    ])


def generate_fake_orders(
    products: pd.DataFrame,
    users: pd.DataFrame,
    num_orders: int = DEFAULT_NUM_ORDERS,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> pd.DataFrame:
    """Generate order lines with random timestamps in a date range.

    Returns:
        A DataFrame with one row per order line and the columns order_id,
        user_id, status, created_at, product_id, quantity and price, sorted
        by created_at.

    Raises:
        ValueError: If ``num_orders`` is not positive or the date range is empty.
    """
    if num_orders <= 0:
        raise ValueError("num_orders must be positive")

    if end_date is None:
        end_date = datetime.now(timezone.utc)
    if start_date is None:
        start_date = end_date - timedelta(days=DEFAULT_DAYS_BACK)
    if start_date >= end_date:
        raise ValueError("start_date must be before end_date")

    days_range = (end_date - start_date).days
    product_rows = products.to_dict(orient="records")
    user_ids = users["id"].tolist()

    lines = []
    for i in range(1, num_orders + 1):
        created_at = start_date + timedelta(
            days=random.randrange(days_range),
            seconds=random.randrange(SECONDS_PER_DAY),
        )
        user_id = random.choice(user_ids)
        status = random.choice(ORDER_STATUSES)

        for product in random.sample(product_rows, k=random.randint(1, 4)):
            lines.append({
                "order_id": f"o{i}",
                "user_id": user_id,
                "status": status,
                "created_at": created_at,
                "product_id": product["id"],
                "quantity": random.randint(1, 3),
                "price": product["price"],
            })

    df = pd.DataFrame(lines)
    return df.sort_values("created_at", kind="mergesort").reset_index(drop=True)


def main() -> None:
    """Generate the three CSV files and print a summary."""
    parser = argparse.ArgumentParser(description="Generate fake catalog, order and user data")
    parser.add_argument("--num-users", type=int, default=DEFAULT_NUM_USERS)
    parser.add_argument("--num-products", type=int, default=DEFAULT_NUM_PRODUCTS)
    parser.add_argument("--num-orders", type=int, default=DEFAULT_NUM_ORDERS)
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=str(Path(__file__).parent.parent / "data"),
        help="Output directory (default: ./data)",
    )
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)

    print(f"Generating {args.num_products} products, {args.num_users} users, {args.num_orders} orders...")

    try:
        products = generate_fake_products(args.num_products)
        users = generate_fake_users(args.num_users)
        orders = generate_fake_orders(products, users, args.num_orders)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(args.data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)

    products.to_csv(data_dir / "products.csv", index=False)
    users.to_csv(data_dir / "users.csv", index=False)
    orders.to_csv(data_dir / "orders.csv", index=False)

    print(f"\nData generated successfully!")
    print(f"Saved to: {data_dir}")
    print(f"\nData summary:")
    print(f"  Products: {len(products)} ({products['old_price'].notna().sum()} on sale)")
    print(f"  Users: {len(users)}")
    print(f"  Orders: {orders['order_id'].nunique()} ({len(orders)} lines)")
    print(f"  Date range: {orders['created_at'].min()} to {orders['created_at'].max()}")


if __name__ == '__main__':
    main()
