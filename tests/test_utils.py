"""Tests for the CSV data loaders."""

from datetime import timezone

import pytest

from recoengine.recommender.utils import (
    check_data_exists,
    load_orders,
    load_products,
    load_stores,
    load_users,
    parse_tags,
)

PRODUCTS_CSV = """id,name,description,category,price,old_price,brand,age_range,gender,tags,stock_quantity,status
p1,Summer shorts,Cotton shorts,boys,35.0,,KidCo,3-5,boy,summer|beach,10,active
p2,Winter coat,,boys,80.0,95.0,Sprout,6-8,boy,,0,inactive
"""

ORDERS_CSV = """order_id,user_id,status,created_at,product_id,quantity,price
o1,u1,delivered,2024-07-10T10:00:00,p1,2,35.0
o1,u1,delivered,2024-07-10T10:00:00,p2,1,80.0
o2,u2,cancelled,2024-07-11T09:30:00+00:00,p1,1,35.0
"""

USERS_CSV = """id,age,gender,city,created_at
u1,32,female,Rabat,2024-01-05
u2,,,,
"""


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "products.csv").write_text(PRODUCTS_CSV)
    (tmp_path / "orders.csv").write_text(ORDERS_CSV)
    (tmp_path / "users.csv").write_text(USERS_CSV)
    return tmp_path


def test_parse_tags():
    assert parse_tags("summer|beach") == ["summer", "beach"]
    assert parse_tags("") == []
    assert parse_tags(None) == []


def test_load_products(data_dir):
    """Test column parsing, tags and missing optional values."""
    products = load_products(str(data_dir / "products.csv"))

    assert [p.id for p in products] == ["p1", "p2"]
    p1, p2 = products
    assert p1.tags == ["summer", "beach"]
    assert p1.old_price is None
    assert p1.stock_quantity == 10
    assert p1.is_active
    assert p2.description == ""
    assert p2.on_sale
    assert not p2.is_active


def test_load_orders_groups_lines(data_dir):
    """Test that rows sharing an order id form one order."""
    orders = load_orders(str(data_dir / "orders.csv"))

    assert [o.id for o in orders] == ["o1", "o2"]
    o1 = orders[0]
    assert [(i.product_id, i.quantity) for i in o1.items] == [("p1", 2), ("p2", 1)]
    assert o1.total == pytest.approx(150.0)
    assert o1.created_at.tzinfo is not None
    assert o1.created_at.utcoffset() == timezone.utc.utcoffset(None)
    assert orders[1].status == "cancelled"


def test_load_users(data_dir):
    users = load_users(str(data_dir / "users.csv"))

    u1, u2 = users
    assert u1.age == 32
    assert u1.city == "Rabat"
    assert u1.created_at.year == 2024
    assert u2.age is None
    assert u2.created_at is None


def test_load_stores(data_dir):
    catalog, orders, users = load_stores(str(data_dir))

    assert set(catalog.products) == {"p1", "p2"}
    assert len(orders.orders) == 2
    assert set(users.users) == {"u1", "u2"}


def test_load_stores_optional_files(tmp_path):
    """Test that only the product catalog is required."""
    (tmp_path / "products.csv").write_text(PRODUCTS_CSV)

    catalog, orders, users = load_stores(str(tmp_path))

    assert len(catalog.products) == 2
    assert orders.orders == []
    assert users.users == {}


def test_load_stores_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_stores(str(tmp_path / "nope"))


def test_missing_required_columns(tmp_path):
    path = tmp_path / "products.csv"
    path.write_text("id,name\np1,Shorts\n")

    with pytest.raises(ValueError, match="missing required columns"):
        load_products(str(path))


def test_check_data_exists(data_dir, tmp_path_factory):
    assert check_data_exists(str(data_dir))
    assert not check_data_exists(str(tmp_path_factory.mktemp("empty")))
