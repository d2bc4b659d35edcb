"""
Pytest fixtures for the sales engine.

Every test gets its own file-backed SQLite database, two tenant shops and a
product factory. File-backed (not in-memory) so that threads in the
concurrency tests each get their own connection to the same store.
"""

import os
from decimal import Decimal

import pytest

os.environ["DATABASE_URL"] = "sqlite://"

from shop_sales.core.principal import Principal  # noqa: E402
from shop_sales.db.database import Base, build_engine, build_session_factory  # noqa: E402
from shop_sales.models import Product, Shop  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sales.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def shop_a(db_session):
    """First tenant."""
    shop = Shop(code="SHOP-A", name="Boutique Dakar")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture
def shop_b(db_session):
    """Second tenant."""
    shop = Shop(code="SHOP-B", name="Boutique Thies")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture
def principal_a(shop_a):
    return Principal(user_id=11, shop_id=shop_a.id, role="employee")


@pytest.fixture
def principal_b(shop_b):
    return Principal(user_id=22, shop_id=shop_b.id, role="owner")


@pytest.fixture
def make_product(db_session):
    """Factory inserting a committed product row for a shop."""

    def _make(
        shop,
        *,
        stock=10,
        price="100",
        retail_price=None,
        wholesale_price=None,
        purchase_price="60",
        name="Savon parfume",
        is_active=True,
    ):
        product = Product(
            shop_id=shop.id,
            name=name,
            stock=stock,
            price=Decimal(price),
            retail_price=Decimal(retail_price) if retail_price is not None else None,
            wholesale_price=Decimal(wholesale_price) if wholesale_price is not None else None,
            purchase_price=Decimal(purchase_price),
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def product_a(make_product, shop_a):
    """Shop A product: stock 10, price 100."""
    return make_product(shop_a)


def current_stock(db_session, product) -> int:
    db_session.refresh(product)
    return product.stock
