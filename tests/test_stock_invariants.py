import random

import pytest
from sqlalchemy import func, select

from shop_sales.core.errors import InsufficientStockError, NotFoundError
from shop_sales.models import Sale
from shop_sales.services.sales import amend_sale, create_sale, reverse_sale
from tests.conftest import current_stock


def _sold_quantity(db_session, product_id: int) -> int:
    return db_session.scalar(
        select(func.coalesce(func.sum(Sale.quantity), 0)).where(Sale.product_id == product_id)
    )


@pytest.mark.parametrize("seed", [7, 21, 1984])
def test_stock_plus_live_sales_is_conserved(db_session, principal_a, shop_a, make_product, seed):
    """Any mix of create / amend / reverse keeps stock + sold == initial stock."""
    rng = random.Random(seed)
    initial = 25
    product = make_product(shop_a, stock=initial)
    live_sale_ids: list[int] = []

    for _ in range(60):
        action = rng.choice(["create", "create", "amend", "reverse"])
        try:
            if action == "create" or not live_sale_ids:
                sale = create_sale(
                    db_session,
                    {
                        "product_id": product.id,
                        "quantity": rng.randint(1, 6),
                        "payment_method": rng.choice(["cash", "mobile", "credit", "other"]),
                    },
                    principal_a,
                )
                live_sale_ids.append(sale.id)
            elif action == "amend":
                amend_sale(
                    db_session,
                    rng.choice(live_sale_ids),
                    shop_a.id,
                    {"quantity": rng.randint(1, 8), "paid": rng.choice([True, False, None])},
                )
            else:
                sale_id = rng.choice(live_sale_ids)
                reverse_sale(db_session, sale_id, shop_a.id)
                live_sale_ids.remove(sale_id)
        except InsufficientStockError:
            pass

        stock = current_stock(db_session, product)
        assert stock >= 0
        assert stock + _sold_quantity(db_session, product.id) == initial

    for sale_id in list(live_sale_ids):
        reverse_sale(db_session, sale_id, shop_a.id)
    assert current_stock(db_session, product) == initial


def test_sales_on_one_product_leave_other_products_alone(db_session, principal_a, shop_a, make_product):
    soap = make_product(shop_a, stock=10, name="Savon")
    candle = make_product(shop_a, stock=10, name="Bougie")

    sale = create_sale(db_session, {"product_id": soap.id, "quantity": 4}, principal_a)
    amend_sale(db_session, sale.id, shop_a.id, {"quantity": 2})

    assert current_stock(db_session, soap) == 8
    assert current_stock(db_session, candle) == 10

    reverse_sale(db_session, sale.id, shop_a.id)
    with pytest.raises(NotFoundError):
        reverse_sale(db_session, sale.id, shop_a.id)
    assert current_stock(db_session, soap) == 10
