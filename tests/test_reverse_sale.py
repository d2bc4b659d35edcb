from decimal import Decimal

import pytest

from shop_sales.core.errors import NotFoundError
from shop_sales.models import Sale
from shop_sales.schemas.sales import SaleReversal
from shop_sales.services.sales import amend_sale, create_sale, list_sales, reverse_sale
from tests.conftest import current_stock


class TestReverseSale:
    """Reversal restores stock and removes the sale for good."""

    def test_reversal_restores_stock_and_deletes_the_sale(self, db_session, principal_a, shop_a, product_a):
        sale = create_sale(db_session, {"product_id": product_a.id, "quantity": 4}, principal_a)
        sale_id = sale.id

        reversal = reverse_sale(db_session, sale_id, shop_a.id)

        assert isinstance(reversal, SaleReversal)
        assert reversal.sale_id == sale_id
        assert reversal.product_id == product_a.id
        assert reversal.restored_quantity == 4
        assert reversal.stock_after == 10
        assert current_stock(db_session, product_a) == 10
        assert db_session.get(Sale, sale_id) is None
        assert list_sales(db_session, shop_a.id) == []

    def test_reversal_restores_the_latest_amended_quantity(self, db_session, principal_a, shop_a, product_a):
        sale = create_sale(db_session, {"product_id": product_a.id, "quantity": 2}, principal_a)
        amend_sale(db_session, sale.id, shop_a.id, {"quantity": 6})
        assert current_stock(db_session, product_a) == 4

        reversal = reverse_sale(db_session, sale.id, shop_a.id)

        assert reversal.restored_quantity == 6
        assert current_stock(db_session, product_a) == 10

    def test_reversed_sale_is_terminal(self, db_session, principal_a, shop_a, product_a):
        sale = create_sale(db_session, {"product_id": product_a.id, "quantity": 1}, principal_a)
        reverse_sale(db_session, sale.id, shop_a.id)

        with pytest.raises(NotFoundError):
            reverse_sale(db_session, sale.id, shop_a.id)
        with pytest.raises(NotFoundError):
            amend_sale(db_session, sale.id, shop_a.id, {"quantity": 2})
        assert current_stock(db_session, product_a) == 10

    def test_unknown_sale_is_not_found(self, db_session, shop_a):
        with pytest.raises(NotFoundError):
            reverse_sale(db_session, 31337, shop_a.id)

    def test_other_sales_on_the_product_are_kept(self, db_session, principal_a, shop_a, product_a):
        first = create_sale(db_session, {"product_id": product_a.id, "quantity": 2}, principal_a)
        second = create_sale(db_session, {"product_id": product_a.id, "quantity": 3}, principal_a)

        reverse_sale(db_session, first.id, shop_a.id)

        remaining = list_sales(db_session, shop_a.id)
        assert [sale.id for sale in remaining] == [second.id]
        assert remaining[0].total == Decimal("300.00")
        assert current_stock(db_session, product_a) == 7


class TestLifecycleScenario:
    """Create, amend, reverse on one product, then amend again."""

    def test_full_lifecycle(self, db_session, principal_a, shop_a, product_a):
        sale = create_sale(
            db_session,
            {"product_id": product_a.id, "quantity": 3, "payment_method": "cash"},
            principal_a,
        )
        assert (sale.quantity, sale.total, sale.paid) == (3, Decimal("300.00"), True)
        assert current_stock(db_session, product_a) == 7

        sale = amend_sale(db_session, sale.id, shop_a.id, {"quantity": 5})
        assert sale.total == Decimal("500.00")
        assert current_stock(db_session, product_a) == 5

        reverse_sale(db_session, sale.id, shop_a.id)
        assert current_stock(db_session, product_a) == 10

        with pytest.raises(NotFoundError):
            amend_sale(db_session, sale.id, shop_a.id, {"quantity": 1})
