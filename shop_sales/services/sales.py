"""Create, amend and reverse sales while keeping product stock in step.

Each operation is one unit of work: the product row is locked before its
stock is read and stays locked until the sale and the stock change are
committed together. For every live sale of quantity Q the product's stock
carries exactly -Q, whatever amendments happened in between.
"""

import logging
from decimal import Decimal

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from shop_sales.core.errors import InvalidInputError
from shop_sales.core.principal import Principal
from shop_sales.models.inventory import PaymentMethod, Sale
from shop_sales.schemas.sales import SaleCreate, SaleReversal, SaleUpdate, line_total_fits
from shop_sales.services.concurrency import atomic
from shop_sales.services.ledger import get_sale, list_credit_sales, list_sales, lock_sale, record_sale, remove_sale
from shop_sales.services.pricing import ZERO_PRICE, resolve_unit_price
from shop_sales.services.stock import apply_stock_delta, ensure_available, ensure_sellable, lock_product

logger = logging.getLogger(__name__)

__all__ = [
    "amend_sale",
    "create_sale",
    "get_sale",
    "list_credit_sales",
    "list_sales",
    "reverse_sale",
]


def _validate(schema: type[BaseModel], payload):
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInputError("Invalid sale payload", errors=exc.errors()) from exc


def _check_storable(unit_price: Decimal, quantity: int) -> None:
    if not line_total_fits(unit_price, quantity):
        raise InvalidInputError(f"Sale total for {quantity} x {unit_price} exceeds the largest storable amount")


def _line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return (Decimal(unit_price) * quantity).quantize(Decimal("0.01"))


def create_sale(db: Session, payload: SaleCreate | dict, principal: Principal) -> Sale:
    payload = _validate(SaleCreate, payload)

    with atomic(db, "create_sale"):
        product = lock_product(db, payload.product_id, principal.shop_id)
        ensure_sellable(db, product)
        ensure_available(product, payload.quantity)

        unit_price = resolve_unit_price(product, payload.channel, payload.negotiated_price)
        if unit_price == ZERO_PRICE:
            logger.warning("Product %s has no price set, recording sale at 0", product.id)
        _check_storable(unit_price, payload.quantity)

        sale = Sale(
            shop_id=principal.shop_id,
            product_id=product.id,
            sold_by_user_id=principal.user_id,
            quantity=payload.quantity,
            unit_price=unit_price,
            unit_cost=Decimal(product.purchase_price or 0),
            total=_line_total(unit_price, payload.quantity),
            channel=payload.channel,
            payment_method=payload.payment_method,
            paid=payload.payment_method != PaymentMethod.CREDIT,
            client_name=payload.client_name,
            client_phone=payload.client_phone,
            due_date=payload.due_date,
        )
        record_sale(db, sale)
        apply_stock_delta(product, -payload.quantity)

    logger.info(
        "Sale %s recorded: shop=%s product=%s quantity=%s total=%s stock_after=%s",
        sale.id,
        sale.shop_id,
        sale.product_id,
        sale.quantity,
        sale.total,
        product.stock,
    )
    return sale


def amend_sale(db: Session, sale_id: int, shop_id: int, payload: SaleUpdate | dict) -> Sale:
    """Apply a partial update to a sale.

    A quantity change moves the difference in or out of stock and re-prices
    the sale at the product's current price for the sale's channel, unless
    the update carries its own ``unit_price``. Sending the current quantity
    again touches payment fields only and never locks the product.
    """
    payload = _validate(SaleUpdate, payload)
    changes = payload.supplied_fields()
    new_quantity = changes.pop("quantity", None)
    new_unit_price = changes.pop("unit_price", None)

    with atomic(db, "amend_sale"):
        sale = lock_sale(db, sale_id, shop_id)

        if new_quantity is not None and new_quantity != sale.quantity:
            product = lock_product(db, sale.product_id, shop_id)
            diff = new_quantity - sale.quantity
            if diff > 0:
                ensure_available(product, diff)

            unit_price = resolve_unit_price(product, sale.channel, new_unit_price)
            if unit_price == ZERO_PRICE:
                logger.warning("Product %s has no price set, re-pricing sale %s at 0", product.id, sale.id)
            _check_storable(unit_price, new_quantity)

            apply_stock_delta(product, -diff)
            sale.quantity = new_quantity
            sale.unit_price = unit_price
            sale.total = _line_total(unit_price, new_quantity)
            logger.info("Sale %s quantity changed by %+d, stock_after=%s", sale.id, diff, product.stock)
        elif new_unit_price is not None:
            _check_storable(new_unit_price, sale.quantity)
            sale.unit_price = Decimal(new_unit_price).quantize(Decimal("0.01"))
            sale.total = _line_total(sale.unit_price, sale.quantity)

        for field, value in changes.items():
            setattr(sale, field, value)

    logger.info("Sale %s amended: %s", sale.id, sorted(payload.supplied_fields()))
    return sale


def reverse_sale(db: Session, sale_id: int, shop_id: int) -> SaleReversal:
    with atomic(db, "reverse_sale"):
        sale = lock_sale(db, sale_id, shop_id)
        product = lock_product(db, sale.product_id, shop_id)
        stock_after = apply_stock_delta(product, sale.quantity)
        reversal = SaleReversal(
            sale_id=sale.id,
            product_id=product.id,
            restored_quantity=sale.quantity,
            stock_after=stock_after,
        )
        remove_sale(db, sale)

    logger.info(
        "Sale %s reversed: product=%s restored=%s stock_after=%s",
        reversal.sale_id,
        reversal.product_id,
        reversal.restored_quantity,
        reversal.stock_after,
    )
    return reversal
