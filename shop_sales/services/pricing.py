from decimal import Decimal

from shop_sales.models.inventory import SaleChannel

ZERO_PRICE = Decimal("0.00")


def _quantize_price(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"))


def _defined(value) -> bool:
    return value is not None and Decimal(value) > 0


def resolve_unit_price(product, channel: SaleChannel, negotiated_price: Decimal | None = None) -> Decimal:
    """Pick the unit price charged for one sale of ``product``.

    Precedence: a positive negotiated price, then the wholesale price for
    wholesale sales, then the retail price, then the product's generic price.
    Returns ``0.00`` when no price is set; callers decide whether to warn.
    """
    if _defined(negotiated_price):
        return _quantize_price(Decimal(negotiated_price))
    if channel == SaleChannel.WHOLESALE and _defined(product.wholesale_price):
        return _quantize_price(Decimal(product.wholesale_price))
    if _defined(product.retail_price):
        return _quantize_price(Decimal(product.retail_price))
    if _defined(product.price):
        return _quantize_price(Decimal(product.price))
    return ZERO_PRICE
