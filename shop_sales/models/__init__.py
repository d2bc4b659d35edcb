from shop_sales.models.inventory import PaymentMethod, Product, Sale, SaleChannel, Shop

__all__ = [
    "PaymentMethod",
    "Product",
    "Sale",
    "SaleChannel",
    "Shop",
]
