from sqlalchemy import select
from sqlalchemy.orm import Session

from shop_sales.core.errors import InsufficientStockError, InvalidInputError, NotFoundError
from shop_sales.models.inventory import Product, Shop


def get_product_for_shop(db: Session, product_id: int, shop_id: int) -> Product:
    product = db.scalar(select(Product).where(Product.id == product_id, Product.shop_id == shop_id))
    if not product:
        raise NotFoundError("Product not found")
    return product


def lock_product(db: Session, product_id: int, shop_id: int) -> Product:
    """Read the product row under ``SELECT ... FOR UPDATE``.

    The lock is held until the surrounding transaction ends. The row is
    re-read even when the session already holds it, so the stock value
    checked afterwards is the committed one.
    """
    product = db.scalar(
        select(Product)
        .where(Product.id == product_id, Product.shop_id == shop_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not product:
        raise NotFoundError("Product not found")
    return product


def ensure_sellable(db: Session, product: Product) -> None:
    """Reject sales of archived products and sales in deactivated shops."""
    if not product.is_active:
        raise InvalidInputError("Cannot create sale for inactive product")
    shop = db.get(Shop, product.shop_id, populate_existing=True)
    if not shop or not shop.is_active:
        raise InvalidInputError("Cannot create sale for inactive shop")


def ensure_available(product: Product, quantity: int) -> None:
    if product.stock < quantity:
        raise InsufficientStockError(product.id, requested=quantity, available=product.stock)


def apply_stock_delta(product: Product, delta: int) -> int:
    """Add ``delta`` (negative for outgoing goods) to a locked product's stock."""
    new_stock = int(product.stock) + delta
    if new_stock < 0:
        raise InsufficientStockError(product.id, requested=-delta, available=product.stock)
    product.stock = new_stock
    return new_stock
