from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from shop_sales.core.errors import NotFoundError
from shop_sales.models.inventory import Product, Sale
from shop_sales.schemas.sales import SaleOut


def _apply_sale_scope(
    query,
    *,
    shop_id: int,
    product_id: int | None,
    date_from: datetime | None,
    date_to: datetime | None,
):
    query = query.where(Sale.shop_id == shop_id)
    if product_id is not None:
        query = query.where(Sale.product_id == product_id)
    if date_from is not None:
        query = query.where(Sale.created_at >= date_from)
    if date_to is not None:
        query = query.where(Sale.created_at <= date_to)
    return query


def _with_product_name(rows) -> list[SaleOut]:
    return [
        SaleOut.model_validate(sale).model_copy(update={"product_name": product_name})
        for sale, product_name in rows
    ]


def lock_sale(db: Session, sale_id: int, shop_id: int) -> Sale:
    sale = db.scalar(
        select(Sale)
        .where(Sale.id == sale_id, Sale.shop_id == shop_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def record_sale(db: Session, sale: Sale) -> Sale:
    db.add(sale)
    db.flush()
    return sale


def remove_sale(db: Session, sale: Sale) -> None:
    db.delete(sale)
    db.flush()


def get_sale(db: Session, sale_id: int, shop_id: int) -> SaleOut:
    row = db.execute(
        select(Sale, Product.name)
        .join(Product, Product.id == Sale.product_id)
        .where(Sale.id == sale_id, Sale.shop_id == shop_id)
    ).first()
    if not row:
        raise NotFoundError("Sale not found")
    return _with_product_name([row])[0]


def list_sales(
    db: Session,
    shop_id: int,
    *,
    product_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[SaleOut]:
    query = select(Sale, Product.name).join(Product, Product.id == Sale.product_id)
    query = _apply_sale_scope(
        query,
        shop_id=shop_id,
        product_id=product_id,
        date_from=date_from,
        date_to=date_to,
    )
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return _with_product_name(db.execute(query).all())


def list_credit_sales(db: Session, shop_id: int, *, overdue_as_of: date | None = None) -> list[SaleOut]:
    """Unpaid sales of a shop, earliest due date first.

    With ``overdue_as_of`` only sales due strictly before that day are kept;
    sales without a due date are never overdue.
    """
    query = (
        select(Sale, Product.name)
        .join(Product, Product.id == Sale.product_id)
        .where(Sale.shop_id == shop_id, Sale.paid.is_(False))
    )
    if overdue_as_of is not None:
        query = query.where(Sale.due_date.is_not(None), Sale.due_date < overdue_as_of)
    query = query.order_by(Sale.due_date.is_(None), Sale.due_date.asc(), Sale.id.asc())
    return _with_product_name(db.execute(query).all())
