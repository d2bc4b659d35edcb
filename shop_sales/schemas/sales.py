from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from shop_sales.models.inventory import PaymentMethod, SaleChannel

# Upper bounds of the Integer / Numeric(14, 2) columns a sale is stored in.
MAX_QUANTITY = 2_147_483_647
MAX_LINE_TOTAL = Decimal("999999999999.99")


def line_total_fits(unit_price: Decimal | None, quantity: int | None) -> bool:
    if unit_price is None or quantity is None:
        return True
    return Decimal(unit_price) * quantity <= MAX_LINE_TOTAL


class SaleCreate(BaseModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)
    payment_method: PaymentMethod = PaymentMethod.CASH
    channel: SaleChannel = SaleChannel.RETAIL
    negotiated_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    client_name: str | None = Field(default=None, max_length=160)
    client_phone: str | None = Field(default=None, max_length=32)
    due_date: date | None = None

    @model_validator(mode="after")
    def _check_line_total(self):
        if not line_total_fits(self.negotiated_price, self.quantity):
            raise ValueError("quantity x negotiated_price exceeds the largest storable sale total")
        return self


class SaleUpdate(BaseModel):
    """Partial update of a sale.

    Only fields present in the payload are applied. A field sent as ``null``
    is treated like an absent one, so nothing is ever cleared by omission.
    """

    quantity: int | None = Field(default=None, gt=0, le=MAX_QUANTITY)
    unit_price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    payment_method: PaymentMethod | None = None
    paid: bool | None = None
    repayment_method: PaymentMethod | None = None
    client_name: str | None = Field(default=None, max_length=160)
    client_phone: str | None = Field(default=None, max_length=32)
    due_date: date | None = None

    @model_validator(mode="after")
    def _check_line_total(self):
        if not line_total_fits(self.unit_price, self.quantity):
            raise ValueError("quantity x unit_price exceeds the largest storable sale total")
        return self

    def supplied_fields(self) -> dict:
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class SaleOut(BaseModel):
    id: int
    shop_id: int
    product_id: int
    product_name: str | None = None
    sold_by_user_id: int | None
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    total: Decimal
    channel: SaleChannel
    payment_method: PaymentMethod
    paid: bool
    repayment_method: PaymentMethod | None
    client_name: str | None
    client_phone: str | None
    due_date: date | None
    created_at: datetime

    model_config = {"from_attributes": True}


class SaleReversal(BaseModel):
    sale_id: int
    product_id: int
    restored_quantity: int
    stock_after: int
    detail: str = "Sale reversed and stock restored"
