"""
Checkout request schemas.

Field names follow the storefront's checkout script (camelCase); every field
is optional here so that missing data is reported by the pipeline as a
MissingFields error instead of a generic validation failure.
"""

from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _to_str(value: Any) -> Any:
    """Gateway and product ids arrive as numbers or strings."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


LooseStr = Annotated[Optional[str], BeforeValidator(_to_str)]


class CustomerInfo(BaseModel):
    """Contact details entered at checkout."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: LooseStr = Field(None, alias="userId")
    email: Optional[str] = None
    name: Optional[str] = None
    phone: LooseStr = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: LooseStr = Field(None, alias="postalCode")
    country: Optional[str] = None


class LineItem(BaseModel):
    """One cart entry as sent by the client. Price is a display hint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: LooseStr = Field(None, alias="productId")
    quantity: int = 1
    price: Decimal = Decimal("0")
    name: Optional[str] = None
    image: Optional[str] = None


class OrderTotals(BaseModel):
    """Totals the client computed for the cart."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subtotal: Optional[Decimal] = None
    discount_amount: Decimal = Field(Decimal("0"), alias="discountAmount")
    shipping_cost: Decimal = Field(Decimal("0"), alias="shippingCost")
    total: Optional[Decimal] = None


class OrderPayload(BaseModel):
    """Cart being paid for."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    items: List[LineItem] = Field(default_factory=list)
    coupon: Optional[str] = None
    totals: OrderTotals = Field(default_factory=OrderTotals)


class VerifyPaymentRequest(BaseModel):
    """Body of POST /api/verify-payment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    transaction_id: LooseStr = Field(None, alias="transactionId")
    tx_ref: LooseStr = Field(None, alias="txRef")
    order: Optional[OrderPayload] = None

    def to_storage(self) -> dict:
        """JSON-safe copy kept on the transaction for resuming the checkout."""
        return self.model_dump(mode="json", by_alias=True)
