from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from decimal import Decimal


class ErrandItem(BaseModel):
    name: str = ""
    quantity: Decimal = Field(Decimal("0"), ge=0)
    price: Optional[Decimal] = Field(None, ge=0)


class ErrandQuoteRequest(BaseModel):
    category: str
    items: List[ErrandItem] = []
    printing_size: Optional[str] = None  # Printing only: "A3" / "A4"
    printing_color: Optional[str] = None  # Printing only: "Colored" / "Not Colored"


class ItemRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    quantity: Decimal
    price: Decimal
    total: Decimal


class PriceBreakdownOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_rows: List[ItemRowOut] = []
    subtotal: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    total: Decimal


class InvoiceDisplayBreakdown(BaseModel):
    total: Decimal
    subtotal: Decimal
    fees: Decimal
