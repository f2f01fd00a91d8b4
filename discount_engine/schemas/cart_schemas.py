# discount_engine/schemas/cart_schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List


class LineItem(BaseModel):
    id: str
    unit_price: int = Field(..., ge=0)  # minor units
    quantity: int = Field(..., ge=1)
    allow_discounts: bool = True
    product_id: Optional[str] = None  # custom line items have none


class Cart(BaseModel):
    id: str
    region_id: str
    customer_id: Optional[str] = None
    items: List[LineItem] = Field(default_factory=list)


class LineItemAdjustmentRequest(BaseModel):
    line_item: LineItem
    cart: Cart


class CartValidationRequest(BaseModel):
    code: str
    cart: Cart
