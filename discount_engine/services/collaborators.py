# discount_engine/services/collaborators.py
"""
Lookups the discount engine consumes but does not own.

Every lookup receives the caller's session so it runs inside the same
transaction; a failing lookup unwinds that transaction with it. Lookups
raise `NotFoundError` for unknown ids.
"""
from typing import Protocol
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.schemas.cart_schemas import Cart
from discount_engine.schemas.lookup_schemas import Region, Product, Customer


class RegionLookup(Protocol):
    async def retrieve(self, db: AsyncSession, region_id: str) -> Region: ...


class ProductLookup(Protocol):
    async def retrieve(self, db: AsyncSession, product_id: str) -> Product: ...


class CustomerLookup(Protocol):
    async def retrieve(self, db: AsyncSession, customer_id: str) -> Customer: ...


class TotalsCalculator(Protocol):
    def get_subtotal(self, cart: Cart, exclude_non_discounts: bool = False) -> int: ...


class CartTotals:
    """Subtotal in minor units, optionally over discountable items only."""

    def get_subtotal(self, cart: Cart, exclude_non_discounts: bool = False) -> int:
        subtotal = 0
        for item in cart.items:
            if exclude_non_discounts and not item.allow_discounts:
                continue
            subtotal += item.unit_price * item.quantity
        return subtotal
