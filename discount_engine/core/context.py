# discount_engine/core/context.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.services.collaborators import (
    RegionLookup,
    ProductLookup,
    CustomerLookup,
    TotalsCalculator,
    CartTotals,
)
from discount_engine.utils.datetime_utils import utc_now


@dataclass(frozen=True)
class Collaborators:
    regions: RegionLookup
    products: ProductLookup
    customers: CustomerLookup
    totals: TotalsCalculator = field(default_factory=CartTotals)
    clock: Callable[[], datetime] = utc_now


@dataclass(frozen=True)
class ServiceContext:
    """Session plus collaborators, passed explicitly to every service call."""

    db: AsyncSession
    collaborators: Collaborators

    @property
    def regions(self) -> RegionLookup:
        return self.collaborators.regions

    @property
    def products(self) -> ProductLookup:
        return self.collaborators.products

    @property
    def customers(self) -> CustomerLookup:
        return self.collaborators.customers

    @property
    def totals(self) -> TotalsCalculator:
        return self.collaborators.totals

    def now(self) -> datetime:
        return self.collaborators.clock()

