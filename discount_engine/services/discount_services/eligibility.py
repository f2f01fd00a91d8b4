# discount_engine/services/discount_services/eligibility.py
"""
Ordered eligibility checks for applying a discount to a cart.

The order of CHECKS is part of the contract: checks run top to bottom and
the first one that fails is the one reported. A discount that is both
expired and disabled is reported as expired.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, NamedTuple, Optional
import logging

from discount_engine.core.context import ServiceContext
from discount_engine.core.errors import DiscountError, InvalidDataError, NotAllowedError
from discount_engine.models.discount_models import Discount
from discount_engine.schemas.cart_schemas import Cart
from discount_engine.services.discount_services.discount_service import (
    retrieve_discount,
    can_apply_for_customer,
)
from discount_engine.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityResult:
    ok: bool
    reason: Optional[str] = None
    error: Optional[DiscountError] = None


class EligibilityCheck(NamedTuple):
    reason: str
    # Returns True when the check blocks the discount.
    blocks: Callable[[ServiceContext, Discount, Cart, datetime], Awaitable[bool]]
    error: Callable[[], DiscountError]


# --------------------------
# Predicates
# --------------------------
def has_reached_limit(discount: Discount) -> bool:
    count = discount.usage_count or 0
    return bool(discount.usage_limit) and count >= discount.usage_limit


def has_not_started(discount: Discount, now: datetime) -> bool:
    return as_utc(discount.starts_at) > now


def has_expired(discount: Discount, now: datetime) -> bool:
    if not discount.ends_at:
        return False
    return as_utc(discount.ends_at) < now


async def effective_region_ids(ctx: ServiceContext, discount: Discount) -> List[str]:
    """Dynamic children are scoped by their parent's regions, not their own."""
    if discount.parent_discount_id:
        parent = await retrieve_discount(ctx, discount.parent_discount_id)
        return parent.region_ids
    return discount.region_ids


async def is_valid_for_region(ctx: ServiceContext, discount: Discount, region_id: str) -> bool:
    return region_id in await effective_region_ids(ctx, discount)


async def _limit_reached(ctx, discount, cart, now):
    return has_reached_limit(discount)


async def _not_started(ctx, discount, cart, now):
    return has_not_started(discount, now)


async def _expired(ctx, discount, cart, now):
    return has_expired(discount, now)


async def _disabled(ctx, discount, cart, now):
    return bool(discount.is_disabled)


async def _wrong_region(ctx, discount, cart, now):
    return not await is_valid_for_region(ctx, discount, cart.region_id)


async def _wrong_customer(ctx, discount, cart, now):
    if not cart.customer_id:
        return False
    return not await can_apply_for_customer(ctx, discount.rule_id, cart.customer_id)


CHECKS = (
    EligibilityCheck(
        "usage_limit_reached", _limit_reached,
        lambda: NotAllowedError("Discount has been used maximum allowed times"),
    ),
    EligibilityCheck(
        "not_started", _not_started,
        lambda: NotAllowedError("Discount is not valid yet"),
    ),
    EligibilityCheck(
        "expired", _expired,
        lambda: NotAllowedError("Discount is expired"),
    ),
    EligibilityCheck(
        "disabled", _disabled,
        lambda: NotAllowedError("The discount code is disabled"),
    ),
    EligibilityCheck(
        "region_unavailable", _wrong_region,
        lambda: InvalidDataError("The discount is not available in current region"),
    ),
    EligibilityCheck(
        "customer_ineligible", _wrong_customer,
        lambda: NotAllowedError("Discount is not valid for customer"),
    ),
)


# --------------------------
# Chain
# --------------------------
async def check_eligibility(ctx: ServiceContext, discount: Discount, cart: Cart) -> EligibilityResult:
    now = as_utc(ctx.now())
    for check in CHECKS:
        if await check.blocks(ctx, discount, cart, now):
            logger.debug("Discount %s rejected for cart %s: %s", discount.code, cart.id, check.reason)
            return EligibilityResult(ok=False, reason=check.reason, error=check.error())
    return EligibilityResult(ok=True)


async def validate_discount_for_cart_or_throw(ctx: ServiceContext, cart: Cart, discount: Discount) -> None:
    result = await check_eligibility(ctx, discount, cart)
    if not result.ok:
        raise result.error
