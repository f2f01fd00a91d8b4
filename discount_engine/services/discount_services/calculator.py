# discount_engine/services/discount_services/calculator.py
from decimal import Decimal, ROUND_HALF_UP

from discount_engine.models.discount_models import (
    DiscountRule,
    DiscountRuleType,
    AllocationType,
)
from discount_engine.schemas.cart_schemas import Cart, LineItem
from discount_engine.services.collaborators import TotalsCalculator


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half away from zero, the only rounding used for money."""
    if denominator == 0:
        raise ZeroDivisionError("denominator must be non-zero")
    quotient = Decimal(numerator) / Decimal(denominator)
    return int(quotient.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def adjustment_for(rule: DiscountRule, line_item: LineItem, cart: Cart, totals: TotalsCalculator) -> int:
    """
    Amount, in minor units, that `rule` takes off `line_item`.

    - percentage: round(full_price * value / 100)
    - fixed / total allocation: the rule value (capped at the discountable
      subtotal) spread over items in proportion to their share of it
    - fixed / anything else: value per unit

    The result never exceeds the item's own full price.
    """
    if not line_item.allow_discounts:
        return 0

    full_price = line_item.unit_price * line_item.quantity

    if rule.type == DiscountRuleType.PERCENTAGE:
        adjustment = round_half_up(full_price * rule.value, 100)
    elif rule.type == DiscountRuleType.FIXED and rule.allocation == AllocationType.TOTAL:
        subtotal = totals.get_subtotal(cart, exclude_non_discounts=True)
        if subtotal <= 0:
            return 0
        capped = min(rule.value, subtotal)
        adjustment = round_half_up(capped * full_price, subtotal)
    else:
        adjustment = rule.value * line_item.quantity

    return min(adjustment, full_price)
