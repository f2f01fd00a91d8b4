# discount_engine/services/discount_services/rule_validator.py
from typing import NamedTuple, TypeVar

from discount_engine.core.errors import InvalidDataError
from discount_engine.models.discount_models import DiscountRuleType

R = TypeVar("R")


def validate_rule(rule: R) -> R:
    """
    Check a rule-like object (anything with `type` and `value`).
    Returns the rule unchanged when it is valid.
    """
    if rule.type == DiscountRuleType.PERCENTAGE and rule.value > 100:
        raise InvalidDataError("Discount value above 100 is not allowed when type is percentage")
    if rule.value < 0:
        raise InvalidDataError("Discount value must be non-negative")
    return rule


def ensure_region_cardinality(rule_type, region_count: int) -> None:
    """Fixed discounts may be attached to at most one region."""
    if rule_type == DiscountRuleType.FIXED and region_count > 1:
        raise InvalidDataError("Fixed discounts can have one region")


class RuleTerms(NamedTuple):
    """The parts of a rule that validation looks at, for rules not yet persisted."""
    type: DiscountRuleType
    value: int
