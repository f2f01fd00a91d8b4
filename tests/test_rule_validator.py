import pytest

from discount_engine.core.errors import InvalidDataError
from discount_engine.models.discount_models import DiscountRuleType
from discount_engine.services.discount_services.rule_validator import (
    RuleTerms,
    validate_rule,
    ensure_region_cardinality,
)


def test_percentage_above_100_is_rejected():
    with pytest.raises(InvalidDataError) as exc:
        validate_rule(RuleTerms(type=DiscountRuleType.PERCENTAGE, value=101))
    assert "above 100" in exc.value.message


@pytest.mark.parametrize("value", [0, 50, 100])
def test_percentage_up_to_100_is_accepted(value):
    rule = RuleTerms(type=DiscountRuleType.PERCENTAGE, value=value)
    assert validate_rule(rule) is rule


def test_fixed_values_are_not_capped_at_100():
    rule = RuleTerms(type=DiscountRuleType.FIXED, value=5000)
    assert validate_rule(rule) is rule


def test_negative_value_is_rejected():
    with pytest.raises(InvalidDataError):
        validate_rule(RuleTerms(type=DiscountRuleType.FIXED, value=-1))


def test_fixed_discount_allows_a_single_region():
    ensure_region_cardinality(DiscountRuleType.FIXED, 0)
    ensure_region_cardinality(DiscountRuleType.FIXED, 1)
    with pytest.raises(InvalidDataError):
        ensure_region_cardinality(DiscountRuleType.FIXED, 2)


def test_percentage_discount_allows_many_regions():
    ensure_region_cardinality(DiscountRuleType.PERCENTAGE, 5)
