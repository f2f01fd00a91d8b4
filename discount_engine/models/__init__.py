# discount_engine/models/__init__.py
from discount_engine.models.discount_models import (
    Discount,
    DiscountRule,
    DiscountCondition,
    DiscountRegion,
    DiscountRuleType,
    AllocationType,
    DiscountConditionType,
    DiscountConditionOperator,
)
