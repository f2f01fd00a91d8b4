# discount_engine/services/discount_services/condition_service.py
from typing import Iterable, List, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from discount_engine.models.discount_models import (
    DiscountCondition,
    DiscountRule,
    DiscountConditionOperator,
    DiscountConditionType,
    PRODUCT_CONDITION_TYPES,
    CUSTOMER_CONDITION_TYPES,
)
from discount_engine.schemas.discount_schemas import DiscountConditionInput
from discount_engine.schemas.lookup_schemas import Product, Customer

logger = logging.getLogger(__name__)


# --------------------------
# Store
# --------------------------
async def upsert_condition(db: AsyncSession, rule: DiscountRule, data: DiscountConditionInput) -> DiscountCondition:
    """One condition per (rule, type): an existing one is overwritten."""
    condition = next((c for c in rule.conditions if c.type == data.type), None)

    if condition is None:
        condition = DiscountCondition(type=data.type)
        rule.conditions.append(condition)

    condition.operator = data.operator
    condition.resource_ids = list(data.resource_ids)
    await db.flush()

    logger.debug("Upserted %s condition for rule %s", data.type.value, rule.id)
    return condition


async def get_conditions(
    db: AsyncSession, rule_id: int, types: Sequence[DiscountConditionType]
) -> List[DiscountCondition]:
    result = await db.execute(
        select(DiscountCondition)
        .where(DiscountCondition.rule_id == rule_id, DiscountCondition.type.in_(types))
        .order_by(DiscountCondition.id)
    )
    return list(result.scalars().all())


# --------------------------
# Evaluation
# --------------------------
def _condition_holds(condition: DiscountCondition, candidates: Iterable[str]) -> bool:
    overlaps = bool(set(condition.resource_ids or []) & set(candidates))
    if condition.operator == DiscountConditionOperator.IN:
        return overlaps
    return not overlaps


def _product_candidates(condition: DiscountCondition, product: Product) -> List[str]:
    if condition.type == DiscountConditionType.PRODUCTS:
        return [product.id]
    return list(product.tags)


async def is_valid_for_product(db: AsyncSession, rule_id: int, product: Product) -> bool:
    conditions = await get_conditions(db, rule_id, PRODUCT_CONDITION_TYPES)
    return all(_condition_holds(c, _product_candidates(c, product)) for c in conditions)


async def can_apply_for_customer(db: AsyncSession, rule_id: int, customer: Customer) -> bool:
    conditions = await get_conditions(db, rule_id, CUSTOMER_CONDITION_TYPES)
    return all(_condition_holds(c, customer.groups) for c in conditions)
