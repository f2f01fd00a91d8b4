# discount_engine/services/discount_services/region_service.py
import logging

from discount_engine.core.context import ServiceContext
from discount_engine.core.db import atomic
from discount_engine.models.discount_models import Discount, DiscountRegion
from discount_engine.services.discount_services.discount_service import retrieve_discount
from discount_engine.services.discount_services.rule_validator import ensure_region_cardinality

logger = logging.getLogger(__name__)


async def add_region(ctx: ServiceContext, discount_id: int, region_id: str) -> Discount:
    async with atomic(ctx.db):
        discount = await retrieve_discount(ctx, discount_id)

        # Already attached: nothing to do
        if region_id in discount.region_ids:
            return discount

        ensure_region_cardinality(discount.rule.type, len(discount.regions) + 1)

        region = await ctx.regions.retrieve(ctx.db, region_id)
        discount.regions.append(DiscountRegion(region_id=region.id))
        await ctx.db.flush()

    logger.info("Added region %s to discount %s", region_id, discount_id)
    return discount


async def remove_region(ctx: ServiceContext, discount_id: int, region_id: str) -> Discount:
    async with atomic(ctx.db):
        discount = await retrieve_discount(ctx, discount_id)

        attached = next((r for r in discount.regions if r.region_id == region_id), None)
        if attached is None:
            return discount

        discount.regions.remove(attached)
        await ctx.db.flush()

    logger.info("Removed region %s from discount %s", region_id, discount_id)
    return discount
