# discount_engine/services/discount_services/usage_service.py
from sqlalchemy import update, or_
import logging

from discount_engine.core.context import ServiceContext
from discount_engine.core.db import atomic
from discount_engine.core.errors import NotAllowedError
from discount_engine.models.discount_models import Discount
from discount_engine.services.discount_services.discount_service import retrieve_discount

logger = logging.getLogger(__name__)


async def register_usage(ctx: ServiceContext, discount_id: int) -> Discount:
    """
    Count one redemption. The limit check and the increment are a single
    conditional UPDATE, so two checkouts racing for the last use cannot
    both get it.
    """
    async with atomic(ctx.db):
        result = await ctx.db.execute(
            update(Discount)
            .where(
                Discount.id == discount_id,
                Discount.is_deleted == False,
                or_(Discount.usage_limit.is_(None), Discount.usage_count < Discount.usage_limit),
            )
            .values(usage_count=Discount.usage_count + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # Raises NotFound for unknown ids; otherwise the limit is what stopped it.
            await retrieve_discount(ctx, discount_id)
            raise NotAllowedError("Discount has been used maximum allowed times")

        discount = await retrieve_discount(ctx, discount_id)
        await ctx.db.refresh(discount)

    logger.info("Registered usage of discount %s (%s used)", discount.code, discount.usage_count)
    return discount
