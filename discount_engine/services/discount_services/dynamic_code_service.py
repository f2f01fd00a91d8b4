# discount_engine/services/discount_services/dynamic_code_service.py
from typing import List
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import isodate
import logging

from discount_engine.core.context import ServiceContext
from discount_engine.core.db import atomic
from discount_engine.core.errors import DuplicateError, InvalidDataError, NotAllowedError
from discount_engine.models.discount_models import Discount
from discount_engine.schemas.discount_schemas import DynamicDiscountCreate
from discount_engine.services.discount_services.discount_service import (
    retrieve_discount,
    normalize_code,
    is_unique_violation,
    ensure_date_range,
)
from discount_engine.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)


async def create_dynamic_code(ctx: ServiceContext, discount_id: int, payload: DynamicDiscountCreate) -> Discount:
    """
    Issue a child code from a dynamic template. The child shares the
    template's rule and usage limit; when the template has a
    `valid_duration` the child expires that long after issuance.
    """
    db = ctx.db
    code = None
    try:
        async with atomic(db):
            parent = await retrieve_discount(ctx, discount_id)

            if not parent.is_dynamic:
                raise NotAllowedError("Discount must be set to dynamic")

            code = normalize_code(payload.code)

            now = ctx.now()
            ends_at = as_utc(payload.ends_at)
            if parent.valid_duration:
                try:
                    ends_at = now + isodate.parse_duration(parent.valid_duration)
                except (isodate.ISO8601Error, ValueError) as e:
                    raise InvalidDataError(
                        f"Discount has an invalid valid_duration: {parent.valid_duration}"
                    ) from e
            ensure_date_range(now, ends_at)

            child = Discount(
                code=code,
                rule=parent.rule,
                is_dynamic=True,
                is_disabled=False,
                parent_discount_id=parent.id,
                usage_limit=parent.usage_limit,
                usage_count=0,
                starts_at=now,
                ends_at=ends_at,
                metadata_=payload.metadata,
                # Children are scoped by the parent's regions
                regions=[],
            )
            db.add(child)
            await db.flush()
    except IntegrityError as e:
        if is_unique_violation(e):
            logger.warning("Rejected duplicate dynamic code %s", code)
            raise DuplicateError(f"Discount with code {code} already exists") from e
        raise

    logger.info("Created dynamic code %s for discount %s", child.code, parent.id)
    return child


async def list_dynamic_codes(ctx: ServiceContext, discount_id: int) -> List[Discount]:
    await retrieve_discount(ctx, discount_id)
    result = await ctx.db.execute(
        select(Discount)
        .where(Discount.parent_discount_id == discount_id, Discount.is_deleted == False)
        .order_by(Discount.id)
    )
    return list(result.scalars().all())


async def delete_dynamic_code(ctx: ServiceContext, discount_id: int, code: str) -> None:
    """Idempotent: a code that is not there is already deleted."""
    async with atomic(ctx.db):
        result = await ctx.db.execute(
            select(Discount).where(
                Discount.parent_discount_id == discount_id,
                Discount.code == (code or "").strip().upper(),
                Discount.is_deleted == False,
            )
        )
        child = result.scalar_one_or_none()
        if not child:
            return None

        child.is_deleted = True
        child.deleted_at = ctx.now()
        await ctx.db.flush()

    logger.info("Soft-deleted dynamic code %s of discount %s", child.code, discount_id)
    return None
