# discount_engine/services/discount_services/discount_service.py
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
import logging

from discount_engine.core.config import DEFAULT_PAGE_SIZE
from discount_engine.core.context import ServiceContext
from discount_engine.core.db import atomic
from discount_engine.core.errors import InvalidDataError, NotFoundError, DuplicateError
from discount_engine.models.discount_models import (
    Discount,
    DiscountRule,
    DiscountRegion,
    DiscountRuleType,
)
from discount_engine.schemas.cart_schemas import Cart, LineItem
from discount_engine.schemas.discount_schemas import DiscountCreate, DiscountUpdate
from discount_engine.services.discount_services import condition_service
from discount_engine.services.discount_services.calculator import adjustment_for
from discount_engine.services.discount_services.rule_validator import (
    RuleTerms,
    validate_rule,
    ensure_region_cardinality,
)
from discount_engine.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

# Patch fields that may be cleared by sending null.
NULLABLE_FIELDS = {"ends_at", "usage_limit", "valid_duration"}


# --------------------------
# Helpers
# --------------------------
def normalize_code(code: Optional[str]) -> str:
    if not code or not code.strip():
        raise InvalidDataError("Discount must have a code")
    return code.strip().upper()


def is_unique_violation(error: IntegrityError) -> bool:
    detail = str(error.orig).lower()
    return "unique" in detail or "duplicate" in detail


def ensure_date_range(starts_at, ends_at) -> None:
    if ends_at is not None and as_utc(ends_at) <= as_utc(starts_at):
        raise InvalidDataError('"ends_at" must be greater than "starts_at"')


async def resolve_regions(ctx: ServiceContext, region_ids: Iterable[str]) -> List[str]:
    """Look every region up (unknown ids raise NotFound) and return ids, deduplicated."""
    resolved = []
    for region_id in dict.fromkeys(region_ids):
        region = await ctx.regions.retrieve(ctx.db, region_id)
        resolved.append(region.id)
    return resolved


def assign_regions(discount: Discount, region_ids: List[str]) -> None:
    # Reuse rows that stay so the flush never deletes and re-inserts one key.
    current = {r.region_id: r for r in discount.regions}
    discount.regions = [current.get(rid) or DiscountRegion(region_id=rid) for rid in region_ids]


def _merge_metadata(current: Optional[Dict[str, Any]], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(current or {})
    for key, value in patch.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


# --------------------------
# READ
# --------------------------
def _contains_pattern(q: str) -> str:
    escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _filters(
    q: Optional[str] = None,
    is_dynamic: Optional[bool] = None,
    is_disabled: Optional[bool] = None,
    rule_type: Optional[DiscountRuleType] = None,
    parent_discount_id: Optional[int] = None,
    include_deleted: bool = False,
) -> list:
    filters = []
    if not include_deleted:
        filters.append(Discount.is_deleted == False)
    # Free-text search only looks at the code.
    if q:
        filters.append(Discount.code.ilike(_contains_pattern(q), escape="\\"))
    if is_dynamic is not None:
        filters.append(Discount.is_dynamic == is_dynamic)
    if is_disabled is not None:
        filters.append(Discount.is_disabled == is_disabled)
    if rule_type is not None:
        filters.append(Discount.rule.has(DiscountRule.type == rule_type))
    if parent_discount_id is not None:
        filters.append(Discount.parent_discount_id == parent_discount_id)
    return filters


async def list_discounts(
    ctx: ServiceContext,
    skip: int = 0,
    take: int = DEFAULT_PAGE_SIZE,
    **selector,
) -> List[Discount]:
    query = (
        select(Discount)
        .where(and_(*_filters(**selector)))
        .order_by(Discount.created_at.desc(), Discount.id.desc())
        .offset(skip)
        .limit(take)
    )
    result = await ctx.db.execute(query)
    return list(result.scalars().all())


async def list_and_count_discounts(
    ctx: ServiceContext,
    skip: int = 0,
    take: int = DEFAULT_PAGE_SIZE,
    **selector,
) -> Tuple[List[Discount], int]:
    filters = _filters(**selector)

    count_result = await ctx.db.execute(select(func.count(Discount.id)).where(and_(*filters)))
    total = count_result.scalar() or 0

    discounts = await list_discounts(ctx, skip=skip, take=take, **selector)
    return discounts, total


async def retrieve_discount(ctx: ServiceContext, discount_id: int) -> Discount:
    result = await ctx.db.execute(
        select(Discount).where(Discount.id == discount_id, Discount.is_deleted == False)
    )
    discount = result.scalar_one_or_none()
    if not discount:
        raise NotFoundError(f"Discount with {discount_id} was not found")
    return discount


async def retrieve_discount_by_code(ctx: ServiceContext, code: str) -> Discount:
    """Static codes win over dynamic ones with the same text."""
    normalized = (code or "").strip().upper()
    for dynamic in (False, True):
        result = await ctx.db.execute(
            select(Discount)
            .where(
                Discount.code == normalized,
                Discount.is_dynamic == dynamic,
                Discount.is_deleted == False,
            )
            .order_by(Discount.id)
            .limit(1)
        )
        discount = result.scalar_one_or_none()
        if discount:
            return discount
    raise NotFoundError(f"Discount with code {code} was not found")


# --------------------------
# CREATE
# --------------------------
async def create_discount(ctx: ServiceContext, payload: DiscountCreate) -> Discount:
    db = ctx.db
    rule_data = payload.rule

    validate_rule(rule_data)
    ensure_region_cardinality(rule_data.type, len(set(payload.regions)))
    code = normalize_code(payload.code)
    starts_at = as_utc(payload.starts_at) or ctx.now()
    ensure_date_range(starts_at, payload.ends_at)

    try:
        async with atomic(db):
            region_ids = await resolve_regions(ctx, payload.regions)

            rule = DiscountRule(
                type=rule_data.type,
                value=rule_data.value,
                allocation=rule_data.allocation,
                description=rule_data.description,
                conditions=[],
            )
            db.add(rule)
            await db.flush()

            discount = Discount(
                code=code,
                rule=rule,
                is_dynamic=payload.is_dynamic,
                is_disabled=payload.is_disabled,
                starts_at=starts_at,
                ends_at=as_utc(payload.ends_at),
                valid_duration=payload.valid_duration,
                usage_limit=payload.usage_limit,
                usage_count=0,
                metadata_=payload.metadata,
                regions=[DiscountRegion(region_id=rid) for rid in region_ids],
            )
            db.add(discount)
            await db.flush()

            for condition in rule_data.conditions:
                await condition_service.upsert_condition(db, rule, condition)
    except IntegrityError as e:
        if is_unique_violation(e):
            logger.warning("Rejected duplicate discount code %s", code)
            raise DuplicateError(f"Discount with code {code} already exists") from e
        raise

    logger.info("Created discount %s (ID: %s)", discount.code, discount.id)
    return discount


# --------------------------
# UPDATE
# --------------------------
async def update_discount(ctx: ServiceContext, discount_id: int, payload: DiscountUpdate) -> Discount:
    db = ctx.db
    update_data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True, exclude={"rule", "regions", "metadata"}).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    rule_update = (
        payload.rule.model_dump(exclude_unset=True, exclude={"conditions"}) if payload.rule else {}
    )
    rule_update = {k: v for k, v in rule_update.items() if v is not None or k in ("allocation", "description")}
    conditions = payload.rule.conditions if payload.rule and payload.rule.conditions else []

    if "code" in update_data:
        update_data["code"] = normalize_code(update_data["code"])
    for key in ("starts_at", "ends_at"):
        if key in update_data:
            update_data[key] = as_utc(update_data[key])

    try:
        async with atomic(db):
            discount = await retrieve_discount(ctx, discount_id)

            if "starts_at" in update_data or "ends_at" in update_data:
                ensure_date_range(
                    update_data.get("starts_at", discount.starts_at),
                    update_data.get("ends_at", discount.ends_at),
                )

            rule_type = rule_update.get("type", discount.rule.type)
            if "type" in rule_update or "value" in rule_update:
                validate_rule(RuleTerms(type=rule_type, value=rule_update.get("value", discount.rule.value)))

            region_ids = discount.region_ids
            if payload.regions is not None:
                region_ids = list(dict.fromkeys(payload.regions))
            if payload.regions is not None or "type" in rule_update:
                ensure_region_cardinality(rule_type, len(region_ids))

            if payload.regions is not None:
                assign_regions(discount, await resolve_regions(ctx, region_ids))

            for condition in conditions:
                await condition_service.upsert_condition(db, discount.rule, condition)

            for key, value in rule_update.items():
                setattr(discount.rule, key, value)

            if payload.metadata is not None:
                discount.metadata_ = _merge_metadata(discount.metadata_, payload.metadata)

            for key, value in update_data.items():
                setattr(discount, key, value)

            await db.flush()
    except IntegrityError as e:
        if is_unique_violation(e):
            logger.warning("Rejected duplicate discount code %s", update_data.get("code"))
            raise DuplicateError(f"Discount with code {update_data.get('code')} already exists") from e
        raise

    logger.info("Updated discount %s (ID: %s)", discount.code, discount.id)
    return discount


# --------------------------
# SOFT DELETE
# --------------------------
async def delete_discount(ctx: ServiceContext, discount_id: int) -> None:
    """Idempotent: unknown or already deleted ids succeed silently."""
    async with atomic(ctx.db):
        result = await ctx.db.execute(
            select(Discount).where(Discount.id == discount_id, Discount.is_deleted == False)
        )
        discount = result.scalar_one_or_none()
        if not discount:
            return None

        discount.is_deleted = True
        discount.deleted_at = ctx.now()
        await ctx.db.flush()

    logger.info("Soft-deleted discount %s (ID: %s)", discount.code, discount.id)
    return None


# --------------------------
# CONDITIONS
# --------------------------
async def validate_discount_for_product(
    ctx: ServiceContext, discount_rule_id: int, product_id: Optional[str]
) -> bool:
    # Custom line items have no product; that invalidates the discount, it is not an error.
    if not product_id:
        return False

    product = await ctx.products.retrieve(ctx.db, product_id)
    return await condition_service.is_valid_for_product(ctx.db, discount_rule_id, product)


async def can_apply_for_customer(
    ctx: ServiceContext, discount_rule_id: int, customer_id: Optional[str]
) -> bool:
    if not customer_id:
        return False

    customer = await ctx.customers.retrieve(ctx.db, customer_id)
    return await condition_service.can_apply_for_customer(ctx.db, discount_rule_id, customer)


# --------------------------
# CALCULATION
# --------------------------
async def calculate_discount_for_line_item(
    ctx: ServiceContext, discount_id: int, line_item: LineItem, cart: Cart
) -> int:
    if not line_item.allow_discounts:
        return 0

    discount = await retrieve_discount(ctx, discount_id)
    return adjustment_for(discount.rule, line_item, cart, ctx.totals)
