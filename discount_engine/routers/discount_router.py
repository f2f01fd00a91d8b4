from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from discount_engine.core.context import ServiceContext
from discount_engine.core.config import DEFAULT_PAGE_SIZE
from discount_engine.core.db import get_db
from discount_engine.models.discount_models import DiscountRuleType
from discount_engine.schemas.cart_schemas import LineItemAdjustmentRequest, CartValidationRequest
from discount_engine.schemas.discount_schemas import (
    DiscountCreate,
    DiscountUpdate,
    DynamicDiscountCreate,
    DiscountOut,
    DiscountResponse,
    DiscountListResponse,
    EligibilityOut,
    AdjustmentOut,
)
from discount_engine.services.discount_services import (
    discount_service,
    dynamic_code_service,
    region_service,
    eligibility,
    usage_service,
)

router = APIRouter(prefix="/discounts", tags=["Discounts"])


async def get_context(request: Request, db: AsyncSession = Depends(get_db)) -> ServiceContext:
    return ServiceContext(db=db, collaborators=request.app.state.collaborators)


def _response(message: str, discount) -> DiscountResponse:
    return DiscountResponse(message=message, data=DiscountOut.model_validate(discount))


# CREATE
@router.post("/", response_model=DiscountResponse)
async def route_create_discount(payload: DiscountCreate, ctx: ServiceContext = Depends(get_context)):
    """
    Create a discount with its rule.
    Validates the rule value, the fixed-discount region limit and the code.
    """
    discount = await discount_service.create_discount(ctx, payload)
    return _response("Discount created successfully", discount)


# GET ALL WITH SEARCH + PAGINATION
@router.get("/", response_model=DiscountListResponse)
async def route_list_discounts(
    ctx: ServiceContext = Depends(get_context),
    q: Optional[str] = Query(None, description="Search in discount codes"),
    is_dynamic: Optional[bool] = Query(None),
    is_disabled: Optional[bool] = Query(None),
    rule_type: Optional[DiscountRuleType] = Query(None, description="percentage or fixed"),
    include_deleted: bool = Query(False, description="Include soft-deleted discounts"),
    skip: int = Query(0, ge=0),
    take: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
):
    discounts, total = await discount_service.list_and_count_discounts(
        ctx,
        skip=skip,
        take=take,
        q=q,
        is_dynamic=is_dynamic,
        is_disabled=is_disabled,
        rule_type=rule_type,
        include_deleted=include_deleted,
    )
    return DiscountListResponse(
        message="Discounts retrieved successfully",
        total=total,
        data=[DiscountOut.model_validate(d) for d in discounts],
    )


@router.get("/code/{code}", response_model=DiscountResponse)
async def route_get_discount_by_code(code: str, ctx: ServiceContext = Depends(get_context)):
    discount = await discount_service.retrieve_discount_by_code(ctx, code)
    return _response("Discount retrieved successfully", discount)


@router.get("/{discount_id}", response_model=DiscountResponse)
async def route_get_discount(discount_id: int, ctx: ServiceContext = Depends(get_context)):
    discount = await discount_service.retrieve_discount(ctx, discount_id)
    return _response("Discount retrieved successfully", discount)


# UPDATE
@router.put("/{discount_id}", response_model=DiscountResponse)
async def route_update_discount(
    discount_id: int, payload: DiscountUpdate, ctx: ServiceContext = Depends(get_context)
):
    """Partial update: only the fields sent are changed."""
    discount = await discount_service.update_discount(ctx, discount_id, payload)
    return _response("Discount updated successfully", discount)


# SOFT DELETE
@router.delete("/{discount_id}", response_model=DiscountResponse)
async def route_delete_discount(discount_id: int, ctx: ServiceContext = Depends(get_context)):
    await discount_service.delete_discount(ctx, discount_id)
    return DiscountResponse(message="Discount deleted successfully")


# DYNAMIC CODES
@router.post("/{discount_id}/dynamic-codes", response_model=DiscountResponse)
async def route_create_dynamic_code(
    discount_id: int, payload: DynamicDiscountCreate, ctx: ServiceContext = Depends(get_context)
):
    child = await dynamic_code_service.create_dynamic_code(ctx, discount_id, payload)
    return _response("Dynamic code created successfully", child)


@router.get("/{discount_id}/dynamic-codes", response_model=List[DiscountOut])
async def route_list_dynamic_codes(discount_id: int, ctx: ServiceContext = Depends(get_context)):
    children = await dynamic_code_service.list_dynamic_codes(ctx, discount_id)
    return [DiscountOut.model_validate(c) for c in children]


@router.delete("/{discount_id}/dynamic-codes/{code}", response_model=DiscountResponse)
async def route_delete_dynamic_code(discount_id: int, code: str, ctx: ServiceContext = Depends(get_context)):
    await dynamic_code_service.delete_dynamic_code(ctx, discount_id, code)
    return DiscountResponse(message="Dynamic code deleted successfully")


# REGIONS
@router.post("/{discount_id}/regions/{region_id}", response_model=DiscountResponse)
async def route_add_region(discount_id: int, region_id: str, ctx: ServiceContext = Depends(get_context)):
    discount = await region_service.add_region(ctx, discount_id, region_id)
    return _response("Region added successfully", discount)


@router.delete("/{discount_id}/regions/{region_id}", response_model=DiscountResponse)
async def route_remove_region(discount_id: int, region_id: str, ctx: ServiceContext = Depends(get_context)):
    discount = await region_service.remove_region(ctx, discount_id, region_id)
    return _response("Region removed successfully", discount)


# CHECKOUT
@router.post("/validate", response_model=EligibilityOut)
async def route_validate_for_cart(payload: CartValidationRequest, ctx: ServiceContext = Depends(get_context)):
    """Run the eligibility checks for a code against a cart; the first failing check is reported."""
    discount = await discount_service.retrieve_discount_by_code(ctx, payload.code)
    result = await eligibility.check_eligibility(ctx, discount, payload.cart)
    if result.ok:
        return EligibilityOut(ok=True)
    return EligibilityOut(
        ok=False,
        reason=result.reason,
        type=result.error.type,
        message=result.error.message,
    )


@router.post("/{discount_id}/line-item-adjustment", response_model=AdjustmentOut)
async def route_line_item_adjustment(
    discount_id: int, payload: LineItemAdjustmentRequest, ctx: ServiceContext = Depends(get_context)
):
    amount = await discount_service.calculate_discount_for_line_item(
        ctx, discount_id, payload.line_item, payload.cart
    )
    return AdjustmentOut(discount_id=discount_id, line_item_id=payload.line_item.id, amount=amount)


@router.post("/{discount_id}/usage", response_model=DiscountResponse)
async def route_register_usage(discount_id: int, ctx: ServiceContext = Depends(get_context)):
    """Count one redemption; fails once the usage limit is reached."""
    discount = await usage_service.register_usage(ctx, discount_id)
    return _response("Discount usage registered", discount)
