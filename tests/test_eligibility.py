from datetime import timedelta

import pytest

from discount_engine.core.errors import InvalidDataError, NotAllowedError, NotFoundError
from discount_engine.schemas.cart_schemas import Cart, LineItem
from discount_engine.schemas.discount_schemas import DiscountUpdate, DynamicDiscountCreate
from discount_engine.services.discount_services.discount_service import (
    create_discount,
    delete_discount,
    update_discount,
)
from discount_engine.services.discount_services.dynamic_code_service import create_dynamic_code
from discount_engine.services.discount_services.eligibility import (
    CHECKS,
    check_eligibility,
    validate_discount_for_cart_or_throw,
)
from discount_engine.services.discount_services.usage_service import register_usage
from tests.conftest import NOW, discount_payload

VIP_ONLY = {
    "type": "percentage",
    "value": 10,
    "conditions": [{"type": "customer_groups", "operator": "in", "resource_ids": ["vip"]}],
}


def make_cart(region_id="reg_eu", customer_id=None):
    return Cart(
        id="cart_1",
        region_id=region_id,
        customer_id=customer_id,
        items=[LineItem(id="li_1", unit_price=1000, quantity=1, product_id="prod_shirt")],
    )


def test_checks_run_in_documented_order():
    assert [c.reason for c in CHECKS] == [
        "usage_limit_reached",
        "not_started",
        "expired",
        "disabled",
        "region_unavailable",
        "customer_ineligible",
    ]


async def test_valid_discount_passes(ctx):
    discount = await create_discount(ctx, discount_payload())

    result = await check_eligibility(ctx, discount, make_cart())
    assert result.ok is True
    assert result.reason is None
    await validate_discount_for_cart_or_throw(ctx, make_cart(), discount)


async def test_usage_limit_reached(ctx):
    discount = await create_discount(ctx, discount_payload(usage_limit=1))
    discount = await register_usage(ctx, discount.id)

    result = await check_eligibility(ctx, discount, make_cart())
    assert result.reason == "usage_limit_reached"
    assert isinstance(result.error, NotAllowedError)
    assert result.error.message == "Discount has been used maximum allowed times"


async def test_usage_limit_is_checked_before_everything_else(ctx, clock):
    discount = await create_discount(
        ctx,
        discount_payload(usage_limit=1, is_disabled=True, ends_at=NOW + timedelta(hours=1)),
    )
    discount = await register_usage(ctx, discount.id)
    clock.advance(days=1)

    result = await check_eligibility(ctx, discount, make_cart(region_id="reg_us"))
    assert result.reason == "usage_limit_reached"


async def test_not_started(ctx):
    discount = await create_discount(ctx, discount_payload(starts_at=NOW + timedelta(days=1)))

    with pytest.raises(NotAllowedError) as exc:
        await validate_discount_for_cart_or_throw(ctx, make_cart(), discount)
    assert exc.value.message == "Discount is not valid yet"


async def test_expired(ctx, clock):
    discount = await create_discount(ctx, discount_payload(ends_at=NOW + timedelta(days=1)))

    assert (await check_eligibility(ctx, discount, make_cart())).ok is True

    clock.advance(days=2)
    result = await check_eligibility(ctx, discount, make_cart())
    assert result.reason == "expired"
    assert result.error.message == "Discount is expired"


async def test_expired_and_disabled_reports_expired(ctx, clock):
    discount = await create_discount(
        ctx, discount_payload(is_disabled=True, ends_at=NOW + timedelta(days=1))
    )
    clock.advance(days=2)

    result = await check_eligibility(ctx, discount, make_cart())
    assert result.reason == "expired"


async def test_disabled(ctx):
    discount = await create_discount(ctx, discount_payload())
    discount = await update_discount(ctx, discount.id, DiscountUpdate(is_disabled=True))

    with pytest.raises(NotAllowedError) as exc:
        await validate_discount_for_cart_or_throw(ctx, make_cart(), discount)
    assert exc.value.message == "The discount code is disabled"


async def test_region_unavailable_is_invalid_data(ctx):
    discount = await create_discount(ctx, discount_payload(regions=["reg_eu"]))

    with pytest.raises(InvalidDataError) as exc:
        await validate_discount_for_cart_or_throw(ctx, make_cart(region_id="reg_us"), discount)
    assert exc.value.message == "The discount is not available in current region"


async def test_customer_group_condition(ctx):
    discount = await create_discount(ctx, discount_payload(rule=VIP_ONLY))

    assert (await check_eligibility(ctx, discount, make_cart(customer_id="cus_vip"))).ok is True

    result = await check_eligibility(ctx, discount, make_cart(customer_id="cus_basic"))
    assert result.reason == "customer_ineligible"
    assert result.error.message == "Discount is not valid for customer"


async def test_customer_check_is_skipped_for_guest_carts(ctx, collaborators):
    discount = await create_discount(ctx, discount_payload(rule=VIP_ONLY))

    assert (await check_eligibility(ctx, discount, make_cart())).ok is True
    assert collaborators.customers.calls == []


async def test_dynamic_code_uses_parent_regions(ctx):
    parent = await create_discount(ctx, discount_payload(code="tmpl", is_dynamic=True))
    child = await create_dynamic_code(ctx, parent.id, DynamicDiscountCreate(code="child1"))

    assert child.region_ids == []
    assert (await check_eligibility(ctx, child, make_cart(region_id="reg_eu"))).ok is True

    result = await check_eligibility(ctx, child, make_cart(region_id="reg_us"))
    assert result.reason == "region_unavailable"


async def test_dynamic_code_with_deleted_parent_fails_region_lookup(ctx):
    parent = await create_discount(ctx, discount_payload(code="tmpl", is_dynamic=True))
    child = await create_dynamic_code(ctx, parent.id, DynamicDiscountCreate(code="child1"))
    await delete_discount(ctx, parent.id)

    with pytest.raises(NotFoundError):
        await check_eligibility(ctx, child, make_cart())
