import pytest

from discount_engine.core.errors import InvalidDataError, NotFoundError
from discount_engine.services.discount_services.discount_service import create_discount, retrieve_discount
from discount_engine.services.discount_services.region_service import add_region, remove_region
from tests.conftest import discount_payload

FIXED_RULE = {"type": "fixed", "value": 500, "allocation": "total"}


async def test_add_region(ctx, make_ctx):
    discount = await create_discount(ctx, discount_payload())
    updated = await add_region(ctx, discount.id, "reg_us")

    assert updated.region_ids == ["reg_eu", "reg_us"]
    assert (await retrieve_discount(make_ctx(), discount.id)).region_ids == ["reg_eu", "reg_us"]


async def test_add_attached_region_is_a_no_op(ctx, collaborators):
    discount = await create_discount(ctx, discount_payload())
    calls = len(collaborators.regions.calls)

    updated = await add_region(ctx, discount.id, "reg_eu")
    assert updated.region_ids == ["reg_eu"]
    assert len(collaborators.regions.calls) == calls


async def test_fixed_discount_cannot_get_second_region(ctx, make_ctx):
    discount_id = (await create_discount(ctx, discount_payload(rule=FIXED_RULE))).id

    with pytest.raises(InvalidDataError) as exc:
        await add_region(ctx, discount_id, "reg_us")
    assert exc.value.message == "Fixed discounts can have one region"
    assert (await retrieve_discount(make_ctx(), discount_id)).region_ids == ["reg_eu"]


async def test_fixed_discount_without_region_can_get_one(ctx):
    discount = await create_discount(ctx, discount_payload(rule=FIXED_RULE, regions=[]))
    updated = await add_region(ctx, discount.id, "reg_dk")
    assert updated.region_ids == ["reg_dk"]


async def test_add_unknown_region(ctx):
    discount_id = (await create_discount(ctx, discount_payload())).id
    with pytest.raises(NotFoundError):
        await add_region(ctx, discount_id, "reg_mars")


async def test_add_region_to_unknown_discount(ctx):
    with pytest.raises(NotFoundError):
        await add_region(ctx, 404, "reg_eu")


async def test_remove_region(ctx, make_ctx):
    discount = await create_discount(ctx, discount_payload(regions=["reg_eu", "reg_us"]))
    updated = await remove_region(ctx, discount.id, "reg_eu")

    assert updated.region_ids == ["reg_us"]
    assert (await retrieve_discount(make_ctx(), discount.id)).region_ids == ["reg_us"]


async def test_remove_missing_region_is_a_no_op(ctx):
    discount = await create_discount(ctx, discount_payload())
    updated = await remove_region(ctx, discount.id, "reg_dk")
    assert updated.region_ids == ["reg_eu"]
