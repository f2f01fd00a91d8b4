"""Shared fixtures: a throwaway SQLite database per test and in-memory lookups."""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from discount_engine.core.context import Collaborators, ServiceContext
from discount_engine.core.db import Base, build_engine, build_session_factory
from discount_engine.core.errors import NotFoundError
from discount_engine.schemas.discount_schemas import DiscountCreate
from discount_engine.schemas.lookup_schemas import Region, Product, Customer
from discount_engine.services.discount_services.discount_service import retrieve_discount

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeLookup:
    def __init__(self, kind, records):
        self.kind = kind
        self.records = {r.id: r for r in records}
        self.calls = []

    async def retrieve(self, db, record_id):
        self.calls.append(record_id)
        try:
            return self.records[record_id]
        except KeyError:
            raise NotFoundError(f"{self.kind} with {record_id} was not found")


class FrozenClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def collaborators(clock):
    return Collaborators(
        regions=FakeLookup("Region", [
            Region(id="reg_eu", name="Europe", currency_code="eur"),
            Region(id="reg_us", name="United States", currency_code="usd"),
            Region(id="reg_dk", name="Denmark", currency_code="dkk"),
        ]),
        products=FakeLookup("Product", [
            Product(id="prod_shirt", tags=["summer", "cotton"]),
            Product(id="prod_hat", tags=["winter"]),
        ]),
        customers=FakeLookup("Customer", [
            Customer(id="cus_vip", groups=["vip"]),
            Customer(id="cus_basic", groups=[]),
        ]),
        clock=clock,
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'discounts.db'}", "sqlite")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def ctx(session_factory, collaborators):
    async with session_factory() as session:
        yield ServiceContext(db=session, collaborators=collaborators)


@pytest_asyncio.fixture
async def make_ctx(session_factory, collaborators):
    """Fresh sessions, for checking what actually reached the database."""
    sessions = []

    def _make():
        session = session_factory()
        sessions.append(session)
        return ServiceContext(db=session, collaborators=collaborators)

    yield _make
    for session in sessions:
        await session.close()


async def reload(ctx, discount_id):
    discount = await retrieve_discount(ctx, discount_id)
    await ctx.db.refresh(discount)
    return discount


def discount_payload(**overrides):
    data = {
        "code": "summer10",
        "rule": {"type": "percentage", "value": 10, "allocation": "total"},
        "regions": ["reg_eu"],
    }
    data.update(overrides)
    return DiscountCreate(**data)
