"""
Shared test fixtures.

Uses a throwaway SQLite file per test (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used as-is; the
engine is configured so SAVEPOINTs (``session.begin_nested``) behave the
way they do on PostgreSQL.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from petrotech.domain.enums import (
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from petrotech.infrastructure.database import Base
from petrotech.infrastructure.models import (
    AddressModel,
    CarModel,
    ChargingUnitModel,
    DriverModel,
    OrderModel,
    ProductModel,
    UserModel,
)

# Springfield, VA -- a few miles from the depot
HOME_LAT, HOME_LNG = 38.8012, -77.1871


# ── Engine ────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(test_engine.sync_engine, "connect")
    def _no_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Seeding helpers ───────────────────────────────────────────────────


async def add_user(session: AsyncSession, email: str = "maya@example.com", role=Role.CUSTOMER):
    user = UserModel(email=email, first_name="Maya", last_name="Brooks", role=role)
    session.add(user)
    await session.flush()
    return user


async def add_address(session: AsyncSession, user_id: int, geocoded: bool = True):
    address = AddressModel(
        user_id=user_id,
        label="Home",
        street="6801 Industrial Rd",
        city="Springfield",
        state="VA",
        zip_code="22151",
        latitude=HOME_LAT if geocoded else None,
        longitude=HOME_LNG if geocoded else None,
        is_default=True,
    )
    session.add(address)
    await session.flush()
    return address


async def add_product(session: AsyncSession, price: float = 1.0, available: bool = True):
    product = ProductModel(name="Diesel", price_per_liter=price, is_available=available)
    session.add(product)
    await session.flush()
    return product


async def add_car(session: AsyncSession, user_id: int):
    car = CarModel(user_id=user_id, make="Tesla", model="Model 3", connector_type="NACS")
    session.add(car)
    await session.flush()
    return car


async def add_driver(
    session: AsyncSession,
    email: str = "sam.driver@example.com",
    available: bool = True,
    active: bool = True,
    payout_account_id=None,
):
    driver = DriverModel(
        email=email,
        first_name="Sam",
        last_name="Ortiz",
        phone="+17035550101",
        license_number="VA-D-1001",
        vehicle_type="Fuel truck",
        vehicle_number="PT-TRK-01",
        is_available=available,
        is_active=active,
        payout_account_id=payout_account_id,
    )
    session.add(driver)
    await session.flush()
    return driver


async def add_charging_unit(session: AsyncSession, available: bool = True):
    unit = ChargingUnitModel(
        name="Mobile DC Unit 1",
        type="DC_FAST",
        connector_type="CCS1",
        max_power=80,
        is_available=available,
    )
    session.add(unit)
    await session.flush()
    return unit


_order_seq = 0


async def add_order(
    session: AsyncSession,
    user_id: int,
    address_id: int,
    status=OrderStatus.PENDING,
    payment_status=PaymentStatus.PENDING,
    payment_method=PaymentMethod.ONLINE,
    driver_id=None,
    delivery_fee: float = 10.0,
    tip: float = 0.0,
    total_amount: float = 100.0,
    payment_intent_id=None,
):
    """Insert a fuel order directly, bypassing pricing."""
    global _order_seq
    _order_seq += 1
    order = OrderModel(
        user_id=user_id,
        address_id=address_id,
        driver_id=driver_id,
        order_number=f"PT-1700000000000-SEED{_order_seq:02d}",
        delivery_type=DeliveryType.PRIVATE,
        status=status,
        payment_method=payment_method,
        payment_status=payment_status,
        payment_intent_id=payment_intent_id,
        total_amount=total_amount,
        fuel_cost=total_amount - delivery_fee - tip,
        delivery_fee=delivery_fee,
        tip=tip,
    )
    session.add(order)
    await session.flush()
    return order
