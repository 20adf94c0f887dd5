"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Nothing here commits; the caller owns the
transaction boundary.
"""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AddressModel,
    CarModel,
    ChargingOrderCarModel,
    ChargingOrderModel,
    ChargingUnitModel,
    DriverLocationModel,
    DriverModel,
    DriverNotificationModel,
    DriverPayoutModel,
    OrderItemModel,
    OrderModel,
    ProductModel,
    PushTokenModel,
    UserModel,
)
from petrotech.domain.enums import (
    ChargingOrderStatus,
    OrderStatus,
    PaymentStatus,
    PayoutStatus,
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)


class AddressRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, address: AddressModel) -> AddressModel:
        self.session.add(address)
        await self.session.flush()
        return address

    async def get_owned(self, address_id: int, user_id: int) -> Optional[AddressModel]:
        result = await self.session.execute(
            select(AddressModel).where(
                AddressModel.id == address_id, AddressModel.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[AddressModel]:
        result = await self.session.execute(
            select(AddressModel)
            .where(AddressModel.user_id == user_id)
            .order_by(AddressModel.is_default.desc(), AddressModel.id)
        )
        return list(result.scalars().all())

    async def clear_default(self, user_id: int) -> None:
        await self.session.execute(
            update(AddressModel)
            .where(AddressModel.user_id == user_id, AddressModel.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    async def in_use(self, address_id: int) -> bool:
        """True while any fuel or charging order points at the address."""
        for model in (OrderModel, ChargingOrderModel):
            result = await self.session.execute(
                select(model.id).where(model.address_id == address_id).limit(1)
            )
            if result.first() is not None:
                return True
        return False

    async def delete(self, address: AddressModel) -> None:
        await self.session.delete(address)
        await self.session.flush()


class ProductRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, product_id: int) -> Optional[ProductModel]:
        return await self.session.get(ProductModel, product_id)

    async def get_many(self, product_ids: Sequence[int]) -> dict[int, ProductModel]:
        result = await self.session.execute(
            select(ProductModel).where(ProductModel.id.in_(set(product_ids)))
        )
        return {p.id: p for p in result.scalars().all()}

    async def list_available(self) -> list[ProductModel]:
        result = await self.session.execute(
            select(ProductModel)
            .where(ProductModel.is_available.is_(True))
            .order_by(ProductModel.name)
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[ProductModel]:
        result = await self.session.execute(select(ProductModel).order_by(ProductModel.name))
        return list(result.scalars().all())

    async def create(self, product: ProductModel) -> ProductModel:
        self.session.add(product)
        await self.session.flush()
        return product

    async def in_use(self, product_id: int) -> bool:
        result = await self.session.execute(
            select(OrderItemModel.id).where(OrderItemModel.product_id == product_id).limit(1)
        )
        return result.first() is not None

    async def delete(self, product: ProductModel) -> None:
        await self.session.delete(product)
        await self.session.flush()


class CarRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, car: CarModel) -> CarModel:
        self.session.add(car)
        await self.session.flush()
        return car

    async def list_owned(self, car_ids: Sequence[int], user_id: int) -> list[CarModel]:
        result = await self.session.execute(
            select(CarModel).where(
                CarModel.id.in_(set(car_ids)), CarModel.user_id == user_id
            )
        )
        return list(result.scalars().all())

    async def get_owned(self, car_id: int, user_id: int) -> Optional[CarModel]:
        result = await self.session.execute(
            select(CarModel).where(CarModel.id == car_id, CarModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[CarModel]:
        result = await self.session.execute(
            select(CarModel).where(CarModel.user_id == user_id).order_by(CarModel.id)
        )
        return list(result.scalars().all())

    async def in_use(self, car_id: int) -> bool:
        result = await self.session.execute(
            select(ChargingOrderCarModel.id)
            .where(ChargingOrderCarModel.car_id == car_id)
            .limit(1)
        )
        return result.first() is not None

    async def delete(self, car: CarModel) -> None:
        await self.session.delete(car)
        await self.session.flush()


class ChargingUnitRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, unit_id: int) -> Optional[ChargingUnitModel]:
        return await self.session.get(ChargingUnitModel, unit_id)


class _PagedOrders:
    """Shared paging helpers for the two order tables."""

    model = None
    active_statuses: tuple = ()

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, order):
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_by_id(self, order_id: int):
        return await self.session.get(self.model, order_id)

    async def get_for_update(self, order_id: int):
        """SELECT ... FOR UPDATE so concurrent status writes serialise on the row."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _page(self, where: list, page: int, limit: int):
        query = select(self.model)
        count = select(func.count()).select_from(self.model)
        for clause in where:
            query = query.where(clause)
            count = count.where(clause)
        result = await self.session.execute(
            query.order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = (await self.session.execute(count)).scalar() or 0
        return list(result.scalars().all()), total

    async def list_for_user(self, user_id: int, page: int = 1, limit: int = 10):
        return await self._page([self.model.user_id == user_id], page, limit)

    async def list_all(self, status=None, page: int = 1, limit: int = 10):
        where = [self.model.status == status] if status else []
        return await self._page(where, page, limit)

    async def list_for_driver(self, driver_id: int):
        result = await self.session.execute(
            select(self.model)
            .where(self.model.driver_id == driver_id)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
        )
        return list(result.scalars().all())

    async def count_active_for_driver(self, driver_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(self.model)
            .where(
                self.model.driver_id == driver_id,
                self.model.status.in_(self.active_statuses),
            )
        )
        return result.scalar() or 0


class OrderRepository(_PagedOrders):
    model = OrderModel
    active_statuses = (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.DISPATCHED,
        OrderStatus.IN_TRANSIT,
    )

    async def earning_orders(self, driver_id: int) -> list[OrderModel]:
        result = await self.session.execute(
            select(OrderModel).where(
                OrderModel.driver_id == driver_id,
                OrderModel.status == OrderStatus.DELIVERED,
                OrderModel.payment_status == PaymentStatus.PAID,
            )
        )
        return list(result.scalars().all())


class ChargingOrderRepository(_PagedOrders):
    model = ChargingOrderModel
    active_statuses = (
        ChargingOrderStatus.PENDING,
        ChargingOrderStatus.CONFIRMED,
        ChargingOrderStatus.ASSIGNED,
        ChargingOrderStatus.IN_PROGRESS,
    )

    async def earning_orders(self, driver_id: int) -> list[ChargingOrderModel]:
        result = await self.session.execute(
            select(ChargingOrderModel).where(
                ChargingOrderModel.driver_id == driver_id,
                ChargingOrderModel.status == ChargingOrderStatus.COMPLETED,
                ChargingOrderModel.payment_status == PaymentStatus.PAID,
            )
        )
        return list(result.scalars().all())


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_by_email(self, email: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.email == email)
        )
        return result.scalar_one_or_none()

    async def delete(self, driver: DriverModel) -> None:
        await self.session.delete(driver)
        await self.session.flush()

    async def get_for_update(self, driver_id: int) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.id == driver_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def claim_available(self, driver_id: int) -> bool:
        """
        Conditional update: touches the driver row only while it is
        available and active.  The row lock it takes is held until the
        surrounding transaction ends, so a concurrent deactivation cannot
        slip between the check and the assignment.
        """
        result = await self.session.execute(
            update(DriverModel)
            .where(
                DriverModel.id == driver_id,
                DriverModel.is_available.is_(True),
                DriverModel.is_active.is_(True),
            )
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_all(self, available_only: bool = False) -> list[DriverModel]:
        query = select(DriverModel).order_by(DriverModel.created_at.desc(), DriverModel.id.desc())
        if available_only:
            query = query.where(
                DriverModel.is_available.is_(True), DriverModel.is_active.is_(True)
            )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def upsert_location(
        self,
        driver_id: int,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> DriverLocationModel:
        """Latest-wins write of the single location row for a driver."""
        values = dict(
            latitude=latitude,
            longitude=longitude,
            accuracy=accuracy,
            heading=heading,
            speed=speed,
        )
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = insert(DriverLocationModel).values(driver_id=driver_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DriverLocationModel.driver_id],
            set_={**values, "updated_at": func.now()},
        )
        await self.session.execute(stmt)
        return await self.get_location(driver_id)

    async def get_location(self, driver_id: int) -> Optional[DriverLocationModel]:
        result = await self.session.execute(
            select(DriverLocationModel)
            .where(DriverLocationModel.driver_id == driver_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class PayoutRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payout: DriverPayoutModel) -> DriverPayoutModel:
        self.session.add(payout)
        await self.session.flush()
        return payout

    async def succeeded_amounts(self, driver_id: int) -> list[float]:
        result = await self.session.execute(
            select(DriverPayoutModel.amount).where(
                DriverPayoutModel.driver_id == driver_id,
                DriverPayoutModel.status == PayoutStatus.SUCCEEDED,
            )
        )
        return list(result.scalars().all())

    async def list_for_driver(self, driver_id: int) -> list[DriverPayoutModel]:
        result = await self.session.execute(
            select(DriverPayoutModel)
            .where(DriverPayoutModel.driver_id == driver_id)
            .order_by(DriverPayoutModel.created_at.desc(), DriverPayoutModel.id.desc())
        )
        return list(result.scalars().all())

    async def count_for_driver(self, driver_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DriverPayoutModel)
            .where(DriverPayoutModel.driver_id == driver_id)
        )
        return result.scalar() or 0


class PushTokenRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def register(
        self,
        token: str,
        platform: str,
        user_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> PushTokenModel:
        """A device token belongs to whoever registered it last."""
        result = await self.session.execute(
            select(PushTokenModel).where(PushTokenModel.token == token)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = PushTokenModel(token=token)
            self.session.add(row)
        row.platform = platform
        row.user_id = user_id
        row.driver_id = driver_id
        await self.session.flush()
        return row

    async def tokens_for(
        self, user_id: Optional[int] = None, driver_id: Optional[int] = None
    ) -> list[str]:
        query = select(PushTokenModel.token).where(
            PushTokenModel.token.startswith("ExponentPushToken[")
        )
        if driver_id is not None:
            query = query.where(PushTokenModel.driver_id == driver_id)
        else:
            query = query.where(PushTokenModel.user_id == user_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_tokens(self, tokens: Sequence[str]) -> None:
        rows = await self.session.execute(
            select(PushTokenModel).where(PushTokenModel.token.in_(list(tokens)))
        )
        for row in rows.scalars().all():
            await self.session.delete(row)


class DriverNotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, notification: DriverNotificationModel) -> DriverNotificationModel:
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_driver(self, driver_id: int, limit: int = 50) -> list[DriverNotificationModel]:
        result = await self.session.execute(
            select(DriverNotificationModel)
            .where(DriverNotificationModel.driver_id == driver_id)
            .order_by(
                DriverNotificationModel.created_at.desc(),
                DriverNotificationModel.id.desc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())
