"""
Dispatch coordinator
====================

Assignment arbitration
----------------------
Two administrators may race to assign the same driver, or one may assign
while another deactivates the driver.  The check and the claim are one
statement: a conditional ``UPDATE drivers ... WHERE is_available AND
is_active``.  Zero affected rows means the driver is unavailable and the
order is left untouched.  The order row itself is read ``FOR UPDATE`` so a
concurrent status change waits for the assignment to commit.

Also here: driver location pings (latest-wins upsert), customer-facing
live tracking, and the admin driver roster.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.domain.entities import Caller, Location, NotificationJob
from petrotech.domain.enums import OrderKind
from petrotech.domain.errors import (
    ConflictError,
    DriverUnavailable,
    NotFoundError,
    ValidationError,
)
from petrotech.domain.state_machine import is_terminal, status_after_assignment
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.infrastructure.models import DriverLocationModel, DriverModel
from petrotech.infrastructure.repositories import (
    ChargingOrderRepository,
    ChargingUnitRepository,
    DriverRepository,
    OrderRepository,
)

from .common import can_see

logger = logging.getLogger(__name__)


@dataclass
class TrackingView:
    order_id: int
    order_number: str
    status: str
    driver_id: Optional[int]
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    updated_at: Optional[datetime] = None
    place_name: Optional[str] = None
    place_label: Optional[str] = None


def _order_repo(session: AsyncSession, kind: OrderKind):
    if OrderKind(kind) == OrderKind.FUEL:
        return OrderRepository(session)
    return ChargingOrderRepository(session)


class DispatchService:
    def __init__(
        self, session: AsyncSession, geocoder: Optional[GeocodingClient] = None
    ):
        self.session = session
        self.drivers = DriverRepository(session)
        self.geocoder = geocoder

    # ── Assignment ────────────────────────────────────────────────────

    async def assign_driver(
        self,
        kind: OrderKind,
        order_id: int,
        driver_id: int,
        charging_unit_id: Optional[int] = None,
    ):
        """Returns ``(order, notification_jobs)``."""
        kind = OrderKind(kind)
        order = await _order_repo(self.session, kind).get_for_update(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if is_terminal(kind, order.status):
            raise ConflictError(
                f"Cannot assign a driver to a {order.status.value} order"
            )

        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")

        unit = None
        if charging_unit_id is not None:
            if kind != OrderKind.CHARGING:
                raise ValidationError("Charging units apply to charging orders only")
            unit = await ChargingUnitRepository(self.session).get_by_id(charging_unit_id)
            if unit is None:
                raise NotFoundError("Charging unit not found")
            if not (unit.is_available and unit.is_active):
                raise ConflictError("Charging unit is not available")

        if not await self.drivers.claim_available(driver_id):
            raise DriverUnavailable("Driver is not available")

        order.driver_id = driver_id
        order.status = status_after_assignment(kind, order.status)
        if unit is not None:
            order.charging_unit_id = unit.id
        await self.session.flush()

        logger.info(
            "Driver %d assigned to %s order %s (status=%s)",
            driver_id,
            kind.value,
            order.order_number,
            order.status.value,
        )
        data = {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "orderType": kind.value,
            "type": "order_assigned",
        }
        jobs = [
            NotificationJob(
                title="New order assigned",
                body=f"You have been assigned order {order.order_number}",
                type="order_assigned",
                driver_id=driver_id,
                data=data,
                persist=True,
            ),
            NotificationJob(
                title="Driver assigned",
                body=(
                    f"{driver.first_name} is on order {order.order_number}"
                    f" ({driver.vehicle_type} {driver.vehicle_number})"
                ),
                type="driver_assigned",
                user_id=order.user_id,
                data=data,
            ),
        ]
        return order, jobs

    # ── Location & tracking ───────────────────────────────────────────

    async def update_location(
        self,
        driver_id: int,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> DriverLocationModel:
        Location(latitude, longitude)
        if await self.drivers.get_by_id(driver_id) is None:
            raise NotFoundError("Driver not found")
        return await self.drivers.upsert_location(
            driver_id, latitude, longitude, accuracy, heading, speed
        )

    async def track(self, kind: OrderKind, order_id: int, caller: Caller) -> TrackingView:
        """Live driver position for an order, labelled when geocoding allows."""
        order = await _order_repo(self.session, kind).get_by_id(order_id)
        if order is None or not can_see(order, caller):
            raise NotFoundError("Order not found")

        view = TrackingView(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            driver_id=order.driver_id,
        )
        if order.driver_id is None:
            return view

        location = await self.drivers.get_location(order.driver_id)
        if location is None:
            return view

        view.latitude = location.latitude
        view.longitude = location.longitude
        view.heading = location.heading
        view.speed = location.speed
        view.updated_at = location.updated_at
        if self.geocoder is not None:
            place = await self.geocoder.reverse(location.latitude, location.longitude)
            if place is not None:
                view.place_name = place.display_name
                view.place_label = place.short_label
        return view

    # ── Driver roster ─────────────────────────────────────────────────

    async def list_drivers(self, available_only: bool = False) -> list[DriverModel]:
        return await self.drivers.list_all(available_only)

    async def get_driver(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    async def create_driver(self, **fields) -> DriverModel:
        if await self.drivers.get_by_email(fields["email"]) is not None:
            raise ConflictError("Driver with this email already exists")
        driver = await self.drivers.create(
            DriverModel(is_available=True, is_active=True, **fields)
        )
        logger.info("Driver %d created", driver.id)
        return driver

    async def update_driver(self, driver_id: int, **changes) -> DriverModel:
        driver = await self.drivers.get_for_update(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        email = changes.get("email")
        if email and email != driver.email:
            if await self.drivers.get_by_email(email) is not None:
                raise ConflictError("Driver with this email already exists")
        for name, value in changes.items():
            setattr(driver, name, value)
        await self.session.flush()
        return driver

    async def delete_driver(self, driver_id: int) -> None:
        driver = await self.drivers.get_for_update(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        active = await OrderRepository(self.session).count_active_for_driver(driver_id)
        active += await ChargingOrderRepository(self.session).count_active_for_driver(
            driver_id
        )
        if active:
            raise ConflictError("Cannot delete driver with active orders")
        await self.drivers.delete(driver)
        logger.info("Driver %d deleted", driver_id)
