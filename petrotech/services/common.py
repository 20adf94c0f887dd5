"""
Pieces shared by the fuel and charging order services.

Both aggregates follow the same shape: numbered insert, owner/driver
visibility, and one status-change path through the shared state machine
that reports its side effects as ``NotificationJob`` values.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.domain.entities import Caller, NotificationJob, new_order_number
from petrotech.domain.enums import OrderKind, Role
from petrotech.domain.errors import (
    AddressNotGeocoded,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from petrotech.domain.state_machine import transition
from petrotech.infrastructure.models import AddressModel
from petrotech.infrastructure.repositories import AddressRepository

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 2


async def insert_numbered(
    session: AsyncSession,
    repo,
    kind: OrderKind,
    build: Callable[[str], object],
    attempts: int = ORDER_NUMBER_ATTEMPTS,
):
    """
    Insert the order produced by ``build(order_number)``.

    Each attempt runs in its own SAVEPOINT so a unique-number collision
    rolls back only that insert; the next attempt draws a fresh number.
    """
    for attempt in range(1, attempts + 1):
        order = build(new_order_number(kind))
        try:
            async with session.begin_nested():
                await repo.create(order)
        except IntegrityError:
            logger.warning(
                "Order number collision on %s (attempt %d/%d)",
                order.order_number,
                attempt,
                attempts,
            )
            continue
        return order
    raise PersistenceError("Could not allocate a unique order number")


async def require_address(
    session: AsyncSession, address_id: int, user_id: int
) -> AddressModel:
    address = await AddressRepository(session).get_owned(address_id, user_id)
    if address is None:
        raise NotFoundError("Address not found")
    if address.latitude is None or address.longitude is None:
        raise AddressNotGeocoded(
            "Address has no coordinates; update it so it can be located"
        )
    return address


def require_tip(tip: float) -> float:
    if tip is None:
        return 0.0
    if tip < 0:
        raise ValidationError("tip cannot be negative")
    return tip


def can_see(order, caller: Caller) -> bool:
    if caller.role == Role.ADMIN:
        return True
    if caller.role == Role.DRIVER:
        return order.driver_id == caller.id
    return order.user_id == caller.id


class OrderServiceBase:
    """Read and status-change operations common to both order kinds."""

    kind: OrderKind
    cancelled_status = None
    label: str = "Order"

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = self._make_repo(session)

    def _make_repo(self, session: AsyncSession):
        raise NotImplementedError

    async def get(self, order_id: int, caller: Caller):
        order = await self.repo.get_by_id(order_id)
        if order is None or not can_see(order, caller):
            raise NotFoundError(f"{self.label} not found")
        return order

    async def list_for_user(self, user_id: int, page: int = 1, limit: int = 10):
        return await self.repo.list_for_user(user_id, page, limit)

    async def list_all(self, status=None, page: int = 1, limit: int = 10):
        return await self.repo.list_all(status, page, limit)

    async def list_for_driver(self, driver_id: int):
        return await self.repo.list_for_driver(driver_id)

    async def change_status(
        self,
        order_id: int,
        new_status,
        caller: Caller,
        reason: Optional[str] = None,
    ) -> tuple[object, list[NotificationJob]]:
        order = await self.repo.get_for_update(order_id)
        if order is None or not can_see(order, caller):
            raise NotFoundError(f"{self.label} not found")

        old = transition(self.kind, order, new_status, caller.role, reason=reason)
        await self.session.flush()
        logger.info(
            "%s %s: %s -> %s by %s %d",
            self.label,
            order.order_number,
            old.value,
            order.status.value,
            caller.role.value,
            caller.id,
        )
        return order, self._status_jobs(order, caller)

    async def cancel(self, order_id: int, user_id: int, reason: Optional[str] = None):
        return await self.change_status(
            order_id,
            self.cancelled_status,
            Caller(user_id, Role.CUSTOMER),
            reason=reason,
        )

    def _status_jobs(self, order, caller: Caller) -> list[NotificationJob]:
        status = order.status.value
        data = {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "orderType": self.kind.value,
            "status": status,
        }
        jobs = [
            NotificationJob(
                title=f"{self.label} update",
                body=f"{self.label} {order.order_number} is now {status.replace('_', ' ').lower()}",
                type="order_status",
                user_id=order.user_id,
                data=data,
            )
        ]
        if order.driver_id is not None and caller.role != Role.DRIVER:
            jobs.append(
                NotificationJob(
                    title=f"{self.label} update",
                    body=f"{order.order_number} is now {status.replace('_', ' ').lower()}",
                    type="order_status",
                    driver_id=order.driver_id,
                    data=data,
                    persist=True,
                )
            )
        return jobs
