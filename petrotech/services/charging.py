"""
Charging order service
======================

A charging order books mobile charging for one or more of the customer's
own cars at one of their addresses.  Price is a flat per-car rate by
session length plus the usual delivery fee and tax.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.config import settings
from petrotech.domain.enums import (
    ChargingDuration,
    ChargingOrderStatus,
    OrderKind,
    PaymentMethod,
    PaymentStatus,
)
from petrotech.domain.errors import NotFoundError, ValidationError
from petrotech.domain.pricing import CHARGING_PRICES, PricingEngine
from petrotech.infrastructure.models import ChargingOrderCarModel, ChargingOrderModel
from petrotech.infrastructure.repositories import CarRepository, ChargingOrderRepository

from .common import OrderServiceBase, insert_numbered, require_address, require_tip

logger = logging.getLogger(__name__)

MAX_CARS = 10


def price_table() -> dict[str, float]:
    """Per-car price for each session length."""
    return {duration.value: price for duration, price in CHARGING_PRICES.items()}


class ChargingService(OrderServiceBase):
    kind = OrderKind.CHARGING
    cancelled_status = ChargingOrderStatus.CANCELLED
    label = "Charging order"

    def __init__(self, session: AsyncSession, pricing: Optional[PricingEngine] = None):
        super().__init__(session)
        self.pricing = pricing or PricingEngine.from_settings(settings)

    def _make_repo(self, session: AsyncSession) -> ChargingOrderRepository:
        return ChargingOrderRepository(session)

    async def create_order(
        self,
        user_id: int,
        address_id: int,
        charging_duration: ChargingDuration,
        number_of_cars: int,
        car_ids: Sequence[int],
        payment_method: PaymentMethod,
        tip: float = 0.0,
        scheduled_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> ChargingOrderModel:
        if not 1 <= number_of_cars <= MAX_CARS:
            raise ValidationError(f"number_of_cars must be between 1 and {MAX_CARS}")
        if len(car_ids) != number_of_cars:
            raise ValidationError("car_ids must list exactly number_of_cars cars")
        if len(set(car_ids)) != len(car_ids):
            raise ValidationError("car_ids must not repeat a car")
        tip = require_tip(tip)

        address = await require_address(self.session, address_id, user_id)

        owned = await CarRepository(self.session).list_owned(car_ids, user_id)
        if len(owned) != len(car_ids):
            raise NotFoundError("One or more cars not found")

        quote = self.pricing.quote_charging(
            ChargingDuration(charging_duration),
            number_of_cars,
            address.latitude,
            address.longitude,
            tip,
            address.state,
        )

        def build(order_number: str) -> ChargingOrderModel:
            return ChargingOrderModel(
                user_id=user_id,
                address_id=address.id,
                order_number=order_number,
                charging_duration=ChargingDuration(charging_duration),
                number_of_cars=number_of_cars,
                base_fee=quote.base_fee,
                delivery_fee=quote.delivery_fee,
                distance=quote.distance,
                tax=quote.tax,
                tip=quote.tip,
                total_amount=quote.total_amount,
                status=ChargingOrderStatus.PENDING,
                payment_method=PaymentMethod(payment_method),
                payment_status=PaymentStatus.PENDING,
                scheduled_at=scheduled_at,
                notes=notes,
                cars=[ChargingOrderCarModel(car_id=car_id) for car_id in car_ids],
            )

        order = await insert_numbered(self.session, self.repo, self.kind, build)
        logger.info(
            "Charging order %s created for user %d: %d car(s) x %s, total=%.2f",
            order.order_number,
            user_id,
            number_of_cars,
            order.charging_duration.value,
            order.total_amount,
        )
        return order
