"""
Fuel order service
==================

Creation validates the request against the customer's own address and
the product catalogue, prices it through ``PricingEngine`` and inserts it
with a fresh ``PT-`` order number.  Status changes go through the shared
state machine (see ``OrderServiceBase``).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.config import settings
from petrotech.domain.enums import (
    DeliveryType,
    OrderKind,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from petrotech.domain.errors import InvalidQuantity, NotFoundError, ValidationError
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.models import OrderItemModel, OrderModel
from petrotech.infrastructure.repositories import OrderRepository, ProductRepository

from .common import OrderServiceBase, insert_numbered, require_address, require_tip

logger = logging.getLogger(__name__)

def check_quantity(quantity: float, minimum: float, maximum: float) -> None:
    if quantity < minimum or quantity > maximum:
        raise InvalidQuantity(
            f"Quantity must be between {minimum:g} and {maximum:g} liters"
        )


class OrderService(OrderServiceBase):
    kind = OrderKind.FUEL
    cancelled_status = OrderStatus.CANCELLED
    label = "Order"

    def __init__(
        self,
        session: AsyncSession,
        pricing: Optional[PricingEngine] = None,
        min_quantity: Optional[float] = None,
        max_quantity: Optional[float] = None,
    ):
        super().__init__(session)
        self.pricing = pricing or PricingEngine.from_settings(settings)
        self.min_quantity = settings.min_quantity if min_quantity is None else min_quantity
        self.max_quantity = settings.max_quantity if max_quantity is None else max_quantity

    def _make_repo(self, session: AsyncSession) -> OrderRepository:
        return OrderRepository(session)

    async def create_order(
        self,
        user_id: int,
        address_id: int,
        delivery_type: DeliveryType,
        payment_method: PaymentMethod,
        items: Sequence[tuple[int, float]],
        tip: float = 0.0,
        delivery_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> OrderModel:
        """
        Price and insert a fuel order.

        *items* are ``(product_id, quantity_liters)`` pairs.  Nothing is
        written unless every item, the address, and the tip are valid.
        """
        if not items:
            raise ValidationError("At least one item is required")
        for _, quantity in items:
            check_quantity(quantity, self.min_quantity, self.max_quantity)
        tip = require_tip(tip)

        address = await require_address(self.session, address_id, user_id)

        products = await ProductRepository(self.session).get_many(
            [product_id for product_id, _ in items]
        )
        priced = []
        for product_id, quantity in items:
            product = products.get(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if not product.is_available:
                raise ValidationError(f"{product.name} is not available")
            priced.append((product_id, quantity, product.price_per_liter))

        quote = self.pricing.quote_fuel(
            priced, address.latitude, address.longitude, tip, address.state
        )

        def build(order_number: str) -> OrderModel:
            return OrderModel(
                user_id=user_id,
                address_id=address.id,
                order_number=order_number,
                delivery_type=DeliveryType(delivery_type),
                status=OrderStatus.PENDING,
                payment_method=PaymentMethod(payment_method),
                payment_status=PaymentStatus.PENDING,
                total_amount=quote.total_amount,
                fuel_cost=quote.fuel_cost,
                company_markup=quote.company_markup,
                distance=quote.distance,
                delivery_fee=quote.delivery_fee,
                tax=quote.tax,
                tip=quote.tip,
                delivery_date=delivery_date,
                notes=notes,
                items=[
                    OrderItemModel(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        subtotal=line.subtotal,
                    )
                    for line in quote.lines
                ],
            )

        order = await insert_numbered(self.session, self.repo, self.kind, build)
        logger.info(
            "Order %s created for user %d: %d item(s), total=%.2f",
            order.order_number,
            user_id,
            len(quote.lines),
            order.total_amount,
        )
        return order
