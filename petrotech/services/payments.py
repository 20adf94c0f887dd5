"""
Payment-status synchronizer
===========================

Keeps ``payment_status`` on both order kinds in step with the payment
gateway.  Outcomes arrive three ways (client confirmation, signed webhook,
admin refund) and all of them funnel into ``apply_payment_status``, whose
forward-only table makes every path idempotent:

* re-applying the current status is a no-op;
* a late failure never downgrades PAID or REFUNDED.

The order row is read ``FOR UPDATE`` so a webhook and a client
confirmation for the same intent serialise instead of interleaving.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.domain.entities import NotificationJob
from petrotech.domain.enums import OrderKind, PaymentStatus
from petrotech.domain.errors import ConflictError, NotFoundError, ValidationError
from petrotech.domain.state_machine import apply_payment_status
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.infrastructure.repositories import (
    ChargingOrderRepository,
    OrderRepository,
)

logger = logging.getLogger(__name__)

CURRENCY = "usd"
SUCCEEDED = "succeeded"
HANDLED_EVENTS = {
    "payment_intent.succeeded": True,
    "payment_intent.payment_failed": False,
}


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def order_kind_from_metadata(value) -> OrderKind:
    return OrderKind.CHARGING if value == OrderKind.CHARGING.value else OrderKind.FUEL


def order_id_from_metadata(metadata) -> Optional[int]:
    """Our order ids are integers; anything else did not come from this service."""
    try:
        return int(metadata.get("orderId"))
    except (TypeError, ValueError):
        return None


@dataclass
class IntentResult:
    client_secret: Optional[str]
    payment_intent_id: str


@dataclass
class ConfirmResult:
    success: bool
    order_id: int
    order_type: OrderKind
    payment_intent_id: str
    status: str


class PaymentService:
    def __init__(self, session: AsyncSession, gateway: PaymentGatewayClient):
        self.session = session
        self.gateway = gateway

    def _repo(self, kind: OrderKind):
        if OrderKind(kind) == OrderKind.CHARGING:
            return ChargingOrderRepository(self.session)
        return OrderRepository(self.session)

    async def _load(self, kind: OrderKind, order_id: int):
        order = await self._repo(kind).get_for_update(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    # ── Charges ───────────────────────────────────────────────────────

    async def create_intent(
        self, kind: OrderKind, order_id: int, user_id: int
    ) -> IntentResult:
        kind = OrderKind(kind)
        order = await self._load(kind, order_id)
        if order.user_id != user_id:
            raise NotFoundError("Order not found")
        if PaymentStatus(order.payment_status) != PaymentStatus.PENDING:
            raise ConflictError("Order payment status is not pending")

        description = (
            f"Petrotech EV Charging {order.order_number}"
            if kind == OrderKind.CHARGING
            else f"Petrotech Order {order.order_number}"
        )
        intent = await self.gateway.create_payment_intent(
            to_cents(order.total_amount),
            CURRENCY,
            metadata={
                "orderId": str(order.id),
                "orderNumber": order.order_number,
                "userId": str(order.user_id),
                "orderType": kind.value,
            },
            description=description,
        )
        order.payment_intent_id = intent["id"]
        await self.session.flush()
        logger.info(
            "Payment intent %s created for %s order %s",
            intent["id"],
            kind.value,
            order.order_number,
        )
        return IntentResult(intent.get("client_secret"), intent["id"])

    async def apply_outcome(
        self,
        kind: OrderKind,
        order_id: int,
        succeeded: bool,
        external_payment_id: Optional[str] = None,
    ):
        """Returns ``(order, notification_jobs)``; jobs only when the status moved."""
        kind = OrderKind(kind)
        order = await self._load(kind, order_id)
        target = PaymentStatus.PAID if succeeded else PaymentStatus.FAILED
        previous = PaymentStatus(order.payment_status)

        if external_payment_id and not order.payment_intent_id:
            order.payment_intent_id = external_payment_id

        if not apply_payment_status(order, target):
            if previous != target:
                logger.warning(
                    "Ignoring %s for order %s already %s",
                    target.value,
                    order.order_number,
                    previous.value,
                )
            await self.session.flush()
            return order, []

        await self.session.flush()
        logger.info(
            "Payment for %s order %s: %s -> %s",
            kind.value,
            order.order_number,
            previous.value,
            target.value,
        )
        if succeeded:
            title, body = "Payment received", f"Payment for {order.order_number} succeeded"
        else:
            title, body = "Payment failed", f"Payment for {order.order_number} failed"
        job = NotificationJob(
            title=title,
            body=body,
            type="payment",
            user_id=order.user_id,
            data={
                "orderId": order.id,
                "orderNumber": order.order_number,
                "orderType": kind.value,
                "paymentStatus": target.value,
            },
        )
        return order, [job]

    async def confirm(self, payment_intent_id: str, user_id: Optional[int] = None):
        """Pull the intent from the gateway and apply what it says."""
        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        metadata = intent.get("metadata") or {}
        order_id = order_id_from_metadata(metadata)
        if order_id is None:
            raise ValidationError("Order ID not found in payment intent metadata")
        if user_id is not None and metadata.get("userId") != str(user_id):
            raise NotFoundError("Order not found")

        kind = order_kind_from_metadata(metadata.get("orderType"))
        status = intent.get("status", "")
        order, jobs = await self.apply_outcome(
            kind, order_id, status == SUCCEEDED, payment_intent_id
        )
        result = ConfirmResult(
            success=status == SUCCEEDED,
            order_id=order.id,
            order_type=kind,
            payment_intent_id=payment_intent_id,
            status=status,
        )
        return result, jobs

    async def handle_webhook(self, payload: bytes, signature: Optional[str]):
        """Returns ``(event_type, notification_jobs)``."""
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type", "")
        if event_type not in HANDLED_EVENTS:
            logger.info("Unhandled webhook event type %s", event_type)
            return event_type, []

        intent = (event.get("data") or {}).get("object") or {}
        metadata = intent.get("metadata") or {}
        order_id = order_id_from_metadata(metadata)
        if order_id is None:
            logger.warning(
                "Webhook %s for intent %s has no usable order id (%r)",
                event_type,
                intent.get("id"),
                metadata.get("orderId"),
            )
            return event_type, []

        _, jobs = await self.apply_outcome(
            order_kind_from_metadata(metadata.get("orderType")),
            order_id,
            HANDLED_EVENTS[event_type],
            intent.get("id"),
        )
        return event_type, jobs

    # ── Refunds ───────────────────────────────────────────────────────

    async def refund(
        self, kind: OrderKind, order_id: int, amount: Optional[float] = None
    ):
        """Returns ``(order, refund_status)``.  Partial refunds leave the order PAID."""
        kind = OrderKind(kind)
        order = await self._load(kind, order_id)
        if not order.payment_intent_id:
            raise ConflictError("Order has no online payment to refund")
        if PaymentStatus(order.payment_status) != PaymentStatus.PAID:
            raise ConflictError(
                f"Cannot refund an order with payment status {order.payment_status.value}"
            )
        if amount is not None and amount <= 0:
            raise ValidationError("Refund amount must be positive")

        refund = await self.gateway.create_refund(
            order.payment_intent_id, to_cents(amount) if amount is not None else None
        )
        refund_status = refund.get("status", "")
        if refund_status == SUCCEEDED:
            if amount is None or amount >= order.total_amount:
                apply_payment_status(order, PaymentStatus.REFUNDED)
            await self.session.flush()
        logger.info(
            "Refund %s for %s order %s: amount=%s status=%s",
            refund.get("id"),
            kind.value,
            order.order_number,
            "full" if amount is None else f"{amount:.2f}",
            refund_status,
        )
        return order, refund_status
