"""
Order lifecycle rules shared by every caller.

Patterns used
-------------
- **State Pattern** on fuel and charging orders: the transition tables in
  ``enums`` are the only source of legal moves, for customers, drivers and
  administrators alike.
- Role gates narrow the graph per caller:

  * ``CUSTOMER`` may only cancel, and only from ``CUSTOMER_CANCELLABLE``.
  * ``DRIVER`` may advance and cancel, but never perform the
    assignment-driven moves (those belong to the dispatch coordinator).
  * ``ADMIN`` may take any edge of the graph.

- Every forward move past assignment needs ``driver_id`` set, for every
  role, so no order is delivered or charged without a driver.

The functions operate on any object exposing the order attributes, which
in practice are the ORM rows loaded by the services.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .enums import (
    CHARGING_TRANSITIONS,
    CUSTOMER_CANCELLABLE,
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    ChargingOrderStatus,
    OrderKind,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from .errors import ConflictError, IllegalCancellation, InvalidStateTransition

# Targets reached only through driver assignment
_ASSIGNMENT_TARGETS = {
    OrderKind.FUEL: {OrderStatus.CONFIRMED},
    OrderKind.CHARGING: {ChargingOrderStatus.CONFIRMED, ChargingOrderStatus.ASSIGNED},
}

# Targets that need an assigned driver, whoever requests the move
_DRIVER_REQUIRED = {
    OrderKind.FUEL: {
        OrderStatus.CONFIRMED,
        OrderStatus.DISPATCHED,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
    },
    OrderKind.CHARGING: {
        ChargingOrderStatus.ASSIGNED,
        ChargingOrderStatus.IN_PROGRESS,
        ChargingOrderStatus.COMPLETED,
    },
}

_TERMINAL = {
    OrderKind.FUEL: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderKind.CHARGING: {ChargingOrderStatus.COMPLETED, ChargingOrderStatus.CANCELLED},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status_enum(kind: OrderKind):
    return OrderStatus if kind == OrderKind.FUEL else ChargingOrderStatus


def _transitions(kind: OrderKind) -> dict:
    return ORDER_TRANSITIONS if kind == OrderKind.FUEL else CHARGING_TRANSITIONS


def is_terminal(kind: OrderKind, status) -> bool:
    return _status_enum(kind)(status) in _TERMINAL[kind]


def check_transition(kind: OrderKind, current, new, role: Role) -> None:
    """Raise unless *role* may move an order of *kind* from *current* to *new*."""
    enum_cls = _status_enum(kind)
    current, new = enum_cls(current), enum_cls(new)
    cancelling = new == enum_cls.CANCELLED

    if role == Role.CUSTOMER:
        if not cancelling:
            raise InvalidStateTransition("Customers can only cancel orders")
        if current not in CUSTOMER_CANCELLABLE[kind]:
            raise IllegalCancellation(
                f"Cannot cancel an order with status {current.value}"
            )
        return

    allowed = _transitions(kind).get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {new.value}"
        )
    if role == Role.DRIVER and new in _ASSIGNMENT_TARGETS[kind]:
        raise InvalidStateTransition(
            f"{new.value} is set by driver assignment, not by the driver"
        )


def _require_driver(kind: OrderKind, order, new) -> None:
    if new in _DRIVER_REQUIRED[kind] and order.driver_id is None:
        raise ConflictError(f"A driver must be assigned before {new.value}")


def _settle_on_handoff(order) -> None:
    # cash / card on delivery settles when the goods change hands
    if (
        PaymentStatus(order.payment_status) == PaymentStatus.PENDING
        and PaymentMethod(order.payment_method) != PaymentMethod.ONLINE
    ):
        order.payment_status = PaymentStatus.PAID


def transition_order(
    order,
    new_status: OrderStatus,
    role: Role,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OrderStatus:
    """Apply a fuel-order status change with its side effects.  Returns the old status."""
    old = OrderStatus(order.status)
    new_status = OrderStatus(new_status)
    check_transition(OrderKind.FUEL, old, new_status, role)
    _require_driver(OrderKind.FUEL, order, new_status)
    now = now or _utcnow()

    order.status = new_status
    if new_status == OrderStatus.DELIVERED:
        order.delivered_at = now
        _settle_on_handoff(order)
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now
        order.cancellation_reason = reason
    return old


def transition_charging_order(
    order,
    new_status: ChargingOrderStatus,
    role: Role,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ChargingOrderStatus:
    """Apply a charging-order status change with its side effects.  Returns the old status."""
    old = ChargingOrderStatus(order.status)
    new_status = ChargingOrderStatus(new_status)
    check_transition(OrderKind.CHARGING, old, new_status, role)
    _require_driver(OrderKind.CHARGING, order, new_status)
    now = now or _utcnow()

    if new_status == ChargingOrderStatus.IN_PROGRESS:
        order.started_at = now
    elif new_status == ChargingOrderStatus.COMPLETED:
        order.completed_at = now
        _settle_on_handoff(order)
    elif new_status == ChargingOrderStatus.CANCELLED:
        order.cancelled_at = now
        order.cancellation_reason = reason

    order.status = new_status
    return old


def transition(kind: OrderKind, order, new_status, role: Role, **kwargs):
    if kind == OrderKind.FUEL:
        return transition_order(order, new_status, role, **kwargs)
    return transition_charging_order(order, new_status, role, **kwargs)


def status_after_assignment(kind: OrderKind, current):
    """Status an order moves to when a driver is assigned."""
    if kind == OrderKind.FUEL:
        current = OrderStatus(current)
        return OrderStatus.CONFIRMED if current == OrderStatus.PENDING else current
    current = ChargingOrderStatus(current)
    if current in (ChargingOrderStatus.PENDING, ChargingOrderStatus.CONFIRMED):
        return ChargingOrderStatus.ASSIGNED
    return current


def apply_payment_status(order, new_status: PaymentStatus) -> bool:
    """
    Move ``order.payment_status`` to *new_status*.

    Returns ``True`` when the value changed.  Re-applying the current value
    is a no-op; a backwards move (e.g. a late failure after PAID) is
    ignored and reported as ``False``.
    """
    current = PaymentStatus(order.payment_status)
    new_status = PaymentStatus(new_status)
    if current == new_status:
        return False
    if new_status not in PAYMENT_TRANSITIONS[current]:
        return False
    order.payment_status = new_status
    return True
