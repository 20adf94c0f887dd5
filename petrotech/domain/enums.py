"""Domain enumerations and state-transition rules."""

import enum


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class OrderKind(str, enum.Enum):
    FUEL = "fuel"
    CHARGING = "charging"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DISPATCHED = "DISPATCHED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ChargingOrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    ONLINE = "ONLINE"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    CARD_ON_DELIVERY = "CARD_ON_DELIVERY"


class DeliveryType(str, enum.Enum):
    PRIVATE = "PRIVATE"
    COMMERCIAL = "COMMERCIAL"


class ChargingDuration(str, enum.Enum):
    ONE_HOUR = "ONE_HOUR"
    TWO_HOURS = "TWO_HOURS"
    FIVE_HOURS = "FIVE_HOURS"
    TWENTY_FOUR_HOURS = "TWENTY_FOUR_HOURS"


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# State machine: maps current status -> set of valid next statuses
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.DISPATCHED, OrderStatus.CANCELLED},
    OrderStatus.DISPATCHED: {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

CHARGING_TRANSITIONS: dict[ChargingOrderStatus, set[ChargingOrderStatus]] = {
    ChargingOrderStatus.PENDING: {
        ChargingOrderStatus.CONFIRMED,
        ChargingOrderStatus.ASSIGNED,
        ChargingOrderStatus.CANCELLED,
    },
    ChargingOrderStatus.CONFIRMED: {
        ChargingOrderStatus.ASSIGNED,
        ChargingOrderStatus.CANCELLED,
    },
    ChargingOrderStatus.ASSIGNED: {
        ChargingOrderStatus.IN_PROGRESS,
        ChargingOrderStatus.CANCELLED,
    },
    ChargingOrderStatus.IN_PROGRESS: {
        ChargingOrderStatus.COMPLETED,
        ChargingOrderStatus.CANCELLED,
    },
    ChargingOrderStatus.COMPLETED: set(),
    ChargingOrderStatus.CANCELLED: set(),
}

# Statuses from which a customer may still cancel on their own
CUSTOMER_CANCELLABLE: dict[OrderKind, set] = {
    OrderKind.FUEL: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
    OrderKind.CHARGING: {
        ChargingOrderStatus.PENDING,
        ChargingOrderStatus.CONFIRMED,
        ChargingOrderStatus.ASSIGNED,
        ChargingOrderStatus.IN_PROGRESS,
    },
}

# Payment status only moves forward; same-value writes are no-ops
PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}
