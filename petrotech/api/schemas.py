"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from petrotech.domain.enums import (
    ChargingDuration,
    ChargingOrderStatus,
    DeliveryType,
    OrderKind,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
)


# ── Requests ──────────────────────────────────────────────────────────


class AddressCreateRequest(BaseModel):
    label: str = Field(..., max_length=120)
    street: str = Field(..., max_length=255)
    city: str = Field(..., max_length=120)
    state: Optional[str] = Field(None, max_length=60)
    zip_code: str = Field(..., max_length=20)
    country: str = Field("US", min_length=2, max_length=2)
    is_default: bool = False
    instructions: Optional[str] = None
    latitude: Optional[float] = Field(
        None, ge=-90, le=90, description="Skip geocoding when the client already knows it."
    )
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AddressUpdateRequest(BaseModel):
    label: Optional[str] = Field(None, max_length=120)
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=60)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    is_default: Optional[bool] = None
    instructions: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class CarCreateRequest(BaseModel):
    make: str = Field(..., max_length=80)
    model: str = Field(..., max_length=80)
    year: Optional[int] = Field(None, ge=1990, le=2100)
    connector_type: str = Field(..., max_length=40)
    battery_capacity: Optional[float] = Field(None, gt=0)
    license_plate: Optional[str] = Field(None, max_length=20)
    nickname: Optional[str] = Field(None, max_length=80)


class CarUpdateRequest(BaseModel):
    make: Optional[str] = Field(None, max_length=80)
    model: Optional[str] = Field(None, max_length=80)
    year: Optional[int] = Field(None, ge=1990, le=2100)
    connector_type: Optional[str] = Field(None, max_length=40)
    battery_capacity: Optional[float] = Field(None, gt=0)
    license_plate: Optional[str] = Field(None, max_length=20)
    nickname: Optional[str] = Field(None, max_length=80)


class ProductCreateRequest(BaseModel):
    name: str = Field(..., max_length=120)
    description: Optional[str] = None
    price_per_liter: float = Field(
        ..., gt=0, description="Base price; customers see it with the markup folded in."
    )
    unit: str = Field("liter", max_length=20)
    is_available: bool = True


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None
    price_per_liter: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=20)
    is_available: Optional[bool] = None


class OrderItemRequest(BaseModel):
    product_id: int
    quantity: float = Field(..., description="Liters; 50 to 5000 per item.")


class OrderCreateRequest(BaseModel):
    address_id: int
    delivery_type: DeliveryType = DeliveryType.PRIVATE
    payment_method: PaymentMethod
    items: list[OrderItemRequest] = Field(..., min_length=1)
    tip: float = 0.0
    delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class ChargingOrderCreateRequest(BaseModel):
    address_id: int
    charging_duration: ChargingDuration
    number_of_cars: int = 1
    car_ids: list[int] = Field(..., min_length=1)
    payment_method: PaymentMethod
    tip: float = 0.0
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus
    reason: Optional[str] = None


class ChargingStatusUpdateRequest(BaseModel):
    status: ChargingOrderStatus
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AssignDriverRequest(BaseModel):
    driver_id: int
    charging_unit_id: Optional[int] = None


class LocationUpdateRequest(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None


class PaymentIntentRequest(BaseModel):
    order_id: int
    order_type: OrderKind = OrderKind.FUEL


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str


class RefundRequest(BaseModel):
    amount: Optional[float] = Field(
        None, description="Omit for a full refund."
    )


class PayoutRequest(BaseModel):
    amount: float


class PushTokenRequest(BaseModel):
    token: str = Field(..., max_length=255)
    platform: str = Field(..., max_length=20)


class DriverCreateRequest(BaseModel):
    email: str = Field(..., max_length=255)
    first_name: str = Field(..., max_length=120)
    last_name: str = Field(..., max_length=120)
    phone: str = Field(..., max_length=40)
    license_number: str = Field(..., max_length=60)
    vehicle_type: str = Field(..., max_length=60)
    vehicle_number: str = Field(..., max_length=30)


class DriverUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, max_length=120)
    last_name: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=40)
    license_number: Optional[str] = Field(None, max_length=60)
    vehicle_type: Optional[str] = Field(None, max_length=60)
    vehicle_number: Optional[str] = Field(None, max_length=30)
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None


class DriverProfileUpdateRequest(BaseModel):
    """What a driver may change about themselves; email and activation stay with admins."""

    first_name: Optional[str] = Field(None, max_length=120)
    last_name: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=40)
    license_number: Optional[str] = Field(None, max_length=60)
    vehicle_type: Optional[str] = Field(None, max_length=60)
    vehicle_number: Optional[str] = Field(None, max_length=30)
    is_available: Optional[bool] = None


# ── Responses ─────────────────────────────────────────────────────────


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price_per_liter: float
    unit: str
    is_available: bool

    model_config = {"from_attributes": True}


class AddressResponse(BaseModel):
    id: int
    label: str
    street: str
    city: str
    state: Optional[str] = None
    zip_code: str
    country: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool
    instructions: Optional[str] = None

    model_config = {"from_attributes": True}


class CarResponse(BaseModel):
    id: int
    make: str
    model: str
    year: Optional[int] = None
    connector_type: str
    battery_capacity: Optional[float] = None
    license_plate: Optional[str] = None
    nickname: Optional[str] = None

    model_config = {"from_attributes": True}


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: float
    unit_price: float
    subtotal: float

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    """Customer-facing view; the internal markup is never included."""

    id: int
    order_number: str
    user_id: int
    address_id: int
    driver_id: Optional[int] = None
    delivery_type: DeliveryType
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    total_amount: float
    fuel_cost: float
    distance: float
    delivery_fee: float
    tax: float
    tip: float
    delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: list[OrderItemResponse] = []

    model_config = {"from_attributes": True}


class AdminOrderResponse(OrderResponse):
    company_markup: float


class ChargingOrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    address_id: int
    driver_id: Optional[int] = None
    charging_unit_id: Optional[int] = None
    charging_duration: ChargingDuration
    number_of_cars: int
    car_ids: list[int] = []
    base_fee: float
    delivery_fee: float
    distance: float
    tax: float
    tip: float
    total_amount: float
    status: ChargingOrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderPage(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int


class AdminOrderPage(BaseModel):
    orders: list[AdminOrderResponse]
    total: int
    page: int
    limit: int


class ChargingOrderPage(BaseModel):
    orders: list[ChargingOrderResponse]
    total: int
    page: int
    limit: int


class ChargingPriceResponse(BaseModel):
    prices: dict[ChargingDuration, float]
    max_cars: int


class DriverResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str
    license_number: str
    vehicle_type: str
    vehicle_number: str
    is_available: bool
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverLocationResponse(BaseModel):
    driver_id: int
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TrackingResponse(BaseModel):
    order_id: int
    order_number: str
    status: str
    driver_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    updated_at: Optional[datetime] = None
    place_name: Optional[str] = None
    place_label: Optional[str] = None

    model_config = {"from_attributes": True}


class PaymentIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str


class ConfirmPaymentResponse(BaseModel):
    success: bool
    order_id: int
    order_type: OrderKind
    payment_intent_id: str
    status: str


class RefundResponse(BaseModel):
    order_id: int
    refund_status: str
    payment_status: PaymentStatus


class WebhookResponse(BaseModel):
    received: bool = True


class RecentEarningResponse(BaseModel):
    id: int
    order_number: str
    type: OrderKind
    amount: float
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EarningsResponse(BaseModel):
    total_earned: float
    total_paid_out: float
    available_balance: float
    can_withdraw: bool
    min_payout_amount: float
    recent_earnings: list[RecentEarningResponse] = []

    model_config = {"from_attributes": True}


class PayoutResponse(BaseModel):
    id: int
    amount: float
    status: PayoutStatus
    external_transfer_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OnboardingLinkResponse(BaseModel):
    url: str


class PayoutAccountStatusResponse(BaseModel):
    has_account: bool
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool

    model_config = {"from_attributes": True}


class DriverNotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    body: str
    data: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PushTokenResponse(BaseModel):
    token: str
    platform: str

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    detail: str
