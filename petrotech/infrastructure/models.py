"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``                 -- customers and administrators
* ``addresses``             -- delivery addresses, geocoded when created
* ``products``              -- fuel products with a base price per liter
* ``cars`` / ``charging_units`` -- EV charging inventory
* ``orders`` / ``order_items``  -- fuel orders
* ``charging_orders`` / ``charging_order_cars`` -- EV charging sessions
* ``drivers``               -- driver profiles with availability flags
* ``driver_locations``      -- one latest-wins row per driver
* ``driver_payouts``        -- append-only payout ledger
* ``push_tokens`` / ``driver_notifications`` -- notification plumbing

Indexes
-------
* **Unique** on ``order_number`` (both order tables), ``driver_locations.driver_id``,
  ``drivers.payout_account_id`` and ``push_tokens.token``.
* **B-Tree** on ``status``, ``user_id`` and ``driver_id`` for the list and
  earnings queries.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from petrotech.domain.enums import (
    ChargingDuration,
    ChargingOrderStatus,
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    Role,
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone = Column(String(40), nullable=True)
    role = Column(Enum(Role), default=Role.CUSTOMER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    label = Column(String(120), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(60), nullable=True)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(2), default="US", nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    instructions = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_addresses_user", "user_id"),)


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    price_per_liter = Column(Float, nullable=False)
    unit = Column(String(20), default="liter", nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)


class CarModel(Base):
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    make = Column(String(80), nullable=False)
    model = Column(String(80), nullable=False)
    year = Column(Integer, nullable=True)
    connector_type = Column(String(40), nullable=False)
    battery_capacity = Column(Float, nullable=True)
    license_plate = Column(String(20), nullable=True)
    nickname = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_cars_user", "user_id"),)


class ChargingUnitModel(Base):
    __tablename__ = "charging_units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    type = Column(String(40), nullable=False)
    connector_type = Column(String(40), nullable=False)
    max_power = Column(Float, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone = Column(String(40), nullable=False)
    license_number = Column(String(60), nullable=False)
    vehicle_type = Column(String(60), nullable=False)
    vehicle_number = Column(String(30), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    payout_account_id = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (Index("idx_drivers_available", "is_available", "is_active"),)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    driver_id = Column(
        Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True
    )
    order_number = Column(String(40), unique=True, nullable=False)
    delivery_type = Column(Enum(DeliveryType), nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_status = Column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    payment_intent_id = Column(String(64), nullable=True)

    total_amount = Column(Float, nullable=False)
    fuel_cost = Column(Float, default=0, nullable=False)
    company_markup = Column(Float, default=0, nullable=False)  # internal only
    distance = Column(Float, default=0, nullable=False)
    delivery_fee = Column(Float, default=0, nullable=False)
    tax = Column(Float, default=0, nullable=False)
    tip = Column(Float, default=0, nullable=False)

    delivery_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"eager_defaults": True}

    items = relationship(
        "OrderItemModel",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_user", "user_id"),
        Index("idx_orders_driver", "driver_id"),
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Float, nullable=False)  # liters
    unit_price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)


class ChargingOrderModel(Base):
    __tablename__ = "charging_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    driver_id = Column(
        Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True
    )
    charging_unit_id = Column(
        Integer, ForeignKey("charging_units.id", ondelete="SET NULL"), nullable=True
    )
    order_number = Column(String(40), unique=True, nullable=False)
    charging_duration = Column(Enum(ChargingDuration), nullable=False)
    number_of_cars = Column(Integer, default=1, nullable=False)

    base_fee = Column(Float, default=0, nullable=False)
    delivery_fee = Column(Float, default=0, nullable=False)
    distance = Column(Float, default=0, nullable=False)
    tax = Column(Float, default=0, nullable=False)
    tip = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, nullable=False)

    status = Column(
        Enum(ChargingOrderStatus), default=ChargingOrderStatus.PENDING, nullable=False
    )
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_status = Column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    payment_intent_id = Column(String(64), nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"eager_defaults": True}

    cars = relationship(
        "ChargingOrderCarModel",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_charging_orders_status", "status"),
        Index("idx_charging_orders_user", "user_id"),
        Index("idx_charging_orders_driver", "driver_id"),
    )

    @property
    def car_ids(self) -> list[int]:
        return [link.car_id for link in self.cars]


class ChargingOrderCarModel(Base):
    __tablename__ = "charging_order_cars"

    id = Column(Integer, primary_key=True, autoincrement=True)
    charging_order_id = Column(
        Integer, ForeignKey("charging_orders.id", ondelete="CASCADE"), nullable=False
    )
    car_id = Column(Integer, ForeignKey("cars.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("charging_order_id", "car_id", name="uq_charging_order_car"),
    )


class DriverLocationModel(Base):
    __tablename__ = "driver_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(
        Integer,
        ForeignKey("drivers.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)
    heading = Column(Float, nullable=True)
    speed = Column(Float, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"eager_defaults": True}


class DriverPayoutModel(Base):
    __tablename__ = "driver_payouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(
        Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False
    )
    amount = Column(Float, nullable=False)
    status = Column(Enum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False)
    external_transfer_id = Column(String(64), nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (Index("idx_driver_payouts_driver", "driver_id", "status"),)


class PushTokenModel(Base):
    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    driver_id = Column(
        Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=True
    )
    token = Column(String(255), unique=True, nullable=False)
    platform = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DriverNotificationModel(Base):
    __tablename__ = "driver_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(
        Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(Text, nullable=True)  # JSON
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("idx_driver_notifications_driver", "driver_id", "created_at"),
    )
