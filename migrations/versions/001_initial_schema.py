"""Initial schema: catalog, orders, charging, drivers, payouts and notifications.

Revision ID: 001
Create Date: 2026-09-28
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


ROLE = postgresql.ENUM("CUSTOMER", "DRIVER", "ADMIN", name="role", create_type=False)
DELIVERY_TYPE = postgresql.ENUM(
    "PRIVATE", "COMMERCIAL", name="deliverytype", create_type=False
)
ORDER_STATUS = postgresql.ENUM(
    "PENDING",
    "CONFIRMED",
    "DISPATCHED",
    "IN_TRANSIT",
    "DELIVERED",
    "CANCELLED",
    name="orderstatus",
    create_type=False,
)
CHARGING_STATUS = postgresql.ENUM(
    "PENDING",
    "CONFIRMED",
    "ASSIGNED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    name="chargingorderstatus",
    create_type=False,
)
PAYMENT_METHOD = postgresql.ENUM(
    "ONLINE",
    "CASH_ON_DELIVERY",
    "CARD_ON_DELIVERY",
    name="paymentmethod",
    create_type=False,
)
PAYMENT_STATUS = postgresql.ENUM(
    "PENDING", "PAID", "FAILED", "REFUNDED", name="paymentstatus", create_type=False
)
CHARGING_DURATION = postgresql.ENUM(
    "ONE_HOUR",
    "TWO_HOURS",
    "FIVE_HOURS",
    "TWENTY_FOUR_HOURS",
    name="chargingduration",
    create_type=False,
)
PAYOUT_STATUS = postgresql.ENUM(
    "PENDING", "SUCCEEDED", "FAILED", name="payoutstatus", create_type=False
)

ENUMS = (
    ROLE,
    DELIVERY_TYPE,
    ORDER_STATUS,
    CHARGING_STATUS,
    PAYMENT_METHOD,
    PAYMENT_STATUS,
    CHARGING_DURATION,
    PAYOUT_STATUS,
)


def _timestamps(updated: bool = True) -> list:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
            )
        )
    return cols


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("role", ROLE, nullable=False, server_default="CUSTOMER"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )

    # ── addresses ─────────────────────────────────────────────────────
    op.create_table(
        "addresses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.String(120), nullable=False),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("city", sa.String(120), nullable=False),
        sa.Column("state", sa.String(60), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=False),
        sa.Column("country", sa.String(2), nullable=False, server_default="US"),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("instructions", sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_addresses_user", "addresses", ["user_id"])

    # ── catalog / inventory ───────────────────────────────────────────
    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("price_per_liter", sa.Float, nullable=False),
        sa.Column("unit", sa.String(20), nullable=False, server_default="liter"),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "cars",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("make", sa.String(80), nullable=False),
        sa.Column("model", sa.String(80), nullable=False),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("connector_type", sa.String(40), nullable=False),
        sa.Column("battery_capacity", sa.Float, nullable=True),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column("nickname", sa.String(80), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_cars_user", "cars", ["user_id"])
    op.create_table(
        "charging_units",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("connector_type", sa.String(40), nullable=False),
        sa.Column("max_power", sa.Float, nullable=False),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(40), nullable=False),
        sa.Column("license_number", sa.String(60), nullable=False),
        sa.Column("vehicle_type", sa.String(60), nullable=False),
        sa.Column("vehicle_number", sa.String(30), nullable=False),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("payout_account_id", sa.String(64), unique=True, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_drivers_available", "drivers", ["is_available", "is_active"])

    # ── orders ────────────────────────────────────────────────────────
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("order_number", sa.String(40), unique=True, nullable=False),
        sa.Column("delivery_type", DELIVERY_TYPE, nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("payment_method", PAYMENT_METHOD, nullable=False),
        sa.Column(
            "payment_status", PAYMENT_STATUS, nullable=False, server_default="PENDING"
        ),
        sa.Column("payment_intent_id", sa.String(64), nullable=True),
        sa.Column("total_amount", sa.Float, nullable=False),
        sa.Column("fuel_cost", sa.Float, nullable=False, server_default="0"),
        sa.Column("company_markup", sa.Float, nullable=False, server_default="0"),
        sa.Column("distance", sa.Float, nullable=False, server_default="0"),
        sa.Column("delivery_fee", sa.Float, nullable=False, server_default="0"),
        sa.Column("tax", sa.Float, nullable=False, server_default="0"),
        sa.Column("tip", sa.Float, nullable=False, server_default="0"),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_orders_status", "orders", ["status"])
    op.create_index("idx_orders_user", "orders", ["user_id"])
    op.create_index("idx_orders_driver", "orders", ["driver_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer,
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id", sa.Integer, sa.ForeignKey("products.id"), nullable=False
        ),
        sa.Column("quantity", sa.Float, nullable=False),
        sa.Column("unit_price", sa.Float, nullable=False),
        sa.Column("subtotal", sa.Float, nullable=False),
    )

    # ── charging orders ───────────────────────────────────────────────
    op.create_table(
        "charging_orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "charging_unit_id",
            sa.Integer,
            sa.ForeignKey("charging_units.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("order_number", sa.String(40), unique=True, nullable=False),
        sa.Column("charging_duration", CHARGING_DURATION, nullable=False),
        sa.Column("number_of_cars", sa.Integer, nullable=False, server_default="1"),
        sa.Column("base_fee", sa.Float, nullable=False, server_default="0"),
        sa.Column("delivery_fee", sa.Float, nullable=False, server_default="0"),
        sa.Column("distance", sa.Float, nullable=False, server_default="0"),
        sa.Column("tax", sa.Float, nullable=False, server_default="0"),
        sa.Column("tip", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Float, nullable=False),
        sa.Column("status", CHARGING_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("payment_method", PAYMENT_METHOD, nullable=False),
        sa.Column(
            "payment_status", PAYMENT_STATUS, nullable=False, server_default="PENDING"
        ),
        sa.Column("payment_intent_id", sa.String(64), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_charging_orders_status", "charging_orders", ["status"])
    op.create_index("idx_charging_orders_user", "charging_orders", ["user_id"])
    op.create_index("idx_charging_orders_driver", "charging_orders", ["driver_id"])

    op.create_table(
        "charging_order_cars",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "charging_order_id",
            sa.Integer,
            sa.ForeignKey("charging_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("car_id", sa.Integer, sa.ForeignKey("cars.id"), nullable=False),
        sa.UniqueConstraint(
            "charging_order_id", "car_id", name="uq_charging_order_car"
        ),
    )

    # ── driver telemetry / ledger / notifications ─────────────────────
    op.create_table(
        "driver_locations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("accuracy", sa.Float, nullable=True),
        sa.Column("heading", sa.Float, nullable=True),
        sa.Column("speed", sa.Float, nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "driver_payouts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("status", PAYOUT_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("external_transfer_id", sa.String(64), nullable=True),
        sa.Column("failure_reason", sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        "idx_driver_payouts_driver", "driver_payouts", ["driver_id", "status"]
    )

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("token", sa.String(255), unique=True, nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "driver_notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("data", sa.Text, nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        "idx_driver_notifications_driver",
        "driver_notifications",
        ["driver_id", "created_at"],
    )


def downgrade() -> None:
    for table in (
        "driver_notifications",
        "push_tokens",
        "driver_payouts",
        "driver_locations",
        "charging_order_cars",
        "charging_orders",
        "order_items",
        "orders",
        "drivers",
        "charging_units",
        "cars",
        "products",
        "addresses",
        "users",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
