"""
Service tests against a real (SQLite) unit of work.

Collaborators that leave the process (payment gateway, geocoder) are
replaced by small in-memory fakes.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import (
    ChargingDuration,
    ChargingOrderStatus,
    DeliveryType,
    OrderKind,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    Role,
)
from petrotech.domain.errors import (
    AddressNotGeocoded,
    ConflictError,
    DriverUnavailable,
    ExternalServiceError,
    IllegalCancellation,
    InsufficientBalance,
    InvalidQuantity,
    NotFoundError,
    PayoutAccountMissing,
    PersistenceError,
    ValidationError,
)
from petrotech.infrastructure.geocoding import ReverseGeocodeResult
from petrotech.infrastructure.locks import LockNotAcquired, lock_factory
from petrotech.infrastructure.models import (
    ChargingOrderModel,
    DriverPayoutModel,
    OrderModel,
)
from petrotech.services.charging import ChargingService
from petrotech.services.dispatch import DispatchService
from petrotech.services.orders import OrderService
from petrotech.services.payments import PaymentService
from petrotech.services.payouts import PayoutService
from tests.conftest import (
    add_address,
    add_car,
    add_charging_unit,
    add_driver,
    add_order,
    add_product,
    add_user,
)


class FakeGateway:
    """Records calls; answers like the payment gateway would."""

    def __init__(self, intent_status="succeeded", transfer_error=None):
        self.intent_status = intent_status
        self.transfer_error = transfer_error
        self.intents: dict[str, dict] = {}
        self.transfers: list[tuple] = []
        self.refunds: list[tuple] = []

    async def create_payment_intent(self, amount_cents, currency, metadata, description):
        intent_id = f"pi_{len(self.intents) + 1}"
        self.intents[intent_id] = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "amount": amount_cents,
            "metadata": metadata,
        }
        return self.intents[intent_id]

    async def retrieve_payment_intent(self, payment_intent_id):
        return {**self.intents[payment_intent_id], "status": self.intent_status}

    async def create_refund(self, payment_intent_id, amount_cents=None):
        self.refunds.append((payment_intent_id, amount_cents))
        return {"id": "re_1", "status": "succeeded"}

    async def create_transfer(self, amount_cents, destination, description):
        if self.transfer_error:
            raise ExternalServiceError(self.transfer_error)
        self.transfers.append((amount_cents, destination))
        return f"tr_{len(self.transfers)}"

    async def create_connected_account(self, email):
        return "acct_new"

    async def create_account_link(self, account_id, refresh_url, return_url):
        return f"https://connect.example/{account_id}"

    async def retrieve_account(self, account_id):
        return {"charges_enabled": True, "payouts_enabled": False, "details_submitted": True}

    def construct_event(self, payload, signature):
        return json.loads(payload)


def free_lock():
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return lock_factory(redis, 30)


def held_lock():
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=False)
    return lock_factory(redis, 30)


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


@pytest.fixture
async def customer(db_session):
    user = await add_user(db_session)
    address = await add_address(db_session, user.id)
    return user, address


# ── Fuel orders ───────────────────────────────────────────────────────


class TestCreateOrder:
    async def _create(self, session, user, address, product, quantity, **kwargs):
        return await OrderService(session).create_order(
            user_id=user.id,
            address_id=address.id,
            delivery_type=DeliveryType.PRIVATE,
            payment_method=kwargs.pop("payment_method", PaymentMethod.ONLINE),
            items=[(product.id, quantity)],
            **kwargs,
        )

    @pytest.mark.parametrize("quantity", [50, 5000])
    async def test_quantity_bounds_accepted(self, db_session, customer, quantity):
        user, address = customer
        product = await add_product(db_session)
        order = await self._create(db_session, user, address, product, quantity)
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.items[0].quantity == quantity

    @pytest.mark.parametrize("quantity", [49, 5001])
    async def test_quantity_out_of_bounds_writes_nothing(self, db_session, customer, quantity):
        user, address = customer
        product = await add_product(db_session)
        with pytest.raises(InvalidQuantity):
            await self._create(db_session, user, address, product, quantity)
        assert await count(db_session, OrderModel) == 0

    async def test_priced_order(self, db_session, customer):
        user, address = customer
        product = await add_product(db_session, price=1.0)
        order = await self._create(db_session, user, address, product, 100, tip=3.0)

        assert order.order_number.startswith("PT-")
        assert order.distance > 0
        assert order.tip == 3.0
        assert order.items[0].unit_price == pytest.approx(1.001, abs=0.001)
        assert order.total_amount == pytest.approx(
            round(order.fuel_cost + order.delivery_fee + order.tax + order.tip, 2)
        )

    async def test_ungeocoded_address_rejected(self, db_session):
        user = await add_user(db_session)
        address = await add_address(db_session, user.id, geocoded=False)
        product = await add_product(db_session)
        with pytest.raises(AddressNotGeocoded):
            await self._create(db_session, user, address, product, 100)

    async def test_someone_elses_address_is_not_found(self, db_session, customer):
        _, address = customer
        other = await add_user(db_session, email="omar@example.com")
        product = await add_product(db_session)
        with pytest.raises(NotFoundError):
            await self._create(db_session, other, address, product, 100)

    async def test_unavailable_product(self, db_session, customer):
        user, address = customer
        product = await add_product(db_session, available=False)
        with pytest.raises(ValidationError):
            await self._create(db_session, user, address, product, 100)

    async def test_negative_tip(self, db_session, customer):
        user, address = customer
        product = await add_product(db_session)
        with pytest.raises(ValidationError):
            await self._create(db_session, user, address, product, 100, tip=-1.0)

    async def test_quantity_limit_follows_settings(self, db_session, customer, monkeypatch):
        user, address = customer
        product = await add_product(db_session)
        monkeypatch.setattr(settings, "max_quantity", 150.0)
        with pytest.raises(InvalidQuantity):
            await self._create(db_session, user, address, product, 200)


class TestOrderNumberCollision:
    async def test_retries_once_with_a_fresh_number(self, db_session, customer, monkeypatch):
        user, address = customer
        existing = await add_order(db_session, user.id, address.id)
        product = await add_product(db_session)
        numbers = iter([existing.order_number, "PT-1700000000001-FRESH1"])
        monkeypatch.setattr(
            "petrotech.services.common.new_order_number", lambda kind: next(numbers)
        )

        order = await OrderService(db_session).create_order(
            user.id, address.id, DeliveryType.PRIVATE, PaymentMethod.ONLINE, [(product.id, 100)]
        )
        assert order.order_number == "PT-1700000000001-FRESH1"
        assert await count(db_session, OrderModel) == 2

    async def test_second_collision_surfaces(self, db_session, customer, monkeypatch):
        user, address = customer
        taken = (await add_order(db_session, user.id, address.id)).order_number
        product = await add_product(db_session)
        monkeypatch.setattr("petrotech.services.common.new_order_number", lambda kind: taken)

        with pytest.raises(PersistenceError):
            await OrderService(db_session).create_order(
                user.id, address.id, DeliveryType.PRIVATE, PaymentMethod.ONLINE, [(product.id, 100)]
            )
        assert await count(db_session, OrderModel) == 1


class TestOrderStatus:
    async def test_customer_cancels_pending(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        order, jobs = await OrderService(db_session).cancel(order.id, user.id, "wrong address")
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "wrong address"
        assert [j.user_id for j in jobs] == [user.id]

    async def test_customer_cannot_cancel_dispatched(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id, status=OrderStatus.DISPATCHED)
        with pytest.raises(IllegalCancellation):
            await OrderService(db_session).cancel(order.id, user.id)

    async def test_customer_cannot_touch_others_order(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        with pytest.raises(NotFoundError):
            await OrderService(db_session).cancel(order.id, user.id + 100)

    async def test_driver_only_sees_assigned_orders(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(db_session, user.id, address.id, status=OrderStatus.CONFIRMED)
        with pytest.raises(NotFoundError):
            await OrderService(db_session).change_status(
                order.id, OrderStatus.DISPATCHED, Caller(driver.id, Role.DRIVER)
            )

    async def test_driver_delivers_cash_order(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(
            db_session,
            user.id,
            address.id,
            status=OrderStatus.IN_TRANSIT,
            payment_method=PaymentMethod.CASH_ON_DELIVERY,
            driver_id=driver.id,
        )
        order, jobs = await OrderService(db_session).change_status(
            order.id, OrderStatus.DELIVERED, Caller(driver.id, Role.DRIVER)
        )
        assert order.status == OrderStatus.DELIVERED
        assert order.payment_status == PaymentStatus.PAID
        # the acting driver is not notified about their own change
        assert all(j.driver_id is None for j in jobs)

    async def test_admin_change_notifies_assigned_driver(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(
            db_session, user.id, address.id, status=OrderStatus.CONFIRMED, driver_id=driver.id
        )
        _, jobs = await OrderService(db_session).change_status(
            order.id, OrderStatus.DISPATCHED, Caller(1, Role.ADMIN)
        )
        driver_jobs = [j for j in jobs if j.driver_id == driver.id]
        assert len(driver_jobs) == 1
        assert driver_jobs[0].persist is True

    async def test_admin_cannot_deliver_unassigned_cash_order(self, db_session, customer):
        user, address = customer
        order = await add_order(
            db_session,
            user.id,
            address.id,
            status=OrderStatus.IN_TRANSIT,
            payment_method=PaymentMethod.CASH_ON_DELIVERY,
        )
        with pytest.raises(ConflictError):
            await OrderService(db_session).change_status(
                order.id, OrderStatus.DELIVERED, Caller(1, Role.ADMIN)
            )
        assert order.status == OrderStatus.IN_TRANSIT
        assert order.payment_status == PaymentStatus.PENDING


# ── Charging orders ───────────────────────────────────────────────────


class TestChargingOrders:
    async def test_create(self, db_session, customer):
        user, address = customer
        cars = [await add_car(db_session, user.id), await add_car(db_session, user.id)]
        order = await ChargingService(db_session).create_order(
            user.id,
            address.id,
            ChargingDuration.TWO_HOURS,
            2,
            [c.id for c in cars],
            PaymentMethod.ONLINE,
        )
        assert order.order_number.startswith("CHG-")
        assert order.base_fee == 90.0
        assert sorted(order.car_ids) == sorted(c.id for c in cars)
        assert order.status == ChargingOrderStatus.PENDING

    async def test_car_count_must_match(self, db_session, customer):
        user, address = customer
        car = await add_car(db_session, user.id)
        with pytest.raises(ValidationError):
            await ChargingService(db_session).create_order(
                user.id, address.id, ChargingDuration.ONE_HOUR, 2, [car.id], PaymentMethod.ONLINE
            )

    async def test_duplicate_cars_rejected(self, db_session, customer):
        user, address = customer
        car = await add_car(db_session, user.id)
        with pytest.raises(ValidationError):
            await ChargingService(db_session).create_order(
                user.id,
                address.id,
                ChargingDuration.ONE_HOUR,
                2,
                [car.id, car.id],
                PaymentMethod.ONLINE,
            )

    async def test_someone_elses_car(self, db_session, customer):
        user, address = customer
        other = await add_user(db_session, email="omar@example.com")
        car = await add_car(db_session, other.id)
        with pytest.raises(NotFoundError):
            await ChargingService(db_session).create_order(
                user.id, address.id, ChargingDuration.ONE_HOUR, 1, [car.id], PaymentMethod.ONLINE
            )
        assert await count(db_session, ChargingOrderModel) == 0


# ── Dispatch ──────────────────────────────────────────────────────────


async def add_charging_order(session, user_id, address_id, **fields):
    order = ChargingOrderModel(
        user_id=user_id,
        address_id=address_id,
        order_number=fields.pop("order_number", "CHG-1700000000000-SEED01"),
        charging_duration=ChargingDuration.ONE_HOUR,
        number_of_cars=1,
        base_fee=25.0,
        total_amount=fields.pop("total_amount", 40.0),
        payment_method=fields.pop("payment_method", PaymentMethod.ONLINE),
        **fields,
    )
    session.add(order)
    await session.flush()
    return order


class TestAssignDriver:
    async def test_assign_confirms_pending_fuel_order(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(db_session, user.id, address.id)

        order, jobs = await DispatchService(db_session).assign_driver(
            OrderKind.FUEL, order.id, driver.id
        )
        assert order.driver_id == driver.id
        assert order.status == OrderStatus.CONFIRMED
        assert {j.type for j in jobs} == {"order_assigned", "driver_assigned"}
        assert [j.persist for j in jobs if j.driver_id] == [True]

    async def test_assign_leaves_later_status(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(db_session, user.id, address.id, status=OrderStatus.DISPATCHED)
        order, _ = await DispatchService(db_session).assign_driver(
            OrderKind.FUEL, order.id, driver.id
        )
        assert order.status == OrderStatus.DISPATCHED

    @pytest.mark.parametrize("available,active", [(False, True), (True, False)])
    async def test_unavailable_driver_leaves_order_unchanged(
        self, db_session, customer, available, active
    ):
        user, address = customer
        driver = await add_driver(db_session, available=available, active=active)
        order = await add_order(db_session, user.id, address.id)

        with pytest.raises(DriverUnavailable):
            await DispatchService(db_session).assign_driver(OrderKind.FUEL, order.id, driver.id)
        await db_session.refresh(order)
        assert order.driver_id is None
        assert order.status == OrderStatus.PENDING

    async def test_terminal_order_rejected(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(db_session, user.id, address.id, status=OrderStatus.CANCELLED)
        with pytest.raises(ConflictError):
            await DispatchService(db_session).assign_driver(OrderKind.FUEL, order.id, driver.id)

    async def test_unknown_driver(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        with pytest.raises(NotFoundError):
            await DispatchService(db_session).assign_driver(OrderKind.FUEL, order.id, 999)

    async def test_charging_with_unit(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        unit = await add_charging_unit(db_session)
        order = await add_charging_order(db_session, user.id, address.id)

        order, _ = await DispatchService(db_session).assign_driver(
            OrderKind.CHARGING, order.id, driver.id, unit.id
        )
        assert order.status == ChargingOrderStatus.ASSIGNED
        assert order.charging_unit_id == unit.id

    async def test_unit_on_fuel_order_rejected(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        unit = await add_charging_unit(db_session)
        order = await add_order(db_session, user.id, address.id)
        with pytest.raises(ValidationError):
            await DispatchService(db_session).assign_driver(
                OrderKind.FUEL, order.id, driver.id, unit.id
            )

    async def test_busy_unit_rejected(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        unit = await add_charging_unit(db_session, available=False)
        order = await add_charging_order(db_session, user.id, address.id)
        with pytest.raises(ConflictError):
            await DispatchService(db_session).assign_driver(
                OrderKind.CHARGING, order.id, driver.id, unit.id
            )


class TestLocationAndTracking:
    async def test_latest_ping_wins(self, db_session):
        driver = await add_driver(db_session)
        service = DispatchService(db_session)
        await service.update_location(driver.id, 38.80, -77.18)
        location = await service.update_location(driver.id, 38.81, -77.19, heading=90.0)
        assert (location.latitude, location.longitude, location.heading) == (38.81, -77.19, 90.0)

    async def test_invalid_coordinates(self, db_session):
        driver = await add_driver(db_session)
        with pytest.raises(ValidationError):
            await DispatchService(db_session).update_location(driver.id, 95.0, 0.0)

    async def test_unknown_driver(self, db_session):
        with pytest.raises(NotFoundError):
            await DispatchService(db_session).update_location(999, 38.8, -77.1)

    async def test_customer_tracks_assigned_driver(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        order = await add_order(
            db_session, user.id, address.id, status=OrderStatus.IN_TRANSIT, driver_id=driver.id
        )
        geocoder = AsyncMock()
        geocoder.reverse = AsyncMock(
            return_value=ReverseGeocodeResult("6801 Industrial Rd, Springfield", "Industrial Rd")
        )
        service = DispatchService(db_session, geocoder)
        await service.update_location(driver.id, 38.80, -77.18)

        view = await service.track(OrderKind.FUEL, order.id, Caller(user.id, Role.CUSTOMER))
        assert view.latitude == 38.80
        assert view.place_label == "Industrial Rd"

    async def test_tracking_without_driver(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        view = await DispatchService(db_session).track(
            OrderKind.FUEL, order.id, Caller(user.id, Role.CUSTOMER)
        )
        assert view.driver_id is None
        assert view.latitude is None


class TestDriverRoster:
    async def test_duplicate_email(self, db_session):
        driver = await add_driver(db_session)
        with pytest.raises(ConflictError):
            await DispatchService(db_session).create_driver(
                email=driver.email,
                first_name="Jo",
                last_name="Kim",
                phone="+1",
                license_number="X",
                vehicle_type="Van",
                vehicle_number="V1",
            )

    async def test_update_deactivates(self, db_session):
        driver = await add_driver(db_session)
        updated = await DispatchService(db_session).update_driver(driver.id, is_active=False)
        assert updated.is_active is False

    async def test_delete_blocked_by_active_order(self, db_session, customer):
        user, address = customer
        driver = await add_driver(db_session)
        await add_charging_order(
            db_session, user.id, address.id,
            driver_id=driver.id, status=ChargingOrderStatus.ASSIGNED,
        )
        with pytest.raises(ConflictError):
            await DispatchService(db_session).delete_driver(driver.id)

    async def test_delete_idle_driver(self, db_session):
        driver = await add_driver(db_session)
        service = DispatchService(db_session)
        await service.delete_driver(driver.id)
        with pytest.raises(NotFoundError):
            await service.get_driver(driver.id)


# ── Payments ──────────────────────────────────────────────────────────


class TestPayments:
    async def test_create_intent(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id, total_amount=123.45)
        gateway = FakeGateway()

        result = await PaymentService(db_session, gateway).create_intent(
            OrderKind.FUEL, order.id, user.id
        )
        assert order.payment_intent_id == result.payment_intent_id
        intent = gateway.intents[result.payment_intent_id]
        assert intent["amount"] == 12345
        assert intent["metadata"]["orderType"] == "fuel"

    async def test_create_intent_requires_pending_payment(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id, payment_status=PaymentStatus.PAID)
        with pytest.raises(ConflictError):
            await PaymentService(db_session, FakeGateway()).create_intent(
                OrderKind.FUEL, order.id, user.id
            )

    async def test_confirm_is_idempotent(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        service = PaymentService(db_session, FakeGateway())
        intent = await service.create_intent(OrderKind.FUEL, order.id, user.id)

        first, jobs = await service.confirm(intent.payment_intent_id, user.id)
        assert first.success is True
        assert order.payment_status == PaymentStatus.PAID
        assert len(jobs) == 1

        again, jobs = await service.confirm(intent.payment_intent_id, user.id)
        assert again.success is True
        assert jobs == []

    async def test_confirm_rejects_other_customer(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        service = PaymentService(db_session, FakeGateway())
        intent = await service.create_intent(OrderKind.FUEL, order.id, user.id)
        with pytest.raises(NotFoundError):
            await service.confirm(intent.payment_intent_id, user.id + 1)

    async def test_late_failure_after_paid_is_ignored(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id, payment_status=PaymentStatus.PAID)
        order, jobs = await PaymentService(db_session, FakeGateway()).apply_outcome(
            OrderKind.FUEL, order.id, succeeded=False
        )
        assert order.payment_status == PaymentStatus.PAID
        assert jobs == []

    async def test_webhook_marks_charging_order_paid(self, db_session, customer):
        user, address = customer
        order = await add_charging_order(db_session, user.id, address.id)
        payload = json.dumps(
            {
                "type": "payment_intent.succeeded",
                "data": {
                    "object": {
                        "id": "pi_9",
                        "metadata": {"orderId": str(order.id), "orderType": "charging"},
                    }
                },
            }
        ).encode()

        event_type, jobs = await PaymentService(db_session, FakeGateway()).handle_webhook(
            payload, "t=1,v1=x"
        )
        assert event_type == "payment_intent.succeeded"
        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_intent_id == "pi_9"
        assert len(jobs) == 1

    async def test_unhandled_webhook_event(self, db_session):
        event_type, jobs = await PaymentService(db_session, FakeGateway()).handle_webhook(
            b'{"type": "charge.updated", "data": {"object": {}}}', "t=1,v1=x"
        )
        assert event_type == "charge.updated"
        assert jobs == []

    async def test_webhook_with_foreign_order_id_is_ignored(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id)
        payload = json.dumps(
            {
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_x", "metadata": {"orderId": "ckz9abc"}}},
            }
        ).encode()

        event_type, jobs = await PaymentService(db_session, FakeGateway()).handle_webhook(
            payload, "t=1,v1=x"
        )
        assert event_type == "payment_intent.succeeded"
        assert jobs == []
        assert order.payment_status == PaymentStatus.PENDING

    async def test_confirm_with_foreign_order_id(self, db_session):
        gateway = FakeGateway()
        gateway.intents["pi_x"] = {"id": "pi_x", "metadata": {"orderId": "ckz9abc"}}
        with pytest.raises(ValidationError):
            await PaymentService(db_session, gateway).confirm("pi_x")

    async def test_full_refund(self, db_session, customer):
        user, address = customer
        order = await add_order(
            db_session, user.id, address.id,
            payment_status=PaymentStatus.PAID, payment_intent_id="pi_1",
        )
        gateway = FakeGateway()
        order, status = await PaymentService(db_session, gateway).refund(OrderKind.FUEL, order.id)
        assert status == "succeeded"
        assert order.payment_status == PaymentStatus.REFUNDED
        assert gateway.refunds == [("pi_1", None)]

    async def test_partial_refund_stays_paid(self, db_session, customer):
        user, address = customer
        order = await add_order(
            db_session, user.id, address.id,
            payment_status=PaymentStatus.PAID, payment_intent_id="pi_1",
        )
        gateway = FakeGateway()
        order, _ = await PaymentService(db_session, gateway).refund(OrderKind.FUEL, order.id, 10.0)
        assert order.payment_status == PaymentStatus.PAID
        assert gateway.refunds == [("pi_1", 1000)]

    async def test_refund_without_online_payment(self, db_session, customer):
        user, address = customer
        order = await add_order(db_session, user.id, address.id, payment_status=PaymentStatus.PAID)
        with pytest.raises(ConflictError):
            await PaymentService(db_session, FakeGateway()).refund(OrderKind.FUEL, order.id)


# ── Earnings & payouts ────────────────────────────────────────────────


@pytest.fixture
async def earning_driver(db_session, customer):
    """A driver with 16.00 earned: two fuel orders (5 + 1) and one charging (3 + 1)."""
    user, address = customer
    driver = await add_driver(db_session, payout_account_id="acct_1")
    for _ in range(2):
        await add_order(
            db_session, user.id, address.id,
            status=OrderStatus.DELIVERED, payment_status=PaymentStatus.PAID,
            driver_id=driver.id, delivery_fee=5.0, tip=1.0,
        )
    await add_charging_order(
        db_session, user.id, address.id,
        status=ChargingOrderStatus.COMPLETED, payment_status=PaymentStatus.PAID,
        driver_id=driver.id, delivery_fee=3.0, tip=1.0,
    )
    # delivered but unpaid: does not count
    await add_order(
        db_session, user.id, address.id,
        status=OrderStatus.DELIVERED, driver_id=driver.id, delivery_fee=50.0,
    )
    return driver


class TestEarningsAndPayouts:
    async def test_earnings(self, db_session, earning_driver):
        summary = await PayoutService(db_session).compute_earnings(earning_driver.id)
        assert summary.total_earned == 16.0
        assert summary.available_balance == 16.0
        assert len(summary.recent_earnings) == 3

    async def test_successful_payout(self, db_session, earning_driver):
        gateway = FakeGateway()
        service = PayoutService(db_session, gateway, free_lock())
        payout = await service.request_payout(earning_driver.id, 10.0)

        assert payout.status == PayoutStatus.SUCCEEDED
        assert payout.external_transfer_id == "tr_1"
        assert gateway.transfers == [(1000, "acct_1")]
        summary = await service.compute_earnings(earning_driver.id)
        assert summary.available_balance == 6.0
        assert summary.can_withdraw is True

    async def test_over_balance_writes_no_row(self, db_session, earning_driver):
        service = PayoutService(db_session, FakeGateway(), free_lock())
        summary = await service.compute_earnings(earning_driver.id)
        with pytest.raises(InsufficientBalance):
            await service.request_payout(
                earning_driver.id, round(summary.available_balance + 0.01, 2)
            )
        assert await count(db_session, DriverPayoutModel) == 0

    async def test_below_minimum(self, db_session, earning_driver):
        service = PayoutService(db_session, FakeGateway(), free_lock())
        with pytest.raises(ValidationError):
            await service.request_payout(earning_driver.id, 4.99)

    async def test_minimum_follows_settings(self, db_session, earning_driver, monkeypatch):
        monkeypatch.setattr(settings, "min_payout_amount", 20.0)
        service = PayoutService(db_session, FakeGateway(), free_lock())
        summary = await service.compute_earnings(earning_driver.id)
        assert summary.min_payout_amount == 20.0
        assert summary.can_withdraw is False
        with pytest.raises(ValidationError):
            await service.request_payout(earning_driver.id, 10.0)

    async def test_requires_payout_account(self, db_session):
        driver = await add_driver(db_session)
        service = PayoutService(db_session, FakeGateway(), free_lock())
        with pytest.raises(PayoutAccountMissing):
            await service.request_payout(driver.id, 10.0)

    async def test_transfer_failure_records_failed_row(self, db_session, earning_driver):
        gateway = FakeGateway(transfer_error="Insufficient platform balance")
        service = PayoutService(db_session, gateway, free_lock())
        payout = await service.request_payout(earning_driver.id, 10.0)

        assert payout.status == PayoutStatus.FAILED
        assert payout.failure_reason == "Insufficient platform balance"
        assert await count(db_session, DriverPayoutModel) == 1
        # failed payouts do not reduce the balance
        summary = await service.compute_earnings(earning_driver.id)
        assert summary.available_balance == 16.0

    async def test_concurrent_request_turned_away(self, db_session, earning_driver):
        service = PayoutService(db_session, FakeGateway(), held_lock())
        with pytest.raises(LockNotAcquired):
            await service.request_payout(earning_driver.id, 10.0)
        assert await count(db_session, DriverPayoutModel) == 0

    async def test_onboarding_creates_account_once(self, db_session):
        driver = await add_driver(db_session)
        service = PayoutService(db_session, FakeGateway())
        url = await service.start_onboarding(driver.id, "https://r", "https://d")
        assert url == "https://connect.example/acct_new"
        assert driver.payout_account_id == "acct_new"

    async def test_account_status(self, db_session):
        driver = await add_driver(db_session, payout_account_id="acct_1")
        status = await PayoutService(db_session, FakeGateway()).account_status(driver.id)
        assert status.has_account and status.charges_enabled
        assert status.payouts_enabled is False

    async def test_account_status_without_account(self, db_session):
        driver = await add_driver(db_session)
        status = await PayoutService(db_session, FakeGateway()).account_status(driver.id)
        assert status.has_account is False
