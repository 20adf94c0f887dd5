"""
Tests for the address book, garage and product catalogue services.
"""

from __future__ import annotations

import pytest

from petrotech.domain.enums import ChargingDuration, PaymentMethod
from petrotech.domain.errors import ConflictError, NotFoundError, ValidationError
from petrotech.infrastructure.models import OrderItemModel
from petrotech.services.accounts import AddressService, CarService
from petrotech.services.catalog import ProductService
from petrotech.services.charging import ChargingService
from tests.conftest import (
    HOME_LAT,
    HOME_LNG,
    add_address,
    add_car,
    add_order,
    add_product,
    add_user,
)

WAREHOUSE = (38.9072, -77.0369)


class RecordingGeocoder:
    """Answers with fixed coordinates and remembers what it was asked."""

    def __init__(self, point=WAREHOUSE):
        self.point = point
        self.calls = []

    async def geocode(self, street, city, state=None, zip_code=None, country="US"):
        self.calls.append((street, city, state, zip_code, country))
        return self.point


@pytest.fixture
async def user(db_session):
    return await add_user(db_session)


# ── Addresses ─────────────────────────────────────────────────────────


class TestAddressCreate:
    async def test_geocoded_when_coordinates_missing(self, db_session, user):
        geocoder = RecordingGeocoder()
        address = await AddressService(db_session, geocoder).create(
            user.id, label="Depot", street="1 Main St", city="Springfield", zip_code="22151"
        )
        assert (address.latitude, address.longitude) == WAREHOUSE
        assert address.country == "US"
        assert geocoder.calls == [("1 Main St", "Springfield", None, "22151", "US")]

    async def test_given_coordinates_skip_geocoding(self, db_session, user):
        geocoder = RecordingGeocoder()
        address = await AddressService(db_session, geocoder).create(
            user.id, label="Depot", street="1 Main St", city="Springfield",
            zip_code="22151", latitude=1.5, longitude=2.5,
        )
        assert (address.latitude, address.longitude) == (1.5, 2.5)
        assert geocoder.calls == []

    async def test_unlocatable_address_is_still_saved(self, db_session, user):
        address = await AddressService(db_session, RecordingGeocoder(point=None)).create(
            user.id, label="Cabin", street="nowhere", city="?", zip_code="00000"
        )
        assert address.id is not None
        assert address.latitude is None and address.longitude is None

    async def test_new_default_replaces_old(self, db_session, user):
        home = await add_address(db_session, user.id)
        service = AddressService(db_session, RecordingGeocoder())
        work = await service.create(
            user.id, label="Work", street="2 Oak Ave", city="Fairfax",
            zip_code="22030", is_default=True,
        )
        assert work.is_default is True
        assert home.is_default is False
        assert [a.id for a in await service.list_for_user(user.id)] == [work.id, home.id]


class TestAddressUpdate:
    async def test_moving_an_address_geocodes_it_again(self, db_session, user):
        address = await add_address(db_session, user.id)
        geocoder = RecordingGeocoder()
        updated = await AddressService(db_session, geocoder).update(
            address.id, user.id, street="1600 Pennsylvania Ave", zip_code="20500"
        )
        assert (updated.latitude, updated.longitude) == WAREHOUSE
        assert geocoder.calls == [
            ("1600 Pennsylvania Ave", "Springfield", "VA", "20500", "US")
        ]

    async def test_unlocatable_move_clears_coordinates(self, db_session, user):
        address = await add_address(db_session, user.id)
        updated = await AddressService(db_session, RecordingGeocoder(point=None)).update(
            address.id, user.id, city="Atlantis"
        )
        assert updated.latitude is None and updated.longitude is None

    async def test_label_change_keeps_coordinates(self, db_session, user):
        address = await add_address(db_session, user.id)
        geocoder = RecordingGeocoder()
        updated = await AddressService(db_session, geocoder).update(
            address.id, user.id, label="Garage", instructions="Gate code 4411"
        )
        assert updated.label == "Garage"
        assert (updated.latitude, updated.longitude) == (HOME_LAT, HOME_LNG)
        assert geocoder.calls == []

    async def test_same_street_is_not_a_move(self, db_session, user):
        address = await add_address(db_session, user.id)
        geocoder = RecordingGeocoder()
        await AddressService(db_session, geocoder).update(
            address.id, user.id, street=address.street
        )
        assert geocoder.calls == []

    async def test_ungeocoded_address_is_retried(self, db_session, user):
        address = await add_address(db_session, user.id, geocoded=False)
        updated = await AddressService(db_session, RecordingGeocoder()).update(
            address.id, user.id, label="Home"
        )
        assert (updated.latitude, updated.longitude) == WAREHOUSE

    async def test_explicit_coordinates_win(self, db_session, user):
        address = await add_address(db_session, user.id)
        geocoder = RecordingGeocoder()
        updated = await AddressService(db_session, geocoder).update(
            address.id, user.id, street="9 Elm St", latitude=10.0, longitude=20.0
        )
        assert (updated.latitude, updated.longitude) == (10.0, 20.0)
        assert geocoder.calls == []

    async def test_half_a_coordinate_rejected(self, db_session, user):
        address = await add_address(db_session, user.id)
        with pytest.raises(ValidationError):
            await AddressService(db_session).update(address.id, user.id, latitude=10.0)

    async def test_someone_elses_address(self, db_session, user):
        address = await add_address(db_session, user.id)
        with pytest.raises(NotFoundError):
            await AddressService(db_session).update(address.id, user.id + 1, label="Mine")


class TestAddressDefaultAndDelete:
    async def test_set_default(self, db_session, user):
        home = await add_address(db_session, user.id)
        service = AddressService(db_session, RecordingGeocoder())
        work = await service.create(
            user.id, label="Work", street="2 Oak Ave", city="Fairfax", zip_code="22030"
        )
        assert work.is_default is False

        await service.set_default(work.id, user.id)
        assert work.is_default is True
        assert home.is_default is False

    async def test_delete_unused(self, db_session, user):
        address = await add_address(db_session, user.id)
        service = AddressService(db_session)
        await service.delete(address.id, user.id)
        assert await service.list_for_user(user.id) == []

    async def test_delete_blocked_by_order(self, db_session, user):
        address = await add_address(db_session, user.id)
        await add_order(db_session, user.id, address.id)
        with pytest.raises(ConflictError):
            await AddressService(db_session).delete(address.id, user.id)


# ── Cars ──────────────────────────────────────────────────────────────


class TestCars:
    async def test_update(self, db_session, user):
        car = await add_car(db_session, user.id)
        updated = await CarService(db_session).update(
            car.id, user.id, nickname="Sparky", battery_capacity=82.0
        )
        assert updated.nickname == "Sparky"
        assert updated.make == "Tesla"

    async def test_someone_elses_car(self, db_session, user):
        car = await add_car(db_session, user.id)
        with pytest.raises(NotFoundError):
            await CarService(db_session).get(car.id, user.id + 1)

    async def test_delete_unused(self, db_session, user):
        car = await add_car(db_session, user.id)
        service = CarService(db_session)
        await service.delete(car.id, user.id)
        with pytest.raises(NotFoundError):
            await service.get(car.id, user.id)

    async def test_delete_blocked_by_charging_order(self, db_session, user):
        address = await add_address(db_session, user.id)
        car = await add_car(db_session, user.id)
        await ChargingService(db_session).create_order(
            user.id, address.id, ChargingDuration.TWO_HOURS, 1, [car.id],
            PaymentMethod.CASH_ON_DELIVERY,
        )
        with pytest.raises(ConflictError):
            await CarService(db_session).delete(car.id, user.id)


# ── Products ──────────────────────────────────────────────────────────


class TestProducts:
    async def test_create_and_list_includes_unavailable(self, db_session):
        service = ProductService(db_session)
        await add_product(db_session, available=False)
        premium = await service.create(name="Premium 93", price_per_liter=1.45, unit="liter")
        names = [p.name for p in await service.list_all()]
        assert "Premium 93" in names and "Diesel" in names
        assert premium.is_available is True

    async def test_price_change(self, db_session):
        product = await add_product(db_session, price=1.0)
        updated = await ProductService(db_session).update(product.id, price_per_liter=1.2)
        assert updated.price_per_liter == 1.2

    async def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            await ProductService(db_session).update(999, is_available=False)

    async def test_delete_unused(self, db_session):
        product = await add_product(db_session)
        service = ProductService(db_session)
        await service.delete(product.id)
        with pytest.raises(NotFoundError):
            await service.get(product.id)

    async def test_delete_blocked_by_order_item(self, db_session, user):
        product = await add_product(db_session)
        address = await add_address(db_session, user.id)
        order = await add_order(db_session, user.id, address.id)
        db_session.add(
            OrderItemModel(
                order_id=order.id, product_id=product.id,
                quantity=100, unit_price=1.0, subtotal=100.0,
            )
        )
        await db_session.flush()
        with pytest.raises(ConflictError):
            await ProductService(db_session).delete(product.id)
