"""
Customer address book and garage.

Addresses are geocoded when saved and again whenever their street, city,
state, zip or country changes, since pricing reads the stored coordinates.
Records that orders still point at cannot be deleted.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.domain.errors import ConflictError, NotFoundError, ValidationError
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.infrastructure.models import AddressModel, CarModel
from petrotech.infrastructure.repositories import AddressRepository, CarRepository

logger = logging.getLogger(__name__)

LOCATION_FIELDS = ("street", "city", "state", "zip_code", "country")


class AddressService:
    def __init__(self, session: AsyncSession, geocoder: Optional[GeocodingClient] = None):
        self.session = session
        self.geocoder = geocoder
        self.repo = AddressRepository(session)

    async def get(self, address_id: int, user_id: int) -> AddressModel:
        address = await self.repo.get_owned(address_id, user_id)
        if address is None:
            raise NotFoundError("Address not found")
        return address

    async def list_for_user(self, user_id: int) -> list[AddressModel]:
        return await self.repo.list_for_user(user_id)

    async def _locate(self, address: AddressModel) -> None:
        point = None
        if self.geocoder is not None:
            point = await self.geocoder.geocode(
                address.street, address.city, address.state, address.zip_code, address.country
            )
        address.latitude, address.longitude = point if point else (None, None)
        if point is None:
            logger.info("Address for user %d could not be located", address.user_id)

    async def create(self, user_id: int, **fields) -> AddressModel:
        latitude = fields.pop("latitude", None)
        longitude = fields.pop("longitude", None)
        fields.setdefault("country", "US")
        if fields.get("is_default"):
            await self.repo.clear_default(user_id)

        address = AddressModel(user_id=user_id, **fields)
        if latitude is None or longitude is None:
            await self._locate(address)
        else:
            address.latitude, address.longitude = latitude, longitude
        return await self.repo.create(address)

    async def update(self, address_id: int, user_id: int, **changes) -> AddressModel:
        address = await self.get(address_id, user_id)
        latitude = changes.pop("latitude", None)
        longitude = changes.pop("longitude", None)
        if (latitude is None) != (longitude is None):
            raise ValidationError("latitude and longitude must be given together")

        moved = any(
            name in changes and changes[name] != getattr(address, name)
            for name in LOCATION_FIELDS
        )
        if changes.get("is_default") and not address.is_default:
            await self.repo.clear_default(user_id)
        for name, value in changes.items():
            setattr(address, name, value)

        if latitude is not None:
            address.latitude, address.longitude = latitude, longitude
        elif moved or address.latitude is None or address.longitude is None:
            await self._locate(address)
        await self.session.flush()
        return address

    async def set_default(self, address_id: int, user_id: int) -> AddressModel:
        address = await self.get(address_id, user_id)
        await self.repo.clear_default(user_id)
        address.is_default = True
        await self.session.flush()
        return address

    async def delete(self, address_id: int, user_id: int) -> None:
        address = await self.get(address_id, user_id)
        if await self.repo.in_use(address.id):
            raise ConflictError("Address is used by existing orders")
        await self.repo.delete(address)


class CarService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = CarRepository(session)

    async def get(self, car_id: int, user_id: int) -> CarModel:
        car = await self.repo.get_owned(car_id, user_id)
        if car is None:
            raise NotFoundError("Car not found")
        return car

    async def update(self, car_id: int, user_id: int, **changes) -> CarModel:
        car = await self.get(car_id, user_id)
        for name, value in changes.items():
            setattr(car, name, value)
        await self.session.flush()
        return car

    async def delete(self, car_id: int, user_id: int) -> None:
        car = await self.get(car_id, user_id)
        if await self.repo.in_use(car.id):
            raise ConflictError("Car is part of existing charging orders")
        await self.repo.delete(car)
