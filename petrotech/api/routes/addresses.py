"""
Address & car endpoints (customer)
==================================

POST   /api/v1/addresses                -- save an address (geocoded unless coordinates are given)
GET    /api/v1/addresses                -- the caller's addresses, default first
GET    /api/v1/addresses/{id}           -- one address
PUT    /api/v1/addresses/{id}           -- edit it (re-geocoded when it moves)
PATCH  /api/v1/addresses/{id}/default   -- make it the default
DELETE /api/v1/addresses/{id}           -- remove one no order points at
POST   /api/v1/cars                     -- register an EV for charging orders
GET    /api/v1/cars                     -- the caller's cars
GET    /api/v1/cars/{id}                -- one car
PUT    /api/v1/cars/{id}                -- edit it
DELETE /api/v1/cars/{id}                -- remove one no charging order points at
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import get_db, get_geocoder, require_customer
from petrotech.api.middleware import limiter
from petrotech.api.schemas import (
    AddressCreateRequest,
    AddressResponse,
    AddressUpdateRequest,
    CarCreateRequest,
    CarResponse,
    CarUpdateRequest,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.infrastructure.models import CarModel
from petrotech.infrastructure.repositories import CarRepository
from petrotech.services.accounts import AddressService, CarService

router = APIRouter(tags=["addresses"])


# ── Addresses ─────────────────────────────────────────────────────────


@router.post(
    "/addresses",
    status_code=201,
    response_model=AddressResponse,
    summary="Save a delivery address",
    description=(
        "Coordinates are looked up from the street address when not supplied. "
        "An address that cannot be located is still saved, but orders to it "
        "are rejected until it has coordinates."
    ),
)
@limiter.limit(settings.rate_limit)
async def create_address(
    request: Request,
    body: AddressCreateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    return await AddressService(db, geocoder).create(caller.id, **body.model_dump())


@router.get("/addresses", response_model=list[AddressResponse], summary="List my addresses")
@limiter.limit(settings.rate_limit)
async def list_addresses(
    request: Request,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await AddressService(db).list_for_user(caller.id)


@router.get("/addresses/{address_id}", response_model=AddressResponse, summary="Get an address")
@limiter.limit(settings.rate_limit)
async def get_address(
    request: Request,
    address_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await AddressService(db).get(address_id, caller.id)


@router.put(
    "/addresses/{address_id}",
    response_model=AddressResponse,
    summary="Edit an address",
    description="Changing the street, city, state, zip or country looks the address up again.",
)
@limiter.limit(settings.rate_limit)
async def update_address(
    request: Request,
    address_id: int,
    body: AddressUpdateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    return await AddressService(db, geocoder).update(
        address_id, caller.id, **body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.patch(
    "/addresses/{address_id}/default",
    response_model=AddressResponse,
    summary="Make an address the default",
)
@limiter.limit(settings.rate_limit)
async def set_default_address(
    request: Request,
    address_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await AddressService(db).set_default(address_id, caller.id)


@router.delete("/addresses/{address_id}", status_code=204, summary="Delete an address")
@limiter.limit(settings.rate_limit)
async def delete_address(
    request: Request,
    address_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    await AddressService(db).delete(address_id, caller.id)
    return Response(status_code=204)


# ── Cars ──────────────────────────────────────────────────────────────


@router.post(
    "/cars", status_code=201, response_model=CarResponse, summary="Register a car"
)
@limiter.limit(settings.rate_limit)
async def create_car(
    request: Request,
    body: CarCreateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CarRepository(db).create(CarModel(user_id=caller.id, **body.model_dump()))


@router.get("/cars", response_model=list[CarResponse], summary="List my cars")
@limiter.limit(settings.rate_limit)
async def list_cars(
    request: Request,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CarRepository(db).list_for_user(caller.id)


@router.get("/cars/{car_id}", response_model=CarResponse, summary="Get a car")
@limiter.limit(settings.rate_limit)
async def get_car(
    request: Request,
    car_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CarService(db).get(car_id, caller.id)


@router.put("/cars/{car_id}", response_model=CarResponse, summary="Edit a car")
@limiter.limit(settings.rate_limit)
async def update_car(
    request: Request,
    car_id: int,
    body: CarUpdateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CarService(db).update(
        car_id, caller.id, **body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/cars/{car_id}", status_code=204, summary="Delete a car")
@limiter.limit(settings.rate_limit)
async def delete_car(
    request: Request,
    car_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    await CarService(db).delete(car_id, caller.id)
    return Response(status_code=204)
