"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 4 fuel products
  - 1 admin and 3 customers, each customer with a geocoded home address
  - 4 drivers (one off shift)
  - 2 mobile charging units
  - 1 EV per customer
  - 2 sample fuel orders (PENDING and DELIVERED)
"""

import asyncio
from datetime import datetime, timezone

from sqlalchemy import text

from petrotech.config import settings
from petrotech.domain.entities import new_order_number
from petrotech.domain.enums import (
    DeliveryType,
    OrderKind,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.database import async_session_factory, engine
from petrotech.infrastructure.models import (
    AddressModel,
    CarModel,
    ChargingUnitModel,
    DriverModel,
    OrderItemModel,
    OrderModel,
    ProductModel,
    UserModel,
)


PRODUCTS = [
    {"name": "Regular Unleaded", "description": "87 octane", "price_per_liter": 0.92},
    {"name": "Premium Unleaded", "description": "93 octane", "price_per_liter": 1.10},
    {"name": "Diesel", "description": "Ultra-low sulfur", "price_per_liter": 1.02},
    {"name": "Off-road Diesel", "description": "Dyed, commercial only", "price_per_liter": 0.95},
]

CUSTOMERS = [
    {
        "user": {"email": "maya@example.com", "first_name": "Maya", "last_name": "Brooks"},
        "address": {"street": "6801 Industrial Rd", "city": "Springfield", "zip_code": "22151",
                    "lat": 38.8012, "lng": -77.1871},
        "car": {"make": "Tesla", "model": "Model 3", "connector_type": "NACS", "battery_capacity": 75},
    },
    {
        "user": {"email": "omar@example.com", "first_name": "Omar", "last_name": "Haddad"},
        "address": {"street": "3001 N Washington Blvd", "city": "Arlington", "zip_code": "22201",
                    "lat": 38.8863, "lng": -77.0950},
        "car": {"make": "Hyundai", "model": "Ioniq 5", "connector_type": "CCS1", "battery_capacity": 77.4},
    },
    {
        "user": {"email": "lena@example.com", "first_name": "Lena", "last_name": "Fischer"},
        "address": {"street": "8100 Lorton Rd", "city": "Lorton", "zip_code": "22079",
                    "lat": 38.7045, "lng": -77.2270},
        "car": {"make": "Ford", "model": "F-150 Lightning", "connector_type": "CCS1", "battery_capacity": 131},
    },
]

DRIVERS = [
    {"email": "sam.driver@example.com", "first_name": "Sam", "last_name": "Ortiz",
     "phone": "+17035550101", "license_number": "VA-D-1001", "vehicle_type": "Fuel truck",
     "vehicle_number": "PT-TRK-01"},
    {"email": "jo.driver@example.com", "first_name": "Jo", "last_name": "Kim",
     "phone": "+17035550102", "license_number": "VA-D-1002", "vehicle_type": "Fuel truck",
     "vehicle_number": "PT-TRK-02"},
    {"email": "ravi.driver@example.com", "first_name": "Ravi", "last_name": "Shah",
     "phone": "+17035550103", "license_number": "VA-D-1003", "vehicle_type": "EV service van",
     "vehicle_number": "PT-VAN-01"},
    {"email": "ada.driver@example.com", "first_name": "Ada", "last_name": "Nwosu",
     "phone": "+17035550104", "license_number": "VA-D-1004", "vehicle_type": "EV service van",
     "vehicle_number": "PT-VAN-02", "is_available": False},
]

CHARGING_UNITS = [
    {"name": "Mobile DC Unit 1", "type": "DC_FAST", "connector_type": "CCS1", "max_power": 80},
    {"name": "Mobile DC Unit 2", "type": "DC_FAST", "connector_type": "NACS", "max_power": 80},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM products"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        pricing = PricingEngine.from_settings(settings)

        # ── Catalog ───────────────────────────────────────────────────
        products = [ProductModel(**p) for p in PRODUCTS]
        session.add_all(products)
        session.add_all([ChargingUnitModel(**u) for u in CHARGING_UNITS])
        await session.flush()
        print(f"  Created {len(products)} products and {len(CHARGING_UNITS)} charging units")

        # ── People ────────────────────────────────────────────────────
        session.add(
            UserModel(
                email="admin@petrotech.example",
                first_name="Ops",
                last_name="Admin",
                role=Role.ADMIN,
            )
        )
        addresses = []
        for c in CUSTOMERS:
            user = UserModel(**c["user"], role=Role.CUSTOMER)
            session.add(user)
            await session.flush()
            a = c["address"]
            address = AddressModel(
                user_id=user.id,
                label="Home",
                street=a["street"],
                city=a["city"],
                state="VA",
                zip_code=a["zip_code"],
                latitude=a["lat"],
                longitude=a["lng"],
                is_default=True,
            )
            session.add_all([address, CarModel(user_id=user.id, **c["car"])])
            addresses.append(address)
        drivers = [DriverModel(**d) for d in DRIVERS]
        session.add_all(drivers)
        await session.flush()
        print(f"  Created {len(CUSTOMERS)} customers, 1 admin and {len(drivers)} drivers")

        # ── Orders ────────────────────────────────────────────────────
        samples = [
            (addresses[0], products[0], 120.0, OrderStatus.PENDING, None),
            (addresses[1], products[2], 300.0, OrderStatus.DELIVERED, drivers[0]),
        ]
        for address, product, liters, status, driver in samples:
            quote = pricing.quote_fuel(
                [(product.id, liters, product.price_per_liter)],
                address.latitude,
                address.longitude,
            )
            line = quote.lines[0]
            order = OrderModel(
                user_id=address.user_id,
                address_id=address.id,
                driver_id=driver.id if driver else None,
                order_number=new_order_number(OrderKind.FUEL),
                delivery_type=DeliveryType.PRIVATE,
                status=status,
                payment_method=PaymentMethod.CASH_ON_DELIVERY,
                payment_status=(
                    PaymentStatus.PAID if status == OrderStatus.DELIVERED else PaymentStatus.PENDING
                ),
                total_amount=quote.total_amount,
                fuel_cost=quote.fuel_cost,
                company_markup=quote.company_markup,
                distance=quote.distance,
                delivery_fee=quote.delivery_fee,
                tax=quote.tax,
                tip=quote.tip,
                delivered_at=(
                    datetime.now(timezone.utc) if status == OrderStatus.DELIVERED else None
                ),
            )
            order.items.append(
                OrderItemModel(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
            )
            session.add(order)
        await session.flush()
        print(f"  Created {len(samples)} orders")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
