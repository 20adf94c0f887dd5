"""
Delivery Pricing Engine
=======================

Fee schedule
------------
Delivery fee is a two-tier marginal schedule on straight-line miles:

* ``distance <= 3``  ->  distance x $1.25
* ``distance >  3``  ->  3 x $1.25 + (distance - 3) x $0.95

Fuel is sold at ``base_price x (1 + markup_rate)``; the markup amount is
recorded on the order for internal reporting and never shown to customers.
Tax is one flat rate on (goods + delivery).  Every component is rounded to
2 decimals on its own; the total is the rounded sum of rounded components.

Complexity: O(1) per component, O(n) per quote for n order items.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .distance import distance_miles
from .enums import ChargingDuration

NEAR_RATE_PER_MILE = 1.25
FAR_RATE_PER_MILE = 0.95
RATE_BREAK_MILES = 3.0
TAX_RATE = 0.06
FUEL_MARKUP_RATE = 0.00095

# Per car, by session length
CHARGING_PRICES: dict[ChargingDuration, float] = {
    ChargingDuration.ONE_HOUR: 25.0,
    ChargingDuration.TWO_HOURS: 45.0,
    ChargingDuration.FIVE_HOURS: 100.0,
    ChargingDuration.TWENTY_FOUR_HOURS: 350.0,
}


def delivery_fee(
    distance: float,
    near_rate: float = NEAR_RATE_PER_MILE,
    far_rate: float = FAR_RATE_PER_MILE,
    break_miles: float = RATE_BREAK_MILES,
) -> float:
    if distance <= 0:
        return 0.0
    if distance <= break_miles:
        return round(distance * near_rate, 2)
    return round(break_miles * near_rate + (distance - break_miles) * far_rate, 2)


def tax(
    subtotal: float, state_code: Optional[str] = None, rate: float = TAX_RATE
) -> float:
    # state_code is accepted for a future per-jurisdiction table; one rate for now
    return round(subtotal * rate, 2)


def fuel_markup(base_cost: float, rate: float = FUEL_MARKUP_RATE) -> float:
    return round(base_cost * rate, 2)


def charging_price_per_car(duration: ChargingDuration) -> float:
    return CHARGING_PRICES[ChargingDuration(duration)]


# ── Quotes ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LineQuote:
    product_id: int
    quantity: float
    unit_price: float
    subtotal: float


@dataclass(frozen=True)
class FuelQuote:
    lines: list[LineQuote]
    fuel_cost: float
    company_markup: float
    distance: float
    delivery_fee: float
    tax: float
    tip: float
    total_amount: float


@dataclass(frozen=True)
class ChargingQuote:
    base_fee: float
    distance: float
    delivery_fee: float
    tax: float
    tip: float
    total_amount: float


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the order services and the API layer."""

    def __init__(
        self,
        origin_lat: float,
        origin_lng: float,
        tax_rate: float = TAX_RATE,
        markup_rate: float = FUEL_MARKUP_RATE,
        near_rate: float = NEAR_RATE_PER_MILE,
        far_rate: float = FAR_RATE_PER_MILE,
        break_miles: float = RATE_BREAK_MILES,
    ):
        self.origin_lat = origin_lat
        self.origin_lng = origin_lng
        self.tax_rate = tax_rate
        self.markup_rate = markup_rate
        self.near_rate = near_rate
        self.far_rate = far_rate
        self.break_miles = break_miles

    @classmethod
    def from_settings(cls, settings) -> "PricingEngine":
        return cls(
            origin_lat=settings.company_latitude,
            origin_lng=settings.company_longitude,
            tax_rate=settings.tax_rate,
            markup_rate=settings.fuel_markup_rate,
            near_rate=settings.near_rate_per_mile,
            far_rate=settings.far_rate_per_mile,
            break_miles=settings.rate_break_miles,
        )

    def customer_unit_price(self, base_price: float) -> float:
        return round(base_price * (1 + self.markup_rate), 4)

    def delivery(self, dest_lat: float, dest_lng: float) -> tuple[float, float]:
        """Return ``(distance, fee)`` from the depot to the destination."""
        distance = distance_miles(self.origin_lat, self.origin_lng, dest_lat, dest_lng)
        fee = delivery_fee(distance, self.near_rate, self.far_rate, self.break_miles)
        return distance, fee

    def quote_fuel(
        self,
        items: list[tuple[int, float, float]],
        dest_lat: float,
        dest_lng: float,
        tip: float = 0.0,
        state_code: Optional[str] = None,
    ) -> FuelQuote:
        """Price a fuel order from ``(product_id, quantity, base_price)`` triples."""
        lines: list[LineQuote] = []
        base_cost = 0.0
        for product_id, quantity, base_price in items:
            base_cost += quantity * base_price
            lines.append(
                LineQuote(
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=self.customer_unit_price(base_price),
                    subtotal=round(quantity * base_price * (1 + self.markup_rate), 2),
                )
            )

        fuel_cost = round(sum(line.subtotal for line in lines), 2)
        distance, fee = self.delivery(dest_lat, dest_lng)
        tax_amount = tax(fuel_cost + fee, state_code, self.tax_rate)
        tip = round(tip, 2)
        return FuelQuote(
            lines=lines,
            fuel_cost=fuel_cost,
            company_markup=fuel_markup(base_cost, self.markup_rate),
            distance=distance,
            delivery_fee=fee,
            tax=tax_amount,
            tip=tip,
            total_amount=round(fuel_cost + fee + tax_amount + tip, 2),
        )

    def quote_charging(
        self,
        duration: ChargingDuration,
        number_of_cars: int,
        dest_lat: float,
        dest_lng: float,
        tip: float = 0.0,
        state_code: Optional[str] = None,
    ) -> ChargingQuote:
        base_fee = round(charging_price_per_car(duration) * number_of_cars, 2)
        distance, fee = self.delivery(dest_lat, dest_lng)
        tax_amount = tax(base_fee + fee, state_code, self.tax_rate)
        tip = round(tip, 2)
        return ChargingQuote(
            base_fee=base_fee,
            distance=distance,
            delivery_fee=fee,
            tax=tax_amount,
            tip=tip,
            total_amount=round(base_fee + fee + tax_amount + tip, 2),
        )
