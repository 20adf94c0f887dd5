"""
Geocoding client (OpenStreetMap Nominatim).

Both lookups tolerate "no result": they return ``None`` on HTTP errors,
timeouts, or empty answers and never raise, so an address that cannot be
resolved is stored without coordinates and simply cannot be priced.

Reverse lookups are cached in Redis by ~11 m precision (4 decimals) for
``cache_ttl`` seconds, negative answers included, to keep driver-tracking
polls from hammering the public endpoint.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import httpx
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReverseGeocodeResult:
    display_name: str
    short_label: str


def build_short_label(address: dict) -> str:
    road = (
        address.get("road")
        or address.get("pedestrian")
        or address.get("footway")
        or address.get("path")
    )
    suburb = address.get("suburb") or address.get("neighbourhood")
    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("hamlet")
    )
    parts = [road, suburb, city, address.get("state"), address.get("country")]
    return ", ".join(p for p in parts if p)


class GeocodingClient:
    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 6.5,
        cache: Optional[aioredis.Redis] = None,
        cache_ttl: int = 6 * 60 * 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept-Language": "en"},
            transport=transport,
        )
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def close(self) -> None:
        await self.client.aclose()

    async def geocode(
        self,
        street: str,
        city: str,
        state: Optional[str] = None,
        zip_code: Optional[str] = None,
        country: str = "US",
    ) -> Optional[tuple[float, float]]:
        """Return ``(latitude, longitude)`` for an address, or ``None``."""
        query = ", ".join(p for p in (street, city, state, zip_code, country) if p)
        try:
            response = await self.client.get(
                "/search", params={"format": "json", "q": query, "limit": 1}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding failed for %r: %s", query, exc)
            return None

        if not isinstance(data, list) or not data:
            logger.info("No geocoding result for %r", query)
            return None
        try:
            return float(data[0]["lat"]), float(data[0]["lon"])
        except (KeyError, TypeError, ValueError):
            return None

    async def reverse(
        self, latitude: float, longitude: float
    ) -> Optional[ReverseGeocodeResult]:
        """Return a human-readable label for a coordinate, or ``None``."""
        key = f"revgeo:{latitude:.4f},{longitude:.4f}"
        cached = await self._cache_get(key)
        if cached is not None:
            return ReverseGeocodeResult(**cached) if cached else None

        value: Optional[ReverseGeocodeResult] = None
        try:
            response = await self.client.get(
                "/reverse",
                params={"format": "jsonv2", "lat": latitude, "lon": longitude},
            )
            if response.is_success:
                data = response.json()
                display = str(data.get("display_name") or "").strip()
                if display:
                    short = build_short_label(data.get("address") or {})
                    value = ReverseGeocodeResult(display, short or display)
        except (httpx.HTTPError, ValueError) as exc:
            # transport failures are not cached; a later poll may succeed
            logger.warning("Reverse geocoding failed: %s", exc)
            return None

        await self._cache_set(key, asdict(value) if value else {})
        return value

    async def _cache_get(self, key: str) -> Optional[dict]:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
        except aioredis.RedisError:
            logger.warning("Reverse geocode cache unavailable")
            return None
        return json.loads(raw) if raw is not None else None

    async def _cache_set(self, key: str, value: dict) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, json.dumps(value), ex=self.cache_ttl)
        except aioredis.RedisError:
            logger.warning("Reverse geocode cache unavailable")
