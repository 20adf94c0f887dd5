"""
Distance calculation using the Haversine formula.

Assumption
----------
Delivery distance is the great-circle distance from the company depot to
the delivery address, not a road distance.  The fee schedule was agreed
on straight-line miles, so no routing engine is involved.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_MILES = 3_959.0


def haversine_miles(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the unrounded great-circle distance in **miles** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_miles(
    origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
) -> float:
    """Great-circle distance in miles, rounded to 2 decimals."""
    return round(haversine_miles(origin_lat, origin_lng, dest_lat, dest_lng), 2)
