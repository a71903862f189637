"""Shared great-circle distance utilities.

Canonical haversine implementation used by the movement anomaly factor.
"""
from __future__ import annotations

import math
from typing import Iterable

_EARTH_RADIUS_KM: float = 6371.0  # Earth mean radius in kilometres


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS-84 coordinates.

    Identical points return exactly 0.0; the ``atan2`` form stays finite for
    antipodal points where ``a`` rounds up to 1.
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    a = min(max(a, 0.0), 1.0)
    return _EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def path_length_km(points: Iterable[tuple[float, float]]) -> float:
    """Cumulative distance along an ordered sequence of (lat, lon) points."""
    total = 0.0
    prev: tuple[float, float] | None = None
    for point in points:
        if prev is not None:
            total += haversine_km(prev[0], prev[1], point[0], point[1])
        prev = point
    return total
