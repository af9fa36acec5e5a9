"""
Local planar coordinates around an event reference point.

The equirectangular projection used here is only accurate while station
spacing stays small compared to the Earth's radius.
"""
from __future__ import annotations

from typing import Iterable

import numpy as np

EARTH_RADIUS_KM = 6371.0


def reference_point(coords: Iterable[tuple[float, float]]) -> tuple[float, float]:
    """Mean (lat, lon) of the given station coordinates."""
    arr = np.asarray(list(coords), dtype=float)
    if arr.size == 0:
        raise ValueError("Cannot build a reference point from no coordinates")
    return float(arr[:, 0].mean()), float(arr[:, 1].mean())


def to_local_xy(lat: float, lon: float, ref_lat: float, ref_lon: float) -> tuple[float, float]:
    x = EARTH_RADIUS_KM * np.radians(lon - ref_lon) * np.cos(np.radians(ref_lat))
    y = EARTH_RADIUS_KM * np.radians(lat - ref_lat)
    return float(x), float(y)


def to_geographic(x_km: float, y_km: float, ref_lat: float, ref_lon: float) -> tuple[float, float]:
    lat = ref_lat + np.degrees(y_km / EARTH_RADIUS_KM)
    lon = ref_lon + np.degrees(x_km / (EARTH_RADIUS_KM * np.cos(np.radians(ref_lat))))
    return float(lat), float(lon)


def planar_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return float(np.hypot(x2 - x1, y2 - y1))


def planar_azimuth(x1: float, y1: float, x2: float, y2: float) -> float:
    """Azimuth from point 1 to point 2 in degrees clockwise from north (0-360)."""
    az = np.degrees(np.arctan2(x2 - x1, y2 - y1))
    return float((az + 360) % 360)


def azimuthal_gap(station_azimuths: list[float]) -> float:
    """Calculate largest azimuthal gap."""
    if len(station_azimuths) < 2:
        return 360.0
    sorted_az = sorted(station_azimuths)
    gaps = [sorted_az[i + 1] - sorted_az[i] for i in range(len(sorted_az) - 1)]
    gaps.append(360.0 + sorted_az[0] - sorted_az[-1])
    return max(gaps)
