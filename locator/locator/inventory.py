"""Station coordinates from StationXML."""
from __future__ import annotations

import logging
from typing import Optional

from obspy import read_inventory

from .models import Station, StationKey

logger = logging.getLogger(__name__)


def stations_from_inventory(inventory, channel: Optional[str] = None) -> dict[StationKey, Station]:
    """
    Map (net, sta, loc) to a Station.

    Channel-level coordinates are used when the inventory carries them, so one
    entry exists per location code. With ``channel`` set, only matching
    channels contribute. Stations without channels fall back to station-level
    coordinates under an empty location code.
    """
    stations: dict[StationKey, Station] = {}
    for net in inventory:
        for sta in net:
            channels = [cha for cha in sta if channel is None or cha.code == channel]
            if not channels and not sta.channels:
                key = (net.code, sta.code, "")
                stations.setdefault(
                    key, Station(net.code, sta.code, "", float(sta.latitude), float(sta.longitude))
                )
                continue
            for cha in channels:
                key = (net.code, sta.code, cha.location_code)
                lat = cha.latitude if cha.latitude is not None else sta.latitude
                lon = cha.longitude if cha.longitude is not None else sta.longitude
                stations.setdefault(
                    key, Station(net.code, sta.code, cha.location_code, float(lat), float(lon))
                )
    return stations


def load_stations(path: str, channel: Optional[str] = None) -> dict[StationKey, Station]:
    inventory = read_inventory(path)
    stations = stations_from_inventory(inventory, channel=channel)
    logger.info("Loaded inventory: path=%s stations=%d", path, len(stations))
    return stations


def find_station(
    stations: dict[StationKey, Station], net: str, sta: str, loc: str = ""
) -> Optional[Station]:
    """Exact key lookup, falling back to the only location code of (net, sta)."""
    station = stations.get((net, sta, loc))
    if station is not None:
        return station
    candidates = [s for key, s in stations.items() if key[:2] == (net, sta)]
    if len(candidates) == 1 and not loc:
        return candidates[0]
    return None
