from __future__ import annotations

from typing import Optional

from .models import StationKey


def format_station_key(key: Optional[StationKey]) -> str:
    if key is None:
        return "-"
    return ".".join(key)


class LocalizationError(Exception):
    """An event could not be localized; carries the failing stage and station."""

    stage = "unknown"

    def __init__(self, reason: str, station: Optional[StationKey] = None):
        super().__init__(reason)
        self.reason = reason
        self.station = station

    def __str__(self) -> str:
        if self.station is None:
            return f"[{self.stage}] {self.reason}"
        return f"[{self.stage}] {format_station_key(self.station)}: {self.reason}"


class InsufficientDataError(LocalizationError):
    stage = "data"


class OnsetNotFoundError(LocalizationError):
    stage = "pick"


class ImplausibleArrivalError(LocalizationError):
    stage = "delay"


class DegenerateGeometryError(LocalizationError):
    stage = "solve"
