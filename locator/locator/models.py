from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from detector.models import ChannelSignal

StationKey = tuple[str, str, str]


@dataclass(frozen=True)
class Station:
    net: str
    sta: str
    loc: str
    lat: float
    lon: float

    @property
    def station_key(self) -> StationKey:
        return (self.net, self.sta, self.loc)


@dataclass(frozen=True)
class StationRecord:
    """A station and the channel used for picking; ``signal`` is None when no usable data was loaded."""

    station: Station
    signal: Optional[ChannelSignal]
    problem: Optional[str] = None

    @property
    def station_key(self) -> StationKey:
        return self.station.station_key


@dataclass(frozen=True)
class StationObservation:
    station_key: StationKey
    x_km: float
    y_km: float
    # Seconds after the event epoch; None when the arrival was rejected.
    arrival_time: Optional[float] = None

    @property
    def valid(self) -> bool:
        return self.arrival_time is not None


@dataclass(frozen=True)
class Epicenter:
    x_km: float
    y_km: float
    lat: float
    lon: float
    reference_lat: float
    reference_lon: float
    iterations: int
    converged: bool
    rms_seconds: float
    origin_time: float
    azimuthal_gap_deg: float
    observations: list[StationObservation] = field(default_factory=list)


@dataclass(frozen=True)
class LocalizationFailure:
    event_index: int
    stage: str
    station: Optional[StationKey]
    reason: str


@dataclass(frozen=True)
class EventOutcome:
    event_index: int
    epicenter: Optional[Epicenter] = None
    failure: Optional[LocalizationFailure] = None

    def __post_init__(self):
        if (self.epicenter is None) == (self.failure is None):
            raise ValueError("EventOutcome needs exactly one of epicenter or failure")

    @property
    def ok(self) -> bool:
        return self.epicenter is not None
