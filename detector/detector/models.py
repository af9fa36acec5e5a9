from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from obspy import UTCDateTime


@dataclass(frozen=True)
class RawBlock:
    """One decoded miniSEED record."""

    samples: np.ndarray
    sampling_rate: float
    starttime: UTCDateTime
    network: str
    station: str
    location: str
    channel: str
    latitude: float
    longitude: float
    encoding: int = -1

    @property
    def station_key(self) -> tuple[str, str, str]:
        return (self.network, self.station, self.location)


@dataclass(frozen=True)
class ChannelSignal:
    """Continuous samples of one channel built from time-ordered blocks."""

    samples: np.ndarray
    sampling_rate: float
    starttime: UTCDateTime
    network: str
    station: str
    location: str
    channel: str
    latitude: float
    longitude: float
    block_count: int = 1

    @property
    def station_key(self) -> tuple[str, str, str]:
        return (self.network, self.station, self.location)

    @property
    def seed_id(self) -> str:
        return f"{self.network}.{self.station}.{self.location}.{self.channel}"

    @property
    def duration(self) -> float:
        return self.samples.size / self.sampling_rate

    @property
    def endtime(self) -> UTCDateTime:
        return self.starttime + (self.samples.size - 1) / self.sampling_rate

    def time_of_sample(self, index: float) -> UTCDateTime:
        return self.starttime + index / self.sampling_rate


@dataclass(frozen=True)
class ConditionedSignal:
    samples: np.ndarray
    sampling_rate: float
    starttime: UTCDateTime
    source_rate: float
    seed_id: str = ""

    def time_of_sample(self, index: float) -> UTCDateTime:
        return self.starttime + index / self.sampling_rate
