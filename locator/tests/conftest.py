import math

import numpy as np
import pytest
from obspy import UTCDateTime

from detector.models import ChannelSignal
from locator.geometry import reference_point, to_local_xy
from locator.models import Station, StationRecord

RECORD_START = UTCDateTime(2025, 6, 1, 8, 0, 0)
ORIGIN_SECONDS = 50.0
WAVE_SPEED = 6.0

STATIONS = [
    Station("XX", "STA1", "", 45.05, 10.00),
    Station("XX", "STA2", "", 44.97, 10.08),
    Station("XX", "STA3", "", 44.96, 9.93),
]
EPICENTER = (45.00, 10.01)


def wavelet(t: np.ndarray, frequency: float = 5.0, decay: float = 1.0) -> np.ndarray:
    """Causal decaying sinusoid starting at t = 0."""
    out = np.zeros_like(t)
    after = t >= 0
    out[after] = np.exp(-t[after] / decay) * np.sin(2 * np.pi * frequency * t[after])
    return out


def true_arrivals(stations, epicenter=EPICENTER):
    ref = reference_point((s.lat, s.lon) for s in stations)
    ex, ey = to_local_xy(epicenter[0], epicenter[1], *ref)
    arrivals = []
    for station in stations:
        sx, sy = to_local_xy(station.lat, station.lon, *ref)
        arrivals.append(ORIGIN_SECONDS + math.hypot(sx - ex, sy - ey) / WAVE_SPEED)
    return arrivals


def synthetic_signal(
    station: Station,
    arrival: float,
    sampling_rate: float = 100.0,
    duration: float = 120.0,
    starttime: UTCDateTime = RECORD_START,
    seed: int = 0,
    with_event: bool = True,
) -> ChannelSignal:
    rng = np.random.default_rng(seed)
    n = int(duration * sampling_rate)
    t = float(starttime - RECORD_START) + np.arange(n) / sampling_rate
    samples = rng.normal(0.0, 0.01, n)
    if with_event:
        samples += wavelet(t - arrival)
    return ChannelSignal(
        samples=samples,
        sampling_rate=sampling_rate,
        starttime=starttime,
        network=station.net,
        station=station.sta,
        location=station.loc,
        channel="BHZ",
        latitude=station.lat,
        longitude=station.lon,
    )


@pytest.fixture
def event_records():
    """Three station records of one synthetic event; keyword overrides per station index."""

    def build(stations=STATIONS, epicenter=EPICENTER, overrides=None):
        overrides = overrides or {}
        arrivals = true_arrivals(stations, epicenter)
        records = []
        for i, (station, arrival) in enumerate(zip(stations, arrivals)):
            kwargs = {"seed": i}
            kwargs.update(overrides.get(i, {}))
            records.append(StationRecord(station, synthetic_signal(station, arrival, **kwargs)))
        return records

    return build
