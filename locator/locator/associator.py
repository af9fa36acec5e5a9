import logging
from typing import Optional

from detector.correlation import estimate_delay, slice_window
from detector.detection import detect_sta_lta
from detector.signal import condition_signal

from .errors import (
    ImplausibleArrivalError,
    InsufficientDataError,
    LocalizationError,
    OnsetNotFoundError,
    format_station_key,
)
from .geometry import reference_point, to_local_xy
from .models import EventOutcome, LocalizationFailure, StationObservation, StationRecord
from .settings import Settings
from .solver import estimate_epicenter

logger = logging.getLogger(__name__)

STATIONS_PER_EVENT = 3


def group_events(records: list[StationRecord]) -> list[list[StationRecord]]:
    """Split records into consecutive events of three; a short trailing group is kept as is."""
    return [
        records[i : i + STATIONS_PER_EVENT]
        for i in range(0, len(records), STATIONS_PER_EVENT)
    ]


def event_reference(records: list[StationRecord]) -> tuple[float, float]:
    return reference_point((r.station.lat, r.station.lon) for r in records)


def _check_records(records: list[StationRecord]) -> None:
    if len(records) != STATIONS_PER_EVENT:
        raise InsufficientDataError(
            f"Event has {len(records)} stations, {STATIONS_PER_EVENT} required"
        )
    for record in records:
        if record.signal is None:
            raise InsufficientDataError(
                record.problem or "No waveform data", station=record.station_key
            )


def _event_signals(records: list[StationRecord], settings: Settings) -> list:
    """Signals of the event, all at one sampling rate."""
    signals = [record.signal for record in records]
    anchor_rate = signals[0].sampling_rate
    mismatched = [
        record for record in records if record.signal.sampling_rate != anchor_rate
    ]
    if not mismatched:
        return signals
    if not settings.condition:
        first = mismatched[0]
        raise InsufficientDataError(
            f"Sampling rate {first.signal.sampling_rate} differs from anchor rate {anchor_rate}",
            station=first.station_key,
        )
    logger.info(
        "Sampling rates differ (%s); conditioning all stations to %.3f Hz",
        sorted({s.sampling_rate for s in signals}),
        settings.target_rate,
    )
    return [condition_signal(signal, target_rate=settings.target_rate) for signal in signals]


def associate_arrivals(
    records: list[StationRecord], settings: Settings
) -> list[StationObservation]:
    """
    Arrival time of the event at every station, in seconds after the anchor
    recording start.

    The first record is the anchor: its onset is picked with STA/LTA and a short
    window around the pick is correlated against a longer search window of each
    other station, cut at the same absolute time.
    """
    _check_records(records)
    signals = _event_signals(records, settings)
    ref_lat, ref_lon = event_reference(records)

    anchor_record = records[0]
    anchor = signals[0]
    fs = float(anchor.sampling_rate)
    epoch = anchor.starttime

    fmin, fmax = settings.pick_band or (None, None)
    if fmax is not None and fmax >= fs / 2.0:
        raise OnsetNotFoundError(
            f"Pick band {fmin}-{fmax} Hz exceeds Nyquist of {fs} Hz", station=anchor_record.station_key
        )
    pick_time = detect_sta_lta(anchor, settings.picker_config(), fmin, fmax)
    if pick_time is None:
        raise OnsetNotFoundError("No STA/LTA trigger on anchor", station=anchor_record.station_key)
    pick_rel = float(pick_time - epoch)
    pick_index = int(round(pick_rel * fs))

    anchor_window, anchor_start = slice_window(
        anchor.samples,
        pick_index - int(round(settings.anchor_before_seconds * fs)),
        int(round((settings.anchor_before_seconds + settings.anchor_after_seconds) * fs)),
    )
    anchor_window_time = epoch + anchor_start / fs

    observations: list[StationObservation] = []
    rejected: Optional[tuple[str, str, str]] = None
    for index, (record, signal) in enumerate(zip(records, signals)):
        x_km, y_km = to_local_xy(record.station.lat, record.station.lon, ref_lat, ref_lon)
        if index == 0:
            arrival: Optional[float] = pick_rel
        else:
            arrival = _station_arrival(
                record, signal, pick_time, pick_rel, anchor_window, anchor_window_time, epoch, settings
            )
        if arrival is not None and not (0.0 <= arrival <= settings.max_arrival_seconds):
            logger.warning(
                "Implausible arrival rejected: station=%s arrival=%.3f max=%.1f",
                format_station_key(record.station_key),
                arrival,
                settings.max_arrival_seconds,
            )
            arrival = None
        if arrival is None and rejected is None:
            rejected = record.station_key
        observations.append(
            StationObservation(
                station_key=record.station_key,
                x_km=x_km,
                y_km=y_km,
                arrival_time=arrival,
            )
        )

    valid = sum(1 for obs in observations if obs.valid)
    if valid < STATIONS_PER_EVENT:
        raise ImplausibleArrivalError(
            f"Only {valid} plausible arrivals, {STATIONS_PER_EVENT} required", station=rejected
        )
    return observations


def _station_arrival(
    record: StationRecord,
    signal,
    pick_time,
    pick_rel: float,
    anchor_window,
    anchor_window_time,
    epoch,
    settings: Settings,
) -> Optional[float]:
    fs = float(signal.sampling_rate)
    search_time = pick_time - settings.search_before_seconds
    window, start = slice_window(
        signal.samples,
        int(round((search_time - signal.starttime) * fs)),
        int(round(settings.search_length_seconds * fs)),
    )
    if window.size == 0:
        logger.warning(
            "Search window outside recording: station=%s window_start=%s",
            format_station_key(record.station_key),
            search_time,
        )
        return None

    window_time = signal.starttime + start / fs
    estimate = estimate_delay(window, anchor_window, fs)
    # Correlation lag is measured between window starts; move it to absolute time.
    delay = estimate.delay_seconds + float(window_time - anchor_window_time)
    search_rel = float(window_time - epoch)
    arrival = search_rel + (pick_rel - search_rel) + delay
    logger.info(
        "Arrival estimated: station=%s lag_samples=%.3f delay=%.4f arrival=%.4f",
        format_station_key(record.station_key),
        estimate.lag_samples,
        delay,
        arrival,
    )
    return arrival


def locate_event(records: list[StationRecord], settings: Settings, event_index: int = 0) -> EventOutcome:
    logger.info(
        "Locating event: index=%d stations=%s",
        event_index,
        [format_station_key(r.station_key) for r in records],
    )
    try:
        observations = associate_arrivals(records, settings)
        epicenter = estimate_epicenter(
            observations, event_reference(records), settings.wave_speed_km_s
        )
    except LocalizationError as exc:
        logger.warning("Event %d not localized: %s", event_index, exc)
        return EventOutcome(
            event_index=event_index,
            failure=LocalizationFailure(
                event_index=event_index,
                stage=exc.stage,
                station=exc.station,
                reason=exc.reason,
            ),
        )
    return EventOutcome(event_index=event_index, epicenter=epicenter)


def locate_events(records: list[StationRecord], settings: Settings) -> list[EventOutcome]:
    outcomes = [
        locate_event(group, settings, event_index=index)
        for index, group in enumerate(group_events(records))
    ]
    logger.info(
        "Localization complete: events=%d located=%d",
        len(outcomes),
        sum(1 for outcome in outcomes if outcome.ok),
    )
    return outcomes
