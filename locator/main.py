import logging
import math
import sys
from typing import Optional

from detector.merge import read_station, select_channel
from detector.utils import parse_station_key
from locator.associator import locate_events
from locator.inventory import find_station, load_stations
from locator.models import EventOutcome, Station, StationRecord
from locator.settings import Settings, parse_args


def parse_station_spec(text: str) -> tuple[Station, str]:
    """``NET.STA[.LOC]=LAT,LON,PATH`` -> (Station, path)."""
    key_text, sep, rest = text.partition("=")
    key = parse_station_key(key_text)
    if not sep or key is None:
        raise ValueError(f"Invalid station spec {text!r}; expected NET.STA[.LOC]=LAT,LON,PATH")
    parts = rest.split(",", 2)
    if len(parts) != 3 or not parts[2]:
        raise ValueError(f"Invalid station spec {text!r}; expected NET.STA[.LOC]=LAT,LON,PATH")
    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError:
        raise ValueError(f"Invalid coordinates in station spec {text!r}") from None
    return Station(key[0], key[1], key[2], lat, lon), parts[2]


def parse_waveform_spec(text: str) -> tuple[tuple[str, str, str], str]:
    key_text, sep, path = text.partition("=")
    key = parse_station_key(key_text)
    if not sep or key is None or not path:
        raise ValueError(f"Invalid waveform spec {text!r}; expected NET.STA[.LOC]=PATH")
    return key, path


def load_record(station: Station, path: str, settings: Settings, logger: logging.Logger) -> StationRecord:
    try:
        with open(path, "rb") as stream:
            signals = read_station(
                stream,
                station.lat,
                station.lon,
                record_length=settings.record_length,
                validate_crc=settings.validate_crc,
            )
        signal = select_channel(signals, settings.channel)
    except OSError as exc:
        logger.error("Cannot read waveform file: path=%s error=%s", path, exc)
        return StationRecord(station, None, problem=f"Cannot read {path}: {exc}")
    except ValueError as exc:
        logger.warning("No usable blocks: path=%s error=%s", path, exc)
        return StationRecord(station, None, problem=f"No usable blocks in {path}")
    except KeyError as exc:
        logger.warning("Channel missing: path=%s error=%s", path, exc.args[0])
        return StationRecord(station, None, problem=str(exc.args[0]))
    logger.info(
        "Loaded waveform: station=%s start=%s end=%s duration=%.2fs blocks=%d",
        signal.seed_id,
        signal.starttime,
        signal.endtime,
        signal.duration,
        signal.block_count,
    )
    return StationRecord(station, signal)


def build_records(settings: Settings, logger: logging.Logger) -> list[StationRecord]:
    records: list[StationRecord] = []
    for spec in settings.stations:
        station, path = parse_station_spec(spec)
        records.append(load_record(station, path, settings, logger))

    if settings.waveforms:
        inventory = load_stations(settings.inventory, channel=settings.channel)
        for spec in settings.waveforms:
            (net, sta, loc), path = parse_waveform_spec(spec)
            station = find_station(inventory, net, sta, loc)
            if station is None:
                logger.warning("Station missing from inventory: %s.%s.%s", net, sta, loc)
                records.append(
                    StationRecord(
                        Station(net, sta, loc, math.nan, math.nan),
                        None,
                        problem="Missing station coordinates",
                    )
                )
                continue
            records.append(load_record(station, path, settings, logger))
    return records


def format_outcome(outcome: EventOutcome) -> str:
    if outcome.ok:
        epi = outcome.epicenter
        return (
            f"event={outcome.event_index} status=located lat={epi.lat:.5f} lon={epi.lon:.5f} "
            f"x_km={epi.x_km:.3f} y_km={epi.y_km:.3f} origin_s={epi.origin_time:.3f} "
            f"rms_s={epi.rms_seconds:.4f} gap_deg={epi.azimuthal_gap_deg:.1f} "
            f"iterations={epi.iterations} converged={epi.converged}"
        )
    failure = outcome.failure
    station = ".".join(failure.station) if failure.station else "-"
    return (
        f"event={outcome.event_index} status=failed stage={failure.stage} "
        f"station={station} reason={failure.reason}"
    )


def run(settings: Settings, logger: logging.Logger, records: Optional[list[StationRecord]] = None) -> int:
    if records is None:
        records = build_records(settings, logger)
    if not records:
        logger.error("No stations given")
        return 1

    outcomes = locate_events(records, settings)
    for outcome in outcomes:
        print(format_outcome(outcome))

    located = sum(1 for outcome in outcomes if outcome.ok)
    logger.info("Run complete: stations=%d events=%d located=%d", len(records), len(outcomes), located)
    return 0 if located else 1


def main() -> None:
    settings = parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("locator.main")
    logger.info("Starting locator")

    try:
        code = run(settings, logger)
    except ValueError:
        logger.exception("Invalid input")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
