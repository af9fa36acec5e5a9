from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Optional

from detector.decoder import validate_record_length
from detector.detection import PickerConfig


@dataclass
class Settings:
    wave_speed_km_s: float = 6.0
    channel: str = "BHZ"
    sta_seconds: float = 0.5
    lta_seconds: float = 5.0
    trigger_on: float = 3.5
    trigger_off: float = 1.4
    anchor_before_seconds: float = 2.0
    anchor_after_seconds: float = 4.0
    search_before_seconds: float = 10.0
    search_length_seconds: float = 40.0
    max_arrival_seconds: float = 600.0
    record_length: int = 512
    validate_crc: bool = True
    target_rate: float = 100.0
    condition: bool = False
    pick_fmin: Optional[float] = None
    pick_fmax: Optional[float] = None
    log_level: str = "INFO"
    stations: list[str] = field(default_factory=list)
    inventory: Optional[str] = None
    waveforms: list[str] = field(default_factory=list)

    def picker_config(self) -> PickerConfig:
        return PickerConfig(
            sta_seconds=self.sta_seconds,
            lta_seconds=self.lta_seconds,
            trigger_on=self.trigger_on,
            trigger_off=self.trigger_off,
        )

    @property
    def pick_band(self) -> Optional[tuple[float, float]]:
        if self.pick_fmin is None or self.pick_fmax is None:
            return None
        return (self.pick_fmin, self.pick_fmax)

    def validate(self) -> None:
        if self.wave_speed_km_s <= 0:
            raise ValueError("wave_speed_km_s must be > 0")
        if self.target_rate <= 0:
            raise ValueError("target_rate must be > 0")
        for name in (
            "anchor_before_seconds",
            "anchor_after_seconds",
            "search_before_seconds",
            "search_length_seconds",
            "max_arrival_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.anchor_before_seconds + self.anchor_after_seconds <= 0:
            raise ValueError("anchor window must not be empty")
        if self.search_length_seconds <= 0:
            raise ValueError("search_length_seconds must be > 0")
        if (self.pick_fmin is None) != (self.pick_fmax is None):
            raise ValueError("pick_fmin and pick_fmax must be given together")
        if self.pick_fmin is not None and not (0 < self.pick_fmin < self.pick_fmax):
            raise ValueError("Require 0 < pick_fmin < pick_fmax")
        validate_record_length(self.record_length)
        self.picker_config()


def parse_args(argv: Optional[list[str]] = None) -> Settings:
    parser = argparse.ArgumentParser(description="TDOA epicenter locator")
    parser.add_argument(
        "--station",
        action="append",
        default=[],
        metavar="NET.STA[.LOC]=LAT,LON,PATH",
        help="Station coordinates and miniSEED file; repeat for every station",
    )
    parser.add_argument("--inventory", default=None, help="StationXML file with station coordinates")
    parser.add_argument(
        "--waveform",
        action="append",
        default=[],
        metavar="NET.STA[.LOC]=PATH",
        help="miniSEED file for a station listed in --inventory",
    )
    parser.add_argument("--wave-speed-km-s", type=float, default=6.0)
    parser.add_argument("--channel", default="BHZ")
    parser.add_argument("--sta-seconds", type=float, default=0.5)
    parser.add_argument("--lta-seconds", type=float, default=5.0)
    parser.add_argument("--trigger-on", type=float, default=3.5)
    parser.add_argument("--trigger-off", type=float, default=1.4)
    parser.add_argument("--anchor-before-seconds", type=float, default=2.0)
    parser.add_argument("--anchor-after-seconds", type=float, default=4.0)
    parser.add_argument("--search-before-seconds", type=float, default=10.0)
    parser.add_argument("--search-length-seconds", type=float, default=40.0)
    parser.add_argument("--max-arrival-seconds", type=float, default=600.0)
    parser.add_argument("--record-length", type=int, default=512)
    parser.add_argument("--no-crc", action="store_true", help="Skip CRC validation of records")
    parser.add_argument("--target-rate", type=float, default=100.0)
    parser.add_argument(
        "--condition",
        action="store_true",
        help="Resample stations to --target-rate when their sampling rates differ",
    )
    parser.add_argument("--pick-fmin", type=float, default=None)
    parser.add_argument("--pick-fmax", type=float, default=None)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    settings = Settings(
        wave_speed_km_s=args.wave_speed_km_s,
        channel=args.channel,
        sta_seconds=args.sta_seconds,
        lta_seconds=args.lta_seconds,
        trigger_on=args.trigger_on,
        trigger_off=args.trigger_off,
        anchor_before_seconds=args.anchor_before_seconds,
        anchor_after_seconds=args.anchor_after_seconds,
        search_before_seconds=args.search_before_seconds,
        search_length_seconds=args.search_length_seconds,
        max_arrival_seconds=args.max_arrival_seconds,
        record_length=args.record_length,
        validate_crc=not args.no_crc,
        target_rate=args.target_rate,
        condition=args.condition,
        pick_fmin=args.pick_fmin,
        pick_fmax=args.pick_fmax,
        log_level=args.log_level.upper(),
        stations=list(args.station),
        inventory=args.inventory,
        waveforms=list(args.waveform),
    )
    try:
        settings.validate()
    except ValueError as exc:
        parser.error(str(exc))
    if settings.inventory is None and settings.waveforms:
        parser.error("--waveform requires --inventory")
    return settings
