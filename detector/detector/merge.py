from __future__ import annotations

import logging
from typing import BinaryIO, Dict, Iterable, List

import numpy as np

from .decoder import BlockDecoder
from .models import ChannelSignal, RawBlock

logger = logging.getLogger(__name__)


def merge_channels(blocks: Iterable[RawBlock]) -> Dict[str, ChannelSignal]:
    """Concatenate the blocks of one station into one signal per channel.

    Blocks are ordered by start time (ties keep arrival order) and joined end to
    end. Continuity between consecutive blocks is assumed, not checked: a gap in
    the recording shifts every later sample time.
    """
    grouped: Dict[str, List[RawBlock]] = {}
    station_keys = set()
    for block in blocks:
        grouped.setdefault(block.channel, []).append(block)
        station_keys.add(block.station_key)

    if not grouped:
        raise ValueError("No blocks to merge")
    if len(station_keys) > 1:
        logger.warning("Merging blocks from several stations: %s", sorted(station_keys))

    merged: Dict[str, ChannelSignal] = {}
    for channel, group in grouped.items():
        ordered = sorted(group, key=lambda b: b.starttime)
        first = ordered[0]
        rates = {b.sampling_rate for b in ordered}
        if len(rates) > 1:
            logger.warning(
                "Sampling rate varies within %s.%s: rates=%s; using %.3f",
                first.station,
                channel,
                sorted(rates),
                first.sampling_rate,
            )
        samples = np.concatenate([b.samples for b in ordered]).astype(np.float64, copy=False)
        merged[channel] = ChannelSignal(
            samples=samples,
            sampling_rate=first.sampling_rate,
            starttime=first.starttime,
            network=first.network,
            station=first.station,
            location=first.location,
            channel=channel,
            latitude=first.latitude,
            longitude=first.longitude,
            block_count=len(ordered),
        )
        logger.debug(
            "Merged %s: blocks=%d samples=%d start=%s",
            merged[channel].seed_id,
            len(ordered),
            samples.size,
            first.starttime,
        )
    return merged


def select_channel(signals: Dict[str, ChannelSignal], channel: str) -> ChannelSignal:
    try:
        return signals[channel]
    except KeyError:
        raise KeyError(f"Channel {channel} not present (available: {sorted(signals)})") from None


def read_station(
    stream: BinaryIO,
    latitude: float,
    longitude: float,
    record_length: int = 512,
    validate_crc: bool = True,
) -> Dict[str, ChannelSignal]:
    decoder = BlockDecoder(latitude, longitude, record_length=record_length, validate_crc=validate_crc)
    signals = merge_channels(decoder.iter_blocks(stream))
    logger.info(
        "Read station waveforms: channels=%s decoded=%d skipped=%d",
        sorted(signals),
        decoder.stats.decoded,
        decoder.stats.skipped,
    )
    return signals
