from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from obspy import UTCDateTime

from .models import ChannelSignal, ConditionedSignal
from .signal import prepare_trace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PickerConfig:
    sta_seconds: float = 0.5
    lta_seconds: float = 5.0
    trigger_on: float = 3.5
    trigger_off: float = 1.4

    def __post_init__(self):
        if self.sta_seconds <= 0 or self.lta_seconds <= 0:
            raise ValueError("sta_seconds and lta_seconds must be > 0")
        if self.trigger_off > self.trigger_on:
            raise ValueError("trigger_off must not exceed trigger_on")


@dataclass(frozen=True)
class Onset:
    index: int
    trigger_index: int
    release_index: Optional[int] = None


def window_lengths(fs: float, sta_seconds: float, lta_seconds: float) -> Tuple[int, int]:
    """STA/LTA lengths in samples; the long window is at least twice the short one."""
    sta_n = max(1, int(round(sta_seconds * fs)))
    lta_n = max(1, int(round(lta_seconds * fs)))
    return sta_n, max(lta_n, 2 * sta_n)


def sta_lta_ratio(y, fs: float, sta_seconds: float, lta_seconds: float) -> np.ndarray:
    """
    Energy ratio evaluated at every index i in [lta_n, n - 1).

    LTA is the mean energy of the lta_n samples before i, STA the mean energy
    of the sta_n samples ending at i. Entries before lta_n are zero. A zero
    LTA gives +inf.
    """
    y = np.asarray(y, dtype=float)
    n = y.size
    sta_n, lta_n = window_lengths(fs, sta_seconds, lta_seconds)
    ratio = np.zeros(n, dtype=float)
    if n - 1 <= lta_n:
        return ratio

    prefix = np.concatenate(([0.0], np.cumsum(y * y)))
    idx = np.arange(lta_n, n - 1)
    lta = (prefix[idx] - prefix[idx - lta_n]) / lta_n
    sta = (prefix[idx + 1] - prefix[np.maximum(0, idx + 1 - sta_n)]) / sta_n

    out = np.full(idx.size, np.inf)
    positive = lta > 0
    out[positive] = sta[positive] / lta[positive]
    ratio[idx] = out
    return ratio


def pick_onset(y, fs: float, config: PickerConfig = PickerConfig()) -> Optional[Onset]:
    """
    First STA/LTA onset, back-dated by one short window, or None.

    Only the first trigger is considered; scanning ends at its release.
    """
    if fs <= 0:
        raise ValueError(f"fs must be > 0, got {fs}")
    sta_n, lta_n = window_lengths(fs, config.sta_seconds, config.lta_seconds)
    ratio = sta_lta_ratio(y, fs, config.sta_seconds, config.lta_seconds)
    scanned = ratio[lta_n:-1] if ratio.size > lta_n + 1 else ratio[:0]

    hits = np.flatnonzero(scanned >= config.trigger_on)
    if hits.size == 0:
        logger.debug("No STA/LTA trigger: samples=%d sta_n=%d lta_n=%d max_ratio=%s",
                     ratio.size, sta_n, lta_n,
                     f"{scanned.max():.3f}" if scanned.size else "n/a")
        return None

    trigger = lta_n + int(hits[0])
    release = None
    released = np.flatnonzero(ratio[trigger + 1:-1] <= config.trigger_off)
    if released.size:
        release = trigger + 1 + int(released[0])
    onset = Onset(index=max(0, trigger - sta_n), trigger_index=trigger, release_index=release)
    logger.debug("STA/LTA trigger: trigger=%d pick=%d release=%s", trigger, onset.index, release)
    return onset


def detect_sta_lta(
    signal: Union[ChannelSignal, ConditionedSignal],
    config: PickerConfig = PickerConfig(),
    fmin: Optional[float] = None,
    fmax: Optional[float] = None,
) -> Optional[UTCDateTime]:
    """Onset time of ``signal`` after demeaning and windowing (and bandpass when a band is given)."""
    y = prepare_trace(signal.samples, signal.sampling_rate, fmin, fmax)
    onset = pick_onset(y, signal.sampling_rate, config)
    if onset is None:
        logger.info("No onset found for %s", signal.seed_id)
        return None
    pick_time = signal.time_of_sample(onset.index)
    logger.info("Onset for %s: sample=%d time=%s", signal.seed_id, onset.index, pick_time)
    return pick_time
