from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Union

import numpy as np
from scipy.signal import butter, firwin, sosfilt, sosfiltfilt

from .models import ChannelSignal, ConditionedSignal, RawBlock

logger = logging.getLogger(__name__)

TARGET_RATE = 100.0
FIR_TAPS = 101


def hamming_window(n: int) -> np.ndarray:
    """0.54 - 0.46 cos(2 pi i / (n - 1)); a single sample gets weight 1."""
    return np.hamming(n)


def apply_hamming(y) -> np.ndarray:
    y = np.asarray(y, dtype=float)
    return y * hamming_window(y.size)


def demean(y) -> np.ndarray:
    y = np.asarray(y, dtype=float)
    if y.size == 0:
        return y.copy()
    return y - np.mean(y)


def normalize_peak(y) -> np.ndarray:
    y = np.asarray(y, dtype=float)
    peak = np.max(np.abs(y)) if y.size else 0.0
    if peak == 0:
        return y.copy()
    return y / peak


def design_lowpass(cutoff: float, taps: int = FIR_TAPS) -> np.ndarray:
    """
    Linear-phase windowed-sinc low-pass kernel.
    ``cutoff`` is normalized to Nyquist and must lie in (0, 1).
    """
    if not (0 < cutoff < 1):
        raise ValueError(f"Require 0 < cutoff < 1. Got cutoff={cutoff}.")
    if taps < 1 or taps % 2 == 0:
        raise ValueError(f"taps must be a positive odd number, got {taps}")
    return firwin(taps, cutoff, window="hamming")


def lowpass_filter(y, cutoff: float, taps: int = FIR_TAPS) -> np.ndarray:
    kernel = design_lowpass(cutoff, taps)
    return np.convolve(np.asarray(y, dtype=float), kernel, mode="full")


def resampled_length(n: int, source_rate: float, target_rate: float) -> int:
    return int(math.floor(n * target_rate / source_rate))


def resample_cubic(y, source_rate: float, target_rate: float) -> np.ndarray:
    """Cubic Hermite resampling; positions beyond the edges reuse the edge sample."""
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError(f"Rates must be > 0. Got source={source_rate}, target={target_rate}.")
    y = np.asarray(y, dtype=float)
    n_out = resampled_length(y.size, source_rate, target_rate)
    if n_out == 0 or y.size == 0:
        return np.zeros(0, dtype=float)

    pos = np.arange(n_out) * (source_rate / target_rate)
    i = np.floor(pos).astype(int)
    t = pos - i
    last = y.size - 1
    y0 = y[np.clip(i - 1, 0, last)]
    y1 = y[np.clip(i, 0, last)]
    y2 = y[np.clip(i + 1, 0, last)]
    y3 = y[np.clip(i + 2, 0, last)]

    a0 = -0.5 * y0 + 1.5 * y1 - 1.5 * y2 + 0.5 * y3
    a1 = y0 - 2.5 * y1 + 2.0 * y2 - 0.5 * y3
    a2 = -0.5 * y0 + 0.5 * y2
    return ((a0 * t + a1) * t + a2) * t + y1


def bandpass_filter(y, fs, fmin, fmax, order=4, zero_phase=True):
    """
    Butterworth bandpass. Uses SOS for numerical stability.
    fmin/fmax in Hz.
    """
    y = np.asarray(y, dtype=float)
    nyq = 0.5 * float(fs)
    if not (0 < fmin < fmax < nyq):
        raise ValueError(f"Require 0 < fmin < fmax < fs/2. Got fmin={fmin}, fmax={fmax}, fs={fs}.")

    sos = butter(order, [fmin / nyq, fmax / nyq], btype="bandpass", output="sos")
    if zero_phase:
        return sosfiltfilt(sos, y)
    return sosfilt(sos, y)


def prepare_trace(y, fs: Optional[float] = None, fmin: Optional[float] = None,
                  fmax: Optional[float] = None) -> np.ndarray:
    """
    Demean and window a trace before picking; bandpass first when a band is given.

    The bandpass is causal so energy after an onset does not leak ahead of it.
    """
    y = demean(y)
    if fmin is not None and fmax is not None:
        if fs is None:
            raise ValueError("fs is required when a pick band is configured")
        y = demean(bandpass_filter(y, fs, fmin, fmax, zero_phase=False))
    return apply_hamming(y)


def condition_blocks(
    blocks: Iterable[Union[RawBlock, ChannelSignal]],
    target_rate: float = TARGET_RATE,
    taps: int = FIR_TAPS,
) -> ConditionedSignal:
    """
    Merge blocks and bring them to ``target_rate`` ready for spectral work:
    anti-alias filter, cubic resample, demean, Hamming window, peak normalize.

    The rate of the earliest block is taken as the source rate. The full
    convolution delays the filtered signal by (taps - 1) / 2 samples, so the
    returned start time is moved back by that amount.
    """
    ordered = sorted(blocks, key=lambda b: b.starttime)
    if not ordered:
        raise ValueError("No blocks to condition")

    first = ordered[0]
    source_rate = float(first.sampling_rate)
    starttime = first.starttime
    merged = np.concatenate([np.asarray(b.samples, dtype=float) for b in ordered])

    if target_rate < source_rate:
        cutoff = (target_rate / 2.0) / (source_rate / 2.0)
        merged = lowpass_filter(merged, cutoff, taps)
        starttime = starttime - ((taps - 1) / 2.0) / source_rate
        logger.debug("Low-pass applied: source=%.3f target=%.3f cutoff=%.4f taps=%d",
                     source_rate, target_rate, cutoff, taps)

    resampled = resample_cubic(merged, source_rate, target_rate)
    out = normalize_peak(apply_hamming(demean(resampled)))
    logger.debug("Conditioned %d samples at %.3f Hz into %d samples at %.3f Hz",
                 merged.size, source_rate, out.size, target_rate)
    return ConditionedSignal(
        samples=out,
        sampling_rate=float(target_rate),
        starttime=starttime,
        source_rate=source_rate,
        seed_id=f"{first.network}.{first.station}.{first.location}.{first.channel}",
    )


def condition_signal(signal: ChannelSignal, target_rate: float = TARGET_RATE,
                     taps: int = FIR_TAPS) -> ConditionedSignal:
    return condition_blocks([signal], target_rate=target_rate, taps=taps)
