from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .signal import demean
from .spectral import fft, ifft, next_pow2, zero_pad

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayEstimate:
    delay_seconds: float
    lag_samples: float
    peak_index: int
    correlation: np.ndarray


def cross_correlate(a, b) -> np.ndarray:
    """
    Linear cross-correlation of ``a`` against ``b`` through the FFT.

    Returns len(a) + len(b) - 1 values; index len(b) - 1 is zero lag and a
    positive lag k means ``a`` matches ``b`` shifted k samples later.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.size == 0 or b.size == 0:
        raise ValueError("Cannot correlate empty windows")

    conv_len = a.size + b.size - 1
    n = next_pow2(conv_len)
    A = fft(zero_pad(a, n))
    B = fft(zero_pad(b, n))
    circular = ifft(A * np.conj(B)).real
    # Negative lags wrap to the end of the circular result.
    return np.concatenate((circular[n - (b.size - 1):], circular[: a.size]))


def parabolic_offset(ym1: float, y0: float, yp1: float) -> float:
    """Vertex offset of the parabola through three equally spaced points."""
    denominator = ym1 - 2.0 * y0 + yp1
    if abs(denominator) < 1e-12:
        return 0.0
    return 0.5 * (ym1 - yp1) / denominator


def estimate_delay(a, b, sampling_rate: float) -> DelayEstimate:
    """Sub-sample delay of search window ``a`` relative to reference ``b``."""
    if sampling_rate <= 0:
        raise ValueError(f"sampling_rate must be > 0, got {sampling_rate}")
    b = np.asarray(b, dtype=float)
    corr = cross_correlate(demean(a), demean(b))
    zero_lag = b.size - 1

    k_max = int(np.argmax(corr))
    offset = 0.0
    if 0 < k_max < corr.size - 1:
        offset = parabolic_offset(corr[k_max - 1], corr[k_max], corr[k_max + 1])

    lag = (k_max + offset) - zero_lag
    logger.debug("Correlation peak: index=%d offset=%.4f lag=%.4f samples", k_max, offset, lag)
    return DelayEstimate(
        delay_seconds=lag / sampling_rate,
        lag_samples=lag,
        peak_index=k_max,
        correlation=corr,
    )


def slice_window(x, start: int, length: int) -> Tuple[np.ndarray, int]:
    """Cut ``length`` samples from ``start``, clamped to the array; returns the actual start."""
    x = np.asarray(x)
    if start < 0:
        length += start
        start = 0
    stop = min(x.size, start + max(length, 0))
    if start >= x.size or stop <= start:
        return x[:0].copy(), min(start, x.size)
    return x[start:stop].copy(), start
