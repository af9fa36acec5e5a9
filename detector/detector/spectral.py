"""
Radix-2 discrete Fourier transform and helpers.

Everything here is a pure function of its input. ``fft`` recurses once per
halving, so the depth is log2(N); each level is vectorized with numpy.
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np


def next_pow2(n: int) -> int:
    size = 1
    while size < n:
        size <<= 1
    return size


def is_pow2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def zero_pad(x, length: Optional[int] = None) -> np.ndarray:
    """Right-pad ``x`` with zeros to ``length`` (default: next power of two)."""
    x = np.asarray(x)
    if length is None:
        length = next_pow2(x.size)
    if length < x.size:
        raise ValueError(f"Cannot pad {x.size} samples down to {length}")
    out = np.zeros(length, dtype=np.result_type(x.dtype, np.float64))
    out[: x.size] = x
    return out


def _fft_radix2(x: np.ndarray) -> np.ndarray:
    n = x.size
    if n == 1:
        return x.astype(np.complex128)
    even = _fft_radix2(x[0::2])
    odd = _fft_radix2(x[1::2])
    twiddle = np.exp(-2j * np.pi * np.arange(n // 2) / n) * odd
    return np.concatenate((even + twiddle, even - twiddle))


def fft(x) -> np.ndarray:
    x = np.asarray(x)
    if not is_pow2(x.size):
        raise ValueError(f"FFT length must be a power of two, got {x.size}")
    return _fft_radix2(x.astype(np.complex128))


def ifft(spectrum_values) -> np.ndarray:
    """Inverse transform as conj(fft(conj(X))) / N."""
    X = np.asarray(spectrum_values, dtype=np.complex128)
    if not is_pow2(X.size):
        raise ValueError(f"IFFT length must be a power of two, got {X.size}")
    return np.conj(fft(np.conj(X))) / X.size


def spectrum(x) -> np.ndarray:
    return fft(zero_pad(x))


def amplitude_spectrum(x, sampling_rate: float) -> Tuple[np.ndarray, np.ndarray]:
    """One-sided frequencies (Hz) and magnitudes of the zero-padded transform."""
    if sampling_rate <= 0:
        raise ValueError(f"sampling_rate must be > 0, got {sampling_rate}")
    X = spectrum(x)
    n = X.size
    half = n // 2 + 1
    freqs = np.arange(half) * (sampling_rate / n)
    return freqs, np.abs(X[:half])
