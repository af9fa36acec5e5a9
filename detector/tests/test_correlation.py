import numpy as np
import pytest

from detector.correlation import cross_correlate, estimate_delay, parabolic_offset, slice_window


def test_cross_correlate_matches_linear_full_correlation():
    rng = np.random.default_rng(11)
    a = rng.normal(size=37)
    b = rng.normal(size=20)
    out = cross_correlate(a, b)
    assert out.size == a.size + b.size - 1
    np.testing.assert_allclose(out, np.correlate(a, b, mode="full"), atol=1e-9)


def test_cross_correlate_single_sample_reference():
    out = cross_correlate([1.0, 2.0, 3.0], [2.0])
    np.testing.assert_allclose(out, [2.0, 4.0, 6.0], atol=1e-12)


def test_cross_correlate_empty_raises():
    with pytest.raises(ValueError):
        cross_correlate([], [1.0])


def test_parabolic_offset_vertex():
    # y = -(x - 0.25)^2 sampled at -1, 0, 1
    ys = [-(x - 0.25) ** 2 for x in (-1.0, 0.0, 1.0)]
    assert parabolic_offset(*ys) == pytest.approx(0.25)


def test_parabolic_offset_flat_is_zero():
    assert parabolic_offset(1.0, 1.0, 1.0) == 0.0


def test_estimate_delay_integer_shift_of_noise():
    x = np.random.default_rng(2).normal(size=600)
    b = x[100:400]
    a = x[93:393]  # a[n] == b[n - 7]
    est = estimate_delay(a, b, 50.0)
    assert est.lag_samples == pytest.approx(7.0, abs=0.1)
    assert est.delay_seconds == pytest.approx(est.lag_samples / 50.0)
    assert est.peak_index == b.size - 1 + 7


def test_estimate_delay_known_sinusoid_shift():
    fs = 100.0
    n = np.arange(4096)
    b = np.sin(2 * np.pi * 5.0 * n / fs)
    a = np.sin(2 * np.pi * 5.0 * (n - 3) / fs)
    est = estimate_delay(a, b, fs)
    assert est.lag_samples == pytest.approx(3.0, abs=0.05)
    assert est.delay_seconds == pytest.approx(0.03, abs=0.0005)


def test_estimate_delay_fractional_shift():
    fs = 100.0
    n = np.arange(4096)
    b = np.sin(2 * np.pi * 5.0 * n / fs)
    a = np.sin(2 * np.pi * 5.0 * (n - 2.5) / fs)
    est = estimate_delay(a, b, fs)
    assert est.lag_samples == pytest.approx(2.5, abs=0.05)


def test_estimate_delay_negative_shift():
    x = np.random.default_rng(9).normal(size=600)
    b = x[100:400]
    a = x[104:404]  # a leads b by 4 samples
    est = estimate_delay(a, b, 100.0)
    assert est.lag_samples == pytest.approx(-4.0, abs=0.1)


def test_estimate_delay_rejects_bad_rate():
    with pytest.raises(ValueError):
        estimate_delay([1.0, 2.0], [1.0], 0.0)


@pytest.mark.parametrize(
    "start, length, expected, expected_start",
    [
        (2, 3, [2, 3, 4], 2),
        (-2, 4, [0, 1], 0),
        (8, 5, [8, 9], 8),
        (12, 3, [], 10),
        (-5, 3, [], 0),
    ],
)
def test_slice_window_clamps(start, length, expected, expected_start):
    x = np.arange(10)
    window, actual = slice_window(x, start, length)
    np.testing.assert_array_equal(window, expected)
    assert actual == expected_start


def test_slice_window_returns_copy():
    x = np.arange(10, dtype=float)
    window, _ = slice_window(x, 0, 3)
    window[0] = 99.0
    assert x[0] == 0.0
