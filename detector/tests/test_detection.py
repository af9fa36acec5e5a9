import numpy as np
import pytest
from obspy import UTCDateTime

from detector.detection import (
    Onset,
    PickerConfig,
    detect_sta_lta,
    pick_onset,
    sta_lta_ratio,
    window_lengths,
)
from detector.models import ChannelSignal

T0 = UTCDateTime(2024, 5, 1, 0, 0, 0)


def _step_signal(fs=100.0, quiet_seconds=10.0, loud_seconds=10.0, seed=0):
    rng = np.random.default_rng(seed)
    quiet = rng.normal(0.0, 0.01, int(quiet_seconds * fs))
    loud = np.ones(int(loud_seconds * fs))
    return np.concatenate((quiet, loud))


def test_window_lengths_enforce_long_window_minimum():
    assert window_lengths(100.0, 0.5, 5.0) == (50, 500)
    assert window_lengths(100.0, 1.0, 1.0) == (100, 200)
    assert window_lengths(1.0, 0.1, 0.1) == (1, 2)


def test_picker_config_validation():
    with pytest.raises(ValueError):
        PickerConfig(sta_seconds=0.0)
    with pytest.raises(ValueError):
        PickerConfig(trigger_on=1.0, trigger_off=2.0)


def test_sta_lta_ratio_zero_outside_scan_range():
    y = np.random.default_rng(3).normal(size=1000)
    ratio = sta_lta_ratio(y, 100.0, 0.5, 5.0)
    assert ratio.size == y.size
    np.testing.assert_array_equal(ratio[:500], 0.0)
    assert ratio[-1] == 0.0
    assert np.all(ratio[500:-1] > 0)


def test_sta_lta_ratio_matches_direct_window_means():
    y = np.random.default_rng(4).normal(size=300)
    sta_n, lta_n = window_lengths(10.0, 1.0, 5.0)
    ratio = sta_lta_ratio(y, 10.0, 1.0, 5.0)
    i = 120
    lta = np.mean(y[i - lta_n : i] ** 2)
    sta = np.mean(y[i + 1 - sta_n : i + 1] ** 2)
    assert ratio[i] == pytest.approx(sta / lta)


def test_sta_lta_ratio_silent_history_is_infinite():
    ratio = sta_lta_ratio(np.zeros(800), 100.0, 0.5, 5.0)
    assert np.isinf(ratio[500:-1]).all()


def test_pick_onset_detects_step():
    y = _step_signal()
    onset = pick_onset(y, 100.0, PickerConfig())

    assert isinstance(onset, Onset)
    assert onset.trigger_index == 1000
    assert onset.index == 950
    assert abs(onset.index - 1000) <= 50
    assert onset.release_index is not None
    assert onset.release_index > onset.trigger_index


def test_pick_onset_stationary_noise_has_no_trigger():
    y = np.random.default_rng(5).normal(0.0, 1.0, 3000)
    assert pick_onset(y, 100.0, PickerConfig()) is None


def test_pick_onset_short_signal_returns_none():
    assert pick_onset(np.ones(100), 100.0, PickerConfig()) is None


def test_pick_onset_silent_signal_triggers_at_first_scanned_index():
    config = PickerConfig(sta_seconds=0.5, lta_seconds=0.5)
    # lta_n is raised to 100 samples.
    onset = pick_onset(np.zeros(400), 100.0, config)
    assert onset.trigger_index == 100
    assert onset.index == 50


def test_pick_onset_only_first_trigger_is_reported():
    y = np.concatenate((_step_signal(seed=1), np.zeros(1000), _step_signal(seed=2)))
    onset = pick_onset(y, 100.0, PickerConfig())
    assert onset.trigger_index == 1000


def test_pick_onset_rejects_bad_rate():
    with pytest.raises(ValueError):
        pick_onset(np.ones(10), 0.0)


def _channel_signal(samples, fs=100.0):
    return ChannelSignal(
        samples=samples,
        sampling_rate=fs,
        starttime=T0,
        network="XX",
        station="STA",
        location="",
        channel="BHZ",
        latitude=45.0,
        longitude=10.0,
    )


def _burst_signal(fs=100.0, duration=120.0, onset=60.0, seed=0):
    t = np.arange(int(duration * fs)) / fs
    y = np.random.default_rng(seed).normal(0.0, 0.01, t.size)
    after = t >= onset
    y[after] += np.sin(2 * np.pi * 5.0 * (t[after] - onset))
    return y


def test_detect_sta_lta_returns_absolute_onset_time():
    pick = detect_sta_lta(_channel_signal(_burst_signal()), PickerConfig())

    assert isinstance(pick, UTCDateTime)
    assert 59.0 <= pick - T0 <= 60.0


def test_detect_sta_lta_no_trigger_returns_none(caplog):
    noise = np.random.default_rng(6).normal(0.0, 1.0, 12000)

    with caplog.at_level("INFO"):
        pick = detect_sta_lta(_channel_signal(noise), PickerConfig())

    assert pick is None
    assert "No onset found for XX.STA..BHZ" in caplog.text


def test_detect_sta_lta_with_pick_band():
    pick = detect_sta_lta(_channel_signal(_burst_signal(seed=8)), PickerConfig(), fmin=1.0, fmax=10.0)

    assert pick is not None
    assert 59.0 <= pick - T0 <= 60.1
