import numpy as np
import pytest

from noisewatch.dsp.windowing import (
    hamming_window,
    periodogram_scale,
    rectangular_window,
    resolve_window,
)
from noisewatch.errors import ConfigurationError


def test_default_window_is_hamming_formula() -> None:
    n = 16
    expected = 0.54 - 0.46 * np.cos(2.0 * np.pi * np.arange(n) / (n - 1))
    res = resolve_window(None, n)
    assert res.kind == "hamming"
    assert not res.fallback
    np.testing.assert_allclose(res.window, expected, rtol=0, atol=1e-12)


def test_matching_custom_window_is_used_unchanged() -> None:
    custom = np.linspace(0.1, 1.0, 10)
    res = resolve_window(custom, 10)
    assert res.kind == "custom"
    assert not res.fallback
    np.testing.assert_array_equal(res.window, custom)


def test_wrong_length_window_falls_back_to_rectangular() -> None:
    res = resolve_window(np.ones(7) * 0.5, 10)
    assert res.kind == "rectangular"
    assert res.fallback
    np.testing.assert_array_equal(res.window, np.ones(10))


def test_seg_length_below_two_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        resolve_window(None, 1)
    with pytest.raises(ConfigurationError):
        hamming_window(0)


def test_periodogram_scale_is_inverse_window_energy() -> None:
    assert periodogram_scale(rectangular_window(8)) == pytest.approx(1.0 / 8.0)
    w = hamming_window(32)
    assert periodogram_scale(w) == pytest.approx(1.0 / float(np.sum(w**2)))


def test_periodogram_scale_rejects_all_zero_window() -> None:
    with pytest.raises(ConfigurationError):
        periodogram_scale(np.zeros(8))


def test_periodogram_scale_rejects_negative_weights() -> None:
    with pytest.raises(ConfigurationError):
        periodogram_scale(np.array([1.0, -1.0, 1.0]))
