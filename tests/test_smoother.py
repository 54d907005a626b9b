import sys
import os

import numpy as np
import pytest

# Add parent directory to path to import modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from landmarks import HipPoint, Landmark
from smoother import (
    ConfigurationError,
    LandmarkSmoother,
    SmoothingConfig,
    savgol_coefficients,
    savitzky_golay,
    smooth_hip_trajectory,
    smooth_landmark_sequence,
)


def clamped_filter(y, coeffs):
    # Straightforward sliding dot product with edge clamping.
    half = len(coeffs) // 2
    n = len(y)
    out = []
    for i in range(n):
        acc = 0.0
        for j in range(-half, half + 1):
            idx = min(max(i + j, 0), n - 1)
            acc += y[idx] * coeffs[j + half]
        out.append(acc)
    return np.array(out)


def test_known_kernels():
    np.testing.assert_allclose(
        savgol_coefficients(7, 2), np.array([-2, 3, 6, 7, 6, 3, -2]) / 21, atol=1e-12)
    np.testing.assert_allclose(
        savgol_coefficients(5, 2), np.array([-3, 12, 17, 12, -3]) / 35, atol=1e-12)
    np.testing.assert_allclose(
        savgol_coefficients(9, 4), np.array([15, -55, 30, 135, 179, 135, 30, -55, 15]) / 429, atol=1e-12)
    # Order 0 is a plain moving average.
    np.testing.assert_allclose(savgol_coefficients(5, 0), np.full(5, 0.2), atol=1e-12)


def test_kernel_is_symmetric_and_normalized():
    for window, order in [(3, 1), (5, 3), (11, 2), (15, 6), (21, 5)]:
        c = savgol_coefficients(window, order)
        assert len(c) == window
        np.testing.assert_allclose(c, c[::-1], atol=1e-12)
        assert abs(c.sum() - 1.0) < 1e-9


def test_invalid_windows_raise():
    for window, order in [(6, 2), (8, 0), (3, 2), (5, 4), (1, 0), (7, -1)]:
        with pytest.raises(ConfigurationError):
            savgol_coefficients(window, order)
        with pytest.raises(ConfigurationError):
            savitzky_golay([1.0] * 20, window, order)
        with pytest.raises(ConfigurationError):
            SmoothingConfig(window, order).validate()


def test_invalid_config_raises_even_when_disabled():
    with pytest.raises(ConfigurationError):
        LandmarkSmoother(SmoothingConfig(4, 2, enabled=False))


def test_length_preserved():
    rng = np.random.default_rng(0)
    y = rng.normal(size=40)
    for window, order in [(3, 0), (3, 1), (7, 2), (9, 3), (15, 4), (39, 2)]:
        assert len(savitzky_golay(y, window, order)) == len(y)


def test_constant_series_unchanged():
    y = [2.5] * 30
    for window, order in [(5, 2), (7, 2), (11, 5)]:
        np.testing.assert_allclose(savitzky_golay(y, window, order), y, atol=1e-12)


def test_short_series_is_passthrough():
    y = [0.0, 3.0, 1.0, 4.0, 1.0, 5.0]
    out = savitzky_golay(y, 7, 2)
    np.testing.assert_array_equal(out, y)


def test_edges_replicate_boundary_samples():
    rng = np.random.default_rng(1)
    y = rng.uniform(-1, 1, size=25)
    for window, order in [(7, 2), (5, 3), (9, 0)]:
        expected = clamped_filter(y, savgol_coefficients(window, order))
        np.testing.assert_allclose(savitzky_golay(y, window, order), expected, atol=1e-12)

    # A step at the very end: clamped indices all read the last sample.
    step = [0, 0, 0, 0, 0, 0, 10]
    out = savitzky_golay(step, 7, 2)
    assert abs(out[-1] - 10 * (7 + 6 + 3 - 2) / 21) < 1e-9


def test_interior_polynomial_is_reproduced():
    t = np.arange(30, dtype=float)
    y = 0.5 * t ** 2 - 3 * t + 1
    out = savitzky_golay(y, 7, 2)
    np.testing.assert_allclose(out[3:-3], y[3:-3], atol=1e-8)


def make_sequence(n_frames=12, n_joints=3):
    frames = []
    for f in range(n_frames):
        frames.append(tuple(
            Landmark(0.1 * f + j, 0.2 * j, -0.05 * f, visibility=0.9) for j in range(n_joints)))
    return tuple(frames)


def test_absent_joint_stays_absent():
    seq = list(make_sequence())
    frame5 = list(seq[5])
    frame5[1] = None
    seq[5] = tuple(frame5)
    seq = tuple(seq)

    smoothed = smooth_landmark_sequence(seq, SmoothingConfig(7, 2))
    assert len(smoothed) == len(seq)
    assert smoothed[5][1] is None
    assert smoothed[5][0] is not None and smoothed[5][2] is not None
    assert smoothed[4][1] is not None
    assert smoothed[5][0].visibility == 0.9


def test_sequence_channels_match_1d_filter():
    seq = make_sequence(n_frames=15)
    cfg = SmoothingConfig(5, 2)
    smoothed = smooth_landmark_sequence(seq, cfg)
    xs = [f[2].x for f in seq]
    zs = [f[2].z for f in seq]
    np.testing.assert_allclose([f[2].x for f in smoothed], savitzky_golay(xs, 5, 2), atol=1e-12)
    np.testing.assert_allclose([f[2].z for f in smoothed], savitzky_golay(zs, 5, 2), atol=1e-12)


def test_absent_joint_counts_as_zero_for_neighbours():
    seq = [tuple([Landmark(1.0, 1.0, 1.0)]) for _ in range(9)]
    seq[4] = (None,)
    smoothed = smooth_landmark_sequence(tuple(seq), SmoothingConfig(7, 2))
    xs = [1.0] * 9
    xs[4] = 0.0
    expected = savitzky_golay(xs, 7, 2)
    assert abs(smoothed[3][0].x - expected[3]) < 1e-12
    assert smoothed[4][0] is None


def test_disabled_and_short_sequences_pass_through():
    seq = make_sequence()
    assert smooth_landmark_sequence(seq, SmoothingConfig(7, 2, enabled=False)) is seq
    short = make_sequence(n_frames=5)
    assert smooth_landmark_sequence(short, SmoothingConfig(7, 2)) is short
    assert smooth_landmark_sequence((), SmoothingConfig(7, 2)) == ()


def test_input_is_not_modified():
    seq = make_sequence()
    before = [tuple(f) for f in seq]
    smooth_landmark_sequence(seq, SmoothingConfig(5, 1))
    assert [tuple(f) for f in seq] == before


def test_hip_trajectory_keeps_gaps():
    traj = tuple(None if f in (0, 6) else HipPoint(0.5 + 0.01 * f, 0.4) for f in range(10))
    smoothed = smooth_hip_trajectory(traj, SmoothingConfig(5, 2))
    assert len(smoothed) == 10
    assert smoothed[0] is None and smoothed[6] is None
    assert all(p is not None for i, p in enumerate(smoothed) if i not in (0, 6))

    ys = [0.0 if p is None else p.y for p in traj]
    np.testing.assert_allclose(
        [p.y for p in smoothed if p is not None],
        [v for i, v in enumerate(savitzky_golay(ys, 5, 2)) if i not in (0, 6)],
        atol=1e-12)


def test_integral_float_settings_are_accepted():
    seq = make_sequence()
    config = SmoothingConfig(7.0, 2.0)
    as_ints = smooth_landmark_sequence(seq, SmoothingConfig(7, 2))
    as_floats = smooth_landmark_sequence(seq, config)
    assert as_floats == as_ints
    traj = tuple(HipPoint(0.5 + 0.01 * f, 0.4) for f in range(10))
    assert smooth_hip_trajectory(traj, config) == smooth_hip_trajectory(traj, SmoothingConfig(7, 2))


def test_landmark_smoother_series():
    smoother = LandmarkSmoother(SmoothingConfig(5, 2, enabled=False))
    y = [1.0, 5.0, 2.0, 8.0, 3.0, 9.0]
    np.testing.assert_array_equal(smoother.smooth_series(y), y)
    smoother = LandmarkSmoother()
    assert smoother.config == SmoothingConfig(7, 2, True)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
