import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from landmarks import HipPoint, HipTrajectory, Landmark, LandmarkSequence

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Invalid (window_length, polynomial_order) combination."""


@dataclass(frozen=True)
class SmoothingConfig:
    window_length: int = 7
    polynomial_order: int = 2
    enabled: bool = True

    def validate(self) -> "SmoothingConfig":
        validate_window(self.window_length, self.polynomial_order)
        return self


def validate_window(window_length: int, polynomial_order: int) -> None:
    if int(window_length) != window_length or int(polynomial_order) != polynomial_order:
        raise ConfigurationError("Window length and polynomial order must be integers")
    if polynomial_order < 0:
        raise ConfigurationError(f"Polynomial order must be >= 0, got {polynomial_order}")
    if window_length % 2 != 1:
        raise ConfigurationError(f"Window length must be odd, got {window_length}")
    if window_length < polynomial_order + 2:
        raise ConfigurationError(
            f"Window too small for polynomial order ({window_length} < {polynomial_order} + 2)")


@lru_cache(maxsize=32)
def _coefficients(window_length: int, polynomial_order: int) -> np.ndarray:
    half = window_length // 2
    t = np.arange(-half, half + 1, dtype=float)
    # Vandermonde design matrix, one column per power of t.
    A = np.vander(t, polynomial_order + 1, increasing=True)
    # Smoothed value at the window center is the fitted constant term:
    # row 0 of (A^T A)^-1 A^T.
    coeffs = np.linalg.solve(A.T @ A, A.T)[0]
    coeffs.setflags(write=False)
    return coeffs


def savgol_coefficients(window_length: int, polynomial_order: int) -> np.ndarray:
    """
    Savitzky-Golay smoothing kernel of length window_length, from a
    least-squares polynomial fit of the given order over the window.

    (7, 2) gives [-2, 3, 6, 7, 6, 3, -2] / 21.
    """
    validate_window(window_length, polynomial_order)
    return _coefficients(int(window_length), int(polynomial_order)).copy()


def _filter_columns(values: np.ndarray, coeffs: np.ndarray) -> np.ndarray:
    # values: (frames, channels). Out-of-range indices clamp to the edge sample.
    half = len(coeffs) // 2
    padded = np.pad(values, ((half, half), (0, 0)), mode='edge')
    windows = sliding_window_view(padded, len(coeffs), axis=0)
    return windows @ coeffs


def savitzky_golay(series: Sequence[float], window_length: int, polynomial_order: int) -> np.ndarray:
    """
    Smooths a 1D series with a centered Savitzky-Golay kernel.

    Returns an array the same length as the input. A series shorter than the
    window is returned unchanged.
    """
    validate_window(window_length, polynomial_order)
    y = np.asarray(series, dtype=float)
    if y.ndim != 1:
        raise ValueError(f"Expected a 1D series, got shape {y.shape}")
    if len(y) < window_length:
        logger.debug("Series of %d samples shorter than window %d, not smoothing", len(y), window_length)
        return y.copy()
    coeffs = _coefficients(int(window_length), int(polynomial_order))
    return _filter_columns(y[:, None], coeffs)[:, 0]


def smooth_landmark_sequence(sequence: LandmarkSequence, config: SmoothingConfig) -> LandmarkSequence:
    """
    Smooths every joint coordinate independently along the frame axis.

    Absent joints count as 0 inside the filter but stay absent in the output.
    Visibility is carried over from the raw landmark unchanged.
    """
    config.validate()
    if not config.enabled or not sequence or len(sequence) < config.window_length:
        return sequence

    n_frames = len(sequence)
    n_joints = max(len(f) for f in sequence)
    values = np.zeros((n_frames, n_joints, 3), dtype=float)
    for f, frame in enumerate(sequence):
        for j, lm in enumerate(frame):
            if lm is not None:
                values[f, j] = (lm.x, lm.y, lm.z)

    coeffs = _coefficients(int(config.window_length), int(config.polynomial_order))
    smoothed = _filter_columns(values.reshape(n_frames, -1), coeffs).reshape(n_frames, n_joints, 3)

    out = []
    for f, frame in enumerate(sequence):
        out.append(tuple(
            None if lm is None else Landmark(
                float(smoothed[f, j, 0]),
                float(smoothed[f, j, 1]),
                float(smoothed[f, j, 2]),
                lm.visibility,
            )
            for j, lm in enumerate(frame)
        ))
    return tuple(out)


def smooth_hip_trajectory(trajectory: HipTrajectory, config: SmoothingConfig) -> HipTrajectory:
    """Smooths x and y of the hip center trajectory; missing frames stay None."""
    config.validate()
    if not config.enabled or not trajectory or len(trajectory) < config.window_length:
        return trajectory

    values = np.array([(p.x, p.y) if p is not None else (0.0, 0.0) for p in trajectory], dtype=float)
    coeffs = _coefficients(int(config.window_length), int(config.polynomial_order))
    smoothed = _filter_columns(values, coeffs)
    return tuple(
        None if p is None else HipPoint(float(smoothed[f, 0]), float(smoothed[f, 1]))
        for f, p in enumerate(trajectory)
    )


class LandmarkSmoother:
    """
    Batch smoother for a captured pose sequence.

    Holds a validated SmoothingConfig and produces new smoothed sequences;
    the inputs are never modified.
    """
    def __init__(self, config: Optional[SmoothingConfig] = None):
        self.config = (config or SmoothingConfig()).validate()

    def smooth_landmarks(self, sequence: LandmarkSequence) -> LandmarkSequence:
        return smooth_landmark_sequence(sequence, self.config)

    def smooth_hips(self, trajectory: HipTrajectory) -> HipTrajectory:
        return smooth_hip_trajectory(trajectory, self.config)

    def smooth_series(self, series: Sequence[float]) -> np.ndarray:
        if not self.config.enabled:
            return np.asarray(series, dtype=float).copy()
        return savitzky_golay(series, self.config.window_length, self.config.polynomial_order)
