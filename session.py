import logging
from typing import Optional

from landmarks import PoseCapture
from scale_estimator import DEFAULT_SCALE, MIN_HIP_DISTANCE_2D, ScaleSource, estimate_scale, resolve_scale
from smoother import LandmarkSmoother, SmoothingConfig
from trajectory import RenderFrame, TrajectoryReconstructor

logger = logging.getLogger(__name__)


class PoseSession:
    """
    One captured sequence plus everything derived from it.

    Smoothed sequences are rebuilt whenever the smoothing config or the raw
    capture changes and published by swapping a single reconstructor
    reference, so readers never see a half-updated state. The auto scale is
    estimated once per capture; a user override can be set or cleared at any
    time without touching the smoothed data.
    """
    def __init__(
        self,
        capture: Optional[PoseCapture] = None,
        smoothing: Optional[SmoothingConfig] = None,
        scale_override: Optional[float] = None,
        default_scale: float = DEFAULT_SCALE,
        min_hip_distance_2d: float = MIN_HIP_DISTANCE_2D,
        playback_speed: float = 0.2,
    ):
        self._smoother = LandmarkSmoother(smoothing)
        self.default_scale = default_scale
        self.min_hip_distance_2d = min_hip_distance_2d
        self.playback_speed = playback_speed
        self._scale_override = None
        self._cursor = 0.0

        self._capture = PoseCapture.empty()
        self._auto_scale: Optional[float] = None
        self._reconstructor = TrajectoryReconstructor(self._capture)
        if scale_override is not None:
            self.set_scale_override(scale_override)
        if capture is not None:
            self.load(capture)

    @classmethod
    def from_config(cls, config, capture: Optional[PoseCapture] = None) -> "PoseSession":
        return cls(
            capture,
            smoothing=config.smoothing_config(),
            scale_override=config.scale.override,
            default_scale=config.scale.default_scale,
            min_hip_distance_2d=config.scale.min_hip_distance_2d,
            playback_speed=config.playback.speed,
        )

    @property
    def capture(self) -> PoseCapture:
        return self._capture

    @property
    def smoothing(self) -> SmoothingConfig:
        return self._smoother.config

    @property
    def auto_scale(self) -> Optional[float]:
        return self._auto_scale

    @property
    def scale_override(self) -> Optional[float]:
        return self._scale_override

    @property
    def scale(self) -> float:
        return self._reconstructor.scale

    @property
    def scale_source(self) -> ScaleSource:
        return resolve_scale(self._auto_scale, self._scale_override, self.default_scale)[1]

    @property
    def reconstructor(self) -> TrajectoryReconstructor:
        return self._reconstructor

    @property
    def frame_count(self) -> int:
        return len(self._capture)

    def load(self, capture: PoseCapture) -> None:
        """Replaces the raw capture and recomputes all derived data."""
        auto_scale = estimate_scale(capture.landmarks, capture.landmarks_2d, self.min_hip_distance_2d)
        if auto_scale is None:
            logger.warning("No frame with both hips detected in 3D and 2D; no auto scale")
        else:
            logger.info("[Auto] Movement scale %.2f (based on hip width)", auto_scale)

        self._capture = capture
        self._auto_scale = auto_scale
        self._cursor = 0.0
        self._rebuild(self._smoother)

    def set_smoothing(self, config: SmoothingConfig) -> None:
        """Validates first; an invalid config leaves the current state intact."""
        smoother = LandmarkSmoother(config)
        self._rebuild(smoother)
        self._smoother = smoother

    def set_scale_override(self, value: Optional[float]) -> None:
        scale, source = resolve_scale(self._auto_scale, value, self.default_scale)
        self._scale_override = None if value is None else scale
        self._reconstructor = self._reconstructor.with_scale(scale)
        logger.info("Movement scale %.2f (%s)", scale, source.value)

    def _rebuild(self, smoother: LandmarkSmoother) -> None:
        capture = self._capture
        scale, _ = resolve_scale(self._auto_scale, self._scale_override, self.default_scale)
        if smoother.config.enabled:
            logger.info(
                "Smoothing %d frames (window=%d, order=%d)",
                len(capture), smoother.config.window_length, smoother.config.polynomial_order)
            reconstructor = TrajectoryReconstructor(
                capture,
                smoother.smooth_landmarks(capture.landmarks),
                smoother.smooth_hips(capture.hip_trajectory),
                scale,
            )
        else:
            reconstructor = TrajectoryReconstructor(capture, scale=scale)
        self._reconstructor = reconstructor

    def frame(self, frame_idx: int) -> RenderFrame:
        return self._reconstructor.frame(frame_idx)

    def seek(self, frame_idx: int) -> int:
        n = self.frame_count
        self._cursor = float(min(max(frame_idx, 0), max(n - 1, 0)))
        return int(self._cursor)

    def advance(self, dt_seconds: float) -> int:
        """Moves the looping playback cursor; returns the frame to display."""
        n = self.frame_count
        if n == 0:
            return 0
        self._cursor += self.playback_speed * dt_seconds * 60
        if self._cursor >= n:
            self._cursor = 0.0
        return int(self._cursor)
