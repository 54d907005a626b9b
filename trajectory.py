from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from landmarks import POSE_CONNECTIONS, HipPoint, HipTrajectory, JointArray, LandmarkSequence, PoseCapture


class HipOffset(NamedTuple):
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class RenderFrame:
    index: int
    landmarks: Optional[JointArray]
    hip_offset: HipOffset


class TrajectoryReconstructor:
    """
    Turns a captured sequence into per-frame render data.

    Keeps the subject at the origin of a fixed 3D view: each frame's hip
    displacement from the first detected hip center is scaled into world
    units and negated, and renderers add it to every joint.
    """
    def __init__(
        self,
        capture: PoseCapture,
        smoothed_landmarks: Optional[LandmarkSequence] = None,
        smoothed_hip_trajectory: Optional[HipTrajectory] = None,
        scale: float = 1.0,
    ):
        self.capture = capture
        self.smoothed_landmarks = smoothed_landmarks
        self.smoothed_hip_trajectory = smoothed_hip_trajectory
        self.scale = float(scale)

        # Smoothed data is only trusted while it lines up with the raw capture.
        if smoothed_landmarks is not None and len(smoothed_landmarks) == len(capture.landmarks):
            self._landmarks = smoothed_landmarks
        else:
            self._landmarks = capture.landmarks
        if smoothed_hip_trajectory is not None and len(smoothed_hip_trajectory) == len(capture.hip_trajectory):
            self._hips = smoothed_hip_trajectory
        else:
            self._hips = capture.hip_trajectory

    def __len__(self) -> int:
        return len(self.capture.landmarks)

    @property
    def hip_start(self) -> Optional[HipPoint]:
        return self.capture.hip_start

    @property
    def uses_smoothed_landmarks(self) -> bool:
        return self._landmarks is not self.capture.landmarks

    def with_scale(self, scale: float) -> "TrajectoryReconstructor":
        return TrajectoryReconstructor(
            self.capture, self.smoothed_landmarks, self.smoothed_hip_trajectory, scale)

    def render_landmarks(self, frame_idx: int) -> Optional[JointArray]:
        if not 0 <= frame_idx < len(self._landmarks):
            return None
        return self._landmarks[frame_idx]

    def hip_offset(self, frame_idx: int) -> HipOffset:
        start = self.capture.hip_start
        if start is None or not 0 <= frame_idx < len(self._hips):
            return HipOffset(0.0, 0.0)
        hip = self._hips[frame_idx]
        if hip is None:
            return HipOffset(0.0, 0.0)
        return HipOffset(
            -(hip.x - start.x) * self.scale,
            -(hip.y - start.y) * self.scale,
        )

    def frame(self, frame_idx: int) -> RenderFrame:
        return RenderFrame(frame_idx, self.render_landmarks(frame_idx), self.hip_offset(frame_idx))

    def render_points(self, frame_idx: int) -> List[Optional[np.ndarray]]:
        """
        World-space position per joint, ready for a renderer.

        X is flipped to undo the horizontal mirroring of the source image and
        Y is flipped so up is positive, then the hip offset is applied.
        """
        landmarks = self.render_landmarks(frame_idx)
        if not landmarks:
            return []
        offset = self.hip_offset(frame_idx)
        points = []
        for lm in landmarks:
            if lm is None:
                points.append(None)
            else:
                points.append(np.array([-lm.x + offset.x, -lm.y + offset.y, lm.z]))
        return points

    def skeleton_segments(self, frame_idx: int) -> List[Tuple[Tuple[int, int], np.ndarray, np.ndarray]]:
        """Bones whose two joints are both present, as (edge, start, end)."""
        points = self.render_points(frame_idx)
        segments = []
        for i, j in POSE_CONNECTIONS:
            if i < len(points) and j < len(points) and points[i] is not None and points[j] is not None:
                segments.append(((i, j), points[i], points[j]))
        return segments
