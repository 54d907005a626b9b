import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

# MediaPipe BlazePose landmark indices (33-point body topology)
NUM_JOINTS = 33

NOSE = 0
LEFT_EYE_INNER = 1
LEFT_EYE = 2
LEFT_EYE_OUTER = 3
RIGHT_EYE_INNER = 4
RIGHT_EYE = 5
RIGHT_EYE_OUTER = 6
LEFT_EAR = 7
RIGHT_EAR = 8
MOUTH_LEFT = 9
MOUTH_RIGHT = 10
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
RIGHT_ELBOW = 14
LEFT_WRIST = 15
RIGHT_WRIST = 16
LEFT_PINKY = 17
RIGHT_PINKY = 18
LEFT_INDEX = 19
RIGHT_INDEX = 20
LEFT_THUMB = 21
RIGHT_THUMB = 22
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26
LEFT_ANKLE = 27
RIGHT_ANKLE = 28
LEFT_HEEL = 29
RIGHT_HEEL = 30
LEFT_FOOT_INDEX = 31
RIGHT_FOOT_INDEX = 32

# Joint pairs drawn as bones. Read-only, shared with renderers.
POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    (0, 1), (1, 2), (2, 3), (3, 7),
    (0, 4), (4, 5), (5, 6), (6, 8),
    (9, 10),
    (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24), (23, 25), (24, 26), (25, 27),
    (27, 29), (29, 31), (26, 28), (28, 30), (30, 32), (27, 31), (28, 32),
)


@dataclass(frozen=True)
class Landmark:
    """A single detected joint. 3D world coordinates, or normalized image
    coordinates with z relative to the hips for 2D observations."""
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @classmethod
    def from_any(cls, lm: Any) -> "Landmark":
        """Accepts anything with .x/.y (MediaPipe landmarks, mocks) or an
        [x, y, z, visibility] sequence."""
        if isinstance(lm, Landmark):
            return lm
        if isinstance(lm, (list, tuple)):
            x, y = lm[0], lm[1]
            z = lm[2] if len(lm) > 2 else 0.0
            vis = lm[3] if len(lm) > 3 else None
        else:
            x, y = lm.x, lm.y
            z = getattr(lm, 'z', 0.0)
            vis = getattr(lm, 'visibility', None)
        return cls(float(x), float(y), float(z or 0.0), None if vis is None else float(vis))

    def as_list(self) -> List[Optional[float]]:
        return [self.x, self.y, self.z, self.visibility]


# The 2D observation has the same shape; only x/y are meaningful.
Landmark2D = Landmark

# One frame: joint-indexed, None where the joint was not detected.
JointArray = Tuple[Optional[Landmark], ...]
LandmarkSequence = Tuple[JointArray, ...]


@dataclass(frozen=True)
class HipPoint:
    x: float
    y: float


HipTrajectory = Tuple[Optional[HipPoint], ...]


def joint_array(landmarks: Optional[Iterable[Any]], visibility_threshold: Optional[float] = None) -> JointArray:
    """Normalizes one frame of landmarks into a JointArray.

    None entries stay None. With a visibility threshold, joints whose
    visibility is known and below it are recorded as absent.
    """
    if landmarks is None:
        return ()
    if hasattr(landmarks, 'landmark'):
        landmarks = landmarks.landmark

    out = []
    for lm in landmarks:
        if lm is None:
            out.append(None)
            continue
        point = Landmark.from_any(lm)
        if (visibility_threshold is not None and point.visibility is not None
                and point.visibility < visibility_threshold):
            out.append(None)
        else:
            out.append(point)
    return tuple(out)


def get_joint(frame: Sequence[Optional[Landmark]], idx: int) -> Optional[Landmark]:
    if frame is None or idx >= len(frame):
        return None
    return frame[idx]


def hip_center(frame: Sequence[Optional[Landmark]]) -> Optional[HipPoint]:
    """Midpoint of the left and right hip in image coordinates, or None."""
    lhip = get_joint(frame, LEFT_HIP)
    rhip = get_joint(frame, RIGHT_HIP)
    if lhip is None or rhip is None:
        return None
    return HipPoint((lhip.x + rhip.x) / 2, (lhip.y + rhip.y) / 2)


def first_hip_center(trajectory: Iterable[Optional[HipPoint]]) -> Optional[HipPoint]:
    for point in trajectory:
        if point is not None:
            return point
    return None


def distance(a: Landmark, b: Landmark, use_z: bool = True) -> float:
    if use_z:
        return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2)
    return math.hypot(a.x - b.x, a.y - b.y)


@dataclass(frozen=True)
class PoseCapture:
    """A complete, already-captured sequence handed to the post-processing core.

    landmarks: 3D world landmarks per frame.
    landmarks_2d: normalized image landmarks per frame (same frame indexing).
    hip_trajectory: 2D hip center per frame, None where a hip was missing.
    hip_start: first detected hip center; the re-centering reference.
    """
    landmarks: LandmarkSequence
    landmarks_2d: LandmarkSequence
    hip_trajectory: HipTrajectory
    hip_start: Optional[HipPoint]

    @classmethod
    def from_sequences(cls, landmarks: Iterable[Any], landmarks_2d: Iterable[Any]) -> "PoseCapture":
        frames_3d = tuple(joint_array(f) for f in landmarks)
        frames_2d = tuple(joint_array(f) for f in landmarks_2d)
        if len(frames_3d) != len(frames_2d):
            raise ValueError(
                f"3D and 2D sequences differ in length ({len(frames_3d)} != {len(frames_2d)})")
        trajectory = tuple(hip_center(f) for f in frames_2d)
        return cls(frames_3d, frames_2d, trajectory, first_hip_center(trajectory))

    @classmethod
    def empty(cls) -> "PoseCapture":
        return cls((), (), (), None)

    def __len__(self) -> int:
        return len(self.landmarks)
