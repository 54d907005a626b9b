import logging
from typing import Any, Iterable, List, Optional

from landmarks import JointArray, PoseCapture, joint_array

logger = logging.getLogger(__name__)


class CaptureBuilder:
    """
    Collects per-frame pose observations in order and produces an immutable
    PoseCapture once the whole video has been processed.

    A frame is kept only when the pose model returned both world (3D) and
    image (2D) landmarks for it.
    """
    def __init__(self, visibility_threshold: Optional[float] = None):
        self.visibility_threshold = visibility_threshold
        self._landmarks: List[JointArray] = []
        self._landmarks_2d: List[JointArray] = []
        self.skipped = 0

    def __len__(self) -> int:
        return len(self._landmarks)

    def add(self, world_landmarks: Optional[Iterable[Any]], image_landmarks: Optional[Iterable[Any]]) -> bool:
        """Returns True if the frame was recorded."""
        frame_3d = joint_array(world_landmarks, self.visibility_threshold)
        frame_2d = joint_array(image_landmarks, self.visibility_threshold)
        if not frame_3d or not frame_2d:
            self.skipped += 1
            logger.debug("No pose detected in frame %d", len(self._landmarks) + self.skipped - 1)
            return False

        self._landmarks.append(frame_3d)
        self._landmarks_2d.append(frame_2d)
        return True

    def build(self) -> PoseCapture:
        capture = PoseCapture.from_sequences(self._landmarks, self._landmarks_2d)
        logger.info("Captured %d frames (%d without detection)", len(capture), self.skipped)
        return capture
