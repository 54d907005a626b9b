import logging
import os
import urllib.request
from pathlib import Path
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np

from capture import CaptureBuilder
from config import ExtractionSettings
from landmarks import PoseCapture

logger = logging.getLogger(__name__)

MODEL_VARIANTS = {0: "lite", 1: "full", 2: "heavy"}
MODEL_URL = ("https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
             "pose_landmarker_{variant}/float16/1/pose_landmarker_{variant}.task")


def landmarks_from_result(result: Any) -> Tuple[Optional[List[Any]], Optional[List[Any]]]:
    """
    First detected pose of a PoseLandmarker result as (world, image)
    landmark lists; (None, None) when nothing was detected.
    """
    world = getattr(result, 'pose_world_landmarks', None)
    image = getattr(result, 'pose_landmarks', None)
    if not world or not image:
        return None, None
    return list(world[0]), list(image[0])


def sample_frame_indices(source_fps: float, frame_count: int, sample_fps: float) -> List[int]:
    """Source frame indices picked when stepping through the video at sample_fps."""
    if source_fps <= 0 or sample_fps <= 0 or sample_fps >= source_fps:
        return list(range(frame_count))
    picked = []
    next_t = 0.0
    step = 1.0 / sample_fps
    for idx in range(frame_count):
        t = idx / source_fps
        if t + 1e-9 >= next_t:
            picked.append(idx)
            next_t += step
    return picked


class MediaPipePoseExtractor:
    """
    Runs MediaPipe Pose Landmarker over a video and collects a PoseCapture.

    The pose model is a black box here: it yields world and image landmarks
    for each sampled frame, which go straight into a CaptureBuilder.
    """
    def __init__(self, settings: Optional[ExtractionSettings] = None):
        self.settings = settings or ExtractionSettings()
        variant = MODEL_VARIANTS.get(self.settings.model_complexity, "full")
        self.model_url = MODEL_URL.format(variant=variant)
        self.model_path = str(Path(self.settings.model_dir) / f"pose_landmarker_{variant}.task")
        self.pose_landmarker = None

    def _ensure_model(self, path, url):
        if os.path.exists(path):
            return
        logger.info("Model %s not found. Downloading...", path)
        try:
            urllib.request.urlretrieve(url, path)
        except OSError:
            logger.error("Failed to download %s", url)
            raise
        logger.info("Downloaded %s", path)

    def _init_model(self):
        if self.pose_landmarker:
            return
        import mediapipe as mp
        self.mp = mp
        self._ensure_model(self.model_path, self.model_url)

        options = mp.tasks.vision.PoseLandmarkerOptions(
            base_options=mp.tasks.BaseOptions(model_asset_path=self.model_path),
            running_mode=mp.tasks.vision.RunningMode.VIDEO,
            num_poses=1,
            min_pose_detection_confidence=self.settings.min_detection_confidence,
            min_pose_presence_confidence=self.settings.min_detection_confidence,
            min_tracking_confidence=self.settings.min_tracking_confidence,
            output_segmentation_masks=False,
        )
        self.pose_landmarker = mp.tasks.vision.PoseLandmarker.create_from_options(options)

    def process_frame(self, frame: np.ndarray, timestamp_ms: int):
        """Pose for one BGR frame; timestamps must increase between calls."""
        self._init_model()
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB) if frame.shape[2] == 3 else frame
        mp_image = self.mp.Image(image_format=self.mp.ImageFormat.SRGB, data=frame_rgb)
        result = self.pose_landmarker.detect_for_video(mp_image, timestamp_ms)
        return landmarks_from_result(result)

    def extract(self, video_path) -> PoseCapture:
        video_path = str(video_path)
        if not Path(video_path).exists():
            raise FileNotFoundError(f"Video not found: {video_path}")

        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            raise ValueError(f"Cannot open video: {video_path}")

        source_fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        wanted = set(sample_frame_indices(source_fps, frame_count, self.settings.sample_fps))
        total = len(wanted) if frame_count > 0 else 0
        logger.info("Extracting ~%d frames from %s (%.1f fps source, sampling at %.1f fps)",
                    total, video_path, source_fps, self.settings.sample_fps)

        builder = CaptureBuilder(visibility_threshold=self.settings.visibility_threshold)
        log_interval = max(1, total // 10)
        processed = 0
        source_idx = 0
        try:
            while True:
                ret, frame = cap.read()
                if not ret:
                    break
                # Unknown frame count: fall back to processing every frame.
                if frame_count > 0 and source_idx not in wanted:
                    source_idx += 1
                    continue

                t_ms = int(source_idx * 1000 / source_fps) if source_fps > 0 else source_idx
                world, image = self.process_frame(frame, t_ms)
                builder.add(world, image)
                processed += 1
                source_idx += 1

                if processed % log_interval == 0:
                    logger.info("  %d/%d frames, %d with pose", processed, total, len(builder))
        finally:
            cap.release()

        det_pct = 100 * len(builder) / processed if processed else 0
        logger.info("Extraction done: %d/%d frames detected (%.0f%%)", len(builder), processed, det_pct)
        return builder.build()

    def close(self):
        if self.pose_landmarker:
            self.pose_landmarker.close()
            self.pose_landmarker = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
