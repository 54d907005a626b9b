import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from landmarks import JointArray, PoseCapture
from session import PoseSession

FORMAT_VERSION = 1


def _encode_frame(frame: Optional[JointArray]) -> Optional[List[Optional[List[Optional[float]]]]]:
    if frame is None:
        return None
    return [None if lm is None else lm.as_list() for lm in frame]


def capture_to_dict(capture: PoseCapture, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "meta": dict(meta or {}),
        "frames": [
            {"landmarks": _encode_frame(f3), "landmarks_2d": _encode_frame(f2)}
            for f3, f2 in zip(capture.landmarks, capture.landmarks_2d)
        ],
    }


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _check_joints(i: int, key: str, joints: List[Any]) -> None:
    # Entries are [x, y, z?, visibility?]; z and visibility may be null.
    for j, entry in enumerate(joints):
        if entry is None:
            continue
        valid = (
            isinstance(entry, list)
            and 2 <= len(entry) <= 4
            and all(_is_number(v) for v in entry[:2])
            and all(v is None or _is_number(v) for v in entry[2:])
        )
        if not valid:
            raise ValueError(f"Frame {i} joint {j} in '{key}' must be null or a list of 2 to 4 numbers")


def capture_from_dict(data: Any) -> PoseCapture:
    """Hip trajectory and start point are re-derived from the 2D landmarks."""
    if not isinstance(data, dict) or not isinstance(data.get("frames"), list):
        raise ValueError("Capture JSON must be an object with a 'frames' list")
    landmarks, landmarks_2d = [], []
    for i, frame in enumerate(data["frames"]):
        if not isinstance(frame, dict):
            raise ValueError(f"Frame {i} is not an object")
        f3 = frame.get("landmarks")
        f2 = frame.get("landmarks_2d")
        if not isinstance(f3, list) or not isinstance(f2, list):
            raise ValueError(f"Frame {i} needs 'landmarks' and 'landmarks_2d' lists")
        _check_joints(i, "landmarks", f3)
        _check_joints(i, "landmarks_2d", f2)
        landmarks.append(f3)
        landmarks_2d.append(f2)
    return PoseCapture.from_sequences(landmarks, landmarks_2d)


def save_capture(capture: PoseCapture, path: Union[str, Path], meta: Optional[Dict[str, Any]] = None) -> None:
    Path(path).write_text(json.dumps(capture_to_dict(capture, meta)), encoding="utf-8")


def load_capture(path: Union[str, Path]) -> PoseCapture:
    with open(path, "r", encoding="utf-8") as f:
        return capture_from_dict(json.load(f))


def reconstruction_to_dict(session: PoseSession) -> Dict[str, Any]:
    """Every frame's render landmarks and hip offset, plus how they were made."""
    smoothing = session.smoothing
    reconstructor = session.reconstructor
    start = reconstructor.hip_start
    frames = []
    for idx in range(session.frame_count):
        frame = reconstructor.frame(idx)
        frames.append({
            "index": idx,
            "landmarks": _encode_frame(frame.landmarks),
            "hip_offset": [frame.hip_offset.x, frame.hip_offset.y],
        })
    return {
        "version": FORMAT_VERSION,
        "scale": session.scale,
        "scale_source": session.scale_source.value,
        "auto_scale": session.auto_scale,
        "hip_start": None if start is None else [start.x, start.y],
        "smoothing": {
            "window_length": smoothing.window_length,
            "polynomial_order": smoothing.polynomial_order,
            "enabled": smoothing.enabled,
        },
        "frames": frames,
    }


def save_reconstruction(session: PoseSession, path: Union[str, Path]) -> None:
    Path(path).write_text(json.dumps(reconstruction_to_dict(session), indent=1), encoding="utf-8")
