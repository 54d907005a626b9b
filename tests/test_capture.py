import sys
import os
import json

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from capture import CaptureBuilder
from capture_io import capture_from_dict, load_capture, reconstruction_to_dict, save_capture, save_reconstruction
from landmarks import LEFT_HIP, NUM_JOINTS, RIGHT_HIP, HipPoint, Landmark
from session import PoseSession
from smoother import SmoothingConfig


# Mock MediaPipe landmark
class MockLandmark:
    def __init__(self, x, y, z=0.0, visibility=1.0):
        self.x = x
        self.y = y
        self.z = z
        self.visibility = visibility


class MockLandmarkList:
    """Legacy solution output wraps the list in .landmark."""
    def __init__(self, lms):
        self.landmark = lms


def pose(hip_x=0.5, hip_y=0.5, drop=(), visibility=1.0):
    lms = [MockLandmark(0.5, 0.2, 0.0, visibility) for _ in range(NUM_JOINTS)]
    lms[LEFT_HIP] = MockLandmark(hip_x + 0.05, hip_y, 0.0, visibility)
    lms[RIGHT_HIP] = MockLandmark(hip_x - 0.05, hip_y, 0.0, visibility)
    for j in drop:
        lms[j] = None
    return lms


def test_builder_skips_frames_without_detection():
    builder = CaptureBuilder()
    assert builder.add(pose(), pose()) is True
    assert builder.add(None, pose()) is False
    assert builder.add(pose(), []) is False
    assert builder.add(MockLandmarkList(pose()), MockLandmarkList(pose(0.6))) is True
    capture = builder.build()
    assert len(capture) == 2
    assert builder.skipped == 2
    assert capture.hip_trajectory[1] == HipPoint(pytest.approx(0.6), pytest.approx(0.5))


def test_builder_start_is_first_detected_hip():
    builder = CaptureBuilder()
    builder.add(pose(), pose(drop=(LEFT_HIP,)))
    builder.add(pose(), pose(0.3, 0.7))
    builder.add(pose(), pose(0.4, 0.7))
    capture = builder.build()
    assert capture.hip_trajectory[0] is None
    assert capture.hip_start == HipPoint(pytest.approx(0.3), pytest.approx(0.7))


def test_builder_visibility_threshold_marks_absent():
    builder = CaptureBuilder(visibility_threshold=0.5)
    builder.add(pose(visibility=0.3), pose(visibility=0.9))
    capture = builder.build()
    assert all(lm is None for lm in capture.landmarks[0])
    assert capture.landmarks_2d[0][0] == Landmark(0.5, 0.2, 0.0, 0.9)


def test_capture_file_roundtrip(tmp_path):
    builder = CaptureBuilder()
    for f in range(8):
        builder.add(pose(drop=(3,) if f == 2 else ()), pose(0.4 + 0.01 * f))
    capture = builder.build()

    path = tmp_path / "capture.json"
    save_capture(capture, path, meta={"sample_fps": 10.0})
    data = json.loads(path.read_text())
    assert data["meta"] == {"sample_fps": 10.0}
    assert data["frames"][2]["landmarks"][3] is None

    loaded = load_capture(path)
    assert loaded == capture


def test_malformed_capture_rejected():
    for bad in ([], {"frames": 3}, {"frames": [1]}, {"frames": [{"landmarks": []}]}):
        with pytest.raises(ValueError):
            capture_from_dict(bad)
    with pytest.raises(ValueError):
        capture_from_dict({"frames": [{"landmarks": [], "landmarks_2d": []}, {"landmarks": [], "landmarks_2d": None}]})
    for entry in ([0.1], "abc", {"x": 1}, [0.1, "y"], [0.1, 0.2, 0.3, 1.0, 5.0], [True, 0.2]):
        with pytest.raises(ValueError, match="Frame 0 joint 1"):
            capture_from_dict({"frames": [{"landmarks": [None, entry], "landmarks_2d": [[0.1, 0.2]]}]})
    capture = capture_from_dict({"frames": [{"landmarks": [[0.1, 0.2, None, None]], "landmarks_2d": [None, [0.1, 0.2]]}]})
    assert capture.landmarks[0][0] == Landmark(0.1, 0.2, 0.0, None)
    assert capture.landmarks_2d[0][0] is None


def test_reconstruction_output(tmp_path):
    builder = CaptureBuilder()
    for f in range(10):
        builder.add(pose(), pose(0.4 + 0.02 * f))
    session = PoseSession(builder.build(), smoothing=SmoothingConfig(5, 2), scale_override=2.0)

    data = reconstruction_to_dict(session)
    assert data["scale"] == 2.0
    assert data["scale_source"] == "override"
    assert data["smoothing"] == {"window_length": 5, "polynomial_order": 2, "enabled": True}
    assert len(data["frames"]) == 10
    assert data["frames"][5]["hip_offset"] == pytest.approx([-0.2, 0.0])
    assert data["hip_start"] == pytest.approx([0.4, 0.5])

    path = tmp_path / "out.json"
    save_reconstruction(session, path)
    assert json.loads(path.read_text())["frames"][0]["index"] == 0


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
