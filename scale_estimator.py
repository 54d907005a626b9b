import enum
import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from landmarks import LEFT_HIP, RIGHT_HIP, Landmark, distance, get_joint

logger = logging.getLogger(__name__)

# Hip width in normalized image units below which a frame is ignored.
MIN_HIP_DISTANCE_2D = 1e-4
DEFAULT_SCALE = 6.0


class ScaleSource(str, enum.Enum):
    OVERRIDE = "override"
    AUTO = "auto"
    DEFAULT = "default"


def hip_width_ratios(
    raw_3d: Sequence[Sequence[Optional[Landmark]]],
    raw_2d: Sequence[Sequence[Optional[Landmark]]],
    min_distance_2d: float = MIN_HIP_DISTANCE_2D,
) -> List[float]:
    """Per-frame ratio of 3D hip width to 2D hip width, for frames where both
    hips are present in both arrays."""
    ratios = []
    for frame_3d, frame_2d in zip(raw_3d, raw_2d):
        lhip3d = get_joint(frame_3d, LEFT_HIP)
        rhip3d = get_joint(frame_3d, RIGHT_HIP)
        lhip2d = get_joint(frame_2d, LEFT_HIP)
        rhip2d = get_joint(frame_2d, RIGHT_HIP)
        if lhip3d is None or rhip3d is None or lhip2d is None or rhip2d is None:
            continue

        dist3d = distance(lhip3d, rhip3d)
        dist2d = distance(lhip2d, rhip2d, use_z=False)
        if dist2d > min_distance_2d:
            ratios.append(dist3d / dist2d)
    return ratios


def estimate_scale(
    raw_3d: Sequence[Sequence[Optional[Landmark]]],
    raw_2d: Sequence[Sequence[Optional[Landmark]]],
    min_distance_2d: float = MIN_HIP_DISTANCE_2D,
) -> Optional[float]:
    """
    Factor converting normalized-image hip displacement into world units.

    Median over frames of (3D hip width / 2D hip width), so occasional bad
    detections do not drag the estimate. None when no frame has both hips in
    both the 3D and 2D landmarks.
    """
    ratios = hip_width_ratios(raw_3d, raw_2d, min_distance_2d)
    if not ratios:
        return None
    # Upper-middle element for an even count, so the result is always an observed ratio.
    return float(np.sort(ratios)[len(ratios) // 2])


def validate_scale(value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"Scale must be a positive finite number, got {value}")
    return value


def resolve_scale(
    auto_scale: Optional[float],
    override: Optional[float] = None,
    default: float = DEFAULT_SCALE,
) -> Tuple[float, ScaleSource]:
    """An explicit override always wins, then the estimate, then the default."""
    if override is not None:
        return validate_scale(override), ScaleSource.OVERRIDE
    if auto_scale is not None:
        return float(auto_scale), ScaleSource.AUTO
    return validate_scale(default), ScaleSource.DEFAULT
