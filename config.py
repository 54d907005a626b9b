import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from smoother import SmoothingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmoothingSettings:
    window_length: int = 7
    polynomial_order: int = 2
    enabled: bool = True


@dataclass(frozen=True)
class ScaleSettings:
    # Used when no override is given and the hips were never co-detected.
    default_scale: float = 6.0
    override: Optional[float] = None
    min_hip_distance_2d: float = 1e-4


@dataclass(frozen=True)
class ExtractionSettings:
    sample_fps: float = 10.0
    # 0 = lite, 1 = full, 2 = heavy pose landmarker model
    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    # Joints reported below this visibility are recorded as absent.
    visibility_threshold: float = 0.0
    model_dir: str = "."


@dataclass(frozen=True)
class PlaybackSettings:
    # Frames advanced per 1/60 s tick.
    speed: float = 0.2


@dataclass(frozen=True)
class AppConfig:
    smoothing: SmoothingSettings = field(default_factory=SmoothingSettings)
    scale: ScaleSettings = field(default_factory=ScaleSettings)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    playback: PlaybackSettings = field(default_factory=PlaybackSettings)

    def smoothing_config(self) -> SmoothingConfig:
        return SmoothingConfig(
            window_length=self.smoothing.window_length,
            polynomial_order=self.smoothing.polynomial_order,
            enabled=self.smoothing.enabled,
        )


def _deep_get(d: Dict[str, Any], keys: list, default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
    return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return float(default)


def _as_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(default)


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Reads settings from a JSON file with the same nesting as AppConfig.

    A missing or malformed file gives the defaults; unparseable fields fall
    back to their default individually. Smoothing values are not validated
    here; SmoothingConfig.validate() rejects bad combinations when used.
    """
    if path is None:
        return AppConfig()
    p = Path(path).expanduser()
    if not p.exists():
        logger.info("Config %s not found, using defaults", p)
        return AppConfig()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read config %s (%s), using defaults", p, e)
        return AppConfig()
    if not isinstance(raw, dict):
        logger.warning("Config %s is not a JSON object, using defaults", p)
        return AppConfig()

    d_smooth = SmoothingSettings()
    d_scale = ScaleSettings()
    d_extract = ExtractionSettings()
    d_play = PlaybackSettings()

    override = _deep_get(raw, ["scale", "override"], None)
    override = _as_float(override, 0.0) if override is not None else None
    if override is not None and override <= 0:
        logger.warning("Ignoring non-positive scale override %s", override)
        override = None

    default_scale = _as_float(_deep_get(raw, ["scale", "default_scale"], d_scale.default_scale), d_scale.default_scale)
    sample_fps = _as_float(_deep_get(raw, ["extraction", "sample_fps"], d_extract.sample_fps), d_extract.sample_fps)

    return AppConfig(
        smoothing=SmoothingSettings(
            window_length=_as_int(_deep_get(raw, ["smoothing", "window_length"], d_smooth.window_length), d_smooth.window_length),
            polynomial_order=_as_int(_deep_get(raw, ["smoothing", "polynomial_order"], d_smooth.polynomial_order), d_smooth.polynomial_order),
            enabled=_as_bool(_deep_get(raw, ["smoothing", "enabled"], d_smooth.enabled), d_smooth.enabled),
        ),
        scale=ScaleSettings(
            default_scale=default_scale if default_scale > 0 else d_scale.default_scale,
            override=override,
            min_hip_distance_2d=_as_float(_deep_get(raw, ["scale", "min_hip_distance_2d"], d_scale.min_hip_distance_2d), d_scale.min_hip_distance_2d),
        ),
        extraction=ExtractionSettings(
            sample_fps=sample_fps if sample_fps > 0 else d_extract.sample_fps,
            model_complexity=min(2, max(0, _as_int(_deep_get(raw, ["extraction", "model_complexity"], d_extract.model_complexity), d_extract.model_complexity))),
            min_detection_confidence=_as_float(_deep_get(raw, ["extraction", "min_detection_confidence"], d_extract.min_detection_confidence), d_extract.min_detection_confidence),
            min_tracking_confidence=_as_float(_deep_get(raw, ["extraction", "min_tracking_confidence"], d_extract.min_tracking_confidence), d_extract.min_tracking_confidence),
            visibility_threshold=_as_float(_deep_get(raw, ["extraction", "visibility_threshold"], d_extract.visibility_threshold), d_extract.visibility_threshold),
            model_dir=str(_deep_get(raw, ["extraction", "model_dir"], d_extract.model_dir)),
        ),
        playback=PlaybackSettings(
            speed=_as_float(_deep_get(raw, ["playback", "speed"], d_play.speed), d_play.speed),
        ),
    )
