#!/usr/bin/env python3
"""
settings.py — PathCam configuration.

Defaults live in _DEFAULTS. A JSON file (PATHCAM_SETTINGS, default
~/.pathcam_settings.json) is merged over them on load; unknown keys are
dropped, entries of the wrong type or out of range keep their default and a
broken file falls back to the defaults.
"""

import json
import logging
import math
import numbers
import os
from pathlib import Path
from typing import Any, Callable, Dict

logger = logging.getLogger("PathCam.Settings")

SETTINGS_FILE = Path(os.environ.get("PATHCAM_SETTINGS", "~/.pathcam_settings.json")).expanduser()

_DEFAULTS: Dict[str, Any] = {
    "fps":                  30,      # samples per second of playback
    "speed":                1.0,     # playback speed multiplier
    "smoothing_iterations": 1,       # relaxation passes after each rebuild
    "timer_compensation":   0.9,     # fraction of a frame the player sleeps
    "keyframe_file":        "",      # loaded on service startup when set
    "keyframe_dir":         "~/pathcam_keyframes",   # root for API load/save paths
    "log_level":            "INFO",
    "host":                 "0.0.0.0",
    "port":                 8000,
}


def _number(v) -> bool:
    return isinstance(v, numbers.Real) and not isinstance(v, bool) and math.isfinite(v)


def _positive(v) -> bool:
    return _number(v) and v > 0


def _count(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def _text(v) -> bool:
    return isinstance(v, str)


_VALID: Dict[str, Callable[[Any], bool]] = {
    "fps":                  _positive,
    "speed":                _positive,
    "smoothing_iterations": _count,
    "timer_compensation":   _positive,
    "keyframe_file":        _text,
    "keyframe_dir":         lambda v: _text(v) and bool(v),
    "log_level":            _text,
    "host":                 _text,
    "port":                 lambda v: _count(v) and 0 < v < 65536,
}


def defaults() -> Dict[str, Any]:
    return dict(_DEFAULTS)


def load_settings(path: Path = SETTINGS_FILE) -> Dict[str, Any]:
    s = defaults()
    path = Path(path)
    if path.exists():
        try:
            saved = json.loads(path.read_text())
            if not isinstance(saved, dict):
                raise ValueError("top level is not an object")
            for k in _DEFAULTS:
                if k not in saved:
                    continue
                if _VALID[k](saved[k]):
                    s[k] = saved[k]
                else:
                    logger.warning(f"Settings: invalid {k}={saved[k]!r}, keeping {_DEFAULTS[k]!r}")
            logger.info(f"Settings loaded from {path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Settings load failed ({path}): {e}")
    return s


def save_settings(settings: Dict[str, Any], path: Path = SETTINGS_FILE) -> bool:
    saveable = {k: settings[k] for k in _DEFAULTS if k in settings}
    try:
        Path(path).write_text(json.dumps(saveable, indent=2))
    except OSError as e:
        logger.error(f"save_settings: {e}")
        return False
    return True


def apply_settings(interpolator, settings: Dict[str, Any]):
    """Push frame rate, speed, smoothing and timer settings into an interpolator."""
    interpolator.set_frame_rate(settings["fps"])
    interpolator.set_interpolation_speed(settings["speed"])
    interpolator.set_smoothing_iterations(settings["smoothing_iterations"])
    interpolator.player.timer_compensation = float(settings["timer_compensation"])


def resolve_keyframe_path(settings: Dict[str, Any], name: str) -> Path:
    """
    `name` resolved inside settings["keyframe_dir"]. Raises ValueError if the
    result lies outside that directory.
    """
    root = Path(settings["keyframe_dir"]).expanduser().resolve()
    target = (root / name).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"{name!r} is outside the keyframe directory")
    return target
