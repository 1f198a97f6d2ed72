#!/usr/bin/env python3
"""
interpolator.py — Keyframe camera path interpolator for PathCam.

KeyFrameInterpolator ties the pieces together:
  KeyFrameTrack       — the user's keyframes
  PathCache           — the sampled (and smoothed) path, rebuilt lazily
  PlaybackController  — plays the path into a Frame at fps * speed

Any change to the keyframes or to fps/speed/smoothing invalidates the path,
stops playback and rewinds it to the first sample.
"""

from __future__ import annotations

import logging
import math
import numbers
from typing import List, Optional

import numpy as np

import keyframe_file
from keyframes import KeyFrameTrack
from motion_engine import PathCache, sample_interval
from player import PlaybackController
from pose import Frame, Pose

logger = logging.getLogger("PathCam")

DEFAULT_FPS = 30
DEFAULT_SPEED = 1.0
DEFAULT_SMOOTHING = 1


class KeyFrameInterpolator:

    def __init__(self, frame=None, fps: float = DEFAULT_FPS, speed: float = DEFAULT_SPEED,
                 smoothing_iterations: int = DEFAULT_SMOOTHING):
        _check_positive("fps", fps)
        _check_positive("speed", speed)
        self._fps = fps
        self._speed = speed
        self._smoothing_iterations = max(0, int(smoothing_iterations))

        self.track = KeyFrameTrack()
        self.cache = PathCache()
        self.player = PlaybackController(frame if frame is not None else Frame(),
                                         self.interpolate, self.sample_interval)

        self.frame_interpolated    = self.player.frame_interpolated
        self.interpolation_stopped = self.player.interpolation_stopped

        self.track.changed.connect(self._invalidate)

    def _invalidate(self):
        self.player.reset()
        self.cache.invalidate()

    # ─── KEYFRAMES ────────────────────────────────────────────────────────────

    def add_keyframe(self, pose: Pose, time: Optional[float] = None) -> bool:
        return self.track.add_keyframe(pose, time)

    def delete_last_keyframe(self) -> bool:
        return self.track.remove_last()

    def delete_path(self):
        """Stop playback and drop every keyframe and the sampled path."""
        self.track.clear()
        self.cache.clear()

    def keyframe(self, index: int) -> Pose:
        return self.track.keyframe(index)

    def keyframe_time(self, index: int) -> float:
        return self.track.keyframe_time(index)

    def number_of_keyframes(self) -> int:
        return len(self.track)

    def first_time(self) -> float:
        return self.track.first_time()

    def last_time(self) -> float:
        return self.track.last_time()

    def duration(self) -> float:
        return self.track.duration()

    # ─── CONFIGURATION ────────────────────────────────────────────────────────

    def frame(self):
        return self.player.sink

    def set_frame(self, frame):
        self.player.sink = frame

    def frame_rate(self) -> float:
        return self._fps

    def set_frame_rate(self, fps: float):
        _check_positive("fps", fps)
        self._fps = fps
        self._invalidate()

    def interpolation_speed(self) -> float:
        return self._speed

    def set_interpolation_speed(self, speed: float):
        _check_positive("speed", speed)
        self._speed = speed
        self._invalidate()

    def smoothing_iterations(self) -> int:
        return self._smoothing_iterations

    def set_smoothing_iterations(self, n: int):
        self._smoothing_iterations = max(0, int(n))
        self._invalidate()

    def interpolation_period(self) -> float:
        """Milliseconds between samples at speed 1.0."""
        return 1000.0 / self._fps

    def sample_interval(self) -> float:
        return sample_interval(self._fps, self._speed)

    # ─── PATH ─────────────────────────────────────────────────────────────────

    def interpolate(self) -> List[Pose]:
        """The sampled path, rebuilt and smoothed if stale."""
        if self.cache.valid:
            return self.cache.samples

        n = len(self.track)
        interval = self.sample_interval()
        if n > 2:
            logger.info(f"interpolating {n} keyframes...")
        self.cache.rebuild(self.track, interval)

        for _ in range(self._smoothing_iterations):
            if not self.cache.smooth(self.track.duration(), self.track.first_time(), interval):
                break

        if n > 2:
            logger.info(f"keyframe interpolation done, {len(self.cache)} frames")
        return self.cache.samples

    def path(self) -> List[Pose]:
        if not self.track:
            return []
        return self.interpolate()

    def path_positions(self) -> np.ndarray:
        self.path()
        return self.cache.positions() if self.track else np.zeros((0, 3))

    def keyframe_poses(self) -> List[Pose]:
        return self.track.poses()

    def keyframe_matrices(self) -> np.ndarray:
        """(n, 4, 4) camera-to-world transforms of the keyframes, for drawing."""
        if not self.track:
            return np.zeros((0, 4, 4))
        return np.array([p.matrix() for p in self.track.poses()])

    # ─── PLAYBACK ─────────────────────────────────────────────────────────────

    def start_interpolation(self) -> bool:
        if not self.track:
            return False
        return self.player.start()

    def stop_interpolation(self):
        self.player.stop()

    def toggle_interpolation(self) -> bool:
        if self.player.running:
            self.player.stop()
            return False
        return self.start_interpolation()

    def is_interpolation_started(self) -> bool:
        return self.player.running

    # ─── FILES ────────────────────────────────────────────────────────────────

    def save_keyframes(self, file_name: str) -> bool:
        return keyframe_file.save_poses(file_name, self.track.poses())

    def read_keyframes(self, file_name: str) -> bool:
        """Replace the track with the keyframes in `file_name` (times re-derived)."""
        self.delete_path()
        try:
            poses = keyframe_file.read_poses(file_name)
        except OSError as e:
            logger.error(f"unable to open '{file_name}': {e}")
            return False

        for pose in poses:
            self.track.add_keyframe(pose)
        logger.info(f"Loaded {len(self.track)} keyframes from {file_name}")
        return len(self.track) > 0

    def save_path(self, file_name: str) -> bool:
        """Dump the sampled path in keyframe format for inspection."""
        return keyframe_file.save_poses(file_name, self.path())


def _check_positive(name: str, value: float):
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not (value > 0 and math.isfinite(value)):
        raise ValueError(f"{name} must be positive, got {value!r}")
