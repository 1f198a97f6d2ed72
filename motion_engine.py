#!/usr/bin/env python3
"""
motion_engine.py — Spline evaluation and path sampling for PathCam.

Turns a sparse KeyFrameTrack into a dense, evenly timed list of Poses:
1. Position: cubic Hermite spline through the keyframe positions, using the
   distance-compensated tangents computed in keyframes.py.
2. Orientation: squad (spherical cubic) between the flip-corrected keyframe
   quaternions and their squad tangents.
3. Smoothing: the sampled path is fed back in as a new, dense keyframe track
   with chord-length times and sampled again.

Outputs one Pose per playback frame.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

import rotations
from keyframes import KeyFrame, KeyFrameTrack, DISTANCE_EPSILON, chord_time, distance, update_tangents
from pose import Pose

logger = logging.getLogger("PathCam.Engine")

# Brackets shorter than this collapse to their first keyframe (alpha = 0)
TIME_EPSILON = 1e-7


def sample_interval(fps: float, speed: float) -> float:
    """Seconds of track time between two samples."""
    return (1.0 / fps) / speed


# ─── SPLINE EVALUATOR ─────────────────────────────────────────────────────────

def locate_bracket(time: float, times: np.ndarray) -> Tuple[int, int, int, int]:
    """
    Indices (i0, i1, i2, i3) of the control points around `time`.

    times[i1] <= time <= times[i2], clamped to the first/last keyframe outside
    the track. i0 is the predecessor of i1 and i3 the successor of i2 (or the
    same index at the ends). `times` must be sorted and non-empty.
    """
    n = len(times)
    if n == 0:
        raise ValueError("Cannot bracket a time on an empty track.")

    i2 = min(int(np.searchsorted(times, time, side="left")), n - 1)
    i1 = i2 - 1 if (i2 > 0 and time < times[i2]) else i2
    i0 = max(i1 - 1, 0)
    i3 = min(i2 + 1, n - 1)
    return i0, i1, i2, i3


def spline_coefficients(k1: KeyFrame, k2: KeyFrame) -> Tuple[np.ndarray, np.ndarray]:
    """Cubic and quadratic Hermite terms of the segment k1 -> k2."""
    delta = k2.position - k1.position
    v1 = 3.0 * delta - 2.0 * k1.tangent_position - k2.tangent_position
    v2 = -2.0 * delta + k1.tangent_position + k2.tangent_position
    return v1, v2


def evaluate(time: float, keyframes: Sequence[KeyFrame], times: Optional[np.ndarray] = None) -> Pose:
    """
    Pose on the spline at `time`.

    Tangents must be up to date (see update_tangents). Pass `times` when
    evaluating many samples so the time array is not rebuilt every call.
    """
    if times is None:
        times = np.array([kf.time for kf in keyframes], dtype=np.float64)

    _, i1, i2, _ = locate_bracket(time, times)
    k1 = keyframes[i1]
    k2 = keyframes[i2]

    dt = k2.time - k1.time
    alpha = 0.0 if abs(dt) < TIME_EPSILON else (time - k1.time) / dt

    v1, v2 = spline_coefficients(k1, k2)
    position = k1.position + alpha * (k1.tangent_position + alpha * (v1 + alpha * v2))
    orientation = rotations.squad(k1.orientation, k1.tangent_orientation,
                                  k2.tangent_orientation, k2.orientation, alpha)
    return Pose(position, orientation)


def interpolate_keyframes(keyframes: Sequence[KeyFrame], interval: float,
                          first_time: float, last_time: float) -> List[Pose]:
    """
    Sample the spline every `interval` from first_time up to one interval past
    last_time, so the final keyframe survives float step accumulation.
    """
    if not keyframes:
        return []

    update_tangents(keyframes)
    times = np.array([kf.time for kf in keyframes], dtype=np.float64)
    return [evaluate(float(t), keyframes, times)
            for t in np.arange(first_time, last_time + interval, interval)]


# ─── PATH CACHE ───────────────────────────────────────────────────────────────

class PathCache:
    """
    Densely sampled path, rebuilt from scratch whenever it is invalid.

    The sample list is replaced, never edited in place, so a reader holding
    the previous list (the player) keeps a consistent snapshot.
    """

    def __init__(self):
        self.samples: List[Pose] = []
        self.valid: bool = False

    def invalidate(self):
        self.valid = False

    def clear(self):
        self.samples = []
        self.valid = False

    def rebuild(self, track: KeyFrameTrack, interval: float) -> List[Pose]:
        track.recompute_tangents()
        self.samples = interpolate_keyframes(track.keyframes, interval,
                                             track.first_time(), track.last_time())
        self.valid = True
        return self.samples

    def smooth(self, duration: float, first_time: float, interval: float) -> bool:
        """
        One relaxation pass: re-time the samples by chord length (first
        interval = `interval`), stretch them back to `duration` and sample the
        resulting dense spline again. Returns False if the pass was skipped.
        """
        if len(self.samples) < 2:
            return False

        as_keyframes: List[KeyFrame] = []
        reference_distance = 0.0
        for pose in self.samples:
            if not as_keyframes:
                t = 0.0
            elif len(as_keyframes) == 1:
                t = interval
                reference_distance = distance(as_keyframes[0].position, pose.position)
                if reference_distance < DISTANCE_EPSILON:
                    logger.error("Smoothing skipped: first two samples coincide.")
                    return False
            else:
                last = as_keyframes[-1]
                t = chord_time(last.time, last.position, pose.position,
                               reference_distance, unit=interval)
            as_keyframes.append(KeyFrame.from_pose(pose, t))

        # The second sample sits at `interval`, so the chord duration is > 0
        ratio = duration / (as_keyframes[-1].time - as_keyframes[0].time)

        for kf in as_keyframes:
            kf.time = first_time + kf.time * ratio

        self.samples = interpolate_keyframes(as_keyframes, interval,
                                             first_time, first_time + duration)
        return True

    def positions(self) -> np.ndarray:
        if not self.samples:
            return np.zeros((0, 3))
        return np.array([p.position for p in self.samples])

    def __len__(self) -> int:
        return len(self.samples)

    def __getitem__(self, index: int) -> Pose:
        return self.samples[index]
