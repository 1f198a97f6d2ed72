#!/usr/bin/env python3
"""
keyframes.py — Keyframe storage for PathCam.

KeyFrame       — a Pose stamped with a time, plus the derived position and
                 orientation tangents the spline needs.
KeyFrameTrack  — time-ordered list of KeyFrames. Owns them, rejects
                 out-of-order inserts, auto-assigns times from chord length,
                 and announces every structural change on `changed` so the
                 path cache and the player can react.

Auto-time rule: the first keyframe sits at t=0 and the second at t=1 (one
time unit). The distance between those two is recorded as the reference
distance; every later keyframe gets
    t = t_prev + unit * |p_new - p_prev| / reference_distance
so the camera keeps the pace of the first segment along the whole path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

import numpy as np

import rotations
from pose import Pose
from signals import Signal

logger = logging.getLogger("PathCam.Track")

DISTANCE_EPSILON = 1e-9


# ─── KEYFRAME ─────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class KeyFrame:
    position:    np.ndarray
    orientation: np.ndarray
    time:        float
    tangent_position:    np.ndarray = field(default_factory=lambda: np.zeros(3))
    tangent_orientation: np.ndarray = field(default_factory=lambda: rotations.IDENTITY.copy())

    @classmethod
    def from_pose(cls, pose: Pose, time: float) -> "KeyFrame":
        return cls(np.array(pose.position), np.array(pose.orientation), float(time))

    def pose(self) -> Pose:
        return Pose(self.position, self.orientation)

    def flip_orientation_if_needed(self, prev_orientation):
        """Negate the orientation if it sits in the other hemisphere than prev."""
        if rotations.dot(prev_orientation, self.orientation) < 0.0:
            self.orientation = -self.orientation

    def compute_tangent(self, prev: "KeyFrame", nxt: "KeyFrame"):
        """
        Position tangent from the neighbours, with the farther neighbour pulled
        in to the distance of the nearer one. Segments of very different length
        would otherwise make the curve overshoot on the short side.
        """
        sd_prev = float(np.sum((prev.position - self.position) ** 2))
        sd_next = float(np.sum((nxt.position - self.position) ** 2))
        if sd_prev < sd_next:
            new_next = self.position + _unit(nxt.position - self.position) * np.sqrt(sd_prev)
            self.tangent_position = 0.5 * (new_next - prev.position)
        else:
            new_prev = self.position + _unit(prev.position - self.position) * np.sqrt(sd_next)
            self.tangent_position = 0.5 * (nxt.position - new_prev)

        self.tangent_orientation = rotations.squad_tangent(
            prev.orientation, self.orientation, nxt.orientation)


def _unit(v: np.ndarray) -> np.ndarray:
    n = float(np.linalg.norm(v))
    if n < DISTANCE_EPSILON:
        return np.zeros(3)
    return v / n


def distance(a, b) -> float:
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def chord_time(prev_time: float, prev_position, new_position,
               reference_distance: float, unit: float = 1.0) -> float:
    """Time of a new keyframe under the chord-length rule."""
    return prev_time + unit * distance(prev_position, new_position) / reference_distance


def update_tangents(keyframes: Sequence[KeyFrame]):
    """
    Flip orientations onto one hemisphere, then recompute every tangent from
    its immediate neighbours (the ends use themselves as the missing one).
    """
    if not keyframes:
        return

    prev_q = keyframes[0].orientation
    for kf in keyframes:
        kf.flip_orientation_if_needed(prev_q)
        prev_q = kf.orientation

    last = len(keyframes) - 1
    for i, kf in enumerate(keyframes):
        prev = keyframes[i - 1] if i > 0 else kf
        nxt  = keyframes[i + 1] if i < last else kf
        kf.compute_tangent(prev, nxt)


# ─── KEYFRAME TRACK ───────────────────────────────────────────────────────────

class KeyFrameTrack:
    """
    Ordered keyframes with strictly increasing times.

    `changed` is emitted after every structural change (add, remove, clear).
    """

    def __init__(self):
        self._keyframes: List[KeyFrame] = []
        self.reference_distance: float = 0.0
        self.changed = Signal("track_changed")

    # --- mutation ---

    def add_keyframe(self, pose: Pose, time: Optional[float] = None) -> bool:
        """
        Append a keyframe. Without `time` it is derived from the chord-length
        rule. Returns False (and leaves the track alone) if the time does not
        come after the last keyframe.
        """
        if time is None:
            time = self._auto_time(pose)

        if self._keyframes and self._keyframes[-1].time >= time:
            logger.error(f"Keyframe rejected: time {time:.6g} is not after "
                         f"last keyframe time {self._keyframes[-1].time:.6g}")
            return False

        if len(self._keyframes) == 1:
            self.reference_distance = distance(self._keyframes[0].position, pose.position)

        self._keyframes.append(KeyFrame.from_pose(pose, time))
        self.changed.emit()
        return True

    def remove_last(self) -> bool:
        if not self._keyframes:
            logger.debug("remove_last on an empty track")
            return False
        self._keyframes.pop()
        if len(self._keyframes) < 2:
            self.reference_distance = 0.0
        self.changed.emit()
        return True

    def clear(self):
        self._keyframes = []
        self.reference_distance = 0.0
        self.changed.emit()

    def recompute_tangents(self):
        update_tangents(self._keyframes)

    def _auto_time(self, pose: Pose) -> float:
        if not self._keyframes:
            return 0.0
        if len(self._keyframes) == 1:
            return 1.0
        last = self._keyframes[-1]
        if self.reference_distance < DISTANCE_EPSILON:
            # First two keyframes coincide: fall back to one unit per keyframe
            return last.time + 1.0
        return chord_time(last.time, last.position, pose.position, self.reference_distance)

    # --- queries ---

    @property
    def keyframes(self) -> List[KeyFrame]:
        return self._keyframes

    def keyframe(self, index: int) -> Pose:
        return self._keyframes[index].pose()

    def keyframe_time(self, index: int) -> float:
        return self._keyframes[index].time

    def number_of_keyframes(self) -> int:
        return len(self._keyframes)

    def times(self) -> np.ndarray:
        return np.array([kf.time for kf in self._keyframes], dtype=np.float64)

    def first_time(self) -> float:
        return self._keyframes[0].time if self._keyframes else 0.0

    def last_time(self) -> float:
        return self._keyframes[-1].time if self._keyframes else 0.0

    def duration(self) -> float:
        return self.last_time() - self.first_time()

    def poses(self) -> List[Pose]:
        return [kf.pose() for kf in self._keyframes]

    def __len__(self) -> int:
        return len(self._keyframes)

    def __iter__(self) -> Iterator[KeyFrame]:
        return iter(self._keyframes)

    def __getitem__(self, index: int) -> KeyFrame:
        return self._keyframes[index]
