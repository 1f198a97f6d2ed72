#!/usr/bin/env python3
"""
pose.py — Rigid-body poses for PathCam.

Pose   — immutable position + unit quaternion value.
Frame  — mutable transform (a virtual camera or scene node). It is the
         default sink the player writes interpolated poses into; anything
         with a set_position_and_orientation(position, orientation) method
         can stand in for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

import rotations


def _frozen(arr) -> np.ndarray:
    out = np.array(arr, dtype=np.float64)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, eq=False)
class Pose:
    position:    np.ndarray
    orientation: np.ndarray   # [x, y, z, w]

    def __post_init__(self):
        position = np.asarray(self.position, dtype=np.float64).reshape(3)
        orientation = rotations.normalize(self.orientation)
        object.__setattr__(self, "position", _frozen(position))
        object.__setattr__(self, "orientation", _frozen(orientation))

    @classmethod
    def identity(cls) -> "Pose":
        return cls(np.zeros(3), rotations.IDENTITY)

    @classmethod
    def from_euler(cls, position, pan_deg: float, tilt_deg: float,
                   roll_deg: float = 0.0) -> "Pose":
        return cls(position, rotations.from_euler_deg(pan_deg, tilt_deg, roll_deg))

    def rotation_matrix(self) -> np.ndarray:
        return rotations.as_matrix(self.orientation)

    def matrix(self) -> np.ndarray:
        """4x4 homogeneous transform."""
        m = np.eye(4)
        m[:3, :3] = self.rotation_matrix()
        m[:3, 3] = self.position
        return m

    def allclose(self, other: "Pose", atol: float = 1e-6) -> bool:
        """Same position and same rotation (q and -q compare equal)."""
        if not np.allclose(self.position, other.position, atol=atol):
            return False
        return abs(abs(rotations.dot(self.orientation, other.orientation)) - 1.0) <= atol

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            "position":    [round(float(v), 6) for v in self.position],
            "orientation": [round(float(v), 6) for v in self.orientation],
        }

    def __repr__(self):
        p = ", ".join(f"{v:.4g}" for v in self.position)
        q = ", ".join(f"{v:.4g}" for v in self.orientation)
        return f"Pose(position=[{p}], orientation=[{q}])"


class Frame:
    """A mutable transform driven by the player."""

    def __init__(self, pose: Optional[Pose] = None):
        pose = pose or Pose.identity()
        self.position    = np.array(pose.position)
        self.orientation = np.array(pose.orientation)

    def set_position_and_orientation(self, position, orientation):
        self.position    = np.array(position, dtype=np.float64)
        self.orientation = np.array(orientation, dtype=np.float64)

    def pose(self) -> Pose:
        return Pose(self.position, self.orientation)
