#!/usr/bin/env python3
"""
rotations.py — Quaternion math for PathCam.

Quaternions are plain numpy arrays in scalar-last order [x, y, z, w],
the same order scipy.spatial.transform.Rotation uses. Unlike Rotation,
nothing here canonicalises the sign: q and -q are kept apart because the
spline has to know which hemisphere a keyframe lives in.

Used for:
- Orientation continuity (dot / negate) when tangents are recomputed.
- Squad tangents and squad interpolation in the spline evaluator.
- Euler / matrix conversions for Pose helpers.
"""

import math

import numpy as np
from scipy.spatial.transform import Rotation

IDENTITY = np.array([0.0, 0.0, 0.0, 1.0])

# Below this |cos|, slerp falls back to linear weights
_SLERP_LINEAR_THRESHOLD = 0.01
_LOG_EPSILON = 1e-6


# ----------------------------------------------------------------------
# Basic algebra
# ----------------------------------------------------------------------

def as_quat(q) -> np.ndarray:
    return np.asarray(q, dtype=np.float64).reshape(4)


def normalize(q) -> np.ndarray:
    """Unit quaternion. Raises ValueError on a zero quaternion."""
    q = as_quat(q)
    n = float(np.linalg.norm(q))
    if n < 1e-12:
        raise ValueError("Cannot normalize a zero quaternion.")
    return q / n


def dot(a, b) -> float:
    return float(np.dot(a, b))


def multiply(a, b) -> np.ndarray:
    """Hamilton product a * b."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ])


def inverse(q) -> np.ndarray:
    q = as_quat(q)
    n2 = float(np.dot(q, q))
    return np.array([-q[0], -q[1], -q[2], q[3]]) / n2


def log(q) -> np.ndarray:
    """Logarithm of a unit quaternion, returned as a pure quaternion."""
    v = q[:3]
    length = float(np.linalg.norm(v))
    if length < _LOG_EPSILON:
        return np.array([v[0], v[1], v[2], 0.0])
    coef = math.acos(max(-1.0, min(1.0, float(q[3])))) / length
    return np.array([v[0] * coef, v[1] * coef, v[2] * coef, 0.0])


def exp(q) -> np.ndarray:
    """Exponential of a pure quaternion."""
    v = q[:3]
    theta = float(np.linalg.norm(v))
    if theta < _LOG_EPSILON:
        return np.array([v[0], v[1], v[2], math.cos(theta)])
    coef = math.sin(theta) / theta
    return np.array([v[0] * coef, v[1] * coef, v[2] * coef, math.cos(theta)])


def log_difference(a, b) -> np.ndarray:
    """log(a^-1 * b)."""
    dif = multiply(inverse(a), b)
    return log(normalize(dif))


# ----------------------------------------------------------------------
# Interpolation
# ----------------------------------------------------------------------

def slerp(a, b, t: float, allow_flip: bool = True) -> np.ndarray:
    """
    Spherical linear interpolation between a (t=0) and b (t=1).

    With allow_flip the shorter arc is taken when a and b lie in opposite
    hemispheres. Squad calls this with allow_flip=False so its control
    quaternions are blended exactly as given.
    """
    cos_angle = dot(a, b)

    if 1.0 - abs(cos_angle) < _SLERP_LINEAR_THRESHOLD:
        c1 = 1.0 - t
        c2 = t
    else:
        angle = math.acos(min(1.0, abs(cos_angle)))
        sin_angle = math.sin(angle)
        c1 = math.sin(angle * (1.0 - t)) / sin_angle
        c2 = math.sin(angle * t) / sin_angle

    if allow_flip and cos_angle < 0.0:
        c1 = -c1

    return c1 * as_quat(a) + c2 * as_quat(b)


def squad_tangent(before, center, after) -> np.ndarray:
    """Inner control quaternion of a squad segment at `center`."""
    l1 = log_difference(center, before)
    l2 = log_difference(center, after)
    e = -0.25 * (l1 + l2)
    return multiply(center, exp(e))


def squad(a, tg_a, tg_b, b, t: float) -> np.ndarray:
    """Spherical cubic interpolation between a and b with inner controls."""
    ab = slerp(a, b, t)
    tg = slerp(tg_a, tg_b, t, allow_flip=False)
    return slerp(ab, tg, 2.0 * t * (1.0 - t), allow_flip=False)


# ----------------------------------------------------------------------
# Conversions (scipy)
# ----------------------------------------------------------------------

def from_euler_deg(pan_deg: float, tilt_deg: float, roll_deg: float = 0.0) -> np.ndarray:
    """Quaternion from yaw (pan), pitch (tilt), roll in degrees."""
    return Rotation.from_euler("ZYX", [pan_deg, tilt_deg, roll_deg], degrees=True).as_quat()


def to_euler_deg(q):
    """(pan_deg, tilt_deg, roll_deg) of a quaternion."""
    pan, tilt, roll = Rotation.from_quat(normalize(q)).as_euler("ZYX", degrees=True)
    return float(pan), float(tilt), float(roll)


def as_matrix(q) -> np.ndarray:
    return Rotation.from_quat(normalize(q)).as_matrix()
