#!/usr/bin/env python3
"""
quat.py -- Quaternion and Euler-angle helpers.

Quaternions are scalar-first numpy arrays  q = [w, x, y, z].

Euler convention
----------------
Angles are (x, y, z) in degrees, composed as

    q = Ry(y) * Rx(x) * Rz(z)

i.e. roll about Z is applied first, then pitch about X, then yaw about the
vertical Y axis.  In the target frame X is right, Y is up and Z is forward,
so ``x`` is pitch, ``y`` is yaw and ``z`` is roll.  Decomposition returns
each angle in [0, 360).
"""

from __future__ import annotations

import math

import numpy as np

DEG2RAD = math.pi / 180.0
RAD2DEG = 180.0 / math.pi

# |sin(pitch)| above this is treated as gimbal lock
_GIMBAL_SIN = 1.0 - 1e-6

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0])


def qmul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product  a * b."""
    w1, x1, y1, z1 = a
    w2, x2, y2, z2 = b
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ])


def qconj(q: np.ndarray) -> np.ndarray:
    """Conjugate; the inverse of a unit quaternion."""
    return np.array([q[0], -q[1], -q[2], -q[3]])


def qnorm(q: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(q)
    return q / n if n > 1e-12 else IDENTITY.copy()


def q2dcm(q: np.ndarray) -> np.ndarray:
    """Quaternion -> 3x3 rotation matrix."""
    w, x, y, z = q
    return np.array([
        [1 - 2*(y*y + z*z),     2*(x*y - w*z),     2*(x*z + w*y)],
        [    2*(x*y + w*z), 1 - 2*(x*x + z*z),     2*(y*z - w*x)],
        [    2*(x*z - w*y),     2*(y*z + w*x), 1 - 2*(x*x + y*y)],
    ])


def qrot(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector *v* by quaternion *q*."""
    return q2dcm(q) @ np.asarray(v, dtype=float)


# -- Euler angles ----------------------------------------------------------------

def _axis_angle(axis: int, deg: float) -> np.ndarray:
    half = 0.5 * deg * DEG2RAD
    q = np.zeros(4)
    q[0] = math.cos(half)
    q[1 + axis] = math.sin(half)
    return q


def from_euler(x: float, y: float, z: float) -> np.ndarray:
    """Build a quaternion from (pitch x, yaw y, roll z) in degrees."""
    return qmul(qmul(_axis_angle(1, y), _axis_angle(0, x)), _axis_angle(2, z))


def to_euler(q: np.ndarray) -> np.ndarray:
    """
    Decompose *q* into [x, y, z] degrees, each in [0, 360).

    At gimbal lock (pitch = +/-90 deg) yaw and roll share one degree of
    freedom; roll is reported as 0 and the whole rotation goes to yaw.
    """
    m = q2dcm(q)
    sx = float(np.clip(-m[1, 2], -1.0, 1.0))
    x = math.asin(sx)
    if abs(sx) < _GIMBAL_SIN:
        y = math.atan2(m[0, 2], m[2, 2])
        z = math.atan2(m[1, 0], m[1, 1])
    else:
        y = math.atan2(-m[2, 0], m[0, 0])
        z = 0.0
    e = np.array([x, y, z]) * RAD2DEG % 360.0
    e[e >= 360.0] = 0.0     # -tiny % 360 rounds up to 360
    return e


def wrap180(deg: float) -> float:
    """Wrap an angle into (-180, 180]."""
    a = math.fmod(deg, 360.0)
    if a > 180.0:
        a -= 360.0
    elif a <= -180.0:
        a += 360.0
    return a


def delta_angle(current: float, target: float) -> float:
    """Shortest signed difference  target - current,  in (-180, 180]."""
    return wrap180(target - current)


# -- Sensor mounting -------------------------------------------------------------

MOUNTING_EPS_DEG = 0.1


def apply_mounting_roll(q: np.ndarray, roll_deg: float) -> np.ndarray:
    """Roll *q* about its own forward (Z) axis by *roll_deg*."""
    if abs(roll_deg) > MOUNTING_EPS_DEG:
        return qmul(q, from_euler(0.0, 0.0, roll_deg))
    return np.asarray(q, dtype=float)
