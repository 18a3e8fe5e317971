#!/usr/bin/env python3
"""
estimator.py -- Trigonometric pendulum position estimator.

Model
-----
The tracked body hangs a fixed distance L below an anchor (e.g. headset to
lumbar).  Tilting the sensor by pitch/roll swings the free end sideways:

    sway_z = tan(pitch) * L        (anterior/posterior)
    sway_x = tan(roll)  * L        (medial/lateral)

The local sway is rotated by the heading change since calibration and added
to the anchor:

    position = anchor + (world_sway.x, -L, world_sway.z)

Tilt is clamped to +/-89.9 deg before the tangent so the output is always
finite.  The acceleration channel is not used.

Everything here is a pure function of its inputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .calibration import CalibrationFrame
from .quat import (
    DEG2RAD, apply_mounting_roll, delta_angle, from_euler, qconj, qmul,
    qrot, to_euler, wrap180,
)

DEFAULT_TILT_LIMIT_DEG = 89.9


@dataclass(frozen=True)
class SwayParams:
    """Pendulum geometry and sensor mounting."""
    pendulum_length: float                      # L (m)
    mounting_roll_deg: float = 0.0              # side-mounted sensors: +/-90
    max_sway_radius: Optional[float] = None     # None = no clamp
    tilt_limit_deg: float = DEFAULT_TILT_LIMIT_DEG
    strip_heading: bool = True                  # False: legacy tilt, heading leaks in


@dataclass
class SwayEstimate:
    """Estimator output for one orientation."""
    position: np.ndarray       # world position (m)
    pitch_deg: float           # tilt relative to neutral, after clamping
    roll_deg: float
    yaw_delta_deg: float       # heading change since calibration
    local_sway: np.ndarray     # [x, 0, z] before yaw rotation (m)
    world_sway: np.ndarray     # [x, 0, z] after yaw rotation / clamp (m)
    clamped: bool              # max_sway_radius was applied


def estimate(orientation: Sequence[float],
             cal: CalibrationFrame,
             anchor: Sequence[float],
             params: SwayParams) -> SwayEstimate:
    """Run the pendulum model on one target-frame orientation [w, x, y, z]."""
    L = params.pendulum_length
    limit = params.tilt_limit_deg

    # -- Sensor mounting --
    oriented = apply_mounting_roll(np.asarray(orientation, dtype=float),
                                   params.mounting_roll_deg)
    yaw = float(to_euler(oriented)[1])

    # -- Tilt relative to neutral --
    tilted = oriented
    if params.strip_heading:
        tilted = qmul(from_euler(0.0, -yaw, 0.0), oriented)
    rel = qmul(qconj(cal.neutral_pitch_roll), tilted)
    e = to_euler(rel)
    pitch = min(max(wrap180(e[0]), -limit), limit)
    roll = min(max(wrap180(e[2]), -limit), limit)

    # -- Local sway --
    local = np.array([
        math.tan(roll * DEG2RAD) * L,
        0.0,
        math.tan(pitch * DEG2RAD) * L,
    ])

    # -- Heading --
    yaw_delta = delta_angle(cal.neutral_yaw_deg, yaw)
    world = qrot(from_euler(0.0, yaw_delta, 0.0), local)
    world[1] = 0.0

    clamped = False
    R = params.max_sway_radius
    if R is not None:
        mag = math.hypot(world[0], world[2])
        if mag > R:
            world *= R / mag
            clamped = True

    position = np.asarray(anchor, dtype=float) + np.array([world[0], -L, world[2]])

    return SwayEstimate(
        position=position,
        pitch_deg=pitch,
        roll_deg=roll,
        yaw_delta_deg=yaw_delta,
        local_sway=local,
        world_sway=world,
        clamped=clamped,
    )


def compute(orientation: Sequence[float],
            cal: CalibrationFrame,
            anchor: Sequence[float],
            params: SwayParams) -> np.ndarray:
    """Position only; see :func:`estimate`."""
    return estimate(orientation, cal, anchor, params).position
