#!/usr/bin/env python3
"""
calibration.py -- One-shot neutral-pose capture.

The first orientation seen after start (or after :meth:`CalibrationState.reset`)
becomes the zero reference:
  * neutral pitch/roll  -- that orientation with its yaw removed
  * neutral yaw         -- its heading, used to rotate sway into world space

The caller should hold the body upright while the first sample arrives.
There is no automatic re-calibration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .quat import apply_mounting_roll, from_euler, to_euler, wrap180

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationFrame:
    """Neutral pose captured at session start."""
    neutral_pitch_roll: np.ndarray   # [w, x, y, z], yaw zeroed
    neutral_yaw_deg: float           # [0, 360)

    def summary(self) -> str:
        e = to_euler(self.neutral_pitch_roll)
        return (
            f"Neutral pose\n"
            f"  Pitch : {wrap180(e[0]):+8.3f} deg\n"
            f"  Roll  : {wrap180(e[2]):+8.3f} deg\n"
            f"  Yaw   : {self.neutral_yaw_deg:8.3f} deg\n"
        )


def neutral_frame(orientation: np.ndarray,
                  mounting_roll_deg: float = 0.0) -> CalibrationFrame:
    """Build a :class:`CalibrationFrame` from a target-frame orientation."""
    oriented = apply_mounting_roll(np.asarray(orientation, dtype=float),
                                   mounting_roll_deg)
    e = to_euler(oriented)
    pitch = wrap180(e[0])
    roll = wrap180(e[2])
    return CalibrationFrame(
        neutral_pitch_roll=from_euler(pitch, 0.0, roll),
        neutral_yaw_deg=float(e[1]),
    )


class CalibrationState:
    """Uninitialized -> Calibrated, until :meth:`reset`."""

    def __init__(self):
        self._frame: Optional[CalibrationFrame] = None

    @property
    def initialized(self) -> bool:
        return self._frame is not None

    @property
    def frame(self) -> CalibrationFrame:
        if self._frame is None:
            raise RuntimeError("Not calibrated yet -- no sample has been captured.")
        return self._frame

    def capture(self, orientation: np.ndarray,
                mounting_roll_deg: float = 0.0) -> CalibrationFrame:
        """
        Lock in the neutral pose from *orientation* if not yet calibrated.

        Once calibrated, further calls return the stored frame unchanged.
        """
        frame = self._frame
        if frame is None:
            frame = neutral_frame(orientation, mounting_roll_deg)
            self._frame = frame
            log.info("Calibrated: yaw=%.2f deg", frame.neutral_yaw_deg)
        return frame

    def reset(self) -> None:
        if self._frame is not None:
            log.info("Calibration reset")
        self._frame = None
