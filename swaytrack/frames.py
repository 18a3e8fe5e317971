#!/usr/bin/env python3
"""
frames.py -- Sensor frame -> target frame quaternion conversion.

The sensor (Movella DOT) reports orientation in NED:
  X = North,  Y = East,  Z = Down.
The target frame is Y-up:
  X = right,  Y = up,    Z = forward.

Default mapping (target axis <- signed sensor axis):

  target | source
  -------+---------
    x    |  +y
    y    |  -z
    z    |  -x
    w    |  +w

The vector part of the quaternion is permuted with signs; the scalar part is
untouched.  A mapping is only accepted when it is a proper rotation (signed
permutation, determinant +1), which keeps the quaternion norm.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .errors import ConfigurationError

_AXES = "xyz"


@dataclass(frozen=True)
class AxisMapping:
    """``axes[i] = (source_axis, sign)`` defines target axis *i*."""
    axes: Tuple[Tuple[int, int], ...]

    @classmethod
    def parse(cls, text: str) -> "AxisMapping":
        """
        Parse ``"+y,-z,-x"`` style text.

        The three comma-separated entries give the signed sensor axis feeding
        target x, y and z respectively.  A missing sign means ``+``.
        """
        parts = [p.strip().lower() for p in text.split(",")]
        if len(parts) != 3:
            raise ConfigurationError(f"Axis mapping needs 3 entries, got {text!r}")
        axes = []
        for p in parts:
            sign = -1 if p.startswith("-") else 1
            name = p[1:] if p[:1] in ("+", "-") else p
            if len(name) != 1 or name not in _AXES:
                raise ConfigurationError(f"Bad axis {p!r} in mapping {text!r}")
            axes.append((_AXES.index(name), sign))
        mapping = cls(tuple(axes))
        mapping.validate()
        return mapping

    def __str__(self) -> str:
        return ",".join(f"{'+' if s > 0 else '-'}{_AXES[a]}" for a, s in self.axes)

    # -- Validation --------------------------------------------------------------

    def matrix(self) -> np.ndarray:
        """3x3 matrix M with  v_target = M @ v_sensor."""
        M = np.zeros((3, 3))
        for i, (src, sign) in enumerate(self.axes):
            M[i, src] = sign
        return M

    def validate(self) -> None:
        if len(self.axes) != 3:
            raise ConfigurationError("Axis mapping must cover x, y and z")
        sources = sorted(src for src, _ in self.axes)
        if sources != [0, 1, 2]:
            raise ConfigurationError(f"Axis mapping {self.axes} is not a permutation")
        if any(sign not in (-1, 1) for _, sign in self.axes):
            raise ConfigurationError(f"Axis mapping {self.axes} signs must be +/-1")
        det = round(float(np.linalg.det(self.matrix())))
        if det != 1:
            raise ConfigurationError(
                f"Axis mapping {self} is a reflection (det={det}); "
                "only proper rotations keep the quaternion valid")

    # -- Conversion --------------------------------------------------------------

    def convert(self, q_sensor: Sequence[float]) -> np.ndarray:
        """Sensor [w, x, y, z] -> target [w, x, y, z]."""
        w, *v = q_sensor
        out = np.empty(4)
        out[0] = w
        for i, (src, sign) in enumerate(self.axes):
            out[1 + i] = v[src] if sign > 0 else -v[src]
        return out

    def convert_xyzw(self, qx: float, qy: float, qz: float, qw: float) -> np.ndarray:
        """Component form of :meth:`convert`; returns target [w, x, y, z]."""
        return self.convert((qw, qx, qy, qz))

    def invert(self, q_target: Sequence[float]) -> np.ndarray:
        """Target [w, x, y, z] -> sensor [w, x, y, z]; exact inverse of convert."""
        w, *v = q_target
        out = np.empty(4)
        out[0] = w
        for i, (src, sign) in enumerate(self.axes):
            out[1 + src] = v[i] if sign > 0 else -v[i]
        return out


DEFAULT_MAPPING = AxisMapping.parse("+y,-z,-x")
