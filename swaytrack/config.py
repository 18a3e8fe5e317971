"""Configuration dataclasses for the sway tracker."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ConfigurationError
from .estimator import DEFAULT_TILT_LIMIT_DEG, SwayParams
from .frames import DEFAULT_MAPPING, AxisMapping
from .receiver import DEFAULT_PORT


@dataclass
class TrackerConfig:
    listen_port: int = DEFAULT_PORT
    listen_host: str = "0.0.0.0"
    pendulum_length: float = 1.0313          # headset -> lumbar (m)
    max_sway_radius: Optional[float] = None  # None disables the clamp
    mounting_roll_deg: float = 0.0
    axis_mapping: Union[str, AxisMapping] = DEFAULT_MAPPING
    tilt_limit_deg: float = DEFAULT_TILT_LIMIT_DEG
    strip_heading: bool = True

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` on the first invalid option."""
        if isinstance(self.listen_port, bool) or not isinstance(self.listen_port, int) \
                or not 0 < self.listen_port <= 65535:
            raise ConfigurationError(f"listen_port must be 1-65535, got {self.listen_port!r}")
        if not (math.isfinite(self.pendulum_length) and self.pendulum_length > 0):
            raise ConfigurationError(
                f"pendulum_length must be > 0, got {self.pendulum_length!r}")
        if self.max_sway_radius is not None and \
                not (math.isfinite(self.max_sway_radius) and self.max_sway_radius >= 0):
            raise ConfigurationError(
                f"max_sway_radius must be >= 0 or None, got {self.max_sway_radius!r}")
        if not math.isfinite(self.mounting_roll_deg):
            raise ConfigurationError("mounting_roll_deg must be finite")
        if not 0 < self.tilt_limit_deg < 90:
            raise ConfigurationError(
                f"tilt_limit_deg must be in (0, 90), got {self.tilt_limit_deg!r}")
        self.mapping().validate()

    def mapping(self) -> AxisMapping:
        if isinstance(self.axis_mapping, AxisMapping):
            return self.axis_mapping
        return AxisMapping.parse(self.axis_mapping)

    def sway_params(self) -> SwayParams:
        return SwayParams(
            pendulum_length=self.pendulum_length,
            mounting_roll_deg=self.mounting_roll_deg,
            max_sway_radius=self.max_sway_radius,
            tilt_limit_deg=self.tilt_limit_deg,
            strip_heading=self.strip_heading,
        )
