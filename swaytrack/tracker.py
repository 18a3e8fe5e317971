#!/usr/bin/env python3
"""
tracker.py -- Consumer side: ties ingestion, calibration and the estimator.

Call :meth:`PendulumTracker.tick` once per frame from your own loop.  A tick
never blocks: it takes whatever sample the receiver thread last published,
calibrates on the first one, and returns the pendulum position.  If nothing
new arrived since the previous tick, the previous position is returned.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from .calibration import CalibrationState
from .config import TrackerConfig
from .estimator import SwayEstimate, estimate
from .receiver import SensorSample, SharedSensorState, UDPReceiver

log = logging.getLogger(__name__)


class PendulumTracker:
    """Owns the shared sample slot, the UDP receiver and the calibration."""

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config or TrackerConfig()
        self.config.validate()
        self.mapping = self.config.mapping()
        self.params = self.config.sway_params()

        self.state = SharedSensorState()
        self.receiver = UDPReceiver(self.state, port=self.config.listen_port,
                                    host=self.config.listen_host)
        self.calibration = CalibrationState()

        self._sample: Optional[SensorSample] = None
        self.last_estimate: Optional[SwayEstimate] = None
        self.ticks = 0
        self.updates = 0

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        self.receiver.start()

    def stop(self) -> None:
        self.receiver.stop()

    def __enter__(self) -> "PendulumTracker":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    # -- Consumer API ----------------------------------------------------------

    def current_orientation(self) -> np.ndarray:
        """Latest orientation in the target frame, [w, x, y, z]."""
        return self.mapping.convert(self.state.peek().orientation)

    def current_free_acceleration(self) -> np.ndarray:
        """Latest free acceleration as received (sensor frame)."""
        return np.array(self.state.peek().free_acceleration)

    @property
    def position(self) -> Optional[np.ndarray]:
        return None if self.last_estimate is None else self.last_estimate.position.copy()

    def reset(self) -> None:
        """Forget the neutral pose; the next tick recalibrates."""
        self.calibration.reset()
        self.last_estimate = None

    def tick(self, anchor: Sequence[float] = (0.0, 0.0, 0.0)) -> Optional[np.ndarray]:
        """
        Advance one consumer frame.

        Returns the position, or None until the first packet has arrived.
        """
        self.ticks += 1
        sample, fresh = self.state.consume()
        if fresh:
            self._sample = sample
        else:
            last = self.last_estimate
            if last is not None:
                return last.position.copy()
        if self._sample is None:
            return None

        q = self.mapping.convert(self._sample.orientation)
        # Use the frame capture() hands back; a concurrent reset() only affects
        # the next tick.
        frame = self.calibration.capture(q, self.params.mounting_roll_deg)
        self.last_estimate = estimate(q, frame, anchor, self.params)
        self.updates += 1
        return self.last_estimate.position.copy()
