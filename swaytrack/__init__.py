"""
swaytrack — IMU pendulum sway tracker

Modules
-------
receiver     UDP packet decode and latest-sample slot
frames       Sensor (NED) -> target frame quaternion mapping
calibration  One-shot neutral pose capture
estimator    Trigonometric pendulum position model
tracker      Per-tick consumer tying the above together
app          Console application
"""

from .calibration import CalibrationFrame, CalibrationState
from .config import TrackerConfig
from .errors import ConfigurationError, NetworkError, ParseError, SwaytrackError
from .estimator import SwayEstimate, SwayParams, compute, estimate
from .frames import DEFAULT_MAPPING, AxisMapping
from .receiver import SensorSample, SharedSensorState, UDPReceiver, parse_packet
from .tracker import PendulumTracker
