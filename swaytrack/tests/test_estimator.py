#!/usr/bin/env python3
"""
test_estimator.py -- Tests for the pendulum sway estimator.

Tests cover:
  * Quaternion / Euler helpers
  * Neutral pose calibration
  * Tilt -> sway model, yaw rotation, clamping
  * Tangent singularity safety
  * Sensor mounting roll offset

Run:  python3 -m pytest swaytrack/tests/test_estimator.py -v
"""

import math
import numpy as np
import pytest

# Allow running from repo root
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from swaytrack.calibration import CalibrationFrame, CalibrationState, neutral_frame
from swaytrack.estimator import SwayParams, compute, estimate
from swaytrack.quat import (
    IDENTITY, apply_mounting_roll, delta_angle, from_euler, qconj, qmul,
    qrot, to_euler, wrap180,
)

ANCHOR = np.zeros(3)


def _params(**kw) -> SwayParams:
    kw.setdefault("pendulum_length", 1.0)
    return SwayParams(**kw)


def _cal(q=IDENTITY, roll_offset=0.0) -> CalibrationFrame:
    return neutral_frame(q, roll_offset)


def _same_rotation(a, b, atol=1e-9):
    """q and -q are the same rotation."""
    return np.allclose(a, b, atol=atol) or np.allclose(a, -np.asarray(b), atol=atol)


# ── Quaternion / Euler helpers ─────────────────────────────────────────────

class TestQuat:
    def test_euler_roundtrip(self):
        q = from_euler(10.0, 20.0, 30.0)
        np.testing.assert_allclose(to_euler(q), [10.0, 20.0, 30.0], atol=1e-9)

    def test_euler_range(self):
        """Negative angles come back in [0, 360)."""
        e = to_euler(from_euler(-10.0, 200.0, -30.0))
        np.testing.assert_allclose(e, [350.0, 200.0, 330.0], atol=1e-9)
        assert np.all(e >= 0.0) and np.all(e < 360.0)

    def test_identity_euler_is_zero(self):
        np.testing.assert_array_equal(to_euler(IDENTITY), [0.0, 0.0, 0.0])

    def test_gimbal_lock(self):
        """At pitch 90 the remaining rotation is reported as yaw."""
        e = to_euler(from_euler(90.0, 30.0, 0.0))
        assert abs(e[0] - 90.0) < 1e-4
        assert abs(e[1] - 30.0) < 1e-4
        assert e[2] == 0.0

    def test_yaw_rotates_about_vertical(self):
        v = qrot(from_euler(0.0, 90.0, 0.0), [1.0, 0.0, 0.0])
        np.testing.assert_allclose(v, [0.0, 0.0, -1.0], atol=1e-12)

    def test_composition_order(self):
        """Euler(x, y, z) = Ry * Rx * Rz."""
        q = qmul(qmul(from_euler(0, 40, 0), from_euler(25, 0, 0)), from_euler(0, 0, -15))
        assert _same_rotation(q, from_euler(25, 40, -15))

    def test_conj_is_inverse(self):
        q = from_euler(12.0, 34.0, 56.0)
        np.testing.assert_allclose(qmul(qconj(q), q), IDENTITY, atol=1e-12)

    @pytest.mark.parametrize("a, expected", [
        (0.0, 0.0), (180.0, 180.0), (-180.0, 180.0), (190.0, -170.0),
        (-190.0, 170.0), (540.0, 180.0), (359.0, -1.0), (-720.5, -0.5),
    ])
    def test_wrap180(self, a, expected):
        assert wrap180(a) == pytest.approx(expected)

    def test_delta_angle_shortest(self):
        assert delta_angle(350.0, 10.0) == pytest.approx(20.0)
        assert delta_angle(10.0, 350.0) == pytest.approx(-20.0)
        assert delta_angle(0.0, 180.0) == pytest.approx(180.0)

    def test_small_mounting_offset_ignored(self):
        q = from_euler(5.0, 0.0, 0.0)
        np.testing.assert_array_equal(apply_mounting_roll(q, 0.05), q)


# ── Calibration ─────────────────────────────────────────────────────────────

class TestCalibration:
    def test_identity_neutral(self):
        cal = CalibrationState()
        frame = cal.capture(IDENTITY)
        assert cal.initialized
        assert _same_rotation(frame.neutral_pitch_roll, IDENTITY)
        assert frame.neutral_yaw_deg == pytest.approx(0.0)

    def test_yaw_removed(self):
        frame = CalibrationState().capture(from_euler(10.0, 45.0, -5.0))
        assert _same_rotation(frame.neutral_pitch_roll, from_euler(10.0, 0.0, -5.0))
        assert frame.neutral_yaw_deg == pytest.approx(45.0)

    def test_raw_yaw_kept_in_0_360(self):
        frame = CalibrationState().capture(from_euler(0.0, -30.0, 0.0))
        assert frame.neutral_yaw_deg == pytest.approx(330.0)

    def test_one_shot(self):
        cal = CalibrationState()
        first = cal.capture(from_euler(5.0, 10.0, 0.0))
        second = cal.capture(from_euler(30.0, 80.0, 20.0))
        assert second is first

    def test_frame_before_capture(self):
        with pytest.raises(RuntimeError):
            CalibrationState().frame

    def test_reset(self):
        cal = CalibrationState()
        cal.capture(from_euler(5.0, 10.0, 0.0))
        cal.reset()
        assert not cal.initialized
        frame = cal.capture(IDENTITY)
        assert frame.neutral_yaw_deg == pytest.approx(0.0)

    def test_mounting_roll_applied(self):
        """Side-mounted sensor reading roll 90 at rest -> neutral identity."""
        frame = CalibrationState().capture(from_euler(0.0, 0.0, 90.0),
                                           mounting_roll_deg=-90.0)
        assert _same_rotation(frame.neutral_pitch_roll, IDENTITY)

    def test_summary(self):
        text = _cal(from_euler(10.0, 45.0, 0.0)).summary()
        assert "Pitch" in text and "Yaw" in text


# ── Pendulum model ──────────────────────────────────────────────────────────

class TestEstimator:
    def test_neutral_hangs_below_anchor(self):
        pos = compute(IDENTITY, _cal(), ANCHOR, _params())
        np.testing.assert_allclose(pos, [0.0, -1.0, 0.0], atol=1e-12)

    def test_anchor_offset(self):
        pos = compute(IDENTITY, _cal(), [1.0, 2.0, 3.0], _params(pendulum_length=0.5))
        np.testing.assert_allclose(pos, [1.0, 1.5, 3.0], atol=1e-12)

    def test_pitch_45(self):
        est = estimate(from_euler(45.0, 0.0, 0.0), _cal(), ANCHOR, _params())
        assert est.pitch_deg == pytest.approx(45.0)
        assert est.roll_deg == pytest.approx(0.0, abs=1e-9)
        assert est.yaw_delta_deg == pytest.approx(0.0, abs=1e-9)
        np.testing.assert_allclose(est.local_sway, [0.0, 0.0, 1.0], atol=1e-9)
        np.testing.assert_allclose(est.position, [0.0, -1.0, 1.0], atol=1e-9)

    def test_roll_30(self):
        pos = compute(from_euler(0.0, 0.0, 30.0), _cal(), ANCHOR, _params(pendulum_length=2.0))
        np.testing.assert_allclose(pos, [2.0 * math.tan(math.radians(30.0)), -2.0, 0.0],
                                   atol=1e-9)

    def test_negative_pitch(self):
        pos = compute(from_euler(-20.0, 0.0, 0.0), _cal(), ANCHOR, _params())
        assert pos[2] == pytest.approx(-math.tan(math.radians(20.0)))

    def test_yaw_rotates_sway(self):
        """Forward sway after a 90 deg turn ends up along +X."""
        est = estimate(from_euler(30.0, 90.0, 0.0), _cal(), ANCHOR, _params())
        t = math.tan(math.radians(30.0))
        assert est.yaw_delta_deg == pytest.approx(90.0)
        np.testing.assert_allclose(est.position, [t, -1.0, 0.0], atol=1e-9)

    def test_yaw_delta_wraps(self):
        cal = _cal(from_euler(0.0, 350.0, 0.0))
        est = estimate(from_euler(0.0, 10.0, 0.0), cal, ANCHOR, _params())
        assert est.yaw_delta_deg == pytest.approx(20.0)

    def test_pure_yaw_has_no_sway(self):
        pos = compute(from_euler(0.0, 123.0, 0.0), _cal(), ANCHOR, _params())
        np.testing.assert_allclose(pos, [0.0, -1.0, 0.0], atol=1e-9)

    def test_deterministic(self):
        q = from_euler(12.0, 34.0, -7.0)
        cal = _cal(from_euler(3.0, 20.0, 1.0))
        a = compute(q, cal, [0.1, 1.7, -0.3], _params(max_sway_radius=0.3))
        b = compute(q, cal, [0.1, 1.7, -0.3], _params(max_sway_radius=0.3))
        np.testing.assert_array_equal(a, b)

    def test_compute_matches_estimate(self):
        q = from_euler(8.0, 15.0, 4.0)
        np.testing.assert_array_equal(compute(q, _cal(), ANCHOR, _params()),
                                      estimate(q, _cal(), ANCHOR, _params()).position)

    def test_vertical_is_fixed(self):
        pos = compute(from_euler(25.0, 60.0, -15.0), _cal(), ANCHOR, _params(pendulum_length=0.8))
        assert pos[1] == pytest.approx(-0.8)


class TestCalibrationIdentity:
    @pytest.mark.parametrize("q0", [
        from_euler(12.0, 0.0, -7.0),
        from_euler(0.0, 123.0, 0.0),
        from_euler(-30.0, 0.0, 0.0),
        from_euler(12.0, 70.0, -7.0),
        from_euler(-25.0, 200.0, 15.0),
    ])
    def test_same_pose_is_zero(self, q0):
        est = estimate(q0, _cal(q0), ANCHOR, _params())
        assert est.pitch_deg == pytest.approx(0.0, abs=1e-7)
        assert est.roll_deg == pytest.approx(0.0, abs=1e-7)
        assert est.yaw_delta_deg == pytest.approx(0.0, abs=1e-7)
        np.testing.assert_allclose(est.position, [0.0, -1.0, 0.0], atol=1e-7)

    def test_heading_stripped_by_default(self):
        assert SwayParams(pendulum_length=1.0).strip_heading is True

    def test_tilt_after_turn(self):
        cal = _cal(from_euler(0.0, 70.0, 0.0))
        est = estimate(from_euler(20.0, 100.0, 0.0), cal, ANCHOR, _params())
        t = math.tan(math.radians(20.0))
        assert est.pitch_deg == pytest.approx(20.0)
        assert est.yaw_delta_deg == pytest.approx(30.0)
        np.testing.assert_allclose(
            est.world_sway, [math.sin(math.radians(30.0)) * t, 0.0,
                             math.cos(math.radians(30.0)) * t], atol=1e-9)

    def test_reference_tilt_is_opt_in(self):
        """Without heading removal a yawed, tilted neutral pose leaks into tilt."""
        q0 = from_euler(12.0, 70.0, -7.0)
        est = estimate(q0, _cal(q0), ANCHOR, _params(strip_heading=False))
        assert abs(est.pitch_deg) + abs(est.roll_deg) > 1.0
        assert not np.allclose(est.position, [0.0, -1.0, 0.0], atol=1e-3)

    @pytest.mark.parametrize("q0", [
        from_euler(12.0, 0.0, -7.0),
        from_euler(0.0, 123.0, 0.0),
    ])
    def test_reference_tilt_zero_without_yawed_tilt(self, q0):
        est = estimate(q0, _cal(q0), ANCHOR, _params(strip_heading=False))
        np.testing.assert_allclose(est.position, [0.0, -1.0, 0.0], atol=1e-7)


# ── Singularity safety ──────────────────────────────────────────────────────

class TestSingularity:
    BOUND = math.tan(math.radians(89.9))

    def test_roll_near_90_is_clamped(self):
        est = estimate(from_euler(0.0, 0.0, 89.99), _cal(), ANCHOR, _params())
        assert est.roll_deg == pytest.approx(89.9)
        assert np.all(np.isfinite(est.position))
        assert abs(est.local_sway[0]) <= self.BOUND + 1e-9

    def test_pitch_exactly_90(self):
        est = estimate(from_euler(90.0, 0.0, 0.0), _cal(), ANCHOR, _params())
        assert abs(est.pitch_deg) <= 89.9
        assert np.all(np.isfinite(est.position))

    def test_full_sweep_is_finite(self):
        cal = _cal()
        params = _params()
        for a in np.arange(-180.0, 180.5, 0.5):
            for q in (from_euler(a, 0.0, 0.0), from_euler(0.0, 0.0, a),
                      from_euler(a, a, a)):
                est = estimate(q, cal, ANCHOR, params)
                assert np.all(np.isfinite(est.position)), a
                assert np.all(np.abs(est.local_sway) <= self.BOUND + 1e-9), a

    def test_custom_tilt_limit(self):
        est = estimate(from_euler(60.0, 0.0, 0.0), _cal(), ANCHOR,
                       _params(tilt_limit_deg=45.0))
        assert est.pitch_deg == pytest.approx(45.0)
        assert est.local_sway[2] == pytest.approx(1.0)


# ── Clamp & mounting ────────────────────────────────────────────────────────

class TestClampAndMounting:
    def test_clamp_disabled_by_default(self):
        est = estimate(from_euler(60.0, 0.0, 0.0), _cal(), ANCHOR, _params())
        assert not est.clamped
        assert est.world_sway[2] == pytest.approx(math.tan(math.radians(60.0)))

    def test_clamp_radius(self):
        est = estimate(from_euler(45.0, 0.0, 30.0), _cal(), ANCHOR,
                       _params(max_sway_radius=0.5))
        assert est.clamped
        assert math.hypot(est.world_sway[0], est.world_sway[2]) == pytest.approx(0.5)
        # direction preserved
        ratio = est.world_sway[0] / est.world_sway[2]
        assert ratio == pytest.approx(est.local_sway[0] / est.local_sway[2])

    def test_within_radius_untouched(self):
        est = estimate(from_euler(10.0, 0.0, 0.0), _cal(), ANCHOR,
                       _params(max_sway_radius=0.5))
        assert not est.clamped
        assert est.world_sway[2] == pytest.approx(math.tan(math.radians(10.0)))

    def test_zero_radius(self):
        pos = compute(from_euler(20.0, 0.0, 0.0), _cal(), [0.0, 1.0, 0.0],
                      _params(max_sway_radius=0.0))
        np.testing.assert_allclose(pos, [0.0, 0.0, 0.0], atol=1e-12)

    def test_mounting_roll_zeroes_side_mount(self):
        raw = from_euler(0.0, 0.0, 90.0)
        params = _params(mounting_roll_deg=-90.0)
        cal = _cal(raw, roll_offset=-90.0)
        np.testing.assert_allclose(compute(raw, cal, ANCHOR, params),
                                   [0.0, -1.0, 0.0], atol=1e-9)

    def test_mounting_roll_forward_lean(self):
        """Leaning forward with a side-mounted sensor still reads as pitch."""
        params = _params(mounting_roll_deg=-90.0)
        cal = _cal(from_euler(0.0, 0.0, 90.0), roll_offset=-90.0)
        raw = qmul(from_euler(20.0, 0.0, 0.0), from_euler(0.0, 0.0, 90.0))
        est = estimate(raw, cal, ANCHOR, params)
        assert est.pitch_deg == pytest.approx(20.0)
        assert est.roll_deg == pytest.approx(0.0, abs=1e-9)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
