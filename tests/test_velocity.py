"""Tests for landmark and angular velocities."""

import math

import pytest

from repsense.config import VelocityConfig
from repsense.joints import JointAngleSample, get_joint
from repsense.pose import LandmarkSample, PoseFrame
from repsense.velocity import (
    LandmarkVelocity,
    VelocityTracker,
    angular_velocities,
    angular_velocity,
    compute_velocities,
    smoothed_velocities,
)


def _frame(ts_us, x, y=0.5, conf=0.9, idx=0):
    return PoseFrame((LandmarkSample(idx, x, y, 0.0, conf),), timestamp_us=ts_us)


# ============================================================================
# Linear velocity
# ============================================================================

class TestComputeVelocities:
    def test_basic(self):
        v = compute_velocities(_frame(0, 0.10), _frame(100_000, 0.20, y=0.6))[0]
        assert v.vx == pytest.approx(1.0)
        assert v.vy == pytest.approx(1.0)
        assert v.speed == pytest.approx(math.sqrt(2))
        assert v.direction_degrees == pytest.approx(45.0)
        assert v.dt_us == 100_000
        assert v.is_moving()

    def test_too_close_in_time(self):
        assert compute_velocities(_frame(0, 0.1), _frame(500, 0.2)) == {}

    def test_low_confidence_skipped(self):
        assert compute_velocities(_frame(0, 0.1, conf=0.1), _frame(33_000, 0.2)) == {}

    def test_confidence_is_minimum(self):
        v = compute_velocities(_frame(0, 0.1, conf=0.5), _frame(33_000, 0.2, conf=0.9))[0]
        assert v.confidence == 0.5

    def test_stationary(self):
        v = LandmarkVelocity(0, 0.01, 0.0, 0, 33_000, 1.0)
        assert not v.is_moving()


class TestSmoothedVelocities:
    def test_averages_window(self):
        history = [_frame(0, 0.0), _frame(100_000, 0.1), _frame(200_000, 0.3)]
        v = smoothed_velocities(history, window=3)[0]
        # pair speeds 1.0 and 2.0
        assert v.vx == pytest.approx(1.5)
        assert v.timestamp_us == 200_000

    def test_window_limits_pairs(self):
        history = [_frame(0, 0.0), _frame(100_000, 0.1), _frame(200_000, 0.3)]
        assert smoothed_velocities(history, window=1)[0].vx == pytest.approx(2.0)

    def test_needs_two_frames(self):
        assert smoothed_velocities([_frame(0, 0.0)]) == {}


class TestVelocityTracker:
    def test_first_frame_has_no_velocity(self):
        tracker = VelocityTracker()
        assert tracker.update(_frame(0, 0.0)) == {}

    def test_exponential_smoothing(self):
        tracker = VelocityTracker(VelocityConfig(ema_factor=0.5))
        tracker.update(_frame(0, 0.0))
        assert tracker.update(_frame(100_000, 0.1))[0].vx == pytest.approx(1.0)
        # raw 3.0 blended with previous 1.0
        assert tracker.update(_frame(200_000, 0.4))[0].vx == pytest.approx(2.0)

    def test_backwards_time_restarts(self):
        tracker = VelocityTracker()
        tracker.update(_frame(100_000, 0.0))
        tracker.update(_frame(200_000, 0.1))
        assert tracker.update(_frame(50_000, 0.5)) == {}
        assert tracker.current == {}


# ============================================================================
# Angular velocity
# ============================================================================

class TestAngularVelocity:
    def _sample(self, name, deg, ts, conf=0.8):
        return JointAngleSample(get_joint(name), math.radians(deg), conf, ts)

    def test_rate(self):
        w = angular_velocity(self._sample("left_knee", 170, 0, 0.6), self._sample("left_knee", 140, 500_000, 1.0))
        assert w.degrees_per_s == pytest.approx(-60.0)
        assert w.confidence == pytest.approx(0.8)

    def test_too_close(self):
        assert angular_velocity(self._sample("left_knee", 170, 0), self._sample("left_knee", 160, 10)) is None

    def test_joint_mismatch(self):
        with pytest.raises(ValueError, match="joint mismatch"):
            angular_velocity(self._sample("left_knee", 170, 0), self._sample("right_knee", 160, 33_000))

    def test_dicts(self):
        prev = {"left_knee": self._sample("left_knee", 170, 0)}
        cur = {
            "left_knee": self._sample("left_knee", 160, 100_000),
            "right_knee": self._sample("right_knee", 160, 100_000),
        }
        out = angular_velocities(prev, cur)
        assert list(out) == ["left_knee"]
        assert out["left_knee"].degrees_per_s == pytest.approx(-100.0)
