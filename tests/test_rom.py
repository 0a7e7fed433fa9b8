"""Tests for range-of-motion tracking."""

import math
import random

import pytest

from repsense.config import RomConfig
from repsense.joints import JointAngleSample, get_joint
from repsense.rom import RangeOfMotion, RangeOfMotionTracker, RomCategory

KNEE = get_joint("left_knee")


def _s(deg, ts, conf=0.9, joint=KNEE):
    return JointAngleSample(joint, math.radians(deg), conf, ts)


class TestRangeOfMotionTracker:
    def test_first_sample(self):
        rec = RangeOfMotionTracker().update(_s(170, 0))
        assert rec.sample_count == 1
        assert rec.min_degrees == pytest.approx(170)
        assert rec.max_degrees == pytest.approx(170)
        assert not rec.has_meaningful_data

    def test_monotonic_widening(self):
        rng = random.Random(7)
        tracker = RangeOfMotionTracker()
        prev_min, prev_max = math.inf, -math.inf
        for i in range(200):
            rec = tracker.update(_s(rng.uniform(60, 180), i * 33_000))
            assert rec.min_rad <= prev_min
            assert rec.max_rad >= prev_max
            assert rec.range_rad >= 0
            prev_min, prev_max = rec.min_rad, rec.max_rad

    def test_running_confidence_and_timestamps(self):
        tracker = RangeOfMotionTracker()
        tracker.update(_s(170, 0, conf=0.6))
        rec = tracker.update(_s(90, 100_000, conf=1.0))
        assert rec.avg_confidence == pytest.approx(0.8)
        assert rec.start_us == 0
        assert rec.last_us == 100_000
        assert rec.range_degrees == pytest.approx(80)
        assert rec.category is RomCategory.GOOD
        assert rec.has_meaningful_data

    def test_low_confidence_leaves_state(self):
        tracker = RangeOfMotionTracker(min_confidence=0.5)
        before = tracker.update(_s(170, 0))
        assert tracker.update(_s(60, 33_000, conf=0.2)) is before
        assert tracker.update(_s(60, 33_000, conf=0.2, joint=get_joint("right_knee"))) is None

    def test_gap_starts_new_session(self):
        tracker = RangeOfMotionTracker(RomConfig(max_gap_us=1_000_000))
        tracker.update(_s(170, 0))
        tracker.update(_s(90, 100_000))
        rec = tracker.update(_s(150, 5_000_000))
        assert rec.sample_count == 1
        assert rec.min_degrees == pytest.approx(150)

    def test_backwards_time_starts_new_session(self):
        tracker = RangeOfMotionTracker()
        tracker.update(_s(170, 500_000))
        assert tracker.update(_s(120, 100_000)).sample_count == 1

    def test_lookup_and_summary(self):
        tracker = RangeOfMotionTracker()
        elbow = get_joint("left_elbow")
        tracker.update_all([_s(170, 0), _s(160, 0, joint=elbow)])
        tracker.update_all([_s(90, 1_000_000), _s(150, 1_000_000, joint=elbow)])
        assert tracker.contains("left_knee")
        assert not tracker.contains("right_knee")
        assert len(tracker) == 2
        assert tracker.largest().joint == KNEE
        summary = tracker.summary()
        assert summary.joint_count == 2
        assert summary.max_range_degrees == pytest.approx(80)
        assert summary.min_range_degrees == pytest.approx(10)
        assert summary.total_samples == 4
        assert summary.duration_seconds == pytest.approx(1.0)

    def test_reset(self):
        tracker = RangeOfMotionTracker()
        tracker.update(_s(170, 0))
        tracker.reset()
        assert len(tracker) == 0
        assert tracker.largest() is None
        assert tracker.summary().joint_count == 0


class TestRangeOfMotion:
    def test_normalized_position(self):
        rec = RangeOfMotion.first(_s(90, 0)).updated(_s(170, 1))
        assert rec.normalized_position(math.radians(130)) == pytest.approx(0.5)
        assert rec.normalized_position(math.radians(200)) == 1.0
        assert RangeOfMotion.first(_s(90, 0)).normalized_position(1.0) is None

    def test_merge(self):
        a = RangeOfMotion.first(_s(150, 0, conf=0.6)).updated(_s(120, 10, conf=0.6))
        b = RangeOfMotion.first(_s(80, 20, conf=1.0))
        m = a.merge(b)
        assert m.sample_count == 3
        assert m.min_degrees == pytest.approx(80)
        assert m.max_degrees == pytest.approx(150)
        assert m.avg_confidence == pytest.approx((0.6 * 2 + 1.0) / 3)
        assert (m.start_us, m.last_us) == (0, 20)

    def test_merge_rejects_other_joint(self):
        a = RangeOfMotion.first(_s(150, 0))
        b = RangeOfMotion.first(_s(150, 0, joint=get_joint("right_knee")))
        with pytest.raises(ValueError, match="cannot merge"):
            a.merge(b)

    @pytest.mark.parametrize(
        "deg, category",
        [(5, RomCategory.MINIMAL), (20, RomCategory.LIMITED), (45, RomCategory.MODERATE),
         (75, RomCategory.GOOD), (120, RomCategory.FULL)],
    )
    def test_categories(self, deg, category):
        assert RomCategory.from_degrees(deg) is category
