"""Tests for the session pipeline."""

import logging

import pytest

from pose_builders import DEEP_REP, SHALLOW_REP, knee_angle_sequence, make_inverted_pose, make_pose

from repsense.config import FilterConfig, PipelineConfig, SquatConfig
from repsense.pipeline import FrameResult, PoseAnalysisPipeline
from repsense.pose import LandmarkIdx as L
from repsense.pose import LandmarkSample
from repsense.reps import SquatPhase

# Nearly pass-through smoothing so synthetic angles reach the analyzer intact
CRISP = FilterConfig(min_cutoff=1000.0)


def _pipeline(**overrides):
    return PoseAnalysisPipeline(PipelineConfig(filter=CRISP, **overrides))


def _feed(pipeline, frames):
    return [pipeline.process(f) for f in frames]


def _shifted(frame, dx):
    return frame.replace_landmarks(
        LandmarkSample(lm.id, lm.x + dx, lm.y, lm.z, lm.confidence) for lm in frame.landmarks
    )


# ============================================================================
# End to end
# ============================================================================

class TestEndToEnd:
    def test_shallow_rep_with_validation(self):
        pipeline = _pipeline()
        results = _feed(pipeline, knee_angle_sequence(SHALLOW_REP))
        assert all(r.accepted for r in results)
        reps = [r.completed_rep for r in results if r.completed_rep is not None]
        assert len(reps) == 1
        assert reps[0].lowest_knee_angle == pytest.approx(88.0, abs=1.0)
        assert reps[0].reached_parallel
        assert results[-1].squat_metrics.total_reps == 1

    def test_two_deep_reps(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence(DEEP_REP * 2, spacing_us=40_000))
        session = pipeline.session_summary()
        assert session.total_reps == 2
        assert all(r.reached_bottom for r in session.reps)

    def test_default_smoothing_still_produces_features(self):
        pipeline = PoseAnalysisPipeline()
        results = _feed(pipeline, knee_angle_sequence([170, 165, 160]))
        assert results[-1].accepted
        assert "left_knee" in results[-1].joint_angles
        assert results[-1].squat_metrics.phase is SquatPhase.STANDING


# ============================================================================
# Validation gate
# ============================================================================

class TestValidationGate:
    def test_rejected_frame_skips_downstream(self):
        pipeline = _pipeline()
        first = pipeline.process(make_pose(timestamp_us=0))
        result = pipeline.process(make_inverted_pose(timestamp_us=33_000, frame_index=1))
        assert not result.accepted
        assert result.rejection_reason
        assert result.joint_angles == {}
        assert result.completed_rep is None
        assert result.squat_metrics is first.squat_metrics
        assert pipeline.frames_rejected == 1
        assert len(pipeline.history) == 1

    def test_validation_disabled(self):
        pipeline = _pipeline(enable_validation=False)
        result = pipeline.process(make_inverted_pose())
        assert result.accepted
        assert result.validation is None
        assert result.rejection_reason is None


# ============================================================================
# Features
# ============================================================================

class TestFeatures:
    def test_velocities_need_two_frames(self):
        pipeline = _pipeline()
        first, second = _feed(pipeline, knee_angle_sequence([170, 140]))
        assert first.velocities == {}
        assert first.angular_velocities == {}
        assert second.velocities[L.LEFT_HIP].vy > 0
        assert second.angular_velocities["left_knee"].degrees_per_s < 0

    def test_rom_accumulates(self):
        pipeline = _pipeline()
        results = _feed(pipeline, knee_angle_sequence([170, 140, 110]))
        knee = results[-1].rom["left_knee"]
        assert knee.range_degrees == pytest.approx(60.0, abs=1.0)
        assert knee.sample_count == 3

    def test_joint_subset(self):
        pipeline = _pipeline(joints=("left_knee", "right_knee"))
        result = pipeline.process(make_pose())
        assert set(result.joint_angles) == {"left_knee", "right_knee"}

    def test_unknown_joint_in_config(self):
        with pytest.raises(ValueError, match="unknown joint"):
            _pipeline(joints=("tail",))

    def test_result_type(self):
        assert isinstance(_pipeline().process(make_pose()), FrameResult)


# ============================================================================
# History and temporal discontinuities
# ============================================================================

class TestHistory:
    def test_history_is_bounded(self):
        pipeline = _pipeline(history_capacity=5)
        _feed(pipeline, knee_angle_sequence([170] * 12))
        assert len(pipeline.history) == 5
        assert pipeline.history.latest().frame_index == 11

    def test_backwards_timestamp_clears_history(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence([170] * 4, start_us=1_000_000))
        result = pipeline.process(make_pose(timestamp_us=10_000, frame_index=99))
        assert result.accepted
        assert len(pipeline.history) == 1
        assert result.velocities == {}

    def test_long_gap_clears_history(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence([170] * 3))
        pipeline.process(make_pose(timestamp_us=60_000_000))
        assert len(pipeline.history) == 1

    def test_person_moved_during_pause_is_accepted(self):
        pipeline = PoseAnalysisPipeline(PipelineConfig.strict().with_overrides(filter=CRISP))
        assert all(r.accepted for r in _feed(pipeline, knee_angle_sequence([170] * 5)))
        # five seconds later the person stands 0.3 of the frame to the left
        after = [
            _shifted(f, -0.3)
            for f in knee_angle_sequence([170] * 10, start_us=5_000_000, start_index=5)
        ]
        results = _feed(pipeline, after)
        assert all(r.accepted for r in results)
        assert pipeline.frames_rejected == 0
        assert "temporal_consistency" not in results[0].validation.checks


# ============================================================================
# Session control
# ============================================================================

class TestSessionControl:
    def test_reset(self, caplog):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence(SHALLOW_REP))
        with caplog.at_level(logging.INFO, logger="repsense.pipeline"):
            pipeline.reset()
        assert any("session reset" in r.getMessage() for r in caplog.records)
        assert pipeline.frames_processed == 0
        assert len(pipeline.history) == 0
        assert len(pipeline.rom) == 0
        assert len(pipeline.smoother) == 0
        assert pipeline.session_summary().total_reps == 0
        assert pipeline.last_metrics is None

    def test_capacity_change_rebuilds_history(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence([170] * 4))
        pipeline.update_config(pipeline.config.with_overrides(history_capacity=10))
        assert len(pipeline.history) == 0
        assert pipeline.history.capacity == 10

    def test_filter_change_resets_bank(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence([170] * 2))
        pipeline.update_config(pipeline.config.with_overrides(filter=FilterConfig(min_cutoff=500.0)))
        assert len(pipeline.smoother) == 0
        assert pipeline.smoother.config.min_cutoff == 500.0

    def test_other_changes_keep_state(self):
        pipeline = _pipeline()
        _feed(pipeline, knee_angle_sequence([170] * 3))
        pipeline.update_config(pipeline.config.with_overrides(squat=SquatConfig(transition_threshold=5.0)))
        assert len(pipeline.history) == 3
        assert pipeline.analyzer.config.transition_threshold == 5.0
