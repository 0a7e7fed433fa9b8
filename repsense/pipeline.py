"""
Per-session analysis pipeline: smoothing, validation gate, feature extraction,
ROM accumulation and rep detection, one frame at a time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .buffer import RingBuffer
from .config import PipelineConfig
from .filters import PoseSmoother
from .joints import JOINT_CATALOG, BodyJoint, JointAngleSample, compute_joint_angles, get_joint
from .pose import PoseFrame
from .reps import ExerciseAnalyzer, SquatAnalyzer, SquatMetrics, SquatRep, SquatSession
from .rom import RangeOfMotion, RangeOfMotionTracker
from .validation import HumanPoseValidator, ValidationOutcome
from .velocity import AngularVelocity, LandmarkVelocity, angular_velocities, smoothed_velocities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Everything the pipeline produced for one input frame."""

    frame: PoseFrame
    # None when validation is disabled
    validation: Optional[ValidationOutcome]
    accepted: bool
    joint_angles: dict[str, JointAngleSample] = field(default_factory=dict)
    velocities: dict[int, LandmarkVelocity] = field(default_factory=dict)
    angular_velocities: dict[str, AngularVelocity] = field(default_factory=dict)
    rom: dict[str, RangeOfMotion] = field(default_factory=dict)
    squat_metrics: Optional[SquatMetrics] = None
    completed_rep: Optional[SquatRep] = None

    @property
    def rejection_reason(self) -> Optional[str]:
        return self.validation.rejection_reason if self.validation is not None else None


class PoseAnalysisPipeline:
    """
    Owns every stateful stage of one analysis session. Frames must arrive in
    timestamp order; a backwards or stalled timestamp restarts the temporal state
    of each stage without raising.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        analyzer: Optional[ExerciseAnalyzer] = None,
    ):
        self.config = config or PipelineConfig.default()
        cfg = self.config
        self.smoother = PoseSmoother(cfg.filter)
        self.validator = HumanPoseValidator(cfg.validator, cfg.thresholds)
        self.history: RingBuffer[PoseFrame] = RingBuffer(cfg.history_capacity)
        self.rom = RangeOfMotionTracker(cfg.rom, min_confidence=cfg.thresholds.rom)
        self.analyzer = analyzer if analyzer is not None else SquatAnalyzer(cfg.squat, cfg.thresholds)
        self._joints = self._resolve_joints(cfg)
        self._previous_angles: dict[str, JointAngleSample] = {}
        self.frames_processed = 0
        self.frames_rejected = 0

    @staticmethod
    def _resolve_joints(cfg: PipelineConfig) -> list[BodyJoint]:
        if cfg.joints is None:
            return list(JOINT_CATALOG.values())
        return [get_joint(name) for name in cfg.joints]

    def reset(self) -> None:
        logger.info(
            "pipeline: session reset after %s frames (%s rejected, %s reps)",
            self.frames_processed, self.frames_rejected, self.analyzer.completed_rep_count,
        )
        self.smoother.clear()
        self.validator.reset()
        self.history.clear()
        self.rom.reset()
        self.analyzer.reset()
        self._previous_angles = {}
        self.frames_processed = 0
        self.frames_rejected = 0

    def update_config(self, config: PipelineConfig) -> None:
        """
        Swap configuration mid-session. A new history capacity rebuilds (empties)
        the history; new filter parameters restart the filter bank; everything
        else applies from the next frame.
        """
        old = self.config
        self.config = config
        if config.history_capacity != old.history_capacity:
            logger.info(
                "pipeline: history capacity %s -> %s, history cleared",
                old.history_capacity, config.history_capacity,
            )
            self.history = RingBuffer(config.history_capacity)
            self._previous_angles = {}
        if config.filter != old.filter:
            logger.info("pipeline: filter parameters changed, filter bank reset")
            self.smoother = PoseSmoother(config.filter)
        if config.validator != old.validator:
            self.validator = HumanPoseValidator(config.validator, config.thresholds)
        else:
            self.validator.thresholds = config.thresholds
        self.rom.config = config.rom
        self.rom.min_confidence = config.thresholds.rom
        if isinstance(self.analyzer, SquatAnalyzer):
            self.analyzer.config = config.squat
            self.analyzer.thresholds = config.thresholds
        self._joints = self._resolve_joints(config)

    @property
    def last_metrics(self):
        return self.analyzer.last_metrics

    def session_summary(self) -> SquatSession:
        return self.analyzer.session_summary()

    def process(self, frame: PoseFrame) -> FrameResult:
        cfg = self.config
        self.frames_processed += 1
        self._check_discontinuity(frame)

        smoothed = self.smoother.smooth(frame)
        validation = self.validator.validate(smoothed) if cfg.enable_validation else None
        if validation is not None and not validation.is_valid:
            self.frames_rejected += 1
            logger.debug("pipeline: frame %s rejected: %s", frame.frame_index, validation.rejection_reason)
            return FrameResult(
                frame=smoothed,
                validation=validation,
                accepted=False,
                rom=self.rom.records,
                squat_metrics=self.analyzer.last_metrics,
            )

        self.history.add(smoothed)
        t = cfg.thresholds
        angles = compute_joint_angles(smoothed, self._joints, min_confidence=t.angle)
        velocities = smoothed_velocities(
            self.history.items(),
            window=cfg.velocity.window,
            min_confidence=t.velocity,
            min_dt_us=cfg.velocity.min_dt_us,
        )
        angular = angular_velocities(self._previous_angles, angles, cfg.velocity.min_dt_us)
        self._previous_angles = angles
        rom = self.rom.update_all(angles.values())
        metrics, rep = self.analyzer.process(smoothed)

        return FrameResult(
            frame=smoothed,
            validation=validation,
            accepted=True,
            joint_angles=angles,
            velocities=velocities,
            angular_velocities=angular,
            rom=rom,
            squat_metrics=metrics,
            completed_rep=rep,
        )

    def _check_discontinuity(self, frame: PoseFrame) -> None:
        latest = self.history.latest()
        if latest is None:
            return
        gap = frame.timestamp_us - latest.timestamp_us
        if gap <= 0 or gap > self.config.filter.max_gap_us:
            logger.debug("pipeline: gap %sus before frame %s, clearing history", gap, frame.frame_index)
            self.history.clear()
            self.validator.reset()
            self._previous_angles = {}
