"""
Configuration for the pose-analysis pipeline.
Every tunable threshold lives here; components receive these objects at construction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional


class InvalidConfigError(ValueError):
    """Raised when a configuration value can never produce a working component."""


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise InvalidConfigError(f"{name} must be within [0, 1], got {value}")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise InvalidConfigError(f"{name} must be positive, got {value}")


def _check_range(name: str, bounds: tuple[float, float]) -> None:
    lo, hi = bounds
    if lo > hi:
        raise InvalidConfigError(f"{name} range is inverted: ({lo}, {hi})")


@dataclass(frozen=True)
class ConfidenceThresholds:
    """Minimum landmark confidences shared by every stage."""

    # Joint angle extraction
    angle: float = 0.5
    # Landmark velocity
    velocity: float = 0.3
    # ROM accumulation floor (applied to the joint-angle confidence)
    rom: float = 0.5
    # Squat key landmarks (shoulders, hips, knees, ankles)
    squat: float = 0.5
    # Validator: nose/shoulders/hips
    high_priority: float = 0.5
    # Validator: distances between landmarks
    medium_priority: float = 0.3
    # Validator: mean confidence over visible landmarks
    average: float = 0.4
    # Landmarks below this do not count as visible at all
    visibility: float = 0.1
    # Temporal movement and left/right symmetry comparisons
    tracking: float = 0.3

    def __post_init__(self) -> None:
        for name in (
            "angle", "velocity", "rom", "squat", "high_priority",
            "medium_priority", "average", "visibility", "tracking",
        ):
            _check_unit(name, getattr(self, name))

    @classmethod
    def strict(cls) -> "ConfidenceThresholds":
        return cls(high_priority=0.70, medium_priority=0.50, average=0.55)

    @classmethod
    def lenient(cls) -> "ConfidenceThresholds":
        return cls(high_priority=0.40, medium_priority=0.25, average=0.35)


@dataclass(frozen=True)
class FilterConfig:
    """1-Euro filter parameters plus the gap that restarts the filter bank."""

    min_cutoff: float = 1.0
    beta: float = 0.007
    d_cutoff: float = 1.0
    # Frames further apart than this (microseconds) start a new tracking session
    max_gap_us: int = 500_000

    def __post_init__(self) -> None:
        _check_positive("min_cutoff", self.min_cutoff)
        _check_positive("d_cutoff", self.d_cutoff)
        _check_positive("max_gap_us", self.max_gap_us)
        if self.beta < 0:
            raise InvalidConfigError(f"beta must be non-negative, got {self.beta}")


@dataclass(frozen=True)
class VelocityConfig:
    # Pairs closer than this (microseconds) are skipped
    min_dt_us: int = 1000
    # Frame pairs averaged by the windowed estimate
    window: int = 3
    # Weight of the previous value in the EMA tracker
    ema_factor: float = 0.3

    def __post_init__(self) -> None:
        _check_positive("min_dt_us", self.min_dt_us)
        _check_positive("window", self.window)
        if not 0.0 <= self.ema_factor < 1.0:
            raise InvalidConfigError(f"ema_factor must be within [0, 1), got {self.ema_factor}")


@dataclass(frozen=True)
class RomConfig:
    # Gap (microseconds) between samples that starts a new ROM session
    max_gap_us: int = 2_000_000

    def __post_init__(self) -> None:
        _check_positive("max_gap_us", self.max_gap_us)


# Composite weights of the validator checks (must sum to 1.0).
# spatial_coherence + skeletal_connectivity + body_symmetry share the coherence budget.
DEFAULT_CHECK_WEIGHTS: dict[str, float] = {
    "landmark_confidence": 0.18,
    "core_body": 0.22,
    "proportions": 0.25,
    "spatial_coherence": 0.09,
    "skeletal_connectivity": 0.04,
    "body_symmetry": 0.02,
    "joint_angles": 0.15,
    "body_height": 0.05,
}


@dataclass(frozen=True)
class ValidatorConfig:
    """Thresholds and anatomical ranges for the human-plausibility validator."""

    threshold: float = 0.60
    min_high_priority_landmarks: int = 3
    # Fraction of the frame the key landmarks may move between frames
    max_frame_movement: float = 0.15
    temporal_window: int = 5
    # Frames further apart than this (microseconds) start a fresh temporal history
    max_gap_us: int = 500_000
    shoulder_to_hip: tuple[float, float] = (0.85, 1.25)
    upper_arm_to_forearm: tuple[float, float] = (0.7, 1.4)
    thigh_to_shin: tuple[float, float] = (0.75, 1.35)
    torso_to_leg: tuple[float, float] = (0.4, 1.0)
    max_lateral_asymmetry: float = 0.25
    head_to_height: tuple[float, float] = (0.08, 0.18)
    torso_to_height: tuple[float, float] = (0.22, 0.42)
    leg_to_height: tuple[float, float] = (0.38, 0.62)
    max_height_variance: float = 0.12
    min_body_size: float = 0.015
    # Temporal consistency scales the composite by floor + (1 - floor) * score
    temporal_floor: float = 0.7
    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CHECK_WEIGHTS))

    def __post_init__(self) -> None:
        _check_unit("threshold", self.threshold)
        _check_unit("temporal_floor", self.temporal_floor)
        _check_positive("max_frame_movement", self.max_frame_movement)
        _check_positive("temporal_window", self.temporal_window)
        _check_positive("max_gap_us", self.max_gap_us)
        _check_positive("min_high_priority_landmarks", self.min_high_priority_landmarks)
        for name in (
            "shoulder_to_hip", "upper_arm_to_forearm", "thigh_to_shin", "torso_to_leg",
            "head_to_height", "torso_to_height", "leg_to_height",
        ):
            _check_range(name, getattr(self, name))
        missing = set(DEFAULT_CHECK_WEIGHTS) - set(self.weights)
        if missing:
            raise InvalidConfigError(f"missing check weights: {sorted(missing)}")
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise InvalidConfigError(f"check weights must sum to 1.0, got {total:.4f}")

    @classmethod
    def strict(cls) -> "ValidatorConfig":
        return cls(
            threshold=0.75,
            min_high_priority_landmarks=4,
            max_frame_movement=0.08,
            shoulder_to_hip=(0.90, 1.20),
            upper_arm_to_forearm=(0.75, 1.35),
            thigh_to_shin=(0.80, 1.30),
            max_lateral_asymmetry=0.15,
            min_body_size=0.03,
        )

    @classmethod
    def lenient(cls) -> "ValidatorConfig":
        return cls(
            threshold=0.55,
            max_frame_movement=0.20,
            shoulder_to_hip=(0.6, 1.8),
            upper_arm_to_forearm=(0.5, 1.8),
            thigh_to_shin=(0.6, 1.6),
            max_lateral_asymmetry=0.35,
            min_body_size=0.01,
        )


@dataclass(frozen=True)
class SquatConfig:
    """Knee-angle thresholds (degrees) and form-scoring tolerances."""

    standing_angle: float = 150.0
    parallel_angle: float = 90.0
    # Minimum frame-to-frame change that counts as movement
    transition_threshold: float = 8.0
    bottom_confirmation_frames: int = 2
    smoothing_window: int = 3
    ideal_trunk_angle: float = 30.0
    max_trunk_deviation: float = 25.0
    max_valgus: float = 15.0
    max_asymmetry: float = 20.0
    max_depth_percentage: float = 150.0
    # knee tracking, trunk, symmetry
    form_weights: tuple[float, float, float] = (0.4, 0.3, 0.3)

    def __post_init__(self) -> None:
        if self.standing_angle <= self.parallel_angle:
            raise InvalidConfigError(
                f"standing_angle ({self.standing_angle}) must exceed parallel_angle ({self.parallel_angle})"
            )
        _check_positive("transition_threshold", self.transition_threshold)
        _check_positive("bottom_confirmation_frames", self.bottom_confirmation_frames)
        _check_positive("smoothing_window", self.smoothing_window)
        _check_positive("max_trunk_deviation", self.max_trunk_deviation)
        _check_positive("max_valgus", self.max_valgus)
        _check_positive("max_asymmetry", self.max_asymmetry)
        if not math.isclose(sum(self.form_weights), 1.0, abs_tol=1e-6):
            raise InvalidConfigError(f"form_weights must sum to 1.0, got {self.form_weights}")


@dataclass(frozen=True)
class PipelineConfig:
    """Everything one analysis session needs."""

    thresholds: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)
    filter: FilterConfig = field(default_factory=FilterConfig)
    velocity: VelocityConfig = field(default_factory=VelocityConfig)
    rom: RomConfig = field(default_factory=RomConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    squat: SquatConfig = field(default_factory=SquatConfig)
    history_capacity: int = 30
    enable_validation: bool = True
    # Catalog joint names to extract each frame; None extracts every joint
    joints: Optional[tuple[str, ...]] = None

    def __post_init__(self) -> None:
        _check_positive("history_capacity", self.history_capacity)

    @classmethod
    def default(cls) -> "PipelineConfig":
        return cls()

    @classmethod
    def strict(cls) -> "PipelineConfig":
        return cls(thresholds=ConfidenceThresholds.strict(), validator=ValidatorConfig.strict())

    @classmethod
    def lenient(cls) -> "PipelineConfig":
        return cls(thresholds=ConfidenceThresholds.lenient(), validator=ValidatorConfig.lenient())

    @classmethod
    def preset(cls, name: str) -> "PipelineConfig":
        presets = {"default": cls.default, "strict": cls.strict, "lenient": cls.lenient}
        if name not in presets:
            raise InvalidConfigError(f"unknown preset {name!r} (expected one of {sorted(presets)})")
        return presets[name]()

    def with_overrides(self, **changes) -> "PipelineConfig":
        return replace(self, **changes)
