"""
Rep detection and form scoring.
Exercise analyzers consume validated, smoothed poses one frame at a time;
the squat analyzer runs a knee-angle phase state machine with hysteresis.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

import numpy as np

from .config import ConfidenceThresholds, SquatConfig
from .geometry import angle_deg, angle_from_vertical, knee_valgus_deg, midpoint
from .pose import LandmarkIdx, PoseFrame

logger = logging.getLogger(__name__)

# Landmarks whose mean confidence gates squat analysis
SQUAT_KEY_LANDMARKS = (
    LandmarkIdx.LEFT_SHOULDER,
    LandmarkIdx.RIGHT_SHOULDER,
    LandmarkIdx.LEFT_HIP,
    LandmarkIdx.RIGHT_HIP,
    LandmarkIdx.LEFT_KNEE,
    LandmarkIdx.RIGHT_KNEE,
    LandmarkIdx.LEFT_ANKLE,
    LandmarkIdx.RIGHT_ANKLE,
)

M = TypeVar("M")
R = TypeVar("R")
S = TypeVar("S")


class ExerciseAnalyzer(ABC, Generic[M, R, S]):
    """
    Per-exercise analysis contract. New exercises subclass this; the pipeline
    only talks to ``process`` and the session accessors.
    """

    def __init__(self) -> None:
        self._last_metrics: Optional[M] = None

    @abstractmethod
    def analyze_frame(self, frame: PoseFrame, previous_metrics: Optional[M]) -> M:
        """Metrics for this frame; returns ``previous_metrics`` when the frame is unusable."""

    @abstractmethod
    def check_rep_completion(self, current: M, previous: Optional[M]) -> Optional[R]:
        """Finalize and return a rep if the last analyzed frame completed one."""

    @abstractmethod
    def session_summary(self) -> S:
        ...

    @abstractmethod
    def reset(self) -> None:
        ...

    @property
    @abstractmethod
    def is_tracking_rep(self) -> bool:
        ...

    @property
    @abstractmethod
    def completed_rep_count(self) -> int:
        ...

    @property
    def last_metrics(self) -> Optional[M]:
        return self._last_metrics

    def refresh_metrics(self, metrics: M) -> M:
        """Fold a rep completed on this frame into the frame's metrics."""
        return metrics

    def process(self, frame: PoseFrame) -> tuple[M, Optional[R]]:
        previous = self._last_metrics
        metrics = self.analyze_frame(frame, previous)
        rep = self.check_rep_completion(metrics, previous)
        if rep is not None:
            metrics = self.refresh_metrics(metrics)
        self._last_metrics = metrics
        return metrics, rep


# -- squat records --------------------------------------------------------------


class SquatPhase(str, Enum):
    STANDING = "standing"
    DESCENDING = "descending"
    BOTTOM = "bottom"
    ASCENDING = "ascending"

    @property
    def display_name(self) -> str:
        return _PHASE_DISPLAY[self]

    @property
    def is_active(self) -> bool:
        return self in (SquatPhase.DESCENDING, SquatPhase.ASCENDING)

    @property
    def is_bottom(self) -> bool:
        return self is SquatPhase.BOTTOM


_PHASE_DISPLAY = {
    SquatPhase.STANDING: "Standing",
    SquatPhase.DESCENDING: "Going Down",
    SquatPhase.BOTTOM: "Bottom",
    SquatPhase.ASCENDING: "Coming Up",
}


@dataclass(frozen=True)
class SquatMetrics:
    """Live per-frame state for display."""

    phase: SquatPhase = SquatPhase.STANDING
    knee_angle: Optional[float] = None
    trunk_angle: Optional[float] = None
    hip_angle: Optional[float] = None
    form_score: float = 1.0
    # Signed knee deviation in degrees; negative = caving in
    knee_valgus: Optional[float] = None
    symmetry: float = 1.0
    depth_percentage: float = 0.0
    total_reps: int = 0
    average_form_score: float = 0.0
    average_depth: float = 0.0
    best_form_score: float = 0.0
    deepest_knee_angle: Optional[float] = None
    current_rep_duration_s: Optional[float] = None
    average_rep_duration_s: Optional[float] = None
    landmark_confidence: Optional[float] = None
    frame_index: Optional[int] = None

    @classmethod
    def initial(cls) -> "SquatMetrics":
        return cls()

    @property
    def is_moving(self) -> bool:
        return self.phase.is_active

    @property
    def is_at_bottom(self) -> bool:
        return self.phase.is_bottom

    @property
    def is_in_rep(self) -> bool:
        return self.phase is not SquatPhase.STANDING

    @property
    def depth_description(self) -> str:
        angle = self.knee_angle
        if angle is None or angle >= 160:
            return "Standing"
        if angle >= 120:
            return "Quarter Squat"
        if angle >= 100:
            return "Half Squat"
        if angle >= 90:
            return "Parallel"
        return "Below Parallel"

    @property
    def knee_tracking_feedback(self) -> str:
        v = self.knee_valgus or 0.0
        if v < -5:
            return "Knees caving in!"
        if v < -2:
            return "Watch your knees"
        if v > 5:
            return "Knees too wide"
        if v > 2:
            return "Knees slightly wide"
        return "Good tracking"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["phase"] = self.phase.value
        return d


@dataclass(frozen=True)
class SquatRep:
    """One completed repetition. Times are seconds, angles degrees."""

    rep_number: int
    start_frame: int
    end_frame: int
    start_timestamp_us: int
    end_timestamp_us: int
    lowest_knee_angle: float
    depth_percentage: float
    reached_parallel: bool
    reached_bottom: bool
    descent_s: float
    bottom_s: float
    ascent_s: float
    knee_tracking_score: float
    trunk_score: float
    symmetry_score: float
    overall_form_score: float
    max_trunk_angle: float
    avg_knee_valgus: float

    @property
    def total_duration_s(self) -> float:
        return self.descent_s + self.bottom_s + self.ascent_s

    @property
    def phase_durations(self) -> dict[SquatPhase, float]:
        return {
            SquatPhase.DESCENDING: self.descent_s,
            SquatPhase.BOTTOM: self.bottom_s,
            SquatPhase.ASCENDING: self.ascent_s,
        }

    @property
    def depth_description(self) -> str:
        if self.lowest_knee_angle < 70:
            return "Deep"
        if self.lowest_knee_angle < 90:
            return "Below Parallel"
        if self.lowest_knee_angle < 100:
            return "Parallel"
        if self.lowest_knee_angle < 120:
            return "Above Parallel"
        return "Partial"

    @property
    def form_grade(self) -> str:
        for cutoff, grade in ((0.9, "A"), (0.8, "B"), (0.7, "C"), (0.6, "D")):
            if self.overall_form_score >= cutoff:
                return grade
        return "F"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["total_duration_s"] = self.total_duration_s
        d["depth_description"] = self.depth_description
        d["form_grade"] = self.form_grade
        return d


@dataclass(frozen=True)
class SquatSession:
    start_timestamp_us: Optional[int]
    reps: tuple[SquatRep, ...] = ()
    current_metrics: SquatMetrics = field(default_factory=SquatMetrics)

    @property
    def total_reps(self) -> int:
        return len(self.reps)

    @property
    def total_active_time_s(self) -> float:
        return sum(r.total_duration_s for r in self.reps)

    @property
    def average_rest_time_s(self) -> Optional[float]:
        if len(self.reps) < 2:
            return None
        rests = [
            (b.start_timestamp_us - a.end_timestamp_us) / 1_000_000.0
            for a, b in zip(self.reps, self.reps[1:])
        ]
        return float(np.mean(rests))

    @property
    def average_form_score(self) -> float:
        return float(np.mean(self.form_score_trend)) if self.reps else 0.0

    @property
    def consistency_score(self) -> float:
        """1.0 for identical form on every rep; a 0.1 std-dev in form scores gives 0.5."""
        if len(self.reps) < 2:
            return 1.0
        std = float(np.std(self.form_score_trend))
        return max(0.0, min(1.0, 1.0 - std * 5.0))

    @property
    def average_depth(self) -> float:
        return float(np.mean(self.depth_trend)) if self.reps else 0.0

    @property
    def best_form_score(self) -> float:
        return max(self.form_score_trend, default=0.0)

    @property
    def best_rep(self) -> Optional[SquatRep]:
        return max(self.reps, key=lambda r: r.overall_form_score, default=None)

    @property
    def deepest_knee_angle(self) -> Optional[float]:
        return min((r.lowest_knee_angle for r in self.reps), default=None)

    @property
    def average_rep_duration_s(self) -> Optional[float]:
        if not self.reps:
            return None
        return float(np.mean([r.total_duration_s for r in self.reps]))

    @property
    def form_score_trend(self) -> list[float]:
        return [r.overall_form_score for r in self.reps]

    @property
    def depth_trend(self) -> list[float]:
        return [r.depth_percentage for r in self.reps]

    @property
    def reps_at_parallel(self) -> int:
        return sum(1 for r in self.reps if r.reached_parallel)

    @property
    def parallel_percentage(self) -> float:
        return self.reps_at_parallel / len(self.reps) * 100.0 if self.reps else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_timestamp_us": self.start_timestamp_us,
            "total_reps": self.total_reps,
            "average_form_score": self.average_form_score,
            "best_form_score": self.best_form_score,
            "consistency_score": self.consistency_score,
            "average_depth": self.average_depth,
            "deepest_knee_angle": self.deepest_knee_angle,
            "average_rep_duration_s": self.average_rep_duration_s,
            "average_rest_time_s": self.average_rest_time_s,
            "total_active_time_s": self.total_active_time_s,
            "reps_at_parallel": self.reps_at_parallel,
            "parallel_percentage": self.parallel_percentage,
            "reps": [r.to_dict() for r in self.reps],
        }


# -- frame measurements ------------------------------------------------------------


def _side_knee_angle(frame: PoseFrame, left: bool, min_conf: float) -> Optional[float]:
    if left:
        ids = (LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE)
    else:
        ids = (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE)
    return angle_deg(*(frame.point(i, min_conf) for i in ids))


def _mean_of_sides(left: Optional[float], right: Optional[float]) -> Optional[float]:
    if left is None and right is None:
        return None
    if left is None:
        return right
    if right is None:
        return left
    return (left + right) / 2.0


def _hip_angle_deg(frame: PoseFrame, min_conf: float) -> Optional[float]:
    left = angle_deg(
        frame.point(LandmarkIdx.LEFT_SHOULDER, min_conf),
        frame.point(LandmarkIdx.LEFT_HIP, min_conf),
        frame.point(LandmarkIdx.LEFT_KNEE, min_conf),
    )
    right = angle_deg(
        frame.point(LandmarkIdx.RIGHT_SHOULDER, min_conf),
        frame.point(LandmarkIdx.RIGHT_HIP, min_conf),
        frame.point(LandmarkIdx.RIGHT_KNEE, min_conf),
    )
    return _mean_of_sides(left, right)


def _trunk_angle_deg(frame: PoseFrame, min_conf: float) -> Optional[float]:
    """Trunk angle from vertical. 0 = upright, larger = more forward lean."""
    shoulder_mid = midpoint(
        frame.point(LandmarkIdx.LEFT_SHOULDER, min_conf),
        frame.point(LandmarkIdx.RIGHT_SHOULDER, min_conf),
    )
    hip_mid = midpoint(
        frame.point(LandmarkIdx.LEFT_HIP, min_conf),
        frame.point(LandmarkIdx.RIGHT_HIP, min_conf),
    )
    if shoulder_mid is None or hip_mid is None:
        return None
    return angle_from_vertical(shoulder_mid, hip_mid)


def _knee_valgus(frame: PoseFrame, min_conf: float) -> Optional[float]:
    sides = []
    for left, ids in (
        (True, (LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE)),
        (False, (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE)),
    ):
        pts = [frame.point(i, min_conf) for i in ids]
        sides.append(None if any(p is None for p in pts) else knee_valgus_deg(*pts, is_left=left))
    return _mean_of_sides(*sides)


def _key_landmark_confidence(frame: PoseFrame) -> Optional[float]:
    confs = [lm.confidence for lm in (frame.landmark(i) for i in SQUAT_KEY_LANDMARKS) if lm is not None]
    if not confs:
        return None
    return float(np.mean(confs))


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


# -- squat analyzer ------------------------------------------------------------------


class SquatAnalyzer(ExerciseAnalyzer[SquatMetrics, SquatRep, SquatSession]):
    """
    Phase machine: standing -> descending -> bottom -> ascending -> standing.
    A rep is counted on ascending -> standing. Transitions use a moving average
    of the knee angle; a shallow squat may go descending -> ascending directly
    and still counts (recorded with ``reached_bottom=False``).
    """

    def __init__(
        self,
        config: Optional[SquatConfig] = None,
        thresholds: Optional[ConfidenceThresholds] = None,
    ):
        super().__init__()
        self.config = config or SquatConfig()
        self.thresholds = thresholds or ConfidenceThresholds()
        self.phase = SquatPhase.STANDING
        self.completed_reps: list[SquatRep] = []
        self._session_start_us: Optional[int] = None
        self._angle_history: list[float] = []
        self._previous_angle: Optional[float] = None
        self._bottom_frames = 0
        self._frame_index: Optional[int] = None
        self._timestamp_us: Optional[int] = None
        self._clear_rep_tracking()

    def _clear_rep_tracking(self) -> None:
        self._rep_start_frame: Optional[int] = None
        self._rep_start_us: Optional[int] = None
        self._lowest_angle: Optional[float] = None
        self._max_trunk = 0.0
        self._valgus_readings: list[float] = []
        self._left_angles: list[float] = []
        self._right_angles: list[float] = []
        self._descent_start_us: Optional[int] = None
        self._bottom_start_us: Optional[int] = None
        self._ascent_start_us: Optional[int] = None
        # descent / bottom / ascent time of earlier cycles when the lifter dips again mid-ascent
        self._phase_us = [0, 0, 0]
        self._reached_bottom = False

    def reset(self) -> None:
        if self.is_tracking_rep:
            logger.info("squat: reset discards rep in progress (start_f=%s)", self._rep_start_frame)
        self.phase = SquatPhase.STANDING
        self.completed_reps.clear()
        self._session_start_us = None
        self._angle_history.clear()
        self._previous_angle = None
        self._bottom_frames = 0
        self._frame_index = None
        self._timestamp_us = None
        self._last_metrics = None
        self._clear_rep_tracking()

    @property
    def is_tracking_rep(self) -> bool:
        return self._rep_start_frame is not None

    @property
    def completed_rep_count(self) -> int:
        return len(self.completed_reps)

    def analyze_frame(self, frame: PoseFrame, previous_metrics: Optional[SquatMetrics]) -> SquatMetrics:
        min_conf = self.thresholds.squat
        left = _side_knee_angle(frame, True, min_conf)
        right = _side_knee_angle(frame, False, min_conf)
        raw_angle = _mean_of_sides(left, right)
        confidence = _key_landmark_confidence(frame)
        if raw_angle is None or confidence is None or confidence < min_conf:
            return previous_metrics if previous_metrics is not None else SquatMetrics.initial()

        if self._session_start_us is None:
            self._session_start_us = frame.timestamp_us
        self._frame_index = frame.frame_index
        self._timestamp_us = frame.timestamp_us

        trunk = _trunk_angle_deg(frame, min_conf)
        hip = _hip_angle_deg(frame, min_conf)
        valgus = _knee_valgus(frame, min_conf)
        angle = self._smooth(raw_angle)

        new_phase = self._next_phase(angle, raw_angle, frame.timestamp_us)
        if self.phase is SquatPhase.STANDING and new_phase is SquatPhase.DESCENDING:
            self._start_rep(frame)
        elif new_phase is SquatPhase.STANDING and self.phase in (SquatPhase.DESCENDING, SquatPhase.BOTTOM):
            logger.debug(
                "squat: rep abandoned at frame %s (knee back to %.1f before ascending)",
                frame.frame_index, angle,
            )
            self._clear_rep_tracking()

        if self.is_tracking_rep:
            if self._lowest_angle is None or raw_angle < self._lowest_angle:
                self._lowest_angle = raw_angle
            if trunk is not None and trunk > self._max_trunk:
                self._max_trunk = trunk
            if valgus is not None:
                self._valgus_readings.append(valgus)
            if left is not None and right is not None:
                self._left_angles.append(left)
                self._right_angles.append(right)

        self._previous_angle = angle
        self.phase = new_phase

        knee_score = self._knee_tracking_score(valgus)
        trunk_score = self._trunk_score(trunk)
        symmetry = self._symmetry_score(left, right)
        return SquatMetrics(
            phase=new_phase,
            knee_angle=angle,
            trunk_angle=trunk,
            hip_angle=hip,
            form_score=self._form_score(knee_score, trunk_score, symmetry),
            knee_valgus=valgus,
            symmetry=symmetry,
            depth_percentage=self._depth_percentage(angle),
            landmark_confidence=confidence,
            frame_index=frame.frame_index,
            **self._aggregates(),
        )

    def refresh_metrics(self, metrics: SquatMetrics) -> SquatMetrics:
        return replace(metrics, **self._aggregates())

    def _aggregates(self) -> dict[str, Any]:
        session = self._session(None)
        current = None
        if self._rep_start_us is not None and self._timestamp_us is not None:
            current = (self._timestamp_us - self._rep_start_us) / 1_000_000.0
        return {
            "total_reps": session.total_reps,
            "average_form_score": session.average_form_score,
            "average_depth": session.average_depth,
            "best_form_score": session.best_form_score,
            "deepest_knee_angle": session.deepest_knee_angle,
            "average_rep_duration_s": session.average_rep_duration_s,
            "current_rep_duration_s": current,
        }

    def check_rep_completion(
        self, current: SquatMetrics, previous: Optional[SquatMetrics]
    ) -> Optional[SquatRep]:
        if (
            previous is not None
            and previous.phase is SquatPhase.ASCENDING
            and current.phase is SquatPhase.STANDING
            and self.is_tracking_rep
        ):
            return self._complete_rep()
        return None

    def session_summary(self) -> SquatSession:
        return self._session(self._last_metrics)

    def _session(self, metrics: Optional[SquatMetrics]) -> SquatSession:
        return SquatSession(
            start_timestamp_us=self._session_start_us,
            reps=tuple(self.completed_reps),
            current_metrics=metrics if metrics is not None else SquatMetrics(phase=self.phase),
        )

    # -- state machine -----------------------------------------------------------

    def _smooth(self, raw_angle: float) -> float:
        self._angle_history.append(raw_angle)
        del self._angle_history[:-self.config.smoothing_window]
        return sum(self._angle_history) / len(self._angle_history)

    def _next_phase(self, angle: float, raw_angle: float, ts: int) -> SquatPhase:
        cfg = self.config
        if angle >= cfg.standing_angle:
            self._bottom_frames = 0
            return SquatPhase.STANDING
        if self._previous_angle is None:
            return SquatPhase.STANDING
        change = angle - self._previous_angle
        thr = cfg.transition_threshold

        if self.phase is SquatPhase.STANDING:
            if change < -thr:
                return SquatPhase.DESCENDING
            return SquatPhase.STANDING

        if self.phase is SquatPhase.DESCENDING:
            if abs(change) < thr / 2.0:
                self._bottom_frames += 1
                if self._bottom_frames >= cfg.bottom_confirmation_frames:
                    self._bottom_start_us = ts
                    self._reached_bottom = True
                    return SquatPhase.BOTTOM
            else:
                self._bottom_frames = 0
            if change > thr:
                self._ascent_start_us = ts
                return SquatPhase.ASCENDING
            return SquatPhase.DESCENDING

        if self.phase is SquatPhase.BOTTOM:
            if change > thr:
                self._ascent_start_us = ts
                return SquatPhase.ASCENDING
            return SquatPhase.BOTTOM

        # ascending: the unsmoothed angle may reach standing before the average does
        if raw_angle >= cfg.standing_angle:
            return SquatPhase.STANDING
        if change < -thr:
            self._bottom_frames = 0
            self._close_cycle(ts)
            self._descent_start_us = ts
            self._bottom_start_us = None
            self._ascent_start_us = None
            return SquatPhase.DESCENDING
        return SquatPhase.ASCENDING

    def _start_rep(self, frame: PoseFrame) -> None:
        self._clear_rep_tracking()
        self._bottom_frames = 0
        self._rep_start_frame = frame.frame_index
        self._rep_start_us = frame.timestamp_us
        self._descent_start_us = frame.timestamp_us

    def _close_cycle(self, end_us: int) -> None:
        """Fold the current descent/bottom/ascent segments, ending at ``end_us``, into the rep totals."""
        bottom, ascent = self._bottom_start_us, self._ascent_start_us
        descent = self._descent_start_us if self._descent_start_us is not None else self._rep_start_us
        if descent is not None:
            descent_end = bottom if bottom is not None else ascent if ascent is not None else end_us
            self._phase_us[0] += descent_end - descent
        if bottom is not None:
            self._phase_us[1] += (ascent if ascent is not None else end_us) - bottom
        if ascent is not None:
            self._phase_us[2] += end_us - ascent

    def _complete_rep(self) -> SquatRep:
        end_us = self._timestamp_us if self._timestamp_us is not None else self._rep_start_us
        end_frame = self._frame_index if self._frame_index is not None else self._rep_start_frame
        self._close_cycle(end_us)
        descent_s, bottom_s, ascent_s = (us / 1_000_000.0 for us in self._phase_us)

        avg_valgus = float(np.mean(self._valgus_readings)) if self._valgus_readings else 0.0
        knee_score = self._knee_tracking_score(avg_valgus)
        trunk_score = self._trunk_score(self._max_trunk)
        symmetry = self._rep_symmetry_score()
        lowest = self._lowest_angle if self._lowest_angle is not None else self.config.standing_angle

        rep = SquatRep(
            rep_number=len(self.completed_reps) + 1,
            start_frame=self._rep_start_frame,
            end_frame=end_frame,
            start_timestamp_us=self._rep_start_us,
            end_timestamp_us=end_us,
            lowest_knee_angle=lowest,
            depth_percentage=self._depth_percentage(lowest),
            reached_parallel=lowest <= self.config.parallel_angle,
            reached_bottom=self._reached_bottom,
            descent_s=descent_s,
            bottom_s=bottom_s,
            ascent_s=ascent_s,
            knee_tracking_score=knee_score,
            trunk_score=trunk_score,
            symmetry_score=symmetry,
            overall_form_score=self._form_score(knee_score, trunk_score, symmetry),
            max_trunk_angle=self._max_trunk,
            avg_knee_valgus=avg_valgus,
        )
        self.completed_reps.append(rep)
        logger.info(
            "squat: rep %s (start_f=%s end_f=%s lowest=%.1f parallel=%s bottom=%s form=%.2f)",
            rep.rep_number, rep.start_frame, rep.end_frame, rep.lowest_knee_angle,
            rep.reached_parallel, rep.reached_bottom, rep.overall_form_score,
        )
        self._clear_rep_tracking()
        return rep

    # -- scoring -------------------------------------------------------------------

    def _knee_tracking_score(self, valgus: Optional[float]) -> float:
        if valgus is None:
            return 1.0
        return _clamp01(1.0 - abs(valgus) / self.config.max_valgus)

    def _trunk_score(self, trunk: Optional[float]) -> float:
        if trunk is None:
            return 1.0
        deviation = abs(trunk - self.config.ideal_trunk_angle)
        return _clamp01(1.0 - deviation / self.config.max_trunk_deviation)

    def _symmetry_score(self, left: Optional[float], right: Optional[float]) -> float:
        if left is None or right is None:
            return 1.0
        return _clamp01(1.0 - abs(left - right) / self.config.max_asymmetry)

    def _rep_symmetry_score(self) -> float:
        if not self._left_angles:
            return 1.0
        diffs = np.abs(np.array(self._left_angles) - np.array(self._right_angles))
        return _clamp01(1.0 - float(diffs.mean()) / self.config.max_asymmetry)

    def _form_score(self, knee: float, trunk: float, symmetry: float) -> float:
        wk, wt, ws = self.config.form_weights
        return knee * wk + trunk * wt + symmetry * ws

    def _depth_percentage(self, knee_angle: float) -> float:
        cfg = self.config
        span = cfg.standing_angle - cfg.parallel_angle
        pct = (cfg.standing_angle - knee_angle) / span * 100.0
        return max(0.0, min(cfg.max_depth_percentage, pct))
