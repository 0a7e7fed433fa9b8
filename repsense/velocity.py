"""
Landmark and joint velocities from consecutive frames.
Linear velocities are in normalized frame units per second (x/y only; z is not
on the same scale). Angular velocities are in radians per second.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from .config import VelocityConfig
from .joints import BodyJoint, JointAngleSample
from .pose import PoseFrame


@dataclass(frozen=True)
class LandmarkVelocity:
    landmark_id: int
    vx: float
    vy: float
    timestamp_us: int
    dt_us: int
    confidence: float

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    @property
    def direction_degrees(self) -> float:
        return math.degrees(math.atan2(self.vy, self.vx))

    def is_moving(self, threshold: float = 0.05) -> bool:
        return self.speed > threshold


@dataclass(frozen=True)
class AngularVelocity:
    joint: BodyJoint
    rad_per_s: float
    timestamp_us: int
    dt_us: int
    confidence: float

    @property
    def degrees_per_s(self) -> float:
        return math.degrees(self.rad_per_s)


def compute_velocities(
    previous: PoseFrame,
    current: PoseFrame,
    min_confidence: float = 0.3,
    min_dt_us: int = 1000,
    landmark_ids: Optional[Iterable[int]] = None,
) -> dict[int, LandmarkVelocity]:
    """Per-landmark velocity between two frames; empty when the frames are too close in time."""
    dt_us = current.timestamp_us - previous.timestamp_us
    if dt_us < min_dt_us:
        return {}
    dt_s = dt_us / 1_000_000.0
    ids = landmark_ids if landmark_ids is not None else (lm.id for lm in current.landmarks)
    out: dict[int, LandmarkVelocity] = {}
    for idx in ids:
        cur = current.confident(idx, min_confidence)
        prev = previous.confident(idx, min_confidence)
        if cur is None or prev is None:
            continue
        out[idx] = LandmarkVelocity(
            landmark_id=idx,
            vx=(cur.x - prev.x) / dt_s,
            vy=(cur.y - prev.y) / dt_s,
            timestamp_us=current.timestamp_us,
            dt_us=dt_us,
            confidence=min(cur.confidence, prev.confidence),
        )
    return out


def smoothed_velocities(
    history: Sequence[PoseFrame],
    window: int = 3,
    min_confidence: float = 0.3,
    min_dt_us: int = 1000,
    landmark_ids: Optional[Iterable[int]] = None,
) -> dict[int, LandmarkVelocity]:
    """
    Velocities averaged over the trailing ``window`` frame pairs of ``history``
    (oldest first). A landmark is reported if any pair in the window measured it.
    """
    frames = list(history)[-(window + 1):]
    if len(frames) < 2:
        return {}
    ids = list(landmark_ids) if landmark_ids is not None else None
    per_landmark: dict[int, list[LandmarkVelocity]] = {}
    for prev, cur in zip(frames, frames[1:]):
        for idx, v in compute_velocities(prev, cur, min_confidence, min_dt_us, ids).items():
            per_landmark.setdefault(idx, []).append(v)

    latest = frames[-1]
    out: dict[int, LandmarkVelocity] = {}
    for idx, samples in per_landmark.items():
        out[idx] = LandmarkVelocity(
            landmark_id=idx,
            vx=float(np.mean([v.vx for v in samples])),
            vy=float(np.mean([v.vy for v in samples])),
            timestamp_us=latest.timestamp_us,
            dt_us=int(sum(v.dt_us for v in samples)),
            confidence=float(np.mean([v.confidence for v in samples])),
        )
    return out


class VelocityTracker:
    """
    Exponentially smoothed landmark velocities:
    ``smoothed = previous * k + new * (1 - k)`` per landmark.
    """

    def __init__(self, config: Optional[VelocityConfig] = None, min_confidence: float = 0.3):
        self.config = config or VelocityConfig()
        self.min_confidence = min_confidence
        self._previous_frame: Optional[PoseFrame] = None
        self._smoothed: dict[int, LandmarkVelocity] = {}

    def reset(self) -> None:
        self._previous_frame = None
        self._smoothed.clear()

    @property
    def current(self) -> dict[int, LandmarkVelocity]:
        return dict(self._smoothed)

    def update(self, frame: PoseFrame) -> dict[int, LandmarkVelocity]:
        prev = self._previous_frame
        if prev is not None and frame.timestamp_us <= prev.timestamp_us:
            # time went backwards or stalled: start over from this frame
            self.reset()
            prev = None
        self._previous_frame = frame
        if prev is None:
            return {}

        k = self.config.ema_factor
        raw = compute_velocities(prev, frame, self.min_confidence, self.config.min_dt_us)
        for idx, v in raw.items():
            old = self._smoothed.get(idx)
            if old is not None:
                v = LandmarkVelocity(
                    landmark_id=idx,
                    vx=old.vx * k + v.vx * (1.0 - k),
                    vy=old.vy * k + v.vy * (1.0 - k),
                    timestamp_us=v.timestamp_us,
                    dt_us=v.dt_us,
                    confidence=v.confidence,
                )
            self._smoothed[idx] = v
        return {idx: self._smoothed[idx] for idx in raw}


def angular_velocity(
    previous: JointAngleSample,
    current: JointAngleSample,
    min_dt_us: int = 1000,
) -> Optional[AngularVelocity]:
    if previous.joint != current.joint:
        raise ValueError(f"joint mismatch: {previous.joint.name} vs {current.joint.name}")
    dt_us = current.timestamp_us - previous.timestamp_us
    if dt_us < min_dt_us:
        return None
    return AngularVelocity(
        joint=current.joint,
        rad_per_s=(current.radians - previous.radians) / (dt_us / 1_000_000.0),
        timestamp_us=current.timestamp_us,
        dt_us=dt_us,
        confidence=(previous.confidence + current.confidence) / 2.0,
    )


def angular_velocities(
    previous: dict[str, JointAngleSample],
    current: dict[str, JointAngleSample],
    min_dt_us: int = 1000,
) -> dict[str, AngularVelocity]:
    out: dict[str, AngularVelocity] = {}
    for name, sample in current.items():
        prev = previous.get(name)
        if prev is None:
            continue
        w = angular_velocity(prev, sample, min_dt_us)
        if w is not None:
            out[name] = w
    return out
