"""
Range-of-motion accumulation: running min/max of each joint angle over a session.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from .config import RomConfig
from .joints import BodyJoint, JointAngleSample

logger = logging.getLogger(__name__)

# Below this range (radians) a record carries no usable movement information
MEANINGFUL_RANGE_RAD = 0.01


class RomCategory(str, Enum):
    MINIMAL = "minimal"
    LIMITED = "limited"
    MODERATE = "moderate"
    GOOD = "good"
    FULL = "full"

    @classmethod
    def from_degrees(cls, range_deg: float) -> "RomCategory":
        if range_deg < 10:
            return cls.MINIMAL
        if range_deg < 30:
            return cls.LIMITED
        if range_deg < 60:
            return cls.MODERATE
        if range_deg < 90:
            return cls.GOOD
        return cls.FULL


@dataclass(frozen=True)
class RangeOfMotion:
    joint: BodyJoint
    min_rad: float
    max_rad: float
    sample_count: int
    avg_confidence: float
    start_us: int
    last_us: int

    @classmethod
    def first(cls, sample: JointAngleSample) -> "RangeOfMotion":
        return cls(
            joint=sample.joint,
            min_rad=sample.radians,
            max_rad=sample.radians,
            sample_count=1,
            avg_confidence=sample.confidence,
            start_us=sample.timestamp_us,
            last_us=sample.timestamp_us,
        )

    def updated(self, sample: JointAngleSample) -> "RangeOfMotion":
        n = self.sample_count
        return replace(
            self,
            min_rad=min(self.min_rad, sample.radians),
            max_rad=max(self.max_rad, sample.radians),
            sample_count=n + 1,
            avg_confidence=(self.avg_confidence * n + sample.confidence) / (n + 1),
            last_us=sample.timestamp_us,
        )

    @property
    def range_rad(self) -> float:
        return self.max_rad - self.min_rad

    @property
    def range_degrees(self) -> float:
        return math.degrees(self.range_rad)

    @property
    def min_degrees(self) -> float:
        return math.degrees(self.min_rad)

    @property
    def max_degrees(self) -> float:
        return math.degrees(self.max_rad)

    @property
    def category(self) -> RomCategory:
        return RomCategory.from_degrees(self.range_degrees)

    @property
    def has_meaningful_data(self) -> bool:
        return self.sample_count > 1 and self.range_rad > MEANINGFUL_RANGE_RAD

    def normalized_position(self, radians: float) -> Optional[float]:
        """Where ``radians`` sits in this range: 0 at the minimum, 1 at the maximum."""
        if self.range_rad <= 0:
            return None
        return max(0.0, min(1.0, (radians - self.min_rad) / self.range_rad))

    def merge(self, other: "RangeOfMotion") -> "RangeOfMotion":
        if other.joint != self.joint:
            raise ValueError(f"cannot merge {self.joint.name} with {other.joint.name}")
        total = self.sample_count + other.sample_count
        return RangeOfMotion(
            joint=self.joint,
            min_rad=min(self.min_rad, other.min_rad),
            max_rad=max(self.max_rad, other.max_rad),
            sample_count=total,
            avg_confidence=(
                self.avg_confidence * self.sample_count + other.avg_confidence * other.sample_count
            ) / total,
            start_us=min(self.start_us, other.start_us),
            last_us=max(self.last_us, other.last_us),
        )


@dataclass(frozen=True)
class RomSummary:
    joint_count: int
    avg_range_degrees: float
    min_range_degrees: float
    max_range_degrees: float
    total_samples: int
    duration_seconds: float


class RangeOfMotionTracker:
    """
    Widens each joint's [min, max] as confident angle samples arrive.
    A gap longer than ``config.max_gap_us`` or a timestamp going backwards
    clears every joint and starts a new session.
    """

    def __init__(self, config: Optional[RomConfig] = None, min_confidence: float = 0.5):
        self.config = config or RomConfig()
        self.min_confidence = min_confidence
        self._records: dict[str, RangeOfMotion] = {}
        self._last_timestamp_us: Optional[int] = None

    def reset(self) -> None:
        self._records.clear()
        self._last_timestamp_us = None

    def update(self, sample: JointAngleSample) -> Optional[RangeOfMotion]:
        """Fold one sample in. Returns the joint's record, or None if the sample was too uncertain."""
        if sample.confidence < self.min_confidence:
            return self._records.get(sample.joint.name)
        if self._last_timestamp_us is not None:
            gap = sample.timestamp_us - self._last_timestamp_us
            if gap < 0 or gap > self.config.max_gap_us:
                logger.debug("rom: gap %sus, resetting %s joints", gap, len(self._records))
                self._records.clear()
        self._last_timestamp_us = sample.timestamp_us

        name = sample.joint.name
        rec = self._records.get(name)
        rec = RangeOfMotion.first(sample) if rec is None else rec.updated(sample)
        self._records[name] = rec
        return rec

    def update_all(self, samples: Iterable[JointAngleSample]) -> dict[str, RangeOfMotion]:
        for s in samples:
            self.update(s)
        return self.records

    @property
    def records(self) -> dict[str, RangeOfMotion]:
        return dict(self._records)

    def get(self, joint_name: str) -> Optional[RangeOfMotion]:
        return self._records.get(joint_name)

    def contains(self, joint_name: str) -> bool:
        return joint_name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def largest(self) -> Optional[RangeOfMotion]:
        if not self._records:
            return None
        return max(self._records.values(), key=lambda r: r.range_rad)

    def summary(self) -> RomSummary:
        recs = list(self._records.values())
        if not recs:
            return RomSummary(0, 0.0, 0.0, 0.0, 0, 0.0)
        ranges = np.array([r.range_degrees for r in recs])
        start = min(r.start_us for r in recs)
        end = max(r.last_us for r in recs)
        return RomSummary(
            joint_count=len(recs),
            avg_range_degrees=float(ranges.mean()),
            min_range_degrees=float(ranges.min()),
            max_range_degrees=float(ranges.max()),
            total_samples=sum(r.sample_count for r in recs),
            duration_seconds=(end - start) / 1_000_000.0,
        )
