"""
Joint catalog and per-frame joint-angle extraction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .geometry import angle_2d, angle_3d
from .pose import LandmarkIdx, PoseFrame, landmark_name


@dataclass(frozen=True)
class BodyJoint:
    """A joint measured as the angle at ``vertex`` between ``first`` and ``third``."""

    name: str
    first: int
    vertex: int
    third: int

    @property
    def landmark_ids(self) -> tuple[int, int, int]:
        return (self.first, self.vertex, self.third)

    @property
    def joint_id(self) -> str:
        return f"{self.first}_{self.vertex}_{self.third}"

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def side(self) -> Optional[str]:
        if self.name.startswith("left_"):
            return "left"
        if self.name.startswith("right_"):
            return "right"
        return None

    @property
    def is_upper_body(self) -> bool:
        return self.name in UPPER_BODY

    @property
    def is_lower_body(self) -> bool:
        return self.name in LOWER_BODY

    def mirrored(self) -> Optional["BodyJoint"]:
        if self.side == "left":
            return JOINT_CATALOG.get("right_" + self.name[len("left_"):])
        if self.side == "right":
            return JOINT_CATALOG.get("left_" + self.name[len("right_"):])
        return None

    def describe(self) -> str:
        return " -> ".join(landmark_name(i) for i in self.landmark_ids)


_L = LandmarkIdx
JOINT_CATALOG: dict[str, BodyJoint] = {
    j.name: j
    for j in (
        BodyJoint("left_elbow", _L.LEFT_SHOULDER, _L.LEFT_ELBOW, _L.LEFT_WRIST),
        BodyJoint("right_elbow", _L.RIGHT_SHOULDER, _L.RIGHT_ELBOW, _L.RIGHT_WRIST),
        BodyJoint("left_shoulder", _L.LEFT_ELBOW, _L.LEFT_SHOULDER, _L.LEFT_HIP),
        BodyJoint("right_shoulder", _L.RIGHT_ELBOW, _L.RIGHT_SHOULDER, _L.RIGHT_HIP),
        BodyJoint("left_hip", _L.LEFT_SHOULDER, _L.LEFT_HIP, _L.LEFT_KNEE),
        BodyJoint("right_hip", _L.RIGHT_SHOULDER, _L.RIGHT_HIP, _L.RIGHT_KNEE),
        BodyJoint("left_knee", _L.LEFT_HIP, _L.LEFT_KNEE, _L.LEFT_ANKLE),
        BodyJoint("right_knee", _L.RIGHT_HIP, _L.RIGHT_KNEE, _L.RIGHT_ANKLE),
        BodyJoint("left_ankle", _L.LEFT_KNEE, _L.LEFT_ANKLE, _L.LEFT_HEEL),
        BodyJoint("right_ankle", _L.RIGHT_KNEE, _L.RIGHT_ANKLE, _L.RIGHT_HEEL),
        # Approximates forward head lean
        BodyJoint("neck_lean", _L.NOSE, _L.LEFT_SHOULDER, _L.LEFT_HIP),
    )
}

UPPER_BODY = frozenset({"left_elbow", "right_elbow", "left_shoulder", "right_shoulder"})
LOWER_BODY = frozenset({"left_hip", "right_hip", "left_knee", "right_knee", "left_ankle", "right_ankle"})


def get_joint(name: str) -> BodyJoint:
    try:
        return JOINT_CATALOG[name]
    except KeyError:
        raise ValueError(f"unknown joint {name!r}; known: {sorted(JOINT_CATALOG)}") from None


@dataclass(frozen=True)
class JointAngleSample:
    joint: BodyJoint
    radians: float
    confidence: float
    timestamp_us: int

    @property
    def degrees(self) -> float:
        return math.degrees(self.radians)

    @property
    def normalized(self) -> float:
        """0 = fully closed, 1 = straight."""
        return self.radians / math.pi

    def is_approximately(self, degrees: float, tolerance: float = 5.0) -> bool:
        return abs(self.degrees - degrees) <= tolerance


def compute_joint_angle(
    frame: PoseFrame,
    joint: BodyJoint,
    min_confidence: float = 0.5,
    use_3d: bool = False,
    confidence_mode: str = "min",
) -> Optional[JointAngleSample]:
    """
    Angle sample for one joint, or None when any of its three landmarks is
    missing or below ``min_confidence``.
    ``confidence_mode`` is "min" or "average" over the three landmarks.
    """
    pts = [frame.confident(i, min_confidence) for i in joint.landmark_ids]
    if any(p is None for p in pts):
        return None
    a, b, c = pts
    if use_3d:
        rad = angle_3d(a.xyz, b.xyz, c.xyz)
    else:
        rad = angle_2d(a.xy, b.xy, c.xy)
    confs = [p.confidence for p in pts]
    if confidence_mode == "average":
        conf = sum(confs) / 3.0
    elif confidence_mode == "min":
        conf = min(confs)
    else:
        raise ValueError(f"confidence_mode must be 'min' or 'average', got {confidence_mode!r}")
    return JointAngleSample(joint, rad, conf, frame.timestamp_us)


def compute_joint_angles(
    frame: PoseFrame,
    joints: Optional[Iterable[BodyJoint]] = None,
    min_confidence: float = 0.5,
    use_3d: bool = False,
) -> dict[str, JointAngleSample]:
    """Angles for every requested joint that can be measured, keyed by joint name."""
    out: dict[str, JointAngleSample] = {}
    for joint in joints if joints is not None else JOINT_CATALOG.values():
        sample = compute_joint_angle(frame, joint, min_confidence, use_3d)
        if sample is not None:
            out[joint.name] = sample
    return out
