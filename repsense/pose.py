"""
33-point body landmark schema and the per-frame pose containers.
Coordinates are normalized to the frame (x, y in [0, 1], y grows downward);
z is the detector's relative depth estimate and is not comparable to x/y.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence


# MediaPipe Pose landmark indices (same as PoseLandmark)
class LandmarkIdx:
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = 33

# snake_case names indexed by landmark id
LANDMARK_NAMES: tuple[str, ...] = tuple(
    name.lower()
    for name, _ in sorted(
        ((k, v) for k, v in vars(LandmarkIdx).items() if k.isupper()),
        key=lambda kv: kv[1],
    )
)
_NAME_TO_ID = {name: i for i, name in enumerate(LANDMARK_NAMES)}

# Nose, shoulders and hips: the landmarks a real person is almost never without
HIGH_PRIORITY: tuple[int, ...] = (
    LandmarkIdx.NOSE,
    LandmarkIdx.LEFT_SHOULDER,
    LandmarkIdx.RIGHT_SHOULDER,
    LandmarkIdx.LEFT_HIP,
    LandmarkIdx.RIGHT_HIP,
)

# Bones of the body skeleton (face and hands omitted)
SKELETON_CONNECTIONS: tuple[tuple[int, int], ...] = (
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.RIGHT_SHOULDER),
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.LEFT_ELBOW),
    (LandmarkIdx.LEFT_ELBOW, LandmarkIdx.LEFT_WRIST),
    (LandmarkIdx.RIGHT_SHOULDER, LandmarkIdx.RIGHT_ELBOW),
    (LandmarkIdx.RIGHT_ELBOW, LandmarkIdx.RIGHT_WRIST),
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.LEFT_HIP),
    (LandmarkIdx.RIGHT_SHOULDER, LandmarkIdx.RIGHT_HIP),
    (LandmarkIdx.LEFT_HIP, LandmarkIdx.RIGHT_HIP),
    (LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE),
    (LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE),
    (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE),
    (LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE),
    (LandmarkIdx.LEFT_ANKLE, LandmarkIdx.LEFT_HEEL),
    (LandmarkIdx.LEFT_HEEL, LandmarkIdx.LEFT_FOOT_INDEX),
    (LandmarkIdx.LEFT_ANKLE, LandmarkIdx.LEFT_FOOT_INDEX),
    (LandmarkIdx.RIGHT_ANKLE, LandmarkIdx.RIGHT_HEEL),
    (LandmarkIdx.RIGHT_HEEL, LandmarkIdx.RIGHT_FOOT_INDEX),
    (LandmarkIdx.RIGHT_ANKLE, LandmarkIdx.RIGHT_FOOT_INDEX),
)


def landmark_name(idx: int) -> str:
    return LANDMARK_NAMES[idx]


def landmark_id(name: str) -> int:
    """Id for a schema name such as ``left_knee``."""
    try:
        return _NAME_TO_ID[name]
    except KeyError:
        raise ValueError(f"unknown landmark name: {name!r}") from None


@dataclass(frozen=True)
class LandmarkSample:
    """One detected keypoint."""

    id: int
    x: float
    y: float
    z: float = 0.0
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not 0 <= self.id < NUM_LANDMARKS:
            raise ValueError(f"landmark id {self.id} outside schema (0-{NUM_LANDMARKS - 1})")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"landmark {self.id}: confidence {self.confidence} outside [0, 1]")
        if not all(math.isfinite(v) for v in (self.x, self.y, self.z)):
            raise ValueError(f"landmark {self.id}: non-finite coordinate")

    @property
    def name(self) -> str:
        return LANDMARK_NAMES[self.id]

    @property
    def xy(self) -> tuple[float, float]:
        return (self.x, self.y)

    @property
    def xyz(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y, "z": self.z, "confidence": self.confidence}


@dataclass(frozen=True)
class PoseFrame:
    """All landmarks detected in one camera frame."""

    landmarks: tuple[LandmarkSample, ...]
    timestamp_us: int
    frame_index: int = 0
    _by_id: dict[int, LandmarkSample] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: dict[int, LandmarkSample] = {}
        for lm in self.landmarks:
            if lm.id in by_id:
                raise ValueError(f"frame {self.frame_index}: duplicate landmark id {lm.id}")
            by_id[lm.id] = lm
        object.__setattr__(self, "landmarks", tuple(self.landmarks))
        object.__setattr__(self, "_by_id", by_id)

    def __len__(self) -> int:
        return len(self.landmarks)

    def landmark(self, idx: int) -> Optional[LandmarkSample]:
        return self._by_id.get(idx)

    def confident(self, idx: int, min_confidence: float) -> Optional[LandmarkSample]:
        """Landmark ``idx`` if present with at least ``min_confidence``, else None."""
        lm = self._by_id.get(idx)
        if lm is None or lm.confidence < min_confidence:
            return None
        return lm

    def point(self, idx: int, min_confidence: float = 0.0) -> Optional[tuple[float, float]]:
        lm = self.confident(idx, min_confidence)
        return lm.xy if lm is not None else None

    def replace_landmarks(self, landmarks: Iterable[LandmarkSample]) -> "PoseFrame":
        return PoseFrame(tuple(landmarks), self.timestamp_us, self.frame_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "frame_index": self.frame_index,
            "timestamp_us": self.timestamp_us,
            "landmarks": [lm.to_dict() for lm in self.landmarks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoseFrame":
        """
        Decode ``{"frame_index", "timestamp_us", "landmarks": [...]}``.
        Landmarks may carry ``id`` or a schema ``name``; ``z`` and ``confidence`` are optional.
        """
        landmarks = []
        for raw in data.get("landmarks", []):
            idx = raw["id"] if "id" in raw else landmark_id(raw["name"])
            landmarks.append(
                LandmarkSample(
                    id=int(idx),
                    x=float(raw["x"]),
                    y=float(raw["y"]),
                    z=float(raw.get("z", 0.0)),
                    confidence=float(raw.get("confidence", raw.get("visibility", 1.0))),
                )
            )
        return cls(
            tuple(landmarks),
            timestamp_us=int(data["timestamp_us"]),
            frame_index=int(data.get("frame_index", 0)),
        )


def frame_from_keypoints(
    keypoints: Sequence[Sequence[float]],
    timestamp_us: int,
    frame_index: int = 0,
    image_size: Optional[tuple[float, float]] = None,
    confidences: Optional[Sequence[float]] = None,
) -> PoseFrame:
    """
    Build a PoseFrame from a detector keypoint list indexed by landmark id.
    Pixel keypoints are normalized when ``image_size`` (width, height) is given.
    """
    w, h = image_size if image_size is not None else (1.0, 1.0)
    landmarks = []
    for idx, kp in enumerate(keypoints[:NUM_LANDMARKS]):
        if kp is None:
            continue
        z = float(kp[2]) if len(kp) > 2 else 0.0
        conf = float(confidences[idx]) if confidences is not None else 1.0
        landmarks.append(LandmarkSample(idx, float(kp[0]) / w, float(kp[1]) / h, z, conf))
    return PoseFrame(tuple(landmarks), timestamp_us=timestamp_us, frame_index=frame_index)
