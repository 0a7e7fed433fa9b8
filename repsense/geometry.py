"""
Stateless geometry over normalized landmark positions.
Points are (x, y) or (x, y, z) tuples; image y grows downward.
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

Point = Sequence[float]

# Vectors shorter than this are treated as collapsed
DEGENERATE_EPS = 1e-4
# Angle reported for collapsed vectors: a straight segment
DEGENERATE_ANGLE = math.pi


def midpoint(a: Optional[Point], b: Optional[Point]) -> Optional[tuple[float, ...]]:
    if a is None or b is None:
        return None
    return tuple((p + q) / 2.0 for p, q in zip(a, b))


def distance(a: Point, b: Point) -> float:
    """Euclidean distance over the shared dimensions of a and b."""
    return math.sqrt(sum((p - q) ** 2 for p, q in zip(a, b)))


def distance_2d(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _vertex_angle(ba: Sequence[float], bc: Sequence[float]) -> float:
    norm_ba = math.sqrt(sum(v * v for v in ba))
    norm_bc = math.sqrt(sum(v * v for v in bc))
    if norm_ba < DEGENERATE_EPS or norm_bc < DEGENERATE_EPS:
        return DEGENERATE_ANGLE
    cos_val = sum(p * q for p, q in zip(ba, bc)) / (norm_ba * norm_bc)
    cos_val = max(-1.0, min(1.0, cos_val))
    return math.acos(cos_val)


def angle_2d(a: Point, b: Point, c: Point) -> float:
    """Angle at b for triangle a-b-c in radians, ignoring z. Always in [0, pi]."""
    return _vertex_angle((a[0] - b[0], a[1] - b[1]), (c[0] - b[0], c[1] - b[1]))


def angle_3d(a: Point, b: Point, c: Point) -> float:
    """Angle at b for triangle a-b-c in radians, including z. Always in [0, pi]."""
    return _vertex_angle(
        (a[0] - b[0], a[1] - b[1], a[2] - b[2]),
        (c[0] - b[0], c[1] - b[1], c[2] - b[2]),
    )


def angle_deg(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> Optional[float]:
    """2D angle at b in degrees, or None when any point is missing."""
    if a is None or b is None or c is None:
        return None
    return math.degrees(angle_2d(a, b, c))


def angle_from_vertical(top: Point, bottom: Point) -> float:
    """
    Degrees between the bottom->top segment and straight up.
    0 = upright, 90 = horizontal, 180 = upside down.
    """
    dx = top[0] - bottom[0]
    dy = top[1] - bottom[1]
    norm = math.hypot(dx, dy)
    if norm < DEGENERATE_EPS:
        return 0.0
    # up is -y in image coords
    cos_val = max(-1.0, min(1.0, -dy / norm))
    return math.degrees(math.acos(cos_val))


def angle_from_horizontal(a: Point, b: Point) -> float:
    """Degrees in [0, 90] between segment a-b and the horizontal axis."""
    dx = abs(b[0] - a[0])
    dy = abs(b[1] - a[1])
    if dx + dy < DEGENERATE_EPS:
        return 0.0
    return math.degrees(math.atan2(dy, dx))


def segment_angle(a: Point, b: Point) -> float:
    """Direction of a->b in degrees, (-180, 180], measured from +x toward +y."""
    return math.degrees(math.atan2(b[1] - a[1], b[0] - a[0]))


def knee_valgus_deg(hip: Point, knee: Point, ankle: Point, is_left: bool) -> float:
    """
    Knee deviation from the hip-ankle line, in degrees.
    The expected knee x is interpolated on the hip-ankle line at the knee's height;
    the horizontal offset is converted to an angle against the hip-ankle length.
    For a subject facing the camera, negative means the knee sits toward the
    midline (valgus, knees caving in) and positive means outward (varus).
    """
    hip_to_ankle_y = ankle[1] - hip[1]
    if abs(hip_to_ankle_y) < 0.001:
        return 0.0
    t = (knee[1] - hip[1]) / hip_to_ankle_y
    expected_x = hip[0] + t * (ankle[0] - hip[0])
    deviation = knee[0] - expected_x
    hip_ankle = distance_2d(hip, ankle)
    if hip_ankle < 0.001:
        return 0.0
    deg = math.degrees(math.atan2(deviation, hip_ankle))
    return deg if is_left else -deg
