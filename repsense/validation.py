"""
Human-plausibility gate for detected poses.
Each check scores one aspect of "does this look like a real human body"; a weighted
sum gives the composite confidence. Rejects ghost poses (furniture, shadows, partial
hallucinations) before they reach rep counting.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import ConfidenceThresholds, ValidatorConfig
from .geometry import angle_deg, distance_2d, midpoint
from .pose import HIGH_PRIORITY, LandmarkIdx, PoseFrame

logger = logging.getLogger(__name__)

# Score for a check that cannot run because its landmarks are absent
NEUTRAL_SCORE = 0.5

_L = LandmarkIdx

# (a, b, max normalized distance) for bones that must stay connected
_CONNECTIONS: tuple[tuple[int, int, float], ...] = (
    (_L.LEFT_SHOULDER, _L.RIGHT_SHOULDER, 0.5),
    (_L.LEFT_HIP, _L.RIGHT_HIP, 0.4),
    (_L.LEFT_SHOULDER, _L.LEFT_HIP, 0.6),
    (_L.RIGHT_SHOULDER, _L.RIGHT_HIP, 0.6),
    (_L.LEFT_SHOULDER, _L.LEFT_ELBOW, 0.4),
    (_L.LEFT_ELBOW, _L.LEFT_WRIST, 0.4),
    (_L.RIGHT_SHOULDER, _L.RIGHT_ELBOW, 0.4),
    (_L.RIGHT_ELBOW, _L.RIGHT_WRIST, 0.4),
    (_L.LEFT_HIP, _L.LEFT_KNEE, 0.5),
    (_L.LEFT_KNEE, _L.LEFT_ANKLE, 0.5),
    (_L.RIGHT_HIP, _L.RIGHT_KNEE, 0.5),
    (_L.RIGHT_KNEE, _L.RIGHT_ANKLE, 0.5),
)
# Shortest plausible bone
_MIN_CONNECTION = 0.01

_SYMMETRY_PAIRS: tuple[tuple[int, int], ...] = (
    (_L.LEFT_SHOULDER, _L.RIGHT_SHOULDER),
    (_L.LEFT_HIP, _L.RIGHT_HIP),
    (_L.LEFT_KNEE, _L.RIGHT_KNEE),
    (_L.LEFT_ANKLE, _L.RIGHT_ANKLE),
    (_L.LEFT_ELBOW, _L.RIGHT_ELBOW),
    (_L.LEFT_WRIST, _L.RIGHT_WRIST),
)
# Vertical left/right offset at which a pair scores 0
_SYMMETRY_TOLERANCE = 0.3

_ANGLE_TRIPLETS: tuple[tuple[int, int, int], ...] = (
    (_L.LEFT_SHOULDER, _L.LEFT_ELBOW, _L.LEFT_WRIST),
    (_L.RIGHT_SHOULDER, _L.RIGHT_ELBOW, _L.RIGHT_WRIST),
    (_L.LEFT_HIP, _L.LEFT_KNEE, _L.LEFT_ANKLE),
    (_L.RIGHT_HIP, _L.RIGHT_KNEE, _L.RIGHT_ANKLE),
)

_TEMPORAL_KEYS = HIGH_PRIORITY

# Order in which failed checks explain a rejection
_REJECTION_PRIORITY: tuple[tuple[str, str], ...] = (
    ("core_body", "Missing core body landmarks"),
    ("landmark_confidence", "Low landmark confidence"),
    ("proportions", "Invalid body proportions"),
    ("body_height", "Invalid body height"),
    ("spatial_coherence", "Spatial structure invalid"),
    ("skeletal_connectivity", "Skeleton disconnected"),
    ("temporal_consistency", "Pose teleported"),
    ("joint_angles", "Impossible joint angles"),
    ("body_symmetry", "Body asymmetric"),
)


@dataclass(frozen=True)
class CheckResult:
    passed: bool
    score: float
    details: str = ""
    # A failed fatal check rejects the frame whatever the composite score
    fatal: bool = False

    @classmethod
    def neutral(cls, details: str = "landmarks unavailable") -> "CheckResult":
        return cls(True, NEUTRAL_SCORE, details)


@dataclass(frozen=True)
class ValidationOutcome:
    is_valid: bool
    confidence: float
    checks: dict[str, CheckResult] = field(default_factory=dict)
    rejection_reason: Optional[str] = None

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, c in self.checks.items() if not c.passed]

    @property
    def scores(self) -> dict[str, float]:
        return {name: c.score for name, c in self.checks.items()}


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


def _in_range(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


class HumanPoseValidator:
    """
    Scores a frame against anatomical and temporal plausibility checks.
    Keeps the last few accepted frames and body-height estimates for the
    temporal checks; ``reset()`` clears both.
    """

    def __init__(
        self,
        config: Optional[ValidatorConfig] = None,
        thresholds: Optional[ConfidenceThresholds] = None,
    ):
        self.config = config or ValidatorConfig()
        self.thresholds = thresholds or ConfidenceThresholds()
        self._recent_poses: deque[PoseFrame] = deque(maxlen=self.config.temporal_window)
        self._recent_heights: deque[float] = deque(maxlen=self.config.temporal_window)

    def reset(self) -> None:
        self._recent_poses.clear()
        self._recent_heights.clear()

    @property
    def history_size(self) -> int:
        return len(self._recent_poses)

    def validate(self, frame: PoseFrame) -> ValidationOutcome:
        if self._recent_poses:
            gap = frame.timestamp_us - self._recent_poses[-1].timestamp_us
            if gap <= 0 or gap > self.config.max_gap_us:
                logger.debug(
                    "validator: gap %sus before frame %s, clearing history",
                    gap, frame.frame_index,
                )
                self.reset()
        checks: dict[str, CheckResult] = {
            "landmark_confidence": self._check_landmark_confidence(frame),
            "core_body": self._check_core_body(frame),
            "proportions": self._check_proportions(frame),
            "spatial_coherence": self._check_spatial_coherence(frame),
            "skeletal_connectivity": self._check_connectivity(frame),
            "body_symmetry": self._check_symmetry(frame),
            "joint_angles": self._check_joint_angles(frame),
        }
        height = self._check_body_height(frame)
        if height is not None:
            checks["body_height"] = height
        temporal = self._check_temporal(frame)
        if temporal is not None:
            checks["temporal_consistency"] = temporal

        score = self.composite_score(checks)
        fatal = [name for name, c in checks.items() if c.fatal and not c.passed]
        is_valid = score >= self.config.threshold and not fatal
        reason = None if is_valid else self._rejection_reason(checks, score)

        logger.debug(
            "validator: frame %s %s score=%.3f threshold=%.2f checks=%s%s",
            frame.frame_index,
            "VALID" if is_valid else "REJECTED",
            score,
            self.config.threshold,
            {k: round(c.score, 2) for k, c in checks.items()},
            f" reason={reason}" if reason else "",
        )
        if is_valid:
            self._recent_poses.append(frame)
        return ValidationOutcome(is_valid, score, checks, reason)

    def composite_score(self, checks: dict[str, CheckResult]) -> float:
        """Weighted sum of check scores, scaled by temporal consistency when present."""
        weights = self.config.weights
        score = 0.0
        for name, w in weights.items():
            c = checks.get(name)
            score += (c.score if c is not None else NEUTRAL_SCORE) * w
        temporal = checks.get("temporal_consistency")
        if temporal is not None:
            floor = self.config.temporal_floor
            score *= floor + (1.0 - floor) * temporal.score
        return _clamp01(score)

    # -- helpers ---------------------------------------------------------------

    def _distance(self, frame: PoseFrame, a: int, b: int) -> Optional[float]:
        min_conf = self.thresholds.medium_priority
        pa = frame.point(a, min_conf)
        pb = frame.point(b, min_conf)
        if pa is None or pb is None:
            return None
        return distance_2d(pa, pb)

    def _torso(self, frame: PoseFrame, min_conf: float):
        ls = frame.point(_L.LEFT_SHOULDER, min_conf)
        rs = frame.point(_L.RIGHT_SHOULDER, min_conf)
        lh = frame.point(_L.LEFT_HIP, min_conf)
        rh = frame.point(_L.RIGHT_HIP, min_conf)
        if ls is None or rs is None or lh is None or rh is None:
            return None
        return ls, rs, lh, rh

    # -- checks ----------------------------------------------------------------

    def _check_landmark_confidence(self, frame: PoseFrame) -> CheckResult:
        t = self.thresholds
        high = sum(1 for idx in HIGH_PRIORITY if frame.confident(idx, t.high_priority) is not None)
        visible = [lm.confidence for lm in frame.landmarks if lm.confidence > t.visibility]
        avg = float(np.mean(visible)) if visible else 0.0
        score = _clamp01((high / len(HIGH_PRIORITY)) * 0.6 + avg * 0.4)
        passed = high >= self.config.min_high_priority_landmarks and avg >= t.average
        return CheckResult(passed, score, f"high priority {high}/{len(HIGH_PRIORITY)}, avg {avg:.0%}")

    def _check_core_body(self, frame: PoseFrame) -> CheckResult:
        min_conf = self.thresholds.high_priority
        corners = sum(
            1
            for idx in (_L.LEFT_SHOULDER, _L.RIGHT_SHOULDER, _L.LEFT_HIP, _L.RIGHT_HIP)
            if frame.confident(idx, min_conf) is not None
        )
        has_head = frame.confident(_L.NOSE, min_conf) is not None
        score = _clamp01(corners / 4.0 + (0.1 if has_head else 0.0))
        # three corners tolerate one occluded shoulder or hip
        passed = corners >= 3
        return CheckResult(passed, score, f"torso {corners}/4, head {has_head}", fatal=True)

    def _check_proportions(self, frame: PoseFrame) -> CheckResult:
        cfg = self.config
        checked = 0
        valid = 0
        violations: list[str] = []

        def ratio_check(label: str, num: Optional[float], den: Optional[float], bounds) -> None:
            nonlocal checked, valid
            if num is None or den is None or den <= 0.01:
                return
            checked += 1
            ratio = num / den
            if _in_range(ratio, bounds):
                valid += 1
            else:
                violations.append(f"{label}={ratio:.2f}")

        def d(a: int, b: int) -> Optional[float]:
            return self._distance(frame, a, b)

        ratio_check(
            "shoulder/hip",
            d(_L.LEFT_SHOULDER, _L.RIGHT_SHOULDER),
            d(_L.LEFT_HIP, _L.RIGHT_HIP),
            cfg.shoulder_to_hip,
        )
        upper_arms = {}
        for side, (sh, el, wr, hip, kn, an) in {
            "L": (_L.LEFT_SHOULDER, _L.LEFT_ELBOW, _L.LEFT_WRIST, _L.LEFT_HIP, _L.LEFT_KNEE, _L.LEFT_ANKLE),
            "R": (_L.RIGHT_SHOULDER, _L.RIGHT_ELBOW, _L.RIGHT_WRIST, _L.RIGHT_HIP, _L.RIGHT_KNEE, _L.RIGHT_ANKLE),
        }.items():
            upper_arms[side] = d(sh, el)
            ratio_check(f"{side}-arm", upper_arms[side], d(el, wr), cfg.upper_arm_to_forearm)
            ratio_check(f"{side}-leg", d(hip, kn), d(kn, an), cfg.thigh_to_shin)

        # torso length against mean hip-to-ankle leg length
        torso = self._torso(frame, self.thresholds.medium_priority)
        legs = [
            x for x in (d(_L.LEFT_HIP, _L.LEFT_ANKLE), d(_L.RIGHT_HIP, _L.RIGHT_ANKLE)) if x is not None
        ]
        if torso is not None and legs:
            ls, rs, lh, rh = torso
            torso_len = distance_2d(midpoint(ls, rs), midpoint(lh, rh))
            ratio_check("torso/leg", torso_len, float(np.mean(legs)), cfg.torso_to_leg)

        left, right = upper_arms.get("L"), upper_arms.get("R")
        if left is not None and right is not None and max(left, right) > 0:
            checked += 1
            asym = (max(left, right) - min(left, right)) / max(left, right)
            if asym <= cfg.max_lateral_asymmetry:
                valid += 1
            else:
                violations.append(f"arm-asym={asym:.0%}")

        if checked == 0:
            return CheckResult.neutral()
        score = valid / checked
        details = f"valid {valid}/{checked}"
        if violations:
            details += ", violations: " + ", ".join(violations)
        return CheckResult(score >= 0.6, score, details)

    def _check_spatial_coherence(self, frame: PoseFrame) -> CheckResult:
        torso = self._torso(frame, self.thresholds.medium_priority)
        if torso is None:
            return CheckResult.neutral()
        ls, rs, lh, rh = torso
        shoulder_y = (ls[1] + rs[1]) / 2.0
        hip_y = (lh[1] + rh[1]) / 2.0
        if shoulder_y >= hip_y:
            return CheckResult(False, 0.1, "shoulders at or below hips", fatal=True)

        shoulder_w = abs(rs[0] - ls[0])
        hip_w = abs(rh[0] - lh[0])
        width_ok = hip_w > 0.001 and 0.3 < shoulder_w / hip_w < 3.0
        avg_w = (shoulder_w + hip_w) / 2.0
        torso_ok = avg_w > 0.001 and 0.3 < (hip_y - shoulder_y) / avg_w < 4.0
        quad = (0.5 if width_ok else 0.0) + (0.5 if torso_ok else 0.0)

        # head above shoulders above hips above knees above ankles, with slack for bending
        min_conf = self.thresholds.medium_priority
        relations = [abs(ls[0] - rs[0]) >= 0.05]
        nose = frame.point(_L.NOSE, min_conf)
        if nose is not None:
            relations.append(nose[1] <= shoulder_y + 0.12)
        for hip_idx, knee_idx, ankle_idx in (
            (_L.LEFT_HIP, _L.LEFT_KNEE, _L.LEFT_ANKLE),
            (_L.RIGHT_HIP, _L.RIGHT_KNEE, _L.RIGHT_ANKLE),
        ):
            hip = frame.point(hip_idx, min_conf)
            knee = frame.point(knee_idx, min_conf)
            ankle = frame.point(ankle_idx, min_conf)
            if hip is not None and knee is not None:
                relations.append(hip[1] <= knee[1] + 0.1)
            if knee is not None and ankle is not None:
                relations.append(knee[1] <= ankle[1] + 0.1)
        ordering = sum(relations) / len(relations)

        score = 0.5 * quad + 0.5 * ordering
        return CheckResult(
            score >= 0.6,
            score,
            f"width_ok {width_ok}, torso_ok {torso_ok}, ordering {sum(relations)}/{len(relations)}",
        )

    def _check_connectivity(self, frame: PoseFrame) -> CheckResult:
        checked = 0
        valid = 0
        for a, b, max_dist in _CONNECTIONS:
            dist = self._distance(frame, a, b)
            if dist is None:
                continue
            checked += 1
            if _MIN_CONNECTION <= dist <= max_dist:
                valid += 1
        if checked == 0:
            return CheckResult.neutral()
        score = valid / checked
        return CheckResult(score >= 0.65, score, f"connected {valid}/{checked}")

    def _check_symmetry(self, frame: PoseFrame) -> CheckResult:
        min_conf = self.thresholds.tracking
        pair_scores = []
        for left_idx, right_idx in _SYMMETRY_PAIRS:
            left = frame.point(left_idx, min_conf)
            right = frame.point(right_idx, min_conf)
            if left is None or right is None:
                continue
            pair_scores.append(_clamp01(1.0 - abs(left[1] - right[1]) / _SYMMETRY_TOLERANCE))
        if not pair_scores:
            return CheckResult.neutral()
        score = float(np.mean(pair_scores))
        return CheckResult(score >= 0.3, score, f"pairs {len(pair_scores)}")

    def _check_joint_angles(self, frame: PoseFrame) -> CheckResult:
        min_conf = self.thresholds.tracking
        results = []
        for a, b, c in _ANGLE_TRIPLETS:
            deg = angle_deg(frame.point(a, min_conf), frame.point(b, min_conf), frame.point(c, min_conf))
            if deg is None:
                continue
            results.append(0.0 <= deg <= 180.0)
        if not results:
            return CheckResult.neutral()
        score = sum(results) / len(results)
        return CheckResult(score >= 0.5, score, f"plausible {sum(results)}/{len(results)}")

    def _check_temporal(self, frame: PoseFrame) -> Optional[CheckResult]:
        if not self._recent_poses:
            return None
        previous = self._recent_poses[-1]
        min_conf = self.thresholds.tracking
        moves = []
        for idx in _TEMPORAL_KEYS:
            cur = frame.point(idx, min_conf)
            prev = previous.point(idx, min_conf)
            if cur is None or prev is None:
                continue
            moves.append(distance_2d(cur, prev))
        if not moves:
            return None
        avg_move = float(np.mean(moves))
        max_move = self.config.max_frame_movement
        score = _clamp01(1.0 - (avg_move / max_move) * 0.5)
        return CheckResult(avg_move <= max_move, score, f"movement {avg_move:.1%}")

    def _check_body_height(self, frame: PoseFrame) -> Optional[CheckResult]:
        cfg = self.config
        t = self.thresholds
        nose = frame.point(_L.NOSE, t.tracking)
        torso = self._torso(frame, t.tracking)
        if nose is None or torso is None:
            return None
        ls, rs, lh, rh = torso
        shoulder_y = (ls[1] + rs[1]) / 2.0
        hip_y = (lh[1] + rh[1]) / 2.0
        head_h = shoulder_y - nose[1]
        torso_h = hip_y - shoulder_y

        leg_h: Optional[float] = None
        for ankle_idx in (_L.LEFT_ANKLE, _L.RIGHT_ANKLE):
            ankle = frame.point(ankle_idx, t.medium_priority)
            if ankle is not None:
                leg_h = ankle[1] - hip_y
                break

        if leg_h is not None and leg_h > 0:
            total = head_h + torso_h + leg_h
        else:
            # head + torso is roughly 55% of standing height
            total = (head_h + torso_h) / 0.55

        checked = 0
        valid = 0
        violations: list[str] = []

        def proportion(label: str, part: float, bounds: tuple[float, float]) -> None:
            nonlocal checked, valid
            if part <= 0 or total <= 0:
                return
            checked += 1
            ratio = part / total
            if _in_range(ratio, bounds):
                valid += 1
            else:
                violations.append(f"{label}={ratio:.0%}")

        proportion("head", head_h, cfg.head_to_height)
        proportion("torso", torso_h, cfg.torso_to_height)
        if leg_h is not None:
            proportion("legs", leg_h, cfg.leg_to_height)

        shoulder_w = self._distance(frame, _L.LEFT_SHOULDER, _L.RIGHT_SHOULDER)
        hip_w = self._distance(frame, _L.LEFT_HIP, _L.RIGHT_HIP)
        if shoulder_w is not None and hip_w is not None and torso_h > 0:
            checked += 1
            area = (shoulder_w + hip_w) / 2.0 * (head_h + torso_h)
            if area >= cfg.min_body_size:
                valid += 1
            else:
                violations.append(f"size={area:.1%}")

        if self._recent_heights and total > 0:
            checked += 1
            mean_h = float(np.mean(self._recent_heights))
            variance = abs(total - mean_h) / mean_h if mean_h > 0 else 0.0
            if variance <= cfg.max_height_variance:
                valid += 1
            else:
                violations.append(f"height-var={variance:.0%}")

        if total > 0:
            self._recent_heights.append(total)

        if checked == 0:
            return None
        score = valid / checked
        details = f"valid {valid}/{checked}"
        if violations:
            details += ", violations: " + ", ".join(violations)
        return CheckResult(score >= 0.6, score, details)

    def _rejection_reason(self, checks: dict[str, CheckResult], score: float) -> str:
        failed = {name for name, c in checks.items() if not c.passed}
        fatal = {name for name in failed if checks[name].fatal}
        for pool in (fatal, failed):
            for name, label in _REJECTION_PRIORITY:
                if name in pool:
                    return f"{label} ({checks[name].details})"
        return f"Score below threshold ({score:.2f} < {self.config.threshold:.2f})"
