"""
Speed-adaptive keypoint smoothing (1-Euro filter).
Slow motion is smoothed heavily to kill jitter; fast motion passes with little lag.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from .config import FilterConfig
from .pose import LandmarkSample, PoseFrame

logger = logging.getLogger(__name__)


def _alpha(cutoff: float, dt: float) -> float:
    tau = 1.0 / (2.0 * math.pi * cutoff)
    return 1.0 / (1.0 + tau / dt)


class OneEuroFilter:
    """Single-channel 1-Euro filter. Timestamps are in seconds."""

    def __init__(self, min_cutoff: float = 1.0, beta: float = 0.007, d_cutoff: float = 1.0):
        self.min_cutoff = float(min_cutoff)
        self.beta = float(beta)
        self.d_cutoff = float(d_cutoff)
        self.x_prev: Optional[float] = None
        self.dx_prev = 0.0
        self.t_prev: Optional[float] = None

    @property
    def is_initialized(self) -> bool:
        return self.x_prev is not None

    def reset(self) -> None:
        self.x_prev = None
        self.dx_prev = 0.0
        self.t_prev = None

    def __call__(self, x: float, t: float) -> float:
        if self.x_prev is None or self.t_prev is None:
            self.x_prev = float(x)
            self.dx_prev = 0.0
            self.t_prev = float(t)
            return float(x)

        dt = float(t) - self.t_prev
        if dt <= 0:
            return self.x_prev

        dx = (float(x) - self.x_prev) / dt
        a_d = _alpha(self.d_cutoff, dt)
        dx_hat = a_d * dx + (1.0 - a_d) * self.dx_prev

        cutoff = self.min_cutoff + self.beta * abs(dx_hat)
        a = _alpha(cutoff, dt)
        x_hat = a * float(x) + (1.0 - a) * self.x_prev

        self.x_prev = x_hat
        self.dx_prev = dx_hat
        self.t_prev = float(t)
        return x_hat


class OneEuroFilter3D:
    """Independent x/y/z filters for one landmark."""

    def __init__(self, min_cutoff: float = 1.0, beta: float = 0.007, d_cutoff: float = 1.0):
        self.axes = tuple(OneEuroFilter(min_cutoff, beta, d_cutoff) for _ in range(3))

    @property
    def is_initialized(self) -> bool:
        return all(f.is_initialized for f in self.axes)

    def reset(self) -> None:
        for f in self.axes:
            f.reset()

    def __call__(self, x: float, y: float, z: float, t: float) -> tuple[float, float, float]:
        fx, fy, fz = self.axes
        return (fx(x, t), fy(y, t), fz(z, t))


class PoseSmoother:
    """
    Filter bank: one OneEuroFilter3D per landmark id, created on first sight.
    A frame gap above ``max_gap_us`` or a timestamp going backwards resets every
    filter before the frame is filtered. Confidence is passed through untouched.
    """

    def __init__(self, config: Optional[FilterConfig] = None):
        self.config = config or FilterConfig()
        self._filters: dict[int, OneEuroFilter3D] = {}
        self._last_timestamp_us: Optional[int] = None

    def __len__(self) -> int:
        return len(self._filters)

    def reset(self) -> None:
        for f in self._filters.values():
            f.reset()
        self._last_timestamp_us = None

    def clear(self) -> None:
        self._filters.clear()
        self._last_timestamp_us = None

    def _filter_for(self, idx: int) -> OneEuroFilter3D:
        f = self._filters.get(idx)
        if f is None:
            c = self.config
            f = OneEuroFilter3D(c.min_cutoff, c.beta, c.d_cutoff)
            self._filters[idx] = f
        return f

    def smooth(self, frame: PoseFrame) -> PoseFrame:
        ts = frame.timestamp_us
        if self._last_timestamp_us is not None:
            gap = ts - self._last_timestamp_us
            if gap < 0 or gap > self.config.max_gap_us:
                logger.debug(
                    "smoother: gap %sus at frame %s, restarting %s filters",
                    gap, frame.frame_index, len(self._filters),
                )
                for f in self._filters.values():
                    f.reset()
        self._last_timestamp_us = ts

        t = ts / 1_000_000.0
        smoothed = []
        for lm in frame.landmarks:
            x, y, z = self._filter_for(lm.id)(lm.x, lm.y, lm.z, t)
            smoothed.append(LandmarkSample(lm.id, x, y, z, lm.confidence))
        return frame.replace_landmarks(smoothed)
