"""Relative translation compensation with a time-bounded ramp.

Compensation rotates the tracked translation by the head rotation so that
turning the head does not read as moving it. Whenever compensation switches
on or off, or the pipeline re-centers, zeroes or toggles tracking, the output
ramps from its last value to the new target instead of jumping.
"""

from __future__ import annotations

import enum
import logging
import math
import time
from typing import Callable, Sequence

import numpy as np

from ..math3d.euler import euler_deg_to_rmat
from .pose import Axis

logger = logging.getLogger(__name__)


class RampPhase(enum.Enum):
    IDLE = "idle"
    INTERPOLATING = "interpolating"
    SETTLED = "settled"


def looking_behind(yaw_deg: float, pitch_deg: float) -> bool:
    looking_down = pitch_deg < 20.0
    return abs(yaw_deg) > 35.0 if looking_down else abs(yaw_deg) > 65.0


def wrap_deg(a):
    return (np.asarray(a, dtype=np.float64) + 180.0) % 360.0 - 180.0


class Reltrans:
    def __init__(
        self,
        interp_time_s: float = 1.5,
        only_in_zone: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interp_time_s <= 0.0:
            raise ValueError(f"interp_time_s must be > 0, got {interp_time_s}")
        self.interp_time_s = float(interp_time_s)
        self.only_in_zone = bool(only_in_zone)
        self._clock = clock

        self.phase = RampPhase.IDLE
        self._ramp_from = np.zeros(6, dtype=np.float64)
        self._ramp_t0 = 0.0
        self._last_value = np.zeros(6, dtype=np.float64)
        self._in_zone: bool | None = None

    @property
    def in_zone(self) -> bool:
        return bool(self._in_zone)

    @property
    def last_value(self) -> np.ndarray:
        return self._last_value.copy()

    @staticmethod
    def rotate(
        R: np.ndarray,
        xyz: np.ndarray,
        disable_tx: bool,
        disable_ty: bool,
        disable_tz: bool,
    ) -> np.ndarray:
        # Pose axes are left-handed with Y as the yaw axis; swap into the
        # rotation's frame, rotate, then swap back.
        ret = R @ np.array([xyz[2], -xyz[0], -xyz[1]], dtype=np.float64)
        out = np.empty(3, dtype=np.float64)
        out[0] = xyz[0] if disable_tx else -ret[1]
        out[1] = xyz[1] if disable_ty else -ret[2]
        out[2] = xyz[2] if disable_tz else ret[0]
        return out

    def start_transition(self) -> bool:
        """Begin a ramp from the last output; ignored while one is running."""
        if self.phase is RampPhase.INTERPOLATING:
            return False
        self.phase = RampPhase.INTERPOLATING
        self._ramp_from = self._last_value.copy()
        self._ramp_t0 = self._clock()
        logger.debug("[PIPELINE] ramp started from %s", self._ramp_from)
        return True

    def apply_pipeline(
        self,
        enable: bool,
        value: np.ndarray,
        disable: Sequence[bool],
    ) -> np.ndarray:
        out = np.array(value, dtype=np.float64)

        if enable:
            in_zone = (
                looking_behind(out[Axis.YAW], out[Axis.PITCH])
                if self.only_in_zone
                else True
            )
            if self._in_zone is not None and in_zone != self._in_zone:
                self.start_transition()
            self._in_zone = in_zone
            if in_zone:
                R = euler_deg_to_rmat(out[Axis.YAW], out[Axis.PITCH], out[Axis.ROLL])
                out[:3] = self.rotate(R, out[:3], disable[0], disable[1], disable[2])
        elif self._in_zone:
            self._in_zone = False
            self.start_transition()

        if self.phase is RampPhase.INTERPOLATING:
            alpha = (self._clock() - self._ramp_t0) / self.interp_time_s
            if not math.isfinite(alpha) or alpha >= 1.0:
                self.phase = RampPhase.SETTLED
            else:
                alpha = max(0.0, alpha)
                delta = out - self._ramp_from
                delta[3:] = wrap_deg(delta[3:])
                out = self._ramp_from + delta * alpha
                out[3:] = wrap_deg(out[3:])

        self._last_value = out.copy()
        return out
