"""Pose pipeline worker: raw pose -> centered, compensated, mapped output."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Sequence

import numpy as np

from ..math3d.euler import euler_deg_to_rmat, rmat_to_euler_deg
from .flags import ControlFlags, Flag
from .guarded import Guarded
from .mapping import Mappings
from .pose import N_AXES, Axis, zero_pose
from .pose_log import PoseLogger
from .reltrans import Reltrans
from .worker import Worker

logger = logging.getLogger(__name__)


class Pipeline(Worker):
    """Consumes ``source.data()`` and publishes the mapped output pose.

    ``source`` is usually the Tracker; any object with ``data()`` returning
    six values works. If it also has ``center()``, that is called whenever
    a center request is applied. A center request stays pending until the
    source reports a valid, non-zero pose for the first time.
    """

    thread_name = "pose-pipeline"

    def __init__(
        self,
        source,
        mappings: Mappings | None = None,
        flags: ControlFlags | None = None,
        interval_s: float = 0.004,
        tcomp_enabled: bool = False,
        tcomp_in_zone: bool = False,
        tcomp_disable: Sequence[bool] = (False, False, False),
        interp_time_s: float = 1.5,
        hold_axes: Sequence[Axis] = (Axis.YAW, Axis.PITCH),
        pose_logger: PoseLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        if len(tcomp_disable) != 3:
            raise ValueError("tcomp_disable needs one flag per translation axis")
        self.source = source
        self.mappings = mappings or Mappings.identity()
        self.flags = flags or ControlFlags()
        self.interval_s = float(interval_s)
        self.tcomp_enabled = bool(tcomp_enabled)
        self.tcomp_disable = tuple(bool(v) for v in tcomp_disable)
        self.hold_axes = tuple(Axis(a) for a in hold_axes)
        self._clock = clock
        self.pose_logger = pose_logger

        self.rel = Reltrans(interp_time_s=interp_time_s, only_in_zone=tcomp_in_zone, clock=clock)

        self._inv_rot_center = np.eye(3, dtype=np.float64)
        self._t_center = np.zeros(3, dtype=np.float64)
        self._last_value = zero_pose()
        self._last_zero = False
        self._last_enabled = True
        self._tracking_started = False

        self._output = Guarded((zero_pose(), zero_pose()))
        self._last_nan_log_t = -math.inf

    # -- operator commands -------------------------------------------------

    def center(self) -> None:
        self.flags.set(Flag.CENTER, True)

    def set_toggle(self, value: bool) -> None:
        self.flags.set(Flag.ENABLED_H, value)

    def toggle_enabled(self) -> None:
        self.flags.negate(Flag.ENABLED_P)

    def set_zero(self, value: bool) -> None:
        self.flags.set(Flag.ZERO, value)

    def zero(self) -> None:
        self.set_zero(True)
        self.center()

    def is_enabled(self) -> bool:
        return self.flags.get(Flag.ENABLED_H) and self.flags.get(Flag.ENABLED_P)

    # -- queries -----------------------------------------------------------

    def raw_and_mapped_pose(self) -> tuple[np.ndarray, np.ndarray]:
        """Return (mapped, raw) from the same cycle."""
        return self._output.get()

    # -- worker ------------------------------------------------------------

    def run(self) -> None:
        logger.info("[PIPELINE] started (%.0f Hz)", 1.0 / self.interval_s if self.interval_s > 0 else 0.0)
        while not self.is_interruption_requested():
            t0 = self._clock()
            self.tick()
            remaining = self.interval_s - (self._clock() - t0)
            self.wait_interruptible(remaining)
        logger.info("[PIPELINE] thread stopped")

    def _set_center(self, raw: np.ndarray) -> None:
        self._inv_rot_center = euler_deg_to_rmat(
            raw[Axis.YAW], raw[Axis.PITCH], raw[Axis.ROLL]
        ).T
        self._t_center = raw[:3].copy()
        center_source = getattr(self.source, "center", None)
        if center_source is not None:
            center_source()
        self.rel.start_transition()
        logger.info(
            "[PIPELINE] centered at yaw=%.2f pitch=%.2f roll=%.2f xyz=(%.2f, %.2f, %.2f)",
            raw[Axis.YAW],
            raw[Axis.PITCH],
            raw[Axis.ROLL],
            raw[Axis.TX],
            raw[Axis.TY],
            raw[Axis.TZ],
        )

    def _apply_center(self, raw: np.ndarray) -> np.ndarray:
        rotation = self._inv_rot_center @ euler_deg_to_rmat(
            raw[Axis.YAW], raw[Axis.PITCH], raw[Axis.ROLL]
        )
        value = zero_pose()
        value[:3] = raw[:3] - self._t_center
        value[Axis.YAW], value[Axis.PITCH], value[Axis.ROLL] = rmat_to_euler_deg(rotation)
        return value

    def tick(self) -> None:
        zero = self.flags.get(Flag.ZERO)
        enabled = self.is_enabled()

        raw = np.asarray(self.source.data(), dtype=np.float64).reshape(-1)
        if raw.size != N_AXES or not np.isfinite(raw).all():
            now = self._clock()
            if now - self._last_nan_log_t > 5.0:
                logger.warning("[PIPELINE] invalid raw pose %s, holding output", raw)
                self._last_nan_log_t = now
            return

        if not self._tracking_started and np.any(raw != 0.0):
            self._tracking_started = True
            logger.info("[PIPELINE] tracking started")

        if self._tracking_started and self.flags.test_and_clear(Flag.CENTER):
            self._set_center(raw)

        value = self._apply_center(raw)

        if zero:
            value = zero_pose()

        if not enabled:
            for axis in self.hold_axes:
                value[axis] = self._last_value[axis]

        if zero != self._last_zero or enabled != self._last_enabled:
            self.rel.start_transition()
        self._last_zero = zero
        self._last_enabled = enabled

        self._last_value = value.copy()

        value = self.rel.apply_pipeline(self.tcomp_enabled, value, self.tcomp_disable)
        mapped = self.mappings.apply(value)

        self._output.set((mapped, raw.copy()))
        if self.pose_logger is not None:
            self.pose_logger.write(self._clock(), raw, mapped)
