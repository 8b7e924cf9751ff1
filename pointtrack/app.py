"""
Optical point tracker demo:
- Camera backend (OpenCV webcam or synthetic rendered model)
- Blob extraction -> 3-point pose fit on the tracker thread
- Pose pipeline thread: center, zero, hold, translation compensation, curves
- Preview window + terminal status display on the main thread

Keys (preview window): c center, z zero, t toggle tracking, s camera settings,
q/ESC quit. Without a preview window, Ctrl+C quits.
"""

from __future__ import annotations

import logging
import math
import time

import numpy as np

from .backends import make_runtime_traits
from .config import AppConfig, parse_args, parse_hold_axes
from .control.display_provider import DisplayFrame, TuiDisplayProvider
from .control.flags import Flag
from .control.mapping import load_mappings
from .control.pipeline import Pipeline
from .control.pose_log import PoseLogger
from .tracker.tracker import Tracker
from .ui.video_widget import VideoWidget

logger = logging.getLogger(__name__)

# Main loop poll interval; also the cv2.waitKey timeout.
UI_POLL_MS = 15
# Max wait for a worker thread to exit on shutdown.
SHUTDOWN_TIMEOUT_S = 2.0


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_tracker(cfg: AppConfig, video_widget: VideoWidget | None) -> Tracker:
    traits = make_runtime_traits(cfg)
    return Tracker(traits, cfg, video_widget=video_widget)


def build_pipeline(cfg: AppConfig, tracker: Tracker) -> Pipeline:
    mappings = load_mappings(cfg.mapping)
    pose_logger = PoseLogger(cfg.pose_log) if cfg.pose_log else None
    pipeline = Pipeline(
        source=tracker,
        mappings=mappings,
        interval_s=1.0 / cfg.pipeline_hz,
        tcomp_enabled=cfg.tcomp_enabled,
        tcomp_in_zone=cfg.tcomp_in_zone,
        tcomp_disable=(cfg.tcomp_disable_tx, cfg.tcomp_disable_ty, cfg.tcomp_disable_tz),
        interp_time_s=cfg.tcomp_interp_s,
        hold_axes=parse_hold_axes(cfg.hold_axes),
        pose_logger=pose_logger,
    )
    logger.info(
        "[APP] pipeline %.0f Hz tcomp=%s in_zone=%s hold=%s mapping=%s",
        cfg.pipeline_hz,
        cfg.tcomp_enabled,
        cfg.tcomp_in_zone,
        cfg.hold_axes or "-",
        cfg.mapping or "identity",
    )
    return pipeline


def build_display_provider(cfg: AppConfig):
    if cfg.display_hz <= 0.0:
        return None
    return TuiDisplayProvider(cli_output=cfg.cli_output)


def display_frame(tracker: Tracker, pipeline: Pipeline) -> DisplayFrame:
    mapped, raw = pipeline.raw_and_mapped_pose()
    camera_open, _ = tracker.get_cam_info()
    return DisplayFrame(
        mapped=np.asarray(mapped, dtype=np.float64),
        raw=np.asarray(raw, dtype=np.float64),
        n_points=tracker.get_n_points(),
        ever_success=tracker.ever_success,
        enabled=pipeline.is_enabled(),
        zero=pipeline.flags.get(Flag.ZERO),
        camera_open=bool(camera_open),
    )


def handle_key(key: int, tracker: Tracker, pipeline: Pipeline) -> bool:
    """Apply an operator key; return False when the app should quit."""
    if key < 0:
        return True
    ch = chr(key).lower() if key < 128 else ""
    if key == 27 or ch == "q":
        logger.info("[APP] quit requested")
        return False
    if ch == "c":
        pipeline.center()
    elif ch == "z":
        zero_now = not pipeline.flags.get(Flag.ZERO)
        if zero_now:
            pipeline.zero()
        else:
            pipeline.set_zero(False)
        logger.info("[APP] zero=%s", zero_now)
    elif ch == "t":
        pipeline.toggle_enabled()
        logger.info("[APP] tracking enabled=%s", pipeline.is_enabled())
    elif ch == "s":
        tracker.show_camera_settings()
    return True


def run_loop(
    cfg: AppConfig,
    tracker: Tracker,
    pipeline: Pipeline,
    video_widget: VideoWidget | None,
    display_provider,
) -> None:
    display_period = 1.0 / cfg.display_hz if cfg.display_hz > 0.0 else math.inf
    next_display_t = time.monotonic()

    while True:
        if video_widget is not None:
            key = video_widget.show(UI_POLL_MS)
        else:
            time.sleep(UI_POLL_MS / 1000.0)
            key = -1
        if not handle_key(key, tracker, pipeline):
            break

        now = time.monotonic()
        if display_provider is not None and now >= next_display_t:
            display_provider.update(display_frame(tracker, pipeline))
            next_display_t = now + display_period


def main(argv=None):
    cfg = parse_args(argv)
    configure_logging(cfg.log_level)

    video_widget = VideoWidget("pointtrack preview") if cfg.preview else None
    tracker = build_tracker(cfg, video_widget)
    pipeline = build_pipeline(cfg, tracker)
    display_provider = build_display_provider(cfg)

    tracker.start()
    pipeline.start()
    try:
        run_loop(cfg, tracker, pipeline, video_widget, display_provider)
    except KeyboardInterrupt:
        logger.info("[APP] interrupted")
    finally:
        try:
            if not pipeline.stop(SHUTDOWN_TIMEOUT_S):
                logger.warning("[APP] pipeline thread did not stop in time")
            elif pipeline.pose_logger is not None:
                pipeline.pose_logger.close()
            tracker.close()
        finally:
            if display_provider is not None:
                display_provider.close()
            if video_widget is not None:
                video_widget.close()


if __name__ == "__main__":
    main()
