"""CLI config and defaults."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .control.pose import Axis, axis_from_name
from .tracker.api import COLOR_TYPE_NAMES
from .tracker.point_model import MODEL_TYPES


@dataclass(frozen=True)
class AppConfig:
    backend: str = "opencv"
    camera_name: str = ""
    camera_index: int = 0
    cam_res_x: int = 640
    cam_res_y: int = 480
    cam_fps: int = 30
    min_point_size: float = 2.5
    max_point_size: float = 50.0
    model: str = "clip"
    m01_x: float = 0.0
    m01_y: float = 0.0
    m01_z: float = 0.0
    m02_x: float = 0.0
    m02_y: float = 0.0
    m02_z: float = 0.0
    t_mh_x: float = 0.0
    t_mh_y: float = 0.0
    t_mh_z: float = 0.0
    clip_ty: float = 40.0
    clip_tz: float = 30.0
    clip_by: float = 70.0
    clip_bz: float = 80.0
    cap_x: float = 40.0
    cap_y: float = 60.0
    cap_z: float = 100.0
    fov: float = 56.0
    dynamic_pose: bool = True
    init_phase_timeout: int = 250
    auto_threshold: bool = True
    blob_color: str = "natural"
    threshold: int = 128
    reset_success_on_reopen: bool = False
    pipeline_hz: float = 250.0
    tcomp_enabled: bool = False
    tcomp_in_zone: bool = False
    tcomp_disable_tx: bool = False
    tcomp_disable_ty: bool = False
    tcomp_disable_tz: bool = False
    tcomp_interp_s: float = 1.5
    hold_axes: str = "yaw,pitch"
    mapping: str = ""
    pose_log: str = ""
    synthetic_distance_mm: float = 600.0
    synthetic_yaw_deg: float = 20.0
    synthetic_period_s: float = 4.0
    preview: bool = True
    display_hz: float = 5.0
    cli_output: str = "live"
    log_level: str = "info"


_APP_CONFIG_FIELDS = {f.name for f in fields(AppConfig)}
_BOOL_FIELDS = {
    "dynamic_pose",
    "auto_threshold",
    "reset_success_on_reopen",
    "tcomp_enabled",
    "tcomp_in_zone",
    "tcomp_disable_tx",
    "tcomp_disable_ty",
    "tcomp_disable_tz",
    "preview",
}
_INT_FIELDS = {
    "camera_index",
    "cam_res_x",
    "cam_res_y",
    "cam_fps",
    "init_phase_timeout",
    "threshold",
}
_FLOAT_FIELDS = {
    "min_point_size",
    "max_point_size",
    "m01_x",
    "m01_y",
    "m01_z",
    "m02_x",
    "m02_y",
    "m02_z",
    "t_mh_x",
    "t_mh_y",
    "t_mh_z",
    "clip_ty",
    "clip_tz",
    "clip_by",
    "clip_bz",
    "cap_x",
    "cap_y",
    "cap_z",
    "fov",
    "pipeline_hz",
    "tcomp_interp_s",
    "synthetic_distance_mm",
    "synthetic_yaw_deg",
    "synthetic_period_s",
    "display_hz",
}
_STRING_FIELDS = {
    "backend",
    "camera_name",
    "model",
    "blob_color",
    "hold_axes",
    "mapping",
    "pose_log",
    "cli_output",
    "log_level",
}
# Settings that are on by default get a --no-* flag on the command line.
_NEGATED_FLAGS = {
    "no_dynamic_pose": "dynamic_pose",
    "no_auto_threshold": "auto_threshold",
    "no_preview": "preview",
}
_KEY_ALIASES = dict(_NEGATED_FLAGS)

BACKEND_NAMES = ("opencv", "synthetic")


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"config key '{key}' expects a bool, got {value!r}")


def _coerce_config_value(key: str, value: Any) -> Any:
    try:
        if key in _BOOL_FIELDS:
            return _parse_bool(value, key)
        if key in _INT_FIELDS:
            return int(value)
        if key in _FLOAT_FIELDS:
            return float(value)
        if key in _STRING_FIELDS:
            return "" if value is None else str(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for config key '{key}': {value!r}") from exc
    raise ValueError(f"unsupported config key '{key}'")


def _normalize_config_key(raw_key: Any) -> str:
    if not isinstance(raw_key, str):
        raise ValueError(f"config key must be string, got {type(raw_key).__name__}")
    key = raw_key.strip().replace("-", "_")
    if not key:
        raise ValueError("config key cannot be empty")
    return _KEY_ALIASES.get(key, key)


def _load_yaml_config(path: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ValueError(f"--config file not found: {p}")
    if not p.is_file():
        raise ValueError(f"--config must point to a file: {p}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"failed to read --config file {p}: {exc}") from exc
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to parse YAML config {p}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"--config root must be a mapping/object, got {type(loaded).__name__}")

    normalized: dict[str, Any] = {}
    for raw_key, raw_value in loaded.items():
        is_negated = isinstance(raw_key, str) and raw_key.strip().replace("-", "_") in _NEGATED_FLAGS
        key = _normalize_config_key(raw_key)
        if key not in _APP_CONFIG_FIELDS:
            raise ValueError(f"unknown config key in {p}: {raw_key!r}")
        value = _coerce_config_value(key, raw_value)
        normalized[key] = (not value) if is_negated else value
    return normalized


def _yaml_defaults_to_argparse_defaults(cfg: dict[str, Any]) -> dict[str, Any]:
    negated = {v: k for k, v in _NEGATED_FLAGS.items()}
    defaults: dict[str, Any] = {}
    for key, value in cfg.items():
        if key in negated:
            defaults[negated[key]] = not bool(value)
        else:
            defaults[key] = value
    return defaults


def parse_hold_axes(value: str) -> tuple[Axis, ...]:
    """Parse a comma separated axis list, e.g. ``"yaw,pitch"``."""
    out: list[Axis] = []
    for part in str(value).split(","):
        name = part.strip()
        if not name:
            continue
        axis = axis_from_name(name)
        if axis not in out:
            out.append(axis)
    return tuple(out)


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pointtrack")
    ap.add_argument(
        "--config",
        type=str,
        default="",
        help="YAML config file path. CLI args override YAML values.",
    )
    ap.add_argument(
        "--backend",
        choices=list(BACKEND_NAMES),
        default="opencv",
        help="Camera backend: OpenCV webcam or synthetic rendered points.",
    )
    ap.add_argument("--camera-name", type=str, default="", help="Camera display name.")
    ap.add_argument("--camera-index", type=int, default=0, help="OpenCV camera index.")
    ap.add_argument("--cam-res-x", type=int, default=640, help="Requested frame width.")
    ap.add_argument("--cam-res-y", type=int, default=480, help="Requested frame height.")
    ap.add_argument("--cam-fps", type=int, default=30, help="Requested frame rate.")

    ap.add_argument(
        "--min-point-size",
        type=float,
        default=2.5,
        help="Minimum blob radius in pixels.",
    )
    ap.add_argument(
        "--max-point-size",
        type=float,
        default=50.0,
        help="Maximum blob radius in pixels.",
    )
    ap.add_argument(
        "--model",
        choices=list(MODEL_TYPES),
        default="clip",
        help="Point model geometry.",
    )
    for name in ("m01", "m02"):
        for c in "xyz":
            ap.add_argument(
                f"--{name}-{c}",
                type=float,
                default=0.0,
                help=f"Custom model point {name.upper()} {c} (mm)." if c == "x" else argparse.SUPPRESS,
            )
    for c in "xyz":
        ap.add_argument(
            f"--t-mh-{c}",
            type=float,
            default=0.0,
            help="Model-to-head-center offset (mm)." if c == "x" else argparse.SUPPRESS,
        )
    ap.add_argument("--clip-ty", type=float, default=40.0, help="Clip top point height (mm).")
    ap.add_argument("--clip-tz", type=float, default=30.0, help="Clip top point depth (mm).")
    ap.add_argument("--clip-by", type=float, default=70.0, help="Clip bottom point drop (mm).")
    ap.add_argument("--clip-bz", type=float, default=80.0, help="Clip bottom point depth (mm).")
    ap.add_argument("--cap-x", type=float, default=40.0, help="Cap half width (mm).")
    ap.add_argument("--cap-y", type=float, default=60.0, help="Cap height (mm).")
    ap.add_argument("--cap-z", type=float, default=100.0, help="Cap depth (mm).")

    ap.add_argument("--fov", type=float, default=56.0, help="Camera diagonal field of view (deg).")
    ap.add_argument(
        "--no-dynamic-pose",
        action="store_true",
        help="Always use the initial correspondence ranking.",
    )
    ap.add_argument(
        "--init-phase-timeout",
        type=int,
        default=250,
        help="Milliseconds the previous pose stays usable for point matching.",
    )
    ap.add_argument(
        "--no-auto-threshold",
        action="store_true",
        help="Use --threshold as a fixed gray level.",
    )
    ap.add_argument(
        "--blob-color",
        choices=list(COLOR_TYPE_NAMES),
        default="natural",
        help="Channel used for blob detection.",
    )
    ap.add_argument("--threshold", type=int, default=128, help="Threshold slider in [0,255].")
    ap.add_argument(
        "--reset-success-on-reopen",
        action="store_true",
        help="Forget the last pose when the camera is reopened with a new mode.",
    )

    ap.add_argument(
        "--pipeline-hz",
        type=float,
        default=250.0,
        help="Pose pipeline update rate in Hz.",
    )
    ap.add_argument(
        "--tcomp-enabled",
        action="store_true",
        help="Rotate translation into the centered head frame.",
    )
    ap.add_argument(
        "--tcomp-in-zone",
        action="store_true",
        help="Only compensate translation while looking behind.",
    )
    ap.add_argument("--tcomp-disable-tx", action="store_true", help="Skip x in compensation.")
    ap.add_argument("--tcomp-disable-ty", action="store_true", help="Skip y in compensation.")
    ap.add_argument("--tcomp-disable-tz", action="store_true", help="Skip z in compensation.")
    ap.add_argument(
        "--tcomp-interp-s",
        type=float,
        default=1.5,
        help="Seconds to ramp between compensated and raw output.",
    )
    ap.add_argument(
        "--hold-axes",
        type=str,
        default="yaw,pitch",
        help="Axes frozen while tracking is disabled (comma separated).",
    )
    ap.add_argument(
        "--mapping",
        type=str,
        default="",
        help="YAML response curve file. Empty means identity curves.",
    )
    ap.add_argument(
        "--pose-log",
        type=str,
        default="",
        help="CSV file receiving raw and mapped pose every pipeline cycle. Empty disables it.",
    )

    ap.add_argument(
        "--synthetic-distance-mm",
        type=float,
        default=600.0,
        help="Synthetic backend: model distance from the camera.",
    )
    ap.add_argument(
        "--synthetic-yaw-deg",
        type=float,
        default=20.0,
        help="Synthetic backend: peak head turn.",
    )
    ap.add_argument(
        "--synthetic-period-s",
        type=float,
        default=4.0,
        help="Synthetic backend: seconds per head turn cycle (0 holds still).",
    )

    ap.add_argument(
        "--no-preview",
        action="store_true",
        help="Run headless without the preview window.",
    )
    ap.add_argument(
        "--display-hz",
        type=float,
        default=5.0,
        help="Status display refresh rate in Hz (0 disables display updates).",
    )
    ap.add_argument(
        "--cli-output",
        choices=["live", "scroll"],
        default="live",
        help="TUI output mode: in-place live panel or scrolling logs.",
    )
    ap.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Global log level.",
    )

    return ap


def validate_config(cfg: AppConfig) -> None:
    if cfg.backend not in BACKEND_NAMES:
        raise ValueError(f"--backend must be one of opencv|synthetic, got {cfg.backend}")
    if cfg.camera_index < 0:
        raise ValueError(f"--camera-index must be >= 0, got {cfg.camera_index}")
    if cfg.cam_res_x < 0:
        raise ValueError(f"--cam-res-x must be >= 0, got {cfg.cam_res_x}")
    if cfg.cam_res_y < 0:
        raise ValueError(f"--cam-res-y must be >= 0, got {cfg.cam_res_y}")
    if cfg.cam_fps < 0:
        raise ValueError(f"--cam-fps must be >= 0, got {cfg.cam_fps}")
    if cfg.min_point_size < 0.0:
        raise ValueError(f"--min-point-size must be >= 0, got {cfg.min_point_size}")
    if cfg.max_point_size < cfg.min_point_size:
        raise ValueError(
            f"--max-point-size must be >= --min-point-size, got {cfg.max_point_size}"
        )
    if cfg.model not in MODEL_TYPES:
        raise ValueError(f"--model must be one of clip|cap|custom, got {cfg.model}")
    if not (0.0 < cfg.fov < 180.0):
        raise ValueError(f"--fov must be in (0,180), got {cfg.fov}")
    if cfg.init_phase_timeout < 0:
        raise ValueError(f"--init-phase-timeout must be >= 0, got {cfg.init_phase_timeout}")
    if cfg.blob_color not in COLOR_TYPE_NAMES:
        raise ValueError(
            "--blob-color must be one of natural|red-only|average|blue-only, "
            f"got {cfg.blob_color}"
        )
    if not (0 <= cfg.threshold <= 255):
        raise ValueError(f"--threshold must be in [0,255], got {cfg.threshold}")
    if not (math.isfinite(cfg.pipeline_hz) and cfg.pipeline_hz > 0.0):
        raise ValueError(f"--pipeline-hz must be > 0, got {cfg.pipeline_hz}")
    if not cfg.tcomp_interp_s > 0.0:
        raise ValueError(f"--tcomp-interp-s must be > 0, got {cfg.tcomp_interp_s}")
    try:
        parse_hold_axes(cfg.hold_axes)
    except ValueError as exc:
        raise ValueError(f"--hold-axes: {exc}") from exc
    if cfg.mapping and not Path(cfg.mapping).is_file():
        raise ValueError(f"--mapping file not found: {cfg.mapping}")
    if cfg.pose_log and not Path(cfg.pose_log).parent.is_dir():
        raise ValueError(f"--pose-log directory does not exist: {Path(cfg.pose_log).parent}")
    if cfg.synthetic_distance_mm <= 0.0:
        raise ValueError(
            f"--synthetic-distance-mm must be > 0, got {cfg.synthetic_distance_mm}"
        )
    if cfg.synthetic_period_s < 0.0:
        raise ValueError(f"--synthetic-period-s must be >= 0, got {cfg.synthetic_period_s}")
    if cfg.display_hz < 0.0:
        raise ValueError(f"--display-hz must be >= 0, got {cfg.display_hz}")
    if cfg.cli_output not in {"live", "scroll"}:
        raise ValueError(f"--cli-output must be live|scroll, got {cfg.cli_output}")
    if cfg.log_level not in {"debug", "info", "warning", "error"}:
        raise ValueError(f"--log-level must be debug|info|warning|error, got {cfg.log_level}")


def parse_args(argv=None) -> AppConfig:
    bootstrap = argparse.ArgumentParser(add_help=False)
    bootstrap.add_argument("--config", type=str, default="")
    bootstrap_ns, _ = bootstrap.parse_known_args(argv)

    yaml_cfg: dict[str, Any] = {}
    yaml_error: Optional[str] = None
    if bootstrap_ns.config:
        try:
            yaml_cfg = _load_yaml_config(bootstrap_ns.config)
        except ValueError as exc:
            yaml_error = str(exc)

    ap = build_arg_parser()
    if yaml_error is not None:
        ap.error(yaml_error)
    if yaml_cfg:
        ap.set_defaults(**_yaml_defaults_to_argparse_defaults(yaml_cfg))
    args = ap.parse_args(argv)

    values: dict[str, Any] = {}
    for key in _APP_CONFIG_FIELDS:
        if hasattr(args, key):
            values[key] = getattr(args, key)
    for flag, key in _NEGATED_FLAGS.items():
        values[key] = not getattr(args, flag)

    cfg = AppConfig(**values)
    try:
        validate_config(cfg)
    except ValueError as exc:
        ap.error(str(exc))
    return cfg
