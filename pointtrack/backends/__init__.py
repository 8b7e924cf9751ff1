"""Tracker backend implementations."""

from .opencv_backend import OpenCvRuntimeTraits
from .synthetic import SyntheticRuntimeTraits

BACKENDS = {
    "opencv": OpenCvRuntimeTraits,
    "synthetic": SyntheticRuntimeTraits,
}


def make_runtime_traits(cfg):
    try:
        traits_cls = BACKENDS[cfg.backend]
    except KeyError as exc:
        raise RuntimeError(f"Unsupported tracker backend: {cfg.backend}") from exc
    return traits_cls(cfg)


__all__ = [
    "BACKENDS",
    "OpenCvRuntimeTraits",
    "SyntheticRuntimeTraits",
    "make_runtime_traits",
]
