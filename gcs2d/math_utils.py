from __future__ import annotations

import math
from typing import Tuple

import numpy as np

Vec2 = Tuple[float, float]

_DENOM_EPS = 1e-12


def _sub2(a: Vec2, b: Vec2) -> Vec2:
    return a[0] - b[0], a[1] - b[1]


def _dot2(a: Vec2, b: Vec2) -> float:
    return a[0] * b[0] + a[1] * b[1]


def _cross2(a: Vec2, b: Vec2) -> float:
    return a[0] * b[1] - a[1] * b[0]


def _norm_sq2(v: Vec2) -> float:
    return _dot2(v, v)


def _wrap_angle(angle: float) -> float:
    """Map ``angle`` into (-pi, pi]."""

    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def _max_abs(values: np.ndarray) -> float:
    return float(np.max(np.abs(values))) if values.size else 0.0


def _half_sq_norm(values: np.ndarray) -> float:
    return 0.5 * float(np.dot(values, values))


def _all_finite(values: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(values)))


__all__ = [
    "Vec2",
    "_DENOM_EPS",
    "_all_finite",
    "_cross2",
    "_dot2",
    "_half_sq_norm",
    "_max_abs",
    "_norm_sq2",
    "_sub2",
    "_wrap_angle",
]
