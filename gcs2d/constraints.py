"""Constraint catalog.

Every constraint is a frozen dataclass acting on parameter references. It
reports the parameters it touches (``params``), the residual vector it
contributes and the local gradient of that residual with respect to each
entry of ``params``. Both are evaluated against the full arena value vector,
so constraints never read the parameter store directly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

import numpy as np

from .geometry import Line, Point
from .math_utils import _DENOM_EPS, _cross2, _dot2, _norm_sq2, _sub2, _wrap_angle, Vec2
from .params import ParamRef


class ConstraintError(ValueError):
    """Raised when a constraint is built from invalid references or targets."""


def _check_ref(value: object, label: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConstraintError(f"{label} must be a parameter reference, got {value!r}")


def _check_target(value: object, label: str, *, non_negative: bool = False) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConstraintError(f"{label} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ConstraintError(f"{label} must be finite, got {value!r}")
    if non_negative and number < 0.0:
        raise ConstraintError(f"{label} must be non-negative, got {number}")
    return number


def _point_value(values: np.ndarray, point: Point) -> Vec2:
    return float(values[point.x_ref]), float(values[point.y_ref])


def _line_value(values: np.ndarray, line: Line) -> Tuple[Vec2, Vec2]:
    return _point_value(values, line.p1), _point_value(values, line.p2)


class Constraint:
    """Base of the catalog; subclasses set ``kind`` and ``equations``."""

    kind: ClassVar[str] = ""
    equations: ClassVar[int] = 1
    has_target: ClassVar[bool] = False

    tag: Optional[int]

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        raise NotImplementedError

    def residual(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def gradient(self, values: np.ndarray) -> np.ndarray:
        """Return the ``equations x len(params)`` matrix of partial derivatives."""

        raise NotImplementedError

    def error(self, values: np.ndarray) -> float:
        return float(np.max(np.abs(self.residual(values))))

    def describe(self) -> str:
        parts = [self.kind, "params=" + ",".join(str(ref) for ref in self.params)]
        target = getattr(self, "target", None)
        if target is not None:
            parts.append(f"target={target:.6g}")
        if self.tag is not None:
            parts.append(f"tag={self.tag}")
        return " | ".join(parts)


@dataclass(frozen=True)
class Equal(Constraint):
    kind: ClassVar[str] = "equal"

    a: ParamRef
    b: ParamRef
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        _check_ref(self.a, "equal.a")
        _check_ref(self.b, "equal.b")

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.a, self.b

    def residual(self, values: np.ndarray) -> np.ndarray:
        return np.array([values[self.a] - values[self.b]], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        return np.array([[1.0, -1.0]])


@dataclass(frozen=True)
class Difference(Constraint):
    """``a - b == target``; fixed offsets such as wall thickness."""

    kind: ClassVar[str] = "difference"
    has_target: ClassVar[bool] = True

    a: ParamRef
    b: ParamRef
    target: float
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        _check_ref(self.a, "difference.a")
        _check_ref(self.b, "difference.b")
        object.__setattr__(self, "target", _check_target(self.target, "difference target"))

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.a, self.b

    def residual(self, values: np.ndarray) -> np.ndarray:
        return np.array([values[self.a] - values[self.b] - self.target], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        return np.array([[1.0, -1.0]])


@dataclass(frozen=True)
class P2PDistance(Constraint):
    kind: ClassVar[str] = "p2p_distance"
    has_target: ClassVar[bool] = True

    p1: Point
    p2: Point
    target: float
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "target", _check_target(self.target, "distance target", non_negative=True)
        )

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.p1.x_ref, self.p1.y_ref, self.p2.x_ref, self.p2.y_ref

    def residual(self, values: np.ndarray) -> np.ndarray:
        dx, dy = _sub2(_point_value(values, self.p2), _point_value(values, self.p1))
        return np.array([math.hypot(dx, dy) - self.target], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        dx, dy = _sub2(_point_value(values, self.p2), _point_value(values, self.p1))
        length = math.hypot(dx, dy)
        if length <= _DENOM_EPS:
            return np.zeros((1, 4))
        ux, uy = dx / length, dy / length
        return np.array([[-ux, -uy, ux, uy]])


@dataclass(frozen=True)
class Perpendicular(Constraint):
    kind: ClassVar[str] = "perpendicular"

    line1: Line
    line2: Line
    tag: Optional[int] = field(default=None, compare=False)

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.line1.refs + self.line2.refs

    def residual(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        return np.array([_dot2(_sub2(a2, a1), _sub2(b2, b1))], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        d1x, d1y = _sub2(a2, a1)
        d2x, d2y = _sub2(b2, b1)
        return np.array([[-d2x, -d2y, d2x, d2y, -d1x, -d1y, d1x, d1y]])


@dataclass(frozen=True)
class Parallel(Constraint):
    kind: ClassVar[str] = "parallel"

    line1: Line
    line2: Line
    tag: Optional[int] = field(default=None, compare=False)

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.line1.refs + self.line2.refs

    def residual(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        return np.array([_cross2(_sub2(a2, a1), _sub2(b2, b1))], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        d1x, d1y = _sub2(a2, a1)
        d2x, d2y = _sub2(b2, b1)
        return np.array([[-d2y, d2x, d2y, -d2x, d1y, -d1x, -d1y, d1x]])


@dataclass(frozen=True)
class PointOnLine(Constraint):
    kind: ClassVar[str] = "point_on_line"

    point: Point
    line: Line
    tag: Optional[int] = field(default=None, compare=False)

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return (self.point.x_ref, self.point.y_ref) + self.line.refs

    def residual(self, values: np.ndarray) -> np.ndarray:
        p = _point_value(values, self.point)
        l1, l2 = _line_value(values, self.line)
        return np.array([_cross2(_sub2(p, l1), _sub2(l2, l1))], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        p = _point_value(values, self.point)
        l1, l2 = _line_value(values, self.line)
        ax, ay = _sub2(p, l1)
        bx, by = _sub2(l2, l1)
        return np.array([[by, -bx, ay - by, bx - ax, -ay, ax]])


@dataclass(frozen=True)
class PointToLineDistance(Constraint):
    """Signed distance from ``point`` to ``line``, positive on the left of p1 -> p2."""

    kind: ClassVar[str] = "p2l_distance"
    has_target: ClassVar[bool] = True

    point: Point
    line: Line
    target: float
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", _check_target(self.target, "distance target"))

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return (self.point.x_ref, self.point.y_ref) + self.line.refs

    def _terms(self, values: np.ndarray) -> Tuple[Vec2, Vec2, float]:
        p = _point_value(values, self.point)
        l1, l2 = _line_value(values, self.line)
        return _sub2(p, l1), _sub2(l2, l1), math.sqrt(_norm_sq2(_sub2(l2, l1)))

    def residual(self, values: np.ndarray) -> np.ndarray:
        a, b, length = self._terms(values)
        if length <= _DENOM_EPS:
            return np.array([math.sqrt(_norm_sq2(a)) - self.target], dtype=float)
        return np.array([_cross2(b, a) / length - self.target], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        (ax, ay), (bx, by), length = self._terms(values)
        if length <= _DENOM_EPS:
            dist = math.hypot(ax, ay)
            if dist <= _DENOM_EPS:
                return np.zeros((1, 6))
            ux, uy = ax / dist, ay / dist
            return np.array([[ux, uy, -ux, -uy, 0.0, 0.0]])
        cross = bx * ay - by * ax
        da = (-by / length, bx / length)
        inv_cube = cross / (length ** 3)
        db = (ay / length - bx * inv_cube, -ax / length - by * inv_cube)
        return np.array(
            [[da[0], da[1], -da[0] - db[0], -da[1] - db[1], db[0], db[1]]]
        )


@dataclass(frozen=True)
class Coincident(Constraint):
    kind: ClassVar[str] = "coincident"
    equations: ClassVar[int] = 2

    p1: Point
    p2: Point
    tag: Optional[int] = field(default=None, compare=False)

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.p1.x_ref, self.p1.y_ref, self.p2.x_ref, self.p2.y_ref

    def residual(self, values: np.ndarray) -> np.ndarray:
        x1, y1 = _point_value(values, self.p1)
        x2, y2 = _point_value(values, self.p2)
        return np.array([x1 - x2, y1 - y2], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        return np.array([[1.0, 0.0, -1.0, 0.0], [0.0, 1.0, 0.0, -1.0]])


@dataclass(frozen=True)
class P2PAngle(Constraint):
    """Direction of ``p1 -> p2`` measured from the +x axis, in radians."""

    kind: ClassVar[str] = "p2p_angle"
    has_target: ClassVar[bool] = True

    p1: Point
    p2: Point
    target: float
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", _check_target(self.target, "angle target"))

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.p1.x_ref, self.p1.y_ref, self.p2.x_ref, self.p2.y_ref

    def residual(self, values: np.ndarray) -> np.ndarray:
        dx, dy = _sub2(_point_value(values, self.p2), _point_value(values, self.p1))
        return np.array([_wrap_angle(math.atan2(dy, dx) - self.target)], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        dx, dy = _sub2(_point_value(values, self.p2), _point_value(values, self.p1))
        dist_sq = dx * dx + dy * dy
        if dist_sq <= _DENOM_EPS:
            return np.zeros((1, 4))
        gx, gy = -dy / dist_sq, dx / dist_sq
        return np.array([[-gx, -gy, gx, gy]])


@dataclass(frozen=True)
class L2LAngle(Constraint):
    """Signed angle from the direction of ``line1`` to that of ``line2``, in radians."""

    kind: ClassVar[str] = "l2l_angle"
    has_target: ClassVar[bool] = True

    line1: Line
    line2: Line
    target: float
    tag: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", _check_target(self.target, "angle target"))

    @property
    def params(self) -> Tuple[ParamRef, ...]:
        return self.line1.refs + self.line2.refs

    def residual(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        d1 = _sub2(a2, a1)
        d2 = _sub2(b2, b1)
        angle = math.atan2(_cross2(d1, d2), _dot2(d1, d2))
        return np.array([_wrap_angle(angle - self.target)], dtype=float)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        a1, a2 = _line_value(values, self.line1)
        b1, b2 = _line_value(values, self.line2)
        d1x, d1y = _sub2(a2, a1)
        d2x, d2y = _sub2(b2, b1)
        n1 = d1x * d1x + d1y * d1y
        n2 = d2x * d2x + d2y * d2y
        if n1 <= _DENOM_EPS or n2 <= _DENOM_EPS:
            return np.zeros((1, 8))
        g1 = (d1y / n1, -d1x / n1)
        g2 = (-d2y / n2, d2x / n2)
        return np.array([[-g1[0], -g1[1], g1[0], g1[1], -g2[0], -g2[1], g2[0], g2[1]]])


CONSTRAINT_TYPES: Dict[str, Type[Constraint]] = {
    cls.kind: cls
    for cls in (
        Equal,
        Difference,
        P2PDistance,
        Perpendicular,
        Parallel,
        PointOnLine,
        PointToLineDistance,
        Coincident,
        P2PAngle,
        L2LAngle,
    )
}


_REF_TYPES: Dict[str, type] = {"Point": Point, "Line": Line, "ParamRef": int}


def _check_ref_types(cls: Type[Constraint], refs: Tuple[Any, ...]) -> None:
    expected = [item for item in fields(cls) if item.name not in ("target", "tag")]  # type: ignore[arg-type]
    if len(refs) != len(expected):
        raise ConstraintError(f"'{cls.kind}' takes {len(expected)} reference(s), got {len(refs)}")
    for item, ref in zip(expected, refs):
        ref_type = _REF_TYPES[str(item.type)]
        if not isinstance(ref, ref_type) or isinstance(ref, bool):
            raise ConstraintError(f"'{cls.kind}' expects {item.type} for {item.name}, got {ref!r}")


def build_constraint(
    kind: str, *refs: Any, target: Optional[float] = None, tag: Optional[int] = None
) -> Constraint:
    """Create a catalog constraint from its ``kind`` name."""

    try:
        cls = CONSTRAINT_TYPES[kind]
    except KeyError as exc:
        known = ", ".join(sorted(CONSTRAINT_TYPES))
        raise ConstraintError(f"unknown constraint kind '{kind}' (known: {known})") from exc
    _check_ref_types(cls, refs)
    if cls.has_target:
        if target is None:
            raise ConstraintError(f"constraint '{kind}' requires a target value")
        args = refs + (target,)
    else:
        if target is not None:
            raise ConstraintError(f"constraint '{kind}' does not take a target value")
        args = refs
    try:
        return cls(*args, tag=tag)  # type: ignore[call-arg]
    except TypeError as exc:
        raise ConstraintError(f"invalid references for '{kind}': {exc}") from exc


__all__ = [
    "CONSTRAINT_TYPES",
    "Coincident",
    "Constraint",
    "ConstraintError",
    "Difference",
    "Equal",
    "L2LAngle",
    "P2PAngle",
    "P2PDistance",
    "Parallel",
    "Perpendicular",
    "PointOnLine",
    "PointToLineDistance",
    "build_constraint",
]
