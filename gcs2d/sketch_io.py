"""JSON sketch files.

A sketch names its points and lines and lists constraints by catalog kind::

    {
        "points": {"A": [0, 0, true], "B": [3, 1]},
        "lines": {"AB": ["A", "B"]},
        "constraints": [
            {"kind": "p2p_distance", "refs": ["A", "B"], "target": 5},
            {"kind": "equal", "refs": ["A.y", "B.y"], "tag": 1}
        ],
        "solver": {"algorithm": "lm"}
    }

References resolve to a point name, a line name, an inline ``"A-B"`` line or
a single coordinate ``"A.x"`` / ``"A.y"``. Angle kinds also accept
``"degrees"`` in place of ``"target"``.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from .constraints import ConstraintError
from .geometry import Line, Point
from .params import ParamRef
from .solver import resolve_config
from .system import ConstraintHandle, System

logger = logging.getLogger(__name__)

Ref = Union[Point, Line, ParamRef]

_ANGLE_KINDS = ("p2p_angle", "l2l_angle")


class SketchFormatError(ValueError):
    """Raised when a sketch document cannot be turned into a System."""


@dataclass
class Sketch:
    system: System
    points: Dict[str, Point] = field(default_factory=dict)
    lines: Dict[str, Line] = field(default_factory=dict)
    handles: List[ConstraintHandle] = field(default_factory=list)


def _number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SketchFormatError(f"{where}: expected a number, got {value!r}")
    if not math.isfinite(value):
        raise SketchFormatError(f"{where}: expected a finite number, got {value!r}")
    return float(value)


def _load_point(sketch: Sketch, name: str, spec: Any) -> None:
    where = f"point '{name}'"
    if isinstance(spec, Mapping):
        x, y, locked = spec.get("x"), spec.get("y"), spec.get("locked", False)
    elif isinstance(spec, (list, tuple)) and len(spec) in (2, 3):
        x, y = spec[0], spec[1]
        locked = spec[2] if len(spec) == 3 else False
    else:
        raise SketchFormatError(f"{where}: expected [x, y], [x, y, locked] or an object, got {spec!r}")
    if not isinstance(locked, bool):
        raise SketchFormatError(f"{where}: 'locked' must be a boolean")
    sketch.points[name] = sketch.system.create_point(
        _number(x, where + " x"), _number(y, where + " y"), locked=locked, name=name
    )


def _lookup_point(sketch: Sketch, name: Any, where: str) -> Point:
    try:
        return sketch.points[name]
    except (KeyError, TypeError) as exc:
        raise SketchFormatError(f"{where}: unknown point {name!r}") from exc


def _resolve_ref(sketch: Sketch, ref: Any, where: str) -> Ref:
    if not isinstance(ref, str):
        raise SketchFormatError(f"{where}: references must be strings, got {ref!r}")
    if ref in sketch.points:
        return sketch.points[ref]
    if ref in sketch.lines:
        return sketch.lines[ref]
    if ref.endswith((".x", ".y")):
        point = _lookup_point(sketch, ref[:-2], where)
        return point.x_ref if ref.endswith(".x") else point.y_ref
    if "-" in ref:
        first, _, second = ref.partition("-")
        return sketch.system.create_line(
            _lookup_point(sketch, first, where), _lookup_point(sketch, second, where)
        )
    raise SketchFormatError(f"{where}: cannot resolve reference {ref!r}")


def _load_constraint(sketch: Sketch, idx: int, spec: Any) -> None:
    where = f"constraint #{idx}"
    if not isinstance(spec, Mapping):
        raise SketchFormatError(f"{where}: expected an object, got {spec!r}")
    kind = spec.get("kind")
    if not isinstance(kind, str):
        raise SketchFormatError(f"{where}: missing 'kind'")
    refs = spec.get("refs", [])
    if not isinstance(refs, list):
        raise SketchFormatError(f"{where}: 'refs' must be a list")

    target = spec.get("target")
    if "degrees" in spec:
        if kind not in _ANGLE_KINDS or target is not None:
            raise SketchFormatError(f"{where}: 'degrees' is only valid on angle kinds without 'target'")
        target = math.radians(_number(spec["degrees"], where + " degrees"))
    elif target is not None:
        target = _number(target, where + " target")

    tag = spec.get("tag")
    if tag is not None and (isinstance(tag, bool) or not isinstance(tag, int)):
        raise SketchFormatError(f"{where}: 'tag' must be an integer")

    resolved = [_resolve_ref(sketch, ref, where) for ref in refs]
    try:
        handle = sketch.system.add_constraint(kind, *resolved, target=target, tag=tag)
    except ConstraintError as exc:
        raise SketchFormatError(f"{where}: {exc}") from exc
    sketch.handles.append(handle)


def load_sketch(data: Mapping[str, Any]) -> Sketch:
    """Build a System from a decoded sketch document."""

    if not isinstance(data, Mapping):
        raise SketchFormatError("sketch must be a JSON object")
    unknown = set(data) - {"points", "lines", "constraints", "solver"}
    if unknown:
        raise SketchFormatError(f"unknown sketch section(s): {', '.join(sorted(unknown))}")

    solver = data.get("solver", {})
    if not isinstance(solver, Mapping):
        raise SketchFormatError("'solver' must be an object")
    try:
        config = resolve_config(None, **solver)
    except (TypeError, ValueError) as exc:
        raise SketchFormatError(f"solver: {exc}") from exc
    sketch = Sketch(system=System(config))

    points = data.get("points", {})
    if not isinstance(points, Mapping):
        raise SketchFormatError("'points' must be an object")
    for name, spec in points.items():
        _load_point(sketch, name, spec)

    lines = data.get("lines", {})
    if not isinstance(lines, Mapping):
        raise SketchFormatError("'lines' must be an object")
    for name, spec in lines.items():
        where = f"line '{name}'"
        if name in sketch.points:
            raise SketchFormatError(f"{where}: name already used by a point")
        if not isinstance(spec, (list, tuple)) or len(spec) != 2:
            raise SketchFormatError(f"{where}: expected [p1, p2], got {spec!r}")
        sketch.lines[name] = sketch.system.create_line(
            _lookup_point(sketch, spec[0], where), _lookup_point(sketch, spec[1], where)
        )

    constraints = data.get("constraints", [])
    if not isinstance(constraints, list):
        raise SketchFormatError("'constraints' must be a list")
    for idx, spec in enumerate(constraints):
        _load_constraint(sketch, idx, spec)

    logger.info(
        "Loaded sketch: %d point(s), %d line(s), %d constraint(s)",
        len(sketch.points),
        len(sketch.lines),
        len(sketch.handles),
    )
    return sketch


def load_sketch_file(path: Union[str, Path]) -> Sketch:
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SketchFormatError(f"{path}: invalid JSON ({exc})") from exc
    return load_sketch(data)


def dump_points(sketch: Sketch) -> Dict[str, List[float]]:
    return {name: [point.x, point.y] for name, point in sketch.points.items()}


__all__ = [
    "Sketch",
    "SketchFormatError",
    "dump_points",
    "load_sketch",
    "load_sketch_file",
]
