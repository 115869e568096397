"""One solvable constraint system per editable shape."""

from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any, Dict, List, Optional, Union

from .constraints import (
    Coincident,
    Constraint,
    ConstraintError,
    Difference,
    Equal,
    L2LAngle,
    P2PAngle,
    P2PDistance,
    Parallel,
    Perpendicular,
    PointOnLine,
    PointToLineDistance,
    build_constraint,
)
from .diagnostics import Diagnosis, diagnose
from .geometry import Line, Point
from .math_utils import _all_finite, _max_abs
from .params import ParameterStore, ParamRef
from .solver import (
    DofReport,
    EquationSystem,
    SolveResult,
    SolverConfig,
    analyze_dof,
    get_default_solver_config,
    resolve_config,
    solve_system,
)

logger = logging.getLogger(__name__)

ConstraintHandle = int


class System:
    """Parameter arena, primitives and the active constraint set of one shape.

    Not thread safe: serialize ``solve`` calls and constraint edits per
    instance.
    """

    def __init__(self, config: Optional[SolverConfig] = None) -> None:
        self.params = ParameterStore()
        self.config = copy.deepcopy(config) if config is not None else get_default_solver_config()
        self._constraints: Dict[ConstraintHandle, Constraint] = {}
        self._next_handle: ConstraintHandle = 1
        self._solving = False

    # -- parameters and primitives -------------------------------------

    def create_parameter(self, value: float, name: Optional[str] = None, locked: bool = False) -> ParamRef:
        return self.params.new_parameter(value, name=name, locked=locked)

    def create_point(self, x: float, y: float, *, locked: bool = False, name: Optional[str] = None) -> Point:
        x_ref = self.params.new_parameter(x, name=f"{name}.x" if name else None, locked=locked)
        y_ref = self.params.new_parameter(y, name=f"{name}.y" if name else None, locked=locked)
        return Point(x_ref, y_ref, self.params)

    def point(self, x_ref: ParamRef, y_ref: ParamRef) -> Point:
        """View over existing parameters; aliasing another point's refs is allowed."""

        self.params.value(x_ref)
        self.params.value(y_ref)
        return Point(x_ref, y_ref, self.params)

    def create_line(self, p1: Point, p2: Point) -> Line:
        self._check_point(p1)
        self._check_point(p2)
        return Line(p1, p2)

    def value(self, ref: ParamRef) -> float:
        return self.params.value(ref)

    def set_value(self, ref: ParamRef, value: float) -> None:
        self._check_idle("set a parameter value")
        self.params.set_value(ref, value)

    def lock_parameter(self, ref: ParamRef) -> None:
        self.params.lock(ref)

    def unlock_parameter(self, ref: ParamRef) -> None:
        self.params.unlock(ref)

    def lock_point(self, point: Point) -> None:
        self._check_point(point)
        self.params.lock(point.x_ref)
        self.params.lock(point.y_ref)

    def unlock_point(self, point: Point) -> None:
        self._check_point(point)
        self.params.unlock(point.x_ref)
        self.params.unlock(point.y_ref)

    # -- constraints -----------------------------------------------------

    def add_constraint(
        self,
        constraint: Union[Constraint, str],
        *refs: Any,
        target: Optional[float] = None,
        tag: Optional[int] = None,
    ) -> ConstraintHandle:
        """Register a constraint instance, or build one from its catalog ``kind``."""

        self._check_idle("add a constraint")
        if isinstance(constraint, str):
            constraint = build_constraint(constraint, *refs, target=target, tag=tag)
        elif isinstance(constraint, Constraint):
            if refs or target is not None:
                raise ConstraintError("references and target are only accepted with a constraint kind")
            if tag is not None:
                constraint = dataclasses.replace(constraint, tag=tag)  # type: ignore[type-var]
        else:
            raise ConstraintError(f"expected a constraint or a constraint kind, got {constraint!r}")
        self._check_constraint(constraint)

        handle = self._next_handle
        self._next_handle += 1
        self._constraints[handle] = constraint
        logger.debug("add_constraint: #%d %s", handle, constraint.describe())
        return handle

    def equal(self, a: ParamRef, b: ParamRef, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Equal(a, b, tag=tag))

    def difference(self, a: ParamRef, b: ParamRef, value: float, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Difference(a, b, value, tag=tag))

    def horizontal(self, line: Line, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Equal(line.p1.y_ref, line.p2.y_ref, tag=tag))

    def vertical(self, line: Line, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Equal(line.p1.x_ref, line.p2.x_ref, tag=tag))

    def distance(self, p1: Point, p2: Point, value: float, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(P2PDistance(p1, p2, value, tag=tag))

    def perpendicular(self, line1: Line, line2: Line, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Perpendicular(line1, line2, tag=tag))

    def parallel(self, line1: Line, line2: Line, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Parallel(line1, line2, tag=tag))

    def point_on_line(self, point: Point, line: Line, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(PointOnLine(point, line, tag=tag))

    def point_line_distance(
        self, point: Point, line: Line, value: float, *, tag: Optional[int] = None
    ) -> ConstraintHandle:
        return self.add_constraint(PointToLineDistance(point, line, value, tag=tag))

    def coincident(self, p1: Point, p2: Point, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(Coincident(p1, p2, tag=tag))

    def angle(self, p1: Point, p2: Point, radians: float, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(P2PAngle(p1, p2, radians, tag=tag))

    def line_angle(self, line1: Line, line2: Line, radians: float, *, tag: Optional[int] = None) -> ConstraintHandle:
        return self.add_constraint(L2LAngle(line1, line2, radians, tag=tag))

    def remove_constraint(self, handle: ConstraintHandle) -> Constraint:
        self._check_idle("remove a constraint")
        try:
            removed = self._constraints.pop(handle)
        except KeyError as exc:
            raise KeyError(f"unknown constraint handle {handle!r}") from exc
        logger.debug("remove_constraint: #%d %s", handle, removed.kind)
        return removed

    def remove_constraints(self, *, tag: int) -> List[ConstraintHandle]:
        """Drop every constraint carrying ``tag``; returns the removed handles."""

        self._check_idle("remove constraints")
        handles = [handle for handle, constraint in self._constraints.items() if constraint.tag == tag]
        for handle in handles:
            del self._constraints[handle]
        return handles

    def clear_constraints(self) -> None:
        self._check_idle("clear constraints")
        self._constraints.clear()

    def constraint(self, handle: ConstraintHandle) -> Constraint:
        try:
            return self._constraints[handle]
        except KeyError as exc:
            raise KeyError(f"unknown constraint handle {handle!r}") from exc

    def constraints(self) -> Dict[ConstraintHandle, Constraint]:
        return dict(self._constraints)

    def __len__(self) -> int:
        return len(self._constraints)

    # -- solving and analysis --------------------------------------------

    def solve(self, config: Optional[SolverConfig] = None, **overrides: Any) -> SolveResult:
        self._check_idle("start a solve")
        effective = resolve_config(config if config is not None else self.config, **overrides)
        self._solving = True
        try:
            return solve_system(self.params, self._constraints, effective)
        finally:
            self._solving = False

    def dof_report(self, config: Optional[SolverConfig] = None) -> DofReport:
        config = config if config is not None else self.config
        problem = EquationSystem(self.params, self._constraints)
        x0 = problem.initial_vector()
        jac = problem.jacobian(x0)
        degenerate = problem.degenerate_rows(x0, config.tolerance) if _all_finite(jac) else []
        return analyze_dof(jac, config.rank_tolerance, degenerate=len(degenerate))

    def dof(self) -> int:
        return self.dof_report().dof

    def max_error(self) -> float:
        problem = EquationSystem(self.params, self._constraints)
        res = problem.residuals(problem.initial_vector())
        return _max_abs(res)

    def diagnose(self, config: Optional[SolverConfig] = None) -> Diagnosis:
        return diagnose(self, config)

    # -- guards ------------------------------------------------------------

    def _check_idle(self, action: str) -> None:
        if self._solving:
            raise RuntimeError(f"cannot {action} while a solve is in progress")

    def _check_point(self, point: Point) -> None:
        if not isinstance(point, Point):
            raise ConstraintError(f"expected a Point, got {point!r}")
        if point.store is not self.params:
            raise ConstraintError("point belongs to a different System")

    def _check_constraint(self, constraint: Constraint) -> None:
        for item in dataclasses.fields(constraint):  # type: ignore[arg-type]
            value = getattr(constraint, item.name)
            if isinstance(value, Point):
                self._check_point(value)
            elif isinstance(value, Line):
                self._check_point(value.p1)
                self._check_point(value.p2)
        for ref in constraint.params:
            if ref not in self.params:
                raise IndexError(f"parameter reference {ref!r} out of range (arena size {len(self.params)})")


__all__ = ["ConstraintHandle", "System"]
