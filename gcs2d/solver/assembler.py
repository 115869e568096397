"""Residual vector and Jacobian assembly over the free parameters."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..constraints import Constraint, ConstraintError
from ..math_utils import _max_abs
from ..params import ParameterStore, ParamRef
from .model import Subsystem

logger = logging.getLogger(__name__)


class EquationSystem:
    """Fixed view of a constraint set for the duration of one solve.

    Free parameters are taken in arena order (or the explicit ``free_refs``
    subset when solving one partition); everything else is frozen at the
    values the store held when the view was built.
    """

    def __init__(
        self,
        store: ParameterStore,
        constraints: Mapping[int, Constraint],
        free_refs: Optional[Sequence[ParamRef]] = None,
    ) -> None:
        self.store = store
        self.handles: List[int] = list(constraints)
        self.constraints: List[Constraint] = [constraints[handle] for handle in self.handles]
        self.free_refs: List[ParamRef] = list(free_refs) if free_refs is not None else store.free_refs()
        self.columns: Dict[ParamRef, int] = {ref: col for col, ref in enumerate(self.free_refs)}
        self.row_offsets: List[int] = []
        offset = 0
        for handle, constraint in zip(self.handles, self.constraints):
            for ref in constraint.params:
                if ref not in store:
                    raise IndexError(
                        f"constraint #{handle} ({constraint.kind}) references missing parameter {ref}"
                    )
            self.row_offsets.append(offset)
            offset += constraint.equations
        self.equations = offset
        self._base = store.values()
        self._free_index = np.array(self.free_refs, dtype=int)

    @property
    def free_count(self) -> int:
        return len(self.free_refs)

    def initial_vector(self) -> np.ndarray:
        return self._base[self._free_index].copy()

    def full_values(self, x: np.ndarray) -> np.ndarray:
        values = self._base.copy()
        if self._free_index.size:
            values[self._free_index] = x
        return values

    def _constraint_residual(self, handle: int, constraint: Constraint, values: np.ndarray) -> np.ndarray:
        res = np.asarray(constraint.residual(values), dtype=float).reshape(-1)
        if res.size != constraint.equations:
            raise ConstraintError(
                f"constraint #{handle} ({constraint.kind}) produced {res.size} residual(s), "
                f"declared {constraint.equations}"
            )
        return res

    def residuals(self, x: np.ndarray) -> np.ndarray:
        values = self.full_values(x)
        out = np.zeros(self.equations, dtype=float)
        for handle, constraint, row in zip(self.handles, self.constraints, self.row_offsets):
            out[row : row + constraint.equations] = self._constraint_residual(handle, constraint, values)
        return out

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        values = self.full_values(x)
        jac = np.zeros((self.equations, self.free_count), dtype=float)
        for handle, constraint, row in zip(self.handles, self.constraints, self.row_offsets):
            params = constraint.params
            grad = np.asarray(constraint.gradient(values), dtype=float)
            if grad.shape != (constraint.equations, len(params)):
                raise ConstraintError(
                    f"constraint #{handle} ({constraint.kind}) gradient has shape {grad.shape}, "
                    f"expected {(constraint.equations, len(params))}"
                )
            for local, ref in enumerate(params):
                col = self.columns.get(ref)
                if col is None:
                    continue
                # accumulate: aliased parameters collect every partial derivative
                jac[row : row + constraint.equations, col] += grad[:, local]
        return jac

    def evaluate(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return self.residuals(x), self.jacobian(x)

    def degenerate_rows(self, x: np.ndarray, tolerance: float) -> List[Tuple[int, int]]:
        """``(handle, row)`` pairs whose gradient vanishes while the residual is violated.

        Only constraints touching a free parameter qualify; a violated
        constraint over locked parameters alone is a conflict, not a
        degenerate configuration.
        """

        res, jac = self.evaluate(x)
        found: List[Tuple[int, int]] = []
        for handle, constraint, row in zip(self.handles, self.constraints, self.row_offsets):
            if not any(ref in self.columns for ref in constraint.params):
                continue
            for idx in range(row, row + constraint.equations):
                if abs(res[idx]) >= tolerance and not np.any(jac[idx]):
                    found.append((handle, idx))
        return found

    def write_back(self, x: np.ndarray) -> None:
        self.store.assign(self.free_refs, x)
        if self._free_index.size:
            self._base[self._free_index] = x

    def breakdown(self, x: np.ndarray) -> List[Dict[str, object]]:
        values = self.full_values(x)
        report: List[Dict[str, object]] = []
        for handle, constraint in zip(self.handles, self.constraints):
            res = self._constraint_residual(handle, constraint, values)
            report.append(
                {
                    "handle": handle,
                    "kind": constraint.kind,
                    "tag": constraint.tag,
                    "values": res.tolist(),
                    "max_abs": _max_abs(res),
                }
            )
        return report


def partition_constraints(store: ParameterStore, constraints: Mapping[int, Constraint]) -> List[Subsystem]:
    """Group constraints that are connected through shared free parameters.

    Groups never share a free parameter, so they can be solved one after the
    other without affecting each other. Constraints touching only locked
    parameters form singleton groups with no free parameters.
    """

    parent: Dict[ParamRef, ParamRef] = {}

    def find(ref: ParamRef) -> ParamRef:
        root = ref
        while parent[root] != root:
            root = parent[root]
        while parent[ref] != root:
            parent[ref], ref = root, parent[ref]
        return root

    def union(a: ParamRef, b: ParamRef) -> None:
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[max(ra, rb)] = min(ra, rb)

    free_by_handle: Dict[int, List[ParamRef]] = {}
    for handle, constraint in constraints.items():
        free = sorted({ref for ref in constraint.params if not store.is_locked(ref)})
        free_by_handle[handle] = free
        for ref in free:
            parent.setdefault(ref, ref)
        for ref in free[1:]:
            union(free[0], ref)

    groups: Dict[object, Subsystem] = {}
    for handle, free in free_by_handle.items():
        key: object = find(free[0]) if free else ("locked", handle)
        group = groups.get(key)
        if group is None:
            group = groups[key] = Subsystem(handles=[], free_refs=[])
        group.handles.append(handle)
        group.free_refs.extend(free)

    subsystems = []
    for group in groups.values():
        group.free_refs = sorted(set(group.free_refs))
        subsystems.append(group)
    logger.debug("partition_constraints: %d constraint(s) -> %d group(s)", len(constraints), len(subsystems))
    return subsystems


__all__ = ["EquationSystem", "partition_constraints"]
