"""Redundancy and conflict analysis for a System's constraint set.

Trial solves run against a snapshot of the parameter arena that is restored
afterwards, so diagnosing never moves the caller's geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from .logging_utils import apply_debug_logging
from .solver import EquationSystem, SolverConfig, numerical_rank, solve_system
from .solver.model import ConstraintState

if TYPE_CHECKING:  # pragma: no cover
    from .system import System

logger = logging.getLogger(__name__)


@dataclass
class Diagnosis:
    state: ConstraintState
    dof: int
    rank: int
    redundant: List[int] = field(default_factory=list)
    conflicting: List[int] = field(default_factory=list)


def find_redundant_constraints(system: "System", config: Optional[SolverConfig] = None) -> List[int]:
    """Handles whose Jacobian rows lie in the span of the remaining rows.

    Evaluated at the current parameter values; for a group of mutually
    redundant constraints every member is reported. Constraints whose
    gradient vanishes while they are violated are degenerate, not redundant.
    """

    config = config if config is not None else system.config
    problem = EquationSystem(system.params, system.constraints())
    x0 = problem.initial_vector()
    jac = problem.jacobian(x0)
    degenerate = {handle for handle, _ in problem.degenerate_rows(x0, config.tolerance)}
    full_rank = numerical_rank(jac, config.rank_tolerance)
    redundant: List[int] = []
    for handle, constraint, row in zip(problem.handles, problem.constraints, problem.row_offsets):
        if handle in degenerate:
            continue
        reduced = np.delete(jac, np.arange(row, row + constraint.equations), axis=0)
        if numerical_rank(reduced, config.rank_tolerance) == full_rank:
            redundant.append(handle)
    return redundant


def find_conflicting_constraints(system: "System", config: Optional[SolverConfig] = None) -> List[int]:
    """Handles whose removal lets the rest converge while they stay violated."""

    config = config if config is not None else system.config
    constraints = system.constraints()
    snapshot = system.params.snapshot()
    conflicting: List[int] = []
    try:
        if solve_system(system.params, constraints, config).converged:
            return conflicting
        for handle, constraint in constraints.items():
            system.params.restore(snapshot)
            rest = {key: value for key, value in constraints.items() if key != handle}
            result = solve_system(system.params, rest, config)
            if result.converged and constraint.error(system.params.values()) >= config.tolerance:
                logger.debug("find_conflicting_constraints: #%d (%s) conflicts", handle, constraint.kind)
                conflicting.append(handle)
    finally:
        system.params.restore(snapshot)
    return conflicting


def diagnose(system: "System", config: Optional[SolverConfig] = None) -> Diagnosis:
    config = config if config is not None else system.config
    report = system.dof_report(config)
    diagnosis = Diagnosis(state=report.state, dof=report.dof, rank=report.rank)
    diagnosis.redundant = find_redundant_constraints(system, config)
    diagnosis.conflicting = find_conflicting_constraints(system, config)
    logger.info(
        "Diagnosis: state=%s dof=%d redundant=%s conflicting=%s",
        diagnosis.state,
        diagnosis.dof,
        diagnosis.redundant,
        diagnosis.conflicting,
    )
    return diagnosis


apply_debug_logging(globals(), logger=logger)


__all__ = ["Diagnosis", "diagnose", "find_conflicting_constraints", "find_redundant_constraints"]
