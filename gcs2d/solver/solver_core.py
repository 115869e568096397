from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..constraints import Constraint
from ..logging_utils import apply_debug_logging
from ..math_utils import _all_finite, _max_abs
from ..params import ParameterStore
from . import bfgs, dogleg, levenberg_marquardt
from .assembler import EquationSystem, partition_constraints
from .config import get_default_solver_config
from .dof import analyze_dof
from .model import (
    AlgorithmOutcome,
    ConstraintState,
    DofReport,
    SolveResult,
    SolverConfig,
    SolveStatus,
    Termination,
)

logger = logging.getLogger(__name__)

AlgorithmRunner = Callable[[EquationSystem, np.ndarray, SolverConfig], AlgorithmOutcome]

ALGORITHM_RUNNERS: Dict[str, AlgorithmRunner] = {
    "lm": levenberg_marquardt.run,
    "dogleg": dogleg.run,
    "bfgs": bfgs.run,
}


def _initial_dof(problem: EquationSystem, config: SolverConfig, warnings: List[str]) -> Tuple[DofReport, bool]:
    """DOF at the starting point, and whether any violated row has a zero gradient."""

    x0 = problem.initial_vector()
    jac = problem.jacobian(x0)
    if not _all_finite(jac):
        warnings.append("Jacobian at the initial point is not finite; DOF falls back to equation counting")
        report = DofReport(
            free_parameters=problem.free_count,
            equations=problem.equations,
            rank=min(problem.free_count, problem.equations),
        )
        return report, False
    degenerate = problem.degenerate_rows(x0, config.tolerance)
    for handle, row in degenerate:
        constraint = problem.constraints[problem.handles.index(handle)]
        warnings.append(
            f"constraint #{handle} ({constraint.kind}) has a zero gradient at the initial point "
            f"(equation row {row}); its geometry is degenerate"
        )
    return analyze_dof(jac, config.rank_tolerance, degenerate=len(degenerate)), bool(degenerate)


def _run_problem(problem: EquationSystem, config: SolverConfig, warnings: List[str]) -> AlgorithmOutcome:
    x0 = problem.initial_vector()
    if _max_abs(problem.residuals(x0)) < config.tolerance:
        return AlgorithmOutcome(x=x0, iterations=0, termination="converged")
    if problem.free_count == 0:
        warnings.append("constraints are violated but every parameter they touch is locked")
        return AlgorithmOutcome(x=x0, iterations=0, termination="stagnated")

    outcome = ALGORITHM_RUNNERS[config.algorithm](problem, x0, config)
    if _all_finite(outcome.x):
        problem.write_back(outcome.x)
    return outcome


def _merge_terminations(terminations: List[Termination]) -> Termination:
    if all(item == "converged" for item in terminations):
        return "converged"
    if "max_iterations" in terminations:
        return "max_iterations"
    return "stagnated"


def classify_status(termination: Termination, state: ConstraintState, singular: bool) -> SolveStatus:
    """Map the raw algorithm termination onto the caller-facing status."""

    if termination == "converged":
        return "over_constrained_consistent" if state == "over" else "converged"
    if state == "over":
        return "over_constrained_conflicting"
    if singular:
        return "numerical_singularity"
    if state == "under":
        return "under_constrained"
    return termination


def solve_system(
    store: ParameterStore,
    constraints: Mapping[int, Constraint],
    config: Optional[SolverConfig] = None,
) -> SolveResult:
    """Solve ``constraints`` over ``store`` in place and report the outcome.

    Never raises for any constraint configuration; the parameters end on the
    last accepted iterate.
    """

    config = config if config is not None else get_default_solver_config()
    warnings: List[str] = []

    full = EquationSystem(store, constraints)
    report, degenerate = _initial_dof(full, config, warnings)
    logger.info(
        "Solving %d constraint(s) / %d equation(s) over %d free parameter(s) with %s (dof=%d, state=%s)",
        len(constraints),
        full.equations,
        full.free_count,
        config.algorithm,
        report.dof,
        report.state,
    )
    if report.redundant > 0:
        warnings.append(f"{report.redundant} redundant equation(s) at the initial point")

    x0 = full.initial_vector()
    if not _all_finite(full.residuals(x0)):
        warnings.append("initial residuals are not finite; parameters left untouched")
        result = SolveResult(
            status="numerical_singularity",
            iterations=0,
            max_residual=math.inf,
            dof=report.dof,
            state=report.state,
            termination="stagnated",
            algorithm=config.algorithm,
            residual_breakdown=full.breakdown(x0),
            warnings=warnings,
        )
        logger.info("Solve finished: %s", result.summary())
        return result

    problems: List[Tuple[str, EquationSystem]]
    if config.partition and constraints:
        groups = partition_constraints(store, constraints)
        problems = [
            (
                f"group {idx + 1}/{len(groups)}",
                EquationSystem(store, {handle: constraints[handle] for handle in group.handles}, group.free_refs),
            )
            for idx, group in enumerate(groups)
        ]
    else:
        problems = [("system", full)]

    iterations = 0
    singular = degenerate
    terminations: List[Termination] = []
    for label, problem in problems:
        outcome = _run_problem(problem, config, warnings)
        iterations += outcome.iterations
        singular = singular or outcome.singular
        terminations.append(outcome.termination)
        logger.debug(
            "solve_system: %s termination=%s iterations=%d singular=%s",
            label,
            outcome.termination,
            outcome.iterations,
            outcome.singular,
        )

    final = EquationSystem(store, constraints)
    x_final = final.initial_vector()
    residuals = final.residuals(x_final)
    max_residual = _max_abs(residuals) if _all_finite(residuals) else math.inf
    termination = _merge_terminations(terminations)
    status = classify_status(termination, report.state, singular)

    if status not in ("converged", "over_constrained_consistent"):
        warnings.append(
            f"solver did not converge within tolerance {config.tolerance:.1e}; max residual {max_residual:.3e}"
        )

    result = SolveResult(
        status=status,
        iterations=iterations,
        max_residual=max_residual,
        dof=report.dof,
        state=report.state,
        termination=termination,
        algorithm=config.algorithm,
        residual_breakdown=final.breakdown(x_final),
        warnings=warnings,
    )
    logger.info("Solve finished: %s", result.summary())
    return result


apply_debug_logging(globals(), logger=logger)


__all__ = ["ALGORITHM_RUNNERS", "classify_status", "solve_system"]
