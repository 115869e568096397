"""Equation assembly, DOF analysis and the iterative solvers."""

from __future__ import annotations

from .assembler import EquationSystem, partition_constraints
from .config import get_default_solver_config, resolve_config, set_default_solver_config
from .dof import analyze_dof, numerical_rank
from .dogleg import dogleg_step
from .model import (
    ALGORITHMS,
    Algorithm,
    AlgorithmOutcome,
    ConstraintState,
    DofReport,
    SolveResult,
    SolverConfig,
    SolveStatus,
    Subsystem,
    Termination,
)
from .solver_core import ALGORITHM_RUNNERS, classify_status, solve_system

__all__ = [
    "ALGORITHMS",
    "ALGORITHM_RUNNERS",
    "Algorithm",
    "AlgorithmOutcome",
    "ConstraintState",
    "DofReport",
    "EquationSystem",
    "SolveResult",
    "SolveStatus",
    "SolverConfig",
    "Subsystem",
    "Termination",
    "analyze_dof",
    "classify_status",
    "dogleg_step",
    "get_default_solver_config",
    "numerical_rank",
    "partition_constraints",
    "resolve_config",
    "set_default_solver_config",
    "solve_system",
]
