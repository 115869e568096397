"""Core data structures for the solver pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal

import numpy as np

Algorithm = Literal["lm", "dogleg", "bfgs"]

ALGORITHMS = ("lm", "dogleg", "bfgs")

Termination = Literal["converged", "max_iterations", "stagnated"]

ConstraintState = Literal["well", "under", "over"]

SolveStatus = Literal[
    "converged",
    "over_constrained_consistent",
    "over_constrained_conflicting",
    "under_constrained",
    "numerical_singularity",
    "max_iterations",
    "stagnated",
]

CONVERGED_STATUSES = frozenset({"converged", "over_constrained_consistent"})


@dataclass
class SolverConfig:
    """Solver knobs; the defaults suit shapes sized in centimetres."""

    algorithm: Algorithm = "dogleg"
    max_iterations: int = 100
    tolerance: float = 1e-6
    step_tolerance: float = 1e-12
    # Levenberg-Marquardt
    damping: float = 1e-3
    damping_up: float = 10.0
    damping_down: float = 0.1
    max_retries: int = 10
    # Dog-Leg
    initial_trust_radius: float = 1.0
    min_trust_radius: float = 1e-12
    max_trust_radius: float = 1e10
    accept_ratio: float = 0.1
    # DOF analysis
    rank_tolerance: float = 1e-9
    partition: bool = False

    def __post_init__(self) -> None:
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"unknown algorithm '{self.algorithm}', expected one of {ALGORITHMS}")
        if int(self.max_iterations) < 1:
            raise ValueError("max_iterations must be at least 1")
        if int(self.max_retries) < 1:
            raise ValueError("max_retries must be at least 1")
        positive = {
            "tolerance": self.tolerance,
            "step_tolerance": self.step_tolerance,
            "damping": self.damping,
            "initial_trust_radius": self.initial_trust_radius,
            "min_trust_radius": self.min_trust_radius,
            "rank_tolerance": self.rank_tolerance,
        }
        for name, value in positive.items():
            if not value > 0.0:
                raise ValueError(f"{name} must be positive, got {value!r}")
        if not self.damping_up > 1.0 or not 0.0 < self.damping_down < 1.0:
            raise ValueError("damping_up must exceed 1 and damping_down must lie in (0, 1)")
        if not 0.0 <= self.accept_ratio < 0.25:
            raise ValueError("accept_ratio must lie in [0, 0.25)")
        if self.max_trust_radius < self.initial_trust_radius:
            raise ValueError("max_trust_radius must not be smaller than initial_trust_radius")
        self.max_iterations = int(self.max_iterations)
        self.max_retries = int(self.max_retries)


@dataclass
class DofReport:
    free_parameters: int
    equations: int
    rank: int

    @property
    def dof(self) -> int:
        return self.free_parameters - self.rank

    @property
    def redundant(self) -> int:
        """Equations that add nothing to the rank of the Jacobian."""

        return self.equations - self.rank

    @property
    def state(self) -> ConstraintState:
        if self.redundant > 0:
            return "over"
        if self.dof > 0:
            return "under"
        return "well"


@dataclass
class AlgorithmOutcome:
    """What an iterative algorithm hands back to the solve driver."""

    x: np.ndarray
    iterations: int
    termination: Termination
    singular: bool = False


@dataclass
class SolveResult:
    status: SolveStatus
    iterations: int
    max_residual: float
    dof: int
    state: ConstraintState
    termination: Termination
    algorithm: Algorithm
    residual_breakdown: List[Dict[str, object]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status in CONVERGED_STATUSES

    def summary(self) -> str:
        return (
            f"{self.status} after {self.iterations} iteration(s) "
            f"[{self.algorithm}] max_residual={self.max_residual:.3e} dof={self.dof} state={self.state}"
        )


@dataclass
class Subsystem:
    """Constraint handles that share free parameters, see ``partition_constraints``."""

    handles: List[int]
    free_refs: List[int]


__all__ = [
    "ALGORITHMS",
    "Algorithm",
    "AlgorithmOutcome",
    "CONVERGED_STATUSES",
    "ConstraintState",
    "DofReport",
    "SolveResult",
    "SolveStatus",
    "SolverConfig",
    "Subsystem",
    "Termination",
]
