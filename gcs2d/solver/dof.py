"""Rank-based degrees-of-freedom analysis."""

from __future__ import annotations

import logging

import numpy as np
from scipy.linalg import svdvals

from ..logging_utils import apply_debug_logging
from .model import DofReport

logger = logging.getLogger(__name__)


def numerical_rank(jacobian: np.ndarray, rtol: float = 1e-9) -> int:
    """Count singular values above ``rtol`` times the largest one."""

    if jacobian.size == 0:
        return 0
    if not np.all(np.isfinite(jacobian)):
        raise ValueError("cannot compute the rank of a Jacobian with non-finite entries")
    singular = svdvals(jacobian)
    largest = float(singular[0]) if singular.size else 0.0
    if largest <= 0.0:
        return 0
    return int(np.count_nonzero(singular > rtol * largest))


def analyze_dof(jacobian: np.ndarray, rtol: float = 1e-9, degenerate: int = 0) -> DofReport:
    """Rank-based DOF; each of the ``degenerate`` zero rows counts as one independent equation."""

    equations, free = jacobian.shape
    rank = min(numerical_rank(jacobian, rtol) + degenerate, free, equations)
    report = DofReport(free_parameters=free, equations=equations, rank=rank)
    logger.debug(
        "analyze_dof: free=%d equations=%d rank=%d degenerate=%d dof=%d state=%s",
        report.free_parameters,
        report.equations,
        report.rank,
        degenerate,
        report.dof,
        report.state,
    )
    return report


apply_debug_logging(globals(), logger=logger)


__all__ = ["analyze_dof", "numerical_rank"]
