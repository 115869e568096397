"""Powell's dog-leg trust-region iteration."""

from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np
from scipy.linalg import LinAlgError, lstsq

from ..math_utils import _all_finite, _half_sq_norm, _max_abs
from .assembler import EquationSystem
from .model import AlgorithmOutcome, SolverConfig

logger = logging.getLogger(__name__)

_GROW_RATIO = 0.75
_SHRINK_RATIO = 0.25


def dogleg_step(jac: np.ndarray, res: np.ndarray, radius: float) -> Tuple[np.ndarray, str]:
    """Return the dog-leg step for trust radius ``radius`` and the leg it ended on.

    The Gauss-Newton point is the minimum-norm least-squares solution of
    ``J h = -R``; it equals the normal-equation solution whenever ``J^T J`` is
    nonsingular and stays well defined for under-constrained systems.
    """

    gauss_newton, _, _, _ = lstsq(jac, -res)
    gn_norm = float(np.linalg.norm(gauss_newton))
    if gn_norm <= radius:
        return gauss_newton, "gauss-newton"

    grad = jac.T @ res
    jg = jac @ grad
    curvature = float(np.dot(jg, jg))
    if curvature <= 0.0:
        return gauss_newton * (radius / gn_norm), "gauss-newton-clipped"
    steepest = -(float(np.dot(grad, grad)) / curvature) * grad
    sd_norm = float(np.linalg.norm(steepest))
    if sd_norm >= radius:
        return steepest * (radius / sd_norm), "cauchy"

    diff = gauss_newton - steepest
    a = float(np.dot(diff, diff))
    b = 2.0 * float(np.dot(steepest, diff))
    c = sd_norm * sd_norm - radius * radius
    disc = max(b * b - 4.0 * a * c, 0.0)
    tau = (-b + math.sqrt(disc)) / (2.0 * a)
    tau = min(max(tau, 0.0), 1.0)
    return steepest + tau * diff, "dogleg"


def run(problem: EquationSystem, x0: np.ndarray, config: SolverConfig) -> AlgorithmOutcome:
    x = np.array(x0, dtype=float)
    res = problem.residuals(x)
    cost = _half_sq_norm(res)
    radius = config.initial_trust_radius

    for iteration in range(config.max_iterations):
        if _max_abs(res) < config.tolerance:
            return AlgorithmOutcome(x=x, iterations=iteration, termination="converged")

        jac = problem.jacobian(x)
        if not np.any(jac.T @ res):
            logger.debug("dogleg: zero gradient at iteration %d", iteration)
            return AlgorithmOutcome(x=x, iterations=iteration, termination="stagnated")
        try:
            step, leg = dogleg_step(jac, res, radius)
        except (LinAlgError, ValueError):
            logger.debug("dogleg: least-squares solve failed at iteration %d", iteration)
            return AlgorithmOutcome(x=x, iterations=iteration, termination="stagnated", singular=True)
        if not _all_finite(step):
            return AlgorithmOutcome(x=x, iterations=iteration, termination="stagnated", singular=True)

        step_norm = float(np.linalg.norm(step))
        if step_norm <= config.step_tolerance * (float(np.linalg.norm(x)) + config.step_tolerance):
            termination = "converged" if _max_abs(res) < config.tolerance else "stagnated"
            return AlgorithmOutcome(x=x, iterations=iteration, termination=termination)

        trial = x + step
        trial_res = problem.residuals(trial)
        if _all_finite(trial_res):
            trial_cost = _half_sq_norm(trial_res)
            predicted = cost - _half_sq_norm(res + jac @ step)
            rho = (cost - trial_cost) / predicted if predicted > 0.0 else 0.0
        else:
            trial_cost = math.inf
            rho = -math.inf

        logger.debug(
            "dogleg: iteration=%d leg=%s radius=%.3e step=%.3e cost=%.6g trial=%.6g rho=%.3f",
            iteration,
            leg,
            radius,
            step_norm,
            cost,
            trial_cost,
            rho,
        )

        if rho > config.accept_ratio:
            x, res, cost = trial, trial_res, trial_cost
            problem.write_back(x)
            if rho > _GROW_RATIO:
                radius = min(max(radius, 2.0 * step_norm), config.max_trust_radius)
        if rho < _SHRINK_RATIO:
            radius = _SHRINK_RATIO * min(radius, step_norm)
            if radius < config.min_trust_radius:
                logger.debug("dogleg: trust radius collapsed at iteration %d", iteration)
                termination = "converged" if _max_abs(res) < config.tolerance else "stagnated"
                return AlgorithmOutcome(x=x, iterations=iteration + 1, termination=termination)

    termination = "converged" if _max_abs(res) < config.tolerance else "max_iterations"
    return AlgorithmOutcome(x=x, iterations=config.max_iterations, termination=termination)


__all__ = ["dogleg_step", "run"]
