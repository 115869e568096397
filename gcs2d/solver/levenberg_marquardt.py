"""Damped Gauss-Newton (Levenberg-Marquardt) iteration."""

from __future__ import annotations

import logging

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from ..math_utils import _all_finite, _half_sq_norm, _max_abs
from .assembler import EquationSystem
from .model import AlgorithmOutcome, SolverConfig

logger = logging.getLogger(__name__)

_DIAG_FLOOR = 1e-12
_MIN_DAMPING = 1e-15
_MAX_DAMPING = 1e15


def _scaled_diagonal(jtj: np.ndarray) -> np.ndarray:
    # Columns no constraint touches have a zero diagonal; flooring it keeps
    # the damped matrix positive definite and pins those parameters.
    diag = np.diag(jtj).copy()
    if not diag.size:
        return diag
    floor = max(float(diag.max()), 1.0) * _DIAG_FLOOR
    return np.maximum(diag, floor)


def run(problem: EquationSystem, x0: np.ndarray, config: SolverConfig) -> AlgorithmOutcome:
    x = np.array(x0, dtype=float)
    res = problem.residuals(x)
    cost = _half_sq_norm(res)
    damping = config.damping

    for iteration in range(config.max_iterations):
        if _max_abs(res) < config.tolerance:
            return AlgorithmOutcome(x=x, iterations=iteration, termination="converged")

        jac = problem.jacobian(x)
        grad = jac.T @ res
        jtj = jac.T @ jac
        diag = _scaled_diagonal(jtj)

        accepted = False
        factor_failures = 0
        for attempt in range(config.max_retries):
            try:
                factor = cho_factor(jtj + damping * np.diag(diag))
                step = cho_solve(factor, -grad)
            except (LinAlgError, ValueError):
                factor_failures += 1
                damping = min(damping * config.damping_up, _MAX_DAMPING)
                continue
            if not _all_finite(step):
                factor_failures += 1
                damping = min(damping * config.damping_up, _MAX_DAMPING)
                continue

            step_norm = float(np.linalg.norm(step))
            if step_norm <= config.step_tolerance * (float(np.linalg.norm(x)) + config.step_tolerance):
                termination = "converged" if _max_abs(res) < config.tolerance else "stagnated"
                logger.debug("lm: step %.3e below threshold at iteration %d", step_norm, iteration)
                return AlgorithmOutcome(x=x, iterations=iteration, termination=termination)

            trial = x + step
            trial_res = problem.residuals(trial)
            if not _all_finite(trial_res):
                damping = min(damping * config.damping_up, _MAX_DAMPING)
                continue

            trial_cost = _half_sq_norm(trial_res)
            actual = cost - trial_cost
            predicted = cost - _half_sq_norm(res + jac @ step)
            rho = actual / predicted if predicted > 0.0 else 0.0
            logger.debug(
                "lm: iteration=%d attempt=%d damping=%.3e cost=%.6g trial=%.6g rho=%.3f",
                iteration,
                attempt,
                damping,
                cost,
                trial_cost,
                rho,
            )
            if actual > 0.0:
                x, res, cost = trial, trial_res, trial_cost
                problem.write_back(x)
                damping = max(damping * config.damping_down, _MIN_DAMPING)
                accepted = True
                break
            damping = min(damping * config.damping_up, _MAX_DAMPING)

        if not accepted:
            singular = factor_failures == config.max_retries
            logger.debug(
                "lm: no acceptable step after %d attempt(s) (singular=%s)", config.max_retries, singular
            )
            return AlgorithmOutcome(x=x, iterations=iteration, termination="stagnated", singular=singular)

    termination = "converged" if _max_abs(res) < config.tolerance else "max_iterations"
    return AlgorithmOutcome(x=x, iterations=config.max_iterations, termination=termination)


__all__ = ["run"]
