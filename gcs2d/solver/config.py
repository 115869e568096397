"""Process-wide default solver configuration."""

from __future__ import annotations

import copy
import dataclasses
from typing import Any, Optional

from .model import SolverConfig

_DEFAULT_SOLVER_CONFIG = SolverConfig()


def get_default_solver_config() -> SolverConfig:
    return copy.deepcopy(_DEFAULT_SOLVER_CONFIG)


def set_default_solver_config(config: SolverConfig) -> None:
    global _DEFAULT_SOLVER_CONFIG
    _DEFAULT_SOLVER_CONFIG = copy.deepcopy(config)


def resolve_config(config: Optional[SolverConfig] = None, **overrides: Any) -> SolverConfig:
    """Return ``config`` (or the default) with keyword ``overrides`` applied.

    ``dataclasses.replace`` re-runs validation, so a bad override raises
    ``ValueError`` here rather than mid-solve.
    """

    base = copy.deepcopy(config) if config is not None else get_default_solver_config()
    if not overrides:
        return base
    known = {item.name for item in dataclasses.fields(SolverConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"unknown solver option(s): {', '.join(unknown)}")
    return dataclasses.replace(base, **overrides)


__all__ = ["get_default_solver_config", "resolve_config", "set_default_solver_config"]
