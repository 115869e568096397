from dataclasses import dataclass, field
from typing import ClassVar, Optional

import numpy as np
import pytest

from gcs2d import System
from gcs2d.constraints import Constraint, ConstraintError, Difference, Equal, P2PDistance
from gcs2d.solver import EquationSystem, partition_constraints


@dataclass(frozen=True)
class _WrongLength(Constraint):
    kind: ClassVar[str] = "wrong_length"

    ref: int
    tag: Optional[int] = field(default=None, compare=False)

    @property
    def params(self):
        return (self.ref,)

    def residual(self, values):
        return np.zeros(2)

    def gradient(self, values):
        return np.zeros((2, 1))


def test_columns_follow_free_parameters_in_arena_order():
    system = System()
    a = system.create_parameter(1.0)
    b = system.create_parameter(2.0, locked=True)
    c = system.create_parameter(4.0)
    problem = EquationSystem(system.params, {1: Difference(a, c, 1.0), 2: Equal(b, c)})

    assert problem.free_refs == [a, c]
    assert problem.equations == 2
    np.testing.assert_allclose(problem.initial_vector(), [1.0, 4.0])
    np.testing.assert_allclose(problem.residuals(problem.initial_vector()), [-4.0, -2.0])
    np.testing.assert_allclose(problem.jacobian(problem.initial_vector()), [[1.0, -1.0], [0.0, -1.0]])


def test_aliased_parameters_accumulate_partials():
    system = System()
    shared = system.create_parameter(3.0)
    p = system.point(shared, system.create_parameter(0.0))
    q = system.point(shared, system.create_parameter(4.0))
    problem = EquationSystem(system.params, {1: Equal(shared, shared), 2: P2PDistance(p, q, 1.0)})
    jac = problem.jacobian(problem.initial_vector())

    # d/dx of x - x, and of a distance whose endpoints share their x coordinate
    assert jac[0, 0] == 0.0
    assert jac[1, 0] == pytest.approx(0.0)
    assert jac[1, 2] == pytest.approx(1.0)


def test_locked_columns_are_skipped():
    system = System()
    a = system.create_point(0.0, 0.0, locked=True)
    b = system.create_point(3.0, 4.0)
    problem = EquationSystem(system.params, {1: P2PDistance(a, b, 5.0)})

    jac = problem.jacobian(problem.initial_vector())
    assert jac.shape == (1, 2)
    np.testing.assert_allclose(jac, [[0.6, 0.8]])


def test_write_back_updates_only_free_parameters():
    system = System()
    a = system.create_point(0.0, 0.0, locked=True)
    b = system.create_point(3.0, 4.0)
    problem = EquationSystem(system.params, {1: P2PDistance(a, b, 5.0)})

    problem.write_back(np.array([6.0, 8.0]))
    assert b.coords == (6.0, 8.0)
    assert a.coords == (0.0, 0.0)
    np.testing.assert_allclose(problem.full_values(problem.initial_vector()), [0.0, 0.0, 6.0, 8.0])


def test_missing_parameter_raises_index_error():
    system = System()
    a = system.create_parameter(1.0)

    with pytest.raises(IndexError):
        EquationSystem(system.params, {1: Equal(a, 42)})


def test_residual_length_mismatch_is_a_programming_error():
    system = System()
    a = system.create_parameter(1.0)
    problem = EquationSystem(system.params, {1: _WrongLength(a)})

    with pytest.raises(ConstraintError):
        problem.residuals(problem.initial_vector())


def test_breakdown_reports_each_constraint():
    system = System()
    a = system.create_parameter(1.0)
    b = system.create_parameter(3.0)
    problem = EquationSystem(system.params, {5: Equal(a, b, tag=2)})
    (entry,) = problem.breakdown(problem.initial_vector())

    assert entry["handle"] == 5
    assert entry["kind"] == "equal"
    assert entry["tag"] == 2
    assert entry["values"] == [-2.0]
    assert entry["max_abs"] == 2.0


def test_partition_splits_independent_groups():
    system = System()
    origin = system.create_point(0.0, 0.0, locked=True)
    left = system.create_point(1.0, 0.0)
    right = system.create_point(5.0, 0.0)
    far = system.create_point(9.0, 0.0)
    anchor = system.create_point(2.0, 2.0, locked=True)
    constraints = {
        1: P2PDistance(origin, left, 1.5),
        2: P2PDistance(right, far, 3.0),
        3: Equal(right.y_ref, far.y_ref),
        4: Equal(origin.x_ref, anchor.x_ref),
    }
    groups = partition_constraints(system.params, constraints)

    by_handles = {tuple(group.handles): group.free_refs for group in groups}
    assert by_handles == {
        (1,): sorted(left.refs),
        (2, 3): sorted(right.refs + far.refs),
        (4,): [],
    }
