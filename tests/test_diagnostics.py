import numpy as np

from gcs2d import SolverConfig, System
from gcs2d.diagnostics import find_conflicting_constraints, find_redundant_constraints


def _anchored(x, y):
    system = System()
    a = system.create_point(0.0, 0.0, locked=True)
    b = system.create_point(x, y)
    return system, a, b


def test_duplicate_constraints_are_both_redundant():
    system, a, b = _anchored(4.0, 1.0)
    first = system.distance(a, b, 5.0)
    second = system.distance(a, b, 5.0)
    independent = system.horizontal(system.create_line(a, b))

    redundant = find_redundant_constraints(system)

    assert redundant == [first, second]
    assert independent not in redundant


def test_conflicting_constraints_are_named_and_values_restored():
    system, a, b = _anchored(120.0, 0.0)
    short = system.distance(a, b, 100.0)
    long = system.distance(a, b, 150.0)
    before = system.params.values()

    conflicting = find_conflicting_constraints(system)

    assert conflicting == [short, long]
    np.testing.assert_array_equal(system.params.values(), before)


def test_consistent_system_has_no_conflicts():
    system, a, b = _anchored(4.0, 1.0)
    system.distance(a, b, 5.0)
    before = system.params.values()

    assert find_conflicting_constraints(system) == []
    np.testing.assert_array_equal(system.params.values(), before)


def test_diagnose_summarises_the_system():
    system, a, b = _anchored(120.0, 0.0)
    system.distance(a, b, 100.0)
    system.distance(a, b, 150.0)

    diagnosis = system.diagnose()

    assert diagnosis.state == "over"
    assert diagnosis.rank == 1
    assert diagnosis.dof == 1
    assert diagnosis.redundant == [1, 2]
    assert diagnosis.conflicting == [1, 2]
    assert b.coords == (120.0, 0.0)


def _nearly_collinear():
    system, a, b = _anchored(4.0, 0.001)
    c = system.create_point(-4.0, 0.0, locked=True)
    system.distance(a, b, 4.0)
    system.distance(c, b, 8.0)
    return system


def test_diagnose_uses_the_given_rank_tolerance():
    system = _nearly_collinear()
    loose = SolverConfig(rank_tolerance=1e-3)

    default = system.diagnose()
    diagnosis = system.diagnose(loose)

    assert (default.state, default.dof, default.redundant) == ("well", 0, [])
    assert (diagnosis.state, diagnosis.rank, diagnosis.dof) == ("over", 1, 1)
    assert diagnosis.redundant == [1, 2]
    assert diagnosis.conflicting == []
    assert find_redundant_constraints(system, loose) == [1, 2]
    assert system.dof_report(loose).redundant == 1


def test_zero_gradient_constraint_is_not_redundant():
    system, a, b = _anchored(0.0, 0.0)
    system.unlock_point(a)
    system.distance(a, b, 5.0)

    diagnosis = system.diagnose()

    assert diagnosis.redundant == []
    assert (diagnosis.state, diagnosis.dof) == ("under", 3)
