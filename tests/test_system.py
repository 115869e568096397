import pytest

import gcs2d.system as system_module
from gcs2d import (
    ConstraintError,
    P2PDistance,
    SolverConfig,
    System,
    get_default_solver_config,
    set_default_solver_config,
)


def _pair():
    system = System()
    a = system.create_point(0.0, 0.0, locked=True)
    b = system.create_point(3.0, 1.0)
    return system, a, b


def test_handles_are_unique_and_increasing():
    system, a, b = _pair()
    first = system.distance(a, b, 2.0)
    second = system.horizontal(system.create_line(a, b))
    system.remove_constraint(first)
    third = system.distance(a, b, 3.0)

    assert (first, second, third) == (1, 2, 3)
    assert list(system.constraints()) == [second, third]
    assert len(system) == 2


def test_unknown_handle_raises_key_error():
    system, a, b = _pair()
    with pytest.raises(KeyError):
        system.remove_constraint(99)
    with pytest.raises(KeyError):
        system.constraint(99)


def test_remove_constraints_by_tag():
    system, a, b = _pair()
    tagged = system.distance(a, b, 2.0, tag=4)
    kept = system.horizontal(system.create_line(a, b), tag=5)
    also_tagged = system.vertical(system.create_line(a, b), tag=4)

    assert system.remove_constraints(tag=4) == [tagged, also_tagged]
    assert list(system.constraints()) == [kept]

    system.clear_constraints()
    assert len(system) == 0


def test_constraints_returns_a_copy():
    system, a, b = _pair()
    system.distance(a, b, 2.0)
    system.constraints().clear()
    assert len(system) == 1


def test_add_constraint_by_kind_or_instance():
    system, a, b = _pair()
    by_kind = system.add_constraint("p2p_distance", a, b, target=2.0, tag=1)
    by_instance = system.add_constraint(P2PDistance(a, b, 2.0), tag=9)

    assert system.constraint(by_kind) == system.constraint(by_instance)
    assert system.constraint(by_instance).tag == 9

    with pytest.raises(ConstraintError):
        system.add_constraint(P2PDistance(a, b, 2.0), a)
    with pytest.raises(ConstraintError):
        system.add_constraint(42)


def test_foreign_points_are_rejected():
    system, a, _ = _pair()
    other = System()
    stranger = other.create_point(1.0, 1.0)

    with pytest.raises(ConstraintError):
        system.distance(a, stranger, 1.0)
    with pytest.raises(ConstraintError):
        system.create_line(a, stranger)


def test_lock_point_pins_it_during_solve():
    system, a, b = _pair()
    system.lock_point(b)
    system.distance(a, b, 10.0)

    result = system.solve()

    assert not result.converged
    assert b.coords == (3.0, 1.0)

    system.unlock_point(b)
    assert system.solve().converged
    assert a.distance_to(b) == pytest.approx(10.0, abs=1e-6)


def test_max_error_and_dof():
    system, a, b = _pair()
    system.distance(a, b, 2.0)

    assert system.max_error() == pytest.approx(a.distance_to(b) - 2.0)
    assert system.dof() == 1


def test_solve_overrides_are_validated():
    system, a, b = _pair()
    system.distance(a, b, 2.0)

    with pytest.raises(ValueError):
        system.solve(no_such_option=True)
    with pytest.raises(ValueError):
        system.solve(algorithm="newton")
    assert system.solve(algorithm="lm").algorithm == "lm"
    assert system.config.algorithm == "dogleg"


def test_edits_during_a_solve_are_refused(monkeypatch):
    system, a, b = _pair()
    system.distance(a, b, 2.0)
    seen = []

    def fake_solve(store, constraints, config):
        with pytest.raises(RuntimeError):
            system.distance(a, b, 4.0)
        with pytest.raises(RuntimeError):
            system.set_value(b.x_ref, 0.0)
        seen.append(len(constraints))
        return "sentinel"

    monkeypatch.setattr(system_module, "solve_system", fake_solve)

    assert system.solve() == "sentinel"
    assert seen == [1]
    system.distance(a, b, 4.0)
    assert len(system) == 2


def test_default_config_applies_to_new_systems():
    original = get_default_solver_config()
    try:
        set_default_solver_config(SolverConfig(algorithm="lm", max_iterations=7))
        system = System()
        assert system.config.algorithm == "lm"
        assert system.config.max_iterations == 7
        assert System(SolverConfig()).config.algorithm == "dogleg"
    finally:
        set_default_solver_config(original)


def test_invalid_config_values():
    with pytest.raises(ValueError):
        SolverConfig(max_iterations=0)
    with pytest.raises(ValueError):
        SolverConfig(tolerance=-1.0)
    with pytest.raises(ValueError):
        SolverConfig(damping_down=2.0)
