import math

import numpy as np
import pytest

from gcs2d.params import ParameterStore


def test_new_parameters_get_sequential_refs():
    store = ParameterStore()
    a = store.new_parameter(1.5)
    b = store.new_parameter(-2.0, name="width")

    assert (a, b) == (0, 1)
    assert len(store) == 2
    assert store.value(b) == -2.0
    assert store.name(a) == "p0"
    assert store.name(b) == "width"


def test_non_finite_values_are_rejected():
    store = ParameterStore()
    ref = store.new_parameter(0.0)

    with pytest.raises(ValueError):
        store.new_parameter(math.nan)
    with pytest.raises(ValueError):
        store.set_value(ref, math.inf)
    assert store.value(ref) == 0.0


@pytest.mark.parametrize("ref", [-1, 3, True, "0"])
def test_bad_refs_raise_index_error(ref):
    store = ParameterStore()
    store.new_parameter(1.0)

    with pytest.raises(IndexError):
        store.value(ref)
    assert ref not in store


def test_locking_controls_free_refs():
    store = ParameterStore()
    refs = [store.new_parameter(float(i)) for i in range(4)]
    store.lock(refs[1])
    store.new_parameter(9.0, locked=True)

    assert store.free_refs() == [0, 2, 3]
    assert store.is_locked(refs[1])

    store.unlock(refs[1])
    assert store.free_refs() == [0, 1, 2, 3]


def test_snapshot_restores_values_and_locks():
    store = ParameterStore()
    a = store.new_parameter(1.0)
    b = store.new_parameter(2.0)
    snapshot = store.snapshot()

    store.assign([a, b], [10.0, 20.0])
    store.lock(a)
    np.testing.assert_allclose(store.values(), [10.0, 20.0])

    store.restore(snapshot)
    np.testing.assert_allclose(store.values(), [1.0, 2.0])
    assert not store.is_locked(a)


def test_restore_keeps_parameters_created_after_snapshot():
    store = ParameterStore()
    store.new_parameter(1.0)
    snapshot = store.snapshot()
    late = store.new_parameter(5.0)

    store.restore(snapshot)
    assert store.value(late) == 5.0
