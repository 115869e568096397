import logging

import numpy as np

from gcs2d.logging_utils import apply_debug_logging, debug_log_call, safe_repr
from gcs2d.solver import numerical_rank


def test_safe_repr_summarises_large_arrays():
    rendered = safe_repr(np.arange(100.0))

    assert rendered.startswith("ndarray(shape=(100,))")
    assert "min=0" in rendered and "max=99" in rendered
    assert safe_repr(np.array([1.0, 2.0])) == "ndarray(shape=(2,)), values=[1.0, 2.0]"
    assert safe_repr(list(range(20))).endswith("(20 items)]")


def test_debug_log_call_traces_entry_and_exit(caplog):
    logger = logging.getLogger("gcs2d.tests.trace")

    @debug_log_call(logger)
    def double(value):
        return value * 2

    with caplog.at_level(logging.DEBUG, logger="gcs2d.tests.trace"):
        assert double(4) == 8

    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("Entering") and "args=[4]" in message for message in messages)
    assert any(message.endswith("-> 8") for message in messages)


def test_apply_debug_logging_skips_private_names():
    def public():
        return 1

    def _private():
        return 2

    public.__module__ = _private.__module__ = "fake.module"
    namespace = {"__name__": "fake.module", "public": public, "_private": _private}
    apply_debug_logging(namespace)

    assert getattr(namespace["public"], "_debug_logging_wrapped", False)
    assert namespace["_private"] is _private


def test_module_functions_are_wrapped():
    assert getattr(numerical_rank, "_debug_logging_wrapped", False)
