"""Parameter arena shared by points, lines and constraints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

ParamRef = int


@dataclass(frozen=True)
class ParameterSnapshot:
    """Saved parameter values and lock flags, see :meth:`ParameterStore.snapshot`."""

    values: Tuple[float, ...]
    locked: Tuple[bool, ...]


class ParameterStore:
    """Arena of scalar parameters addressed by integer index.

    Parameters are never removed: primitives and constraints hold plain
    indices, so an index stays valid for the lifetime of the store.
    """

    def __init__(self) -> None:
        self._values: List[float] = []
        self._locked: List[bool] = []
        self._names: List[Optional[str]] = []

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, int) and not isinstance(ref, bool) and 0 <= ref < len(self._values)

    def _check(self, ref: ParamRef) -> ParamRef:
        if ref not in self:
            raise IndexError(f"parameter reference {ref!r} out of range (arena size {len(self._values)})")
        return ref

    def new_parameter(self, value: float, name: Optional[str] = None, locked: bool = False) -> ParamRef:
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"parameter value must be finite, got {value!r}")
        self._values.append(value)
        self._locked.append(bool(locked))
        self._names.append(name)
        return len(self._values) - 1

    def value(self, ref: ParamRef) -> float:
        return self._values[self._check(ref)]

    def set_value(self, ref: ParamRef, value: float) -> None:
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"parameter value must be finite, got {value!r}")
        self._values[self._check(ref)] = value

    def name(self, ref: ParamRef) -> str:
        label = self._names[self._check(ref)]
        return label if label is not None else f"p{ref}"

    def lock(self, ref: ParamRef) -> None:
        self._locked[self._check(ref)] = True

    def unlock(self, ref: ParamRef) -> None:
        self._locked[self._check(ref)] = False

    def is_locked(self, ref: ParamRef) -> bool:
        return self._locked[self._check(ref)]

    def free_refs(self) -> List[ParamRef]:
        """Non-locked parameters in arena order."""

        return [ref for ref, locked in enumerate(self._locked) if not locked]

    def values(self) -> np.ndarray:
        return np.array(self._values, dtype=float)

    def assign(self, refs: Sequence[ParamRef], values: Iterable[float]) -> None:
        # Written by the solver only; the caller-facing path is set_value.
        for ref, value in zip(refs, values):
            self._values[self._check(ref)] = float(value)

    def snapshot(self) -> ParameterSnapshot:
        return ParameterSnapshot(values=tuple(self._values), locked=tuple(self._locked))

    def restore(self, snapshot: ParameterSnapshot) -> None:
        if len(snapshot.values) > len(self._values):
            raise ValueError("snapshot belongs to a larger parameter arena")
        count = len(snapshot.values)
        self._values[:count] = list(snapshot.values)
        self._locked[:count] = list(snapshot.locked)


__all__ = ["ParamRef", "ParameterSnapshot", "ParameterStore"]
