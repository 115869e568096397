"""Points and lines as views over parameter references."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Tuple

from .params import ParameterStore, ParamRef

Point2D = Tuple[float, float]


@dataclass(frozen=True)
class Point:
    x_ref: ParamRef
    y_ref: ParamRef
    store: ParameterStore = field(repr=False, compare=False)

    @property
    def x(self) -> float:
        return self.store.value(self.x_ref)

    @property
    def y(self) -> float:
        return self.store.value(self.y_ref)

    @property
    def coords(self) -> Point2D:
        return self.x, self.y

    @property
    def refs(self) -> Tuple[ParamRef, ParamRef]:
        return self.x_ref, self.y_ref

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class Line:
    p1: Point
    p2: Point

    @property
    def direction(self) -> Point2D:
        """Unnormalized ``p2 - p1``."""

        return self.p2.x - self.p1.x, self.p2.y - self.p1.y

    @property
    def length(self) -> float:
        dx, dy = self.direction
        return math.hypot(dx, dy)

    @property
    def refs(self) -> Tuple[ParamRef, ParamRef, ParamRef, ParamRef]:
        return self.p1.x_ref, self.p1.y_ref, self.p2.x_ref, self.p2.y_ref

    def distance_to_point(self, point: Point) -> float:
        """Signed distance, positive when ``point`` is left of ``p1 -> p2``.

        Falls back to the (unsigned) distance to ``p1`` for a zero-length line.
        """

        dx, dy = self.direction
        length = math.hypot(dx, dy)
        ax = point.x - self.p1.x
        ay = point.y - self.p1.y
        if length <= 1e-12:
            return math.hypot(ax, ay)
        return (dx * ay - dy * ax) / length


__all__ = ["Line", "Point", "Point2D"]
