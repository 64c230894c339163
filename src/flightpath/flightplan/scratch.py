"""Caller-owned scratch buffers for vector builders.

Each builder is handed a ScratchArena (or creates its own) and claims it for
the duration of a build. The arena's circles and intersection buffers are
reused between builds, so a builder must not be re-entered while it is
building; the claim makes that rule explicit instead of silently corrupting
shared buffers.

Typical usage:
    arena = ScratchArena()
    with arena.claim("CircleInterceptBuilder"):
        count = path.intersection(circle, arena.intersections)
"""

from collections.abc import Iterator
from contextlib import contextmanager

import numpy as np

from flightpath.geo.geo_circle import GeoCircle
from flightpath.geo.geo_point import Vec3


class ScratchInUseError(RuntimeError):
    """Raised when a scratch arena is claimed while already in use."""


class ScratchArena:
    """Reusable geometry buffers for one builder.

    Attributes:
        circles: Scratch circles.
        intersections: Output buffer for circle intersections.
    """

    def __init__(self, circle_count: int = 4) -> None:
        """Allocate the buffers.

        Args:
            circle_count: Number of scratch circles.
        """
        self.circles: list[GeoCircle] = [GeoCircle(np.array([0.0, 0.0, 1.0]), 0.0) for _ in range(circle_count)]
        self.intersections: list[Vec3] = [np.zeros(3), np.zeros(3)]
        self._owner: str | None = None

    @property
    def in_use(self) -> bool:
        """Whether the arena is currently claimed."""
        return self._owner is not None

    @contextmanager
    def claim(self, owner: str) -> Iterator["ScratchArena"]:
        """Claim the arena for one build.

        Args:
            owner: Name of the claiming builder, reported on conflicts.

        Raises:
            ScratchInUseError: If the arena is already claimed.
        """
        if self._owner is not None:
            raise ScratchInUseError(f"Scratch arena claimed by {owner} while in use by {self._owner}")

        self._owner = owner
        try:
            yield self
        finally:
            self._owner = None
