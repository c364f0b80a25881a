from __future__ import annotations

import random

from pygame.math import Vector3


class DeterministicRng:
    def __init__(self, seed: int):
        self._random = random.Random(seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_point_in_cube(self, extent: float) -> Vector3:
        """Uniform point in the axis-aligned cube [-extent, extent]^3, each axis drawn independently."""
        return Vector3(
            self.next_range(-extent, extent),
            self.next_range(-extent, extent),
            self.next_range(-extent, extent),
        )
