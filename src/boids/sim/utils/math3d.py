from __future__ import annotations

import math

from pygame.math import Vector3

_DEGENERATE_LENGTH_SQ = 1e-10


def _safe_normalize(vector: Vector3) -> Vector3:
    magnitude_sq = vector.length_squared()
    if magnitude_sq < _DEGENERATE_LENGTH_SQ:
        return Vector3()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def _limit_length(vector: Vector3, max_length: float) -> Vector3:
    if max_length <= 0:
        return Vector3()
    magnitude = vector.length()
    if magnitude <= max_length:
        return Vector3(vector)
    # Second normalize is redundant; the length is max_length either way.
    return (vector / magnitude).normalize() * max_length
