from __future__ import annotations

from pygame.math import Vector3

from ..utils.math3d import _limit_length, _safe_normalize
from .steering import SteeringForces


def limit_velocity(velocity: Vector3, limit: float = 15.0) -> Vector3:
    return _limit_length(velocity, limit)


def integrate(
    position: Vector3,
    velocity: Vector3,
    forces: SteeringForces,
    limit: float = 15.0,
) -> tuple[Vector3, Vector3]:
    """Return the next (position, velocity) for one agent.

    The position moves one unit along the limited velocity's direction, so
    speed changes how steadily an agent turns but not how far it travels per
    tick. A zero velocity leaves the agent in place.
    """
    new_velocity = limit_velocity(velocity + forces.total(), limit)
    new_position = position + _safe_normalize(new_velocity)
    return new_position, new_velocity
