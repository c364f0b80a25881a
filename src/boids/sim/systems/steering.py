from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pygame.math import Vector3

from ..core.config import FlockConfig
from ..types.weights import FlockWeights
from ..utils.math3d import _safe_normalize


@dataclass(slots=True)
class SteeringForces:
    cohesion: Vector3
    dispersion: Vector3
    alignment: Vector3
    homing: Vector3
    neighbors: int = 0
    degenerate: int = 0

    def total(self) -> Vector3:
        return self.cohesion + self.dispersion + self.alignment + self.homing


def _mean_of_others(vectors: Sequence[Vector3], index: int) -> Vector3:
    total_x = 0.0
    total_y = 0.0
    total_z = 0.0
    for other_index, vector in enumerate(vectors):
        if other_index == index:
            continue
        total_x += vector.x
        total_y += vector.y
        total_z += vector.z
    count = len(vectors) - 1
    return Vector3(total_x / count, total_y / count, total_z / count)


def perceived_center(positions: Sequence[Vector3], index: int) -> Vector3:
    return _mean_of_others(positions, index)


def perceived_velocity(velocities: Sequence[Vector3], index: int) -> Vector3:
    return _mean_of_others(velocities, index)


def cohesion(positions: Sequence[Vector3], index: int, weight: float) -> Vector3:
    """Steer toward the average position of every other agent."""
    offset = perceived_center(positions, index) - positions[index]
    return _safe_normalize(offset) * weight


def _repulsion(positions: Sequence[Vector3], index: int, radius: float) -> tuple[Vector3, int]:
    origin = positions[index]
    radius_sq = radius * radius
    push_x = 0.0
    push_y = 0.0
    push_z = 0.0
    neighbors = 0
    for other_index, other in enumerate(positions):
        if other_index == index:
            continue
        offset_x = other.x - origin.x
        offset_y = other.y - origin.y
        offset_z = other.z - origin.z
        if offset_x * offset_x + offset_y * offset_y + offset_z * offset_z < radius_sq:
            push_x -= offset_x
            push_y -= offset_y
            push_z -= offset_z
            neighbors += 1
    return Vector3(push_x, push_y, push_z), neighbors


def dispersion(positions: Sequence[Vector3], index: int, weight: float, radius: float = 100.0) -> Vector3:
    """Steer away from agents strictly closer than ``radius``; farther agents are ignored."""
    push, _neighbors = _repulsion(positions, index, radius)
    return _safe_normalize(push) * weight


def alignment(velocities: Sequence[Vector3], index: int, weight: float, divisor: float = 8.0) -> Vector3:
    """Steer a fraction of the way toward the average velocity of every other agent."""
    difference = perceived_velocity(velocities, index) - velocities[index]
    return (_safe_normalize(difference) / divisor) * weight


def homing(position: Vector3, target: Vector3 | None = None, divisor: float = 100.0) -> Vector3:
    """Unweighted pull toward ``target`` (the world origin by default)."""
    if target is None:
        target = Vector3()
    return (target - position) / divisor


def compute_steering(
    positions: Sequence[Vector3],
    velocities: Sequence[Vector3],
    index: int,
    config: FlockConfig,
    weights: FlockWeights,
) -> SteeringForces:
    push, neighbors = _repulsion(positions, index, config.neighbor_radius)
    forces = SteeringForces(
        cohesion=cohesion(positions, index, weights.cohesion),
        dispersion=_safe_normalize(push) * weights.dispersion,
        alignment=alignment(velocities, index, weights.alignment, config.alignment_divisor),
        homing=homing(positions[index], Vector3(config.homing_target), config.homing_divisor),
        neighbors=neighbors,
    )
    # A weighted rule only comes back as exactly zero when its direction was degenerate.
    for weight, contribution in (
        (weights.cohesion, forces.cohesion),
        (weights.dispersion, forces.dispersion),
        (weights.alignment, forces.alignment),
    ):
        if weight != 0.0 and contribution.length_squared() == 0.0:
            forces.degenerate += 1
    return forces
