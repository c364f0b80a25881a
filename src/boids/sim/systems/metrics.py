from __future__ import annotations

from typing import Sequence

from pygame.math import Vector3

from ..types.metrics import TickMetrics


def centroid(positions: Sequence[Vector3]) -> Vector3:
    if not positions:
        return Vector3()
    total = Vector3()
    for position in positions:
        total += position
    return total / len(positions)


def spread(positions: Sequence[Vector3], center: Vector3) -> float:
    """Mean distance of the agents from ``center``."""
    if not positions:
        return 0.0
    return sum(position.distance_to(center) for position in positions) / len(positions)


def create_metrics(
    tick: int,
    positions: Sequence[Vector3],
    velocities: Sequence[Vector3],
    neighbor_checks: int,
    degenerate_rules: int,
    duration_ms: float,
) -> TickMetrics:
    speeds = [velocity.length() for velocity in velocities]
    center = centroid(positions)
    return TickMetrics(
        tick=tick,
        population=len(positions),
        average_speed=sum(speeds) / len(speeds) if speeds else 0.0,
        max_speed=max(speeds, default=0.0),
        centroid_distance=center.length(),
        spread=spread(positions, center),
        neighbor_checks=neighbor_checks,
        degenerate_rules=degenerate_rules,
        tick_duration_ms=duration_ms,
    )
