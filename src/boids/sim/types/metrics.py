from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    average_speed: float
    max_speed: float
    centroid_distance: float
    spread: float
    neighbor_checks: int
    degenerate_rules: int
    tick_duration_ms: float = 0.0
