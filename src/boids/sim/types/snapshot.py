from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics | None
    agents: List[Dict[str, Any]]
    metadata: "SnapshotMetadata"
    weights: "SnapshotWeights"


@dataclass(slots=True)
class SnapshotMetadata:
    spawn_extent: float
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str


@dataclass(slots=True)
class SnapshotWeights:
    cohesion: float
    dispersion: float
    alignment: float
