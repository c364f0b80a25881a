from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FlockWeights:
    cohesion: float = 0.0
    dispersion: float = 0.0
    alignment: float = 0.0
