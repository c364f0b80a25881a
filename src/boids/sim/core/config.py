from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class FlockConfig:
    population_size: int = 25
    spawn_extent: float = 50.0
    # Slider values; the engine applies whatever it is given, [0, 1] is a UI convention.
    cohesion_weight: float = 0.0
    dispersion_weight: float = 0.0
    alignment_weight: float = 0.0
    neighbor_radius: float = 100.0
    velocity_limit: float = 15.0
    alignment_divisor: float = 8.0
    homing_divisor: float = 100.0
    homing_target: tuple[float, float, float] = (0.0, 0.0, 0.0)
    seed: int = 42


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 60.0
    config_version: str = "v1"
    flock: FlockConfig = field(default_factory=FlockConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 1


def load_config(raw: dict) -> SimulationConfig:
    default_target = FlockConfig().homing_target

    def _triple(value: tuple[float, ...] | list[float] | None, default: tuple[float, float, float]) -> tuple[float, float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 3:
            return (float(value[0]), float(value[1]), float(value[2]))
        return default

    flock_raw = dict(raw.get("flock", {}))
    homing_target = _triple(flock_raw.pop("homing_target", None), default_target)
    flock = FlockConfig(homing_target=homing_target, **flock_raw)
    sim_values = {k: v for k, v in raw.items() if k != "flock"}
    return SimulationConfig(flock=flock, **sim_values)
