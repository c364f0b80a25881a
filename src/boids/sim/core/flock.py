from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Tuple

from pygame.math import Vector3

from .agent import Agent
from .config import FlockConfig, SimulationConfig
from .errors import InsufficientPopulationError
from .rng import DeterministicRng
from ..systems import metrics as metrics_system, motion, steering
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWeights
from ..types.weights import FlockWeights

logger = logging.getLogger(__name__)


class Flock:
    """Owns a fixed population of agents and advances them one tick at a time.

    Every rule reads the positions and velocities captured at the start of the
    tick, and new states are written only after all agents have been computed,
    so iteration order never changes the outcome.

    Weights are applied as given. Keeping slider values inside [0, 1] is the
    job of whatever controller writes them.
    """

    def __init__(self, config: FlockConfig, time_step: float = 1.0 / 60.0, config_version: str = "v1"):
        if config.population_size < 2:
            raise InsufficientPopulationError(config.population_size)
        self._config = config
        self._time_step = time_step
        self._config_version = config_version
        self._rng = DeterministicRng(config.seed)
        self._weights = FlockWeights(
            cohesion=float(config.cohesion_weight),
            dispersion=float(config.dispersion_weight),
            alignment=float(config.alignment_weight),
        )
        self._agents: Tuple[Agent, ...] = self._spawn_agents()
        self._metrics: TickMetrics | None = None
        self._last_neighbor_checks = 0
        self._last_degenerate = 0
        logger.info(
            "Spawned flock of %d agents (extent=%.1f, seed=%d)",
            len(self._agents),
            config.spawn_extent,
            config.seed,
        )

    @classmethod
    def from_simulation_config(cls, config: SimulationConfig) -> "Flock":
        return cls(config.flock, time_step=config.time_step, config_version=config.config_version)

    @property
    def agents(self) -> Tuple[Agent, ...]:
        return self._agents

    @property
    def population(self) -> int:
        return len(self._agents)

    @property
    def config(self) -> FlockConfig:
        return self._config

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def weights(self) -> FlockWeights:
        return FlockWeights(
            cohesion=self._weights.cohesion,
            dispersion=self._weights.dispersion,
            alignment=self._weights.alignment,
        )

    @property
    def cohesion_weight(self) -> float:
        return self._weights.cohesion

    @cohesion_weight.setter
    def cohesion_weight(self, value: float) -> None:
        self._weights.cohesion = float(value)

    @property
    def dispersion_weight(self) -> float:
        return self._weights.dispersion

    @dispersion_weight.setter
    def dispersion_weight(self, value: float) -> None:
        self._weights.dispersion = float(value)

    @property
    def alignment_weight(self) -> float:
        return self._weights.alignment

    @alignment_weight.setter
    def alignment_weight(self, value: float) -> None:
        self._weights.alignment = float(value)

    def set_weights(
        self,
        cohesion: float | None = None,
        dispersion: float | None = None,
        alignment: float | None = None,
    ) -> FlockWeights:
        if cohesion is not None:
            self.cohesion_weight = cohesion
        if dispersion is not None:
            self.dispersion_weight = dispersion
        if alignment is not None:
            self.alignment_weight = alignment
        return self.weights

    def advance(self) -> None:
        config = self._config
        weights = FlockWeights(self._weights.cohesion, self._weights.dispersion, self._weights.alignment)
        positions = [Vector3(agent.position) for agent in self._agents]
        velocities = [Vector3(agent.velocity) for agent in self._agents]

        updates: List[Tuple[Vector3, Vector3]] = []
        neighbor_checks = 0
        degenerate = 0
        for index in range(len(self._agents)):
            forces = steering.compute_steering(positions, velocities, index, config, weights)
            neighbor_checks += forces.neighbors
            degenerate += forces.degenerate
            updates.append(motion.integrate(positions[index], velocities[index], forces, config.velocity_limit))

        for agent, (position, velocity) in zip(self._agents, updates):
            agent.position = position
            agent.velocity = velocity

        if degenerate:
            logger.debug("%d steering rules fell back to zero this tick", degenerate)
        self._last_neighbor_checks = neighbor_checks
        self._last_degenerate = degenerate

    tick = advance

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        self.advance()
        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(
            tick,
            [agent.position for agent in self._agents],
            [agent.velocity for agent in self._agents],
            self._last_neighbor_checks,
            self._last_degenerate,
            duration_ms,
        )
        return self._metrics

    def snapshot(self, tick: int) -> Snapshot:
        agents = []
        for agent in self._agents:
            position = agent.position
            velocity = agent.velocity
            agents.append(
                {
                    "id": agent.id,
                    "x": position.x,
                    "y": position.y,
                    "z": position.z,
                    "vx": velocity.x,
                    "vy": velocity.y,
                    "vz": velocity.z,
                    "speed": velocity.length(),
                }
            )
        return Snapshot(
            tick=tick,
            metrics=self._metrics,
            agents=agents,
            metadata=SnapshotMetadata(
                spawn_extent=self._config.spawn_extent,
                sim_dt=self._time_step,
                tick_rate=1.0 / self._time_step if self._time_step > 0 else 0.0,
                seed=self._config.seed,
                config_version=self._config_version,
            ),
            weights=SnapshotWeights(
                cohesion=self._weights.cohesion,
                dispersion=self._weights.dispersion,
                alignment=self._weights.alignment,
            ),
        )

    def _spawn_agents(self) -> Tuple[Agent, ...]:
        extent = self._config.spawn_extent
        return tuple(
            Agent(id=index, position=self._rng.next_point_in_cube(extent), velocity=Vector3())
            for index in range(self._config.population_size)
        )
