from __future__ import annotations

import math

import pytest
from pygame.math import Vector3
from pytest import approx

from boids.sim.core.config import FlockConfig, SimulationConfig
from boids.sim.core.errors import InsufficientPopulationError
from boids.sim.core.flock import Flock
from boids.sim.systems import motion, steering


def _state(flock: Flock):
    return [(tuple(agent.position), tuple(agent.velocity)) for agent in flock.agents]


@pytest.mark.parametrize("population", [0, 1])
def test_construction_rejects_populations_below_two(population):
    with pytest.raises(InsufficientPopulationError) as excinfo:
        Flock(FlockConfig(population_size=population))

    assert excinfo.value.population_size == population
    assert isinstance(excinfo.value, ValueError)


def test_spawn_is_deterministic_and_inside_cube():
    config = FlockConfig(population_size=25, spawn_extent=50.0, seed=1234)
    flock_a = Flock(config)
    flock_b = Flock(FlockConfig(population_size=25, spawn_extent=50.0, seed=1234))

    assert _state(flock_a) == _state(flock_b)
    assert flock_a.population == 25
    for agent in flock_a.agents:
        assert all(-50.0 <= component <= 50.0 for component in agent.position)


def test_different_seeds_spawn_differently():
    assert _state(Flock(FlockConfig(seed=1))) != _state(Flock(FlockConfig(seed=2)))


def test_agent_membership_is_fixed():
    flock = Flock(FlockConfig(population_size=4))
    agents = flock.agents

    assert isinstance(agents, tuple)
    for _ in range(5):
        flock.advance()
    assert flock.agents == agents
    assert all(a is b for a, b in zip(flock.agents, agents))


def test_velocity_limit_and_unit_step_hold_every_tick():
    flock = Flock(
        FlockConfig(
            population_size=25,
            cohesion_weight=1.0,
            dispersion_weight=1.0,
            alignment_weight=1.0,
            seed=7,
        )
    )
    for agent in flock.agents:
        agent.velocity = Vector3(40.0, -25.0, 10.0)

    for _ in range(60):
        before = [Vector3(agent.position) for agent in flock.agents]
        flock.advance()
        for agent, previous in zip(flock.agents, before):
            speed = agent.velocity.length()
            assert speed <= 15.0 + 1e-9
            if speed > 1e-5:
                assert (agent.position - previous).length() == approx(1.0)


def test_velocity_is_exactly_the_limit_after_overshoot(place_flock):
    flock = place_flock([(0, 0, 0), (500, 0, 0)], [(100, 0, 0), (0, 0, 0)])

    flock.advance()

    assert flock.agents[0].velocity.length() == approx(15.0)
    assert tuple(flock.agents[0].velocity) == approx((15.0, 0.0, 0.0))


def test_two_agent_tick_with_full_weights(place_flock):
    flock = place_flock(
        [(0, 0, 0), (10, 0, 0)],
        cohesion_weight=1.0,
        dispersion_weight=1.0,
        alignment_weight=1.0,
    )

    metrics = flock.step(0)

    a, b = flock.agents
    # Cohesion and dispersion cancel for both agents; only B is off origin.
    assert tuple(a.velocity) == approx((0.0, 0.0, 0.0))
    assert tuple(a.position) == approx((0.0, 0.0, 0.0))
    assert tuple(b.velocity) == approx((-0.1, 0.0, 0.0))
    assert tuple(b.position) == approx((9.0, 0.0, 0.0))
    assert metrics.degenerate_rules == 2
    assert metrics.neighbor_checks == 2


def test_two_agent_cohesion_only_is_mirrored(place_flock):
    flock = place_flock([(-20, 0, 0), (20, 0, 0)], cohesion_weight=1.0)

    flock.advance()

    a, b = flock.agents
    assert tuple(a.velocity) == approx(tuple(-b.velocity))
    assert tuple(a.velocity) == approx((1.2, 0.0, 0.0))
    assert tuple(a.position) == approx((-19.0, 0.0, 0.0))
    assert tuple(b.position) == approx((19.0, 0.0, 0.0))


def test_zero_weights_leave_only_homing(place_flock):
    flock = place_flock([(30, 0, 0), (0, 0, 0)])
    mover, anchor = flock.agents

    flock.advance()
    assert tuple(mover.velocity) == approx((-0.3, 0.0, 0.0))
    assert tuple(mover.position) == approx((29.0, 0.0, 0.0))

    distances = [mover.position.length()]
    for _ in range(29):
        flock.advance()
        assert mover.velocity.x < 0.0
        distances.append(mover.position.length())

    assert distances == sorted(distances, reverse=True)
    assert mover.position.x == approx(0.0, abs=1e-9)

    for _ in range(20):
        flock.advance()
    assert mover.position.length() < 30.0
    assert tuple(anchor.position) == (0.0, 0.0, 0.0)
    assert mover.position.y == 0.0 and mover.position.z == 0.0


def test_advance_reads_pre_tick_snapshot():
    flock = Flock(
        FlockConfig(
            population_size=8,
            cohesion_weight=0.7,
            dispersion_weight=0.4,
            alignment_weight=0.9,
            seed=11,
        )
    )
    for _ in range(3):
        flock.advance()

    positions = [Vector3(agent.position) for agent in flock.agents]
    velocities = [Vector3(agent.velocity) for agent in flock.agents]
    expected = {}
    for index in reversed(range(len(positions))):
        forces = steering.compute_steering(positions, velocities, index, flock.config, flock.weights)
        expected[index] = motion.integrate(positions[index], velocities[index], forces, 15.0)

    flock.advance()

    for agent in flock.agents:
        position, velocity = expected[agent.id]
        assert tuple(agent.position) == approx(tuple(position))
        assert tuple(agent.velocity) == approx(tuple(velocity))


def test_degenerate_neighborhood_keeps_state_finite(place_flock):
    flock = place_flock(
        [(5, 5, 5)] * 4,
        [(1, 1, 1)] * 4,
        cohesion_weight=1.0,
        dispersion_weight=1.0,
        alignment_weight=1.0,
    )

    metrics = flock.step(0)

    assert metrics.degenerate_rules == 12
    for _ in range(10):
        flock.advance()
    for agent in flock.agents:
        assert all(math.isfinite(c) for c in agent.position)
        assert all(math.isfinite(c) for c in agent.velocity)


def test_weights_are_applied_without_clamping(place_flock):
    flock = place_flock([(0, 0, 0), (10, 0, 0)])

    flock.cohesion_weight = 2.5
    flock.dispersion_weight = -1.0
    weights = flock.set_weights(alignment=3)

    assert weights.cohesion == 2.5
    assert weights.dispersion == -1.0
    assert weights.alignment == 3.0
    assert isinstance(flock.alignment_weight, float)

    forces = steering.compute_steering(
        [Vector3(a.position) for a in flock.agents],
        [Vector3(a.velocity) for a in flock.agents],
        0,
        flock.config,
        flock.weights,
    )
    assert forces.cohesion.length() == approx(2.5)
    assert tuple(forces.dispersion) == approx((1.0, 0.0, 0.0))


def test_weight_writes_take_effect_next_tick(place_flock):
    flock = place_flock([(-20, 0, 0), (20, 0, 0)])

    flock.advance()
    assert tuple(flock.agents[0].velocity) == approx((0.2, 0.0, 0.0))

    flock.cohesion_weight = 1.0
    flock.advance()
    # 0.2 carried over, plus homing from x=-19, plus the new cohesion pull.
    assert tuple(flock.agents[0].velocity) == approx((0.2 + 0.19 + 1.0, 0.0, 0.0))


def test_weights_property_is_a_copy():
    flock = Flock(FlockConfig(cohesion_weight=0.3))

    weights = flock.weights
    weights.cohesion = 0.9

    assert flock.cohesion_weight == 0.3


def test_tick_is_an_alias_for_advance():
    flock_a = Flock(FlockConfig(population_size=5, cohesion_weight=0.5))
    flock_b = Flock(FlockConfig(population_size=5, cohesion_weight=0.5))

    flock_a.advance()
    flock_b.tick()

    assert _state(flock_a) == _state(flock_b)


def test_step_records_metrics():
    flock = Flock(FlockConfig(population_size=10, dispersion_weight=1.0))

    metrics = flock.step(4)

    assert flock.metrics is metrics
    assert metrics.tick == 4
    assert metrics.population == 10
    assert 0.0 <= metrics.average_speed <= metrics.max_speed <= 15.0
    assert metrics.spread > 0.0
    assert metrics.tick_duration_ms >= 0.0


def test_snapshot_contains_positions_and_metadata():
    config = SimulationConfig(time_step=0.5, flock=FlockConfig(population_size=3, seed=7, alignment_weight=0.25))
    flock = Flock.from_simulation_config(config)

    assert flock.snapshot(0).metrics is None
    flock.step(0)
    snapshot = flock.snapshot(1)

    assert snapshot.tick == 1
    assert snapshot.metadata.sim_dt == approx(0.5)
    assert snapshot.metadata.tick_rate == approx(2.0)
    assert snapshot.metadata.seed == 7
    assert snapshot.metadata.spawn_extent == approx(50.0)
    assert snapshot.weights.alignment == approx(0.25)
    assert len(snapshot.agents) == 3
    payload = snapshot.agents[0]
    for key in ["id", "x", "y", "z", "vx", "vy", "vz", "speed"]:
        assert key in payload
    agent = flock.agents[0]
    assert payload["x"] == approx(agent.position.x)
    assert payload["speed"] == approx(agent.velocity.length())
