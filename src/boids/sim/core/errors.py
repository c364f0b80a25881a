from __future__ import annotations


class FlockError(Exception):
    """Base class for flock simulation errors."""


class InsufficientPopulationError(FlockError, ValueError):
    """Raised when a flock is built with fewer than two agents.

    Cohesion and alignment average over the N - 1 other agents, so a single
    agent has nothing to average over.
    """

    def __init__(self, population_size: int):
        super().__init__(f"A flock needs at least 2 agents, got {population_size}")
        self.population_size = population_size


class WeightOutOfRangeError(FlockError, ValueError):
    """Raised by weight controls for values that are not finite numbers in [0, 1].

    The engine itself never raises this; it applies any weight it is given.
    """

    def __init__(self, name: str, value: object):
        super().__init__(f"{name} weight must be a number in [0, 1], got {value!r}")
        self.name = name
        self.value = value
