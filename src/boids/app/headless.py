from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.flock import Flock
from ..sim.systems.metrics import centroid
from ..sim.types.metrics import TickMetrics
from ..sim.types.weights import FlockWeights

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "population",
    "avg_speed",
    "max_speed",
    "neighbor_checks",
    "degenerate_rules",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "avg_speed",
    "max_speed",
    "min_speed",
    "neighbor_checks",
    "degenerate_rules",
    "tick_ms",
    "centroid_x",
    "centroid_y",
    "centroid_z",
    "centroid_distance",
    "spread",
    "max_distance_from_centroid",
    "neighbor_checks_per_agent",
    "tick_ms_per_agent",
    "cohesion_weight",
    "dispersion_weight",
    "alignment_weight",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        f"{metrics.average_speed:.4f}",
        f"{metrics.max_speed:.4f}",
        metrics.neighbor_checks,
        metrics.degenerate_rules,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(flock: Flock, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    positions = [agent.position for agent in flock.agents]
    center = centroid(positions)
    min_speed = min((agent.velocity.length() for agent in flock.agents), default=0.0)
    max_distance = max((position.distance_to(center) for position in positions), default=0.0)
    neighbor_checks_per_agent = metrics.neighbor_checks / population if population > 0 else 0.0
    tick_ms_per_agent = tick_ms / population if population > 0 else 0.0
    weights = flock.weights
    return [
        metrics.tick,
        population,
        f"{metrics.average_speed:.4f}",
        f"{metrics.max_speed:.4f}",
        f"{min_speed:.4f}",
        metrics.neighbor_checks,
        metrics.degenerate_rules,
        f"{tick_ms:.3f}",
        f"{center.x:.4f}",
        f"{center.y:.4f}",
        f"{center.z:.4f}",
        f"{metrics.centroid_distance:.4f}",
        f"{metrics.spread:.4f}",
        f"{max_distance:.4f}",
        f"{neighbor_checks_per_agent:.4f}",
        f"{tick_ms_per_agent:.4f}",
        f"{weights.cohesion:.4f}",
        f"{weights.dispersion:.4f}",
        f"{weights.alignment:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    total = sum(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(total / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def _correlation(xs: list[float], ys: list[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    num = 0.0
    denom_x = 0.0
    denom_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y)
    if denom == 0.0:
        return 0.0
    return float(num / denom)


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    config_path: Optional[Path] = None,
    weights: Optional[FlockWeights] = None,
) -> Flock:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.flock.seed = seed
    flock = Flock.from_simulation_config(config)
    if weights is not None:
        flock.set_weights(weights.cohesion, weights.dispersion, weights.alignment)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    speed_series: list[float] = []
    spread_series: list[float] = []
    neighbor_checks_series: list[int] = []
    degenerate_series: list[int] = []
    max_tick_ms = (-1.0, -1)
    max_spread = (-1.0, -1)
    max_degenerate = (-1, -1)

    try:
        for tick in range(steps):
            metrics = flock.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                speed_series.append(metrics.average_speed)
                spread_series.append(metrics.spread)
                neighbor_checks_series.append(metrics.neighbor_checks)
                degenerate_series.append(metrics.degenerate_rules)
                if tick_ms > max_tick_ms[0]:
                    max_tick_ms = (tick_ms, tick)
                if metrics.spread > max_spread[0]:
                    max_spread = (metrics.spread, tick)
                if metrics.degenerate_rules > max_degenerate[0]:
                    max_degenerate = (metrics.degenerate_rules, tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(flock, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    logger.info("Headless run finished after %d ticks (seed=%d)", steps, config.flock.seed)

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        weights_now = flock.weights
        summary = {
            "steps": steps,
            "seed": config.flock.seed,
            "population": flock.population,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "weights": {
                "cohesion": weights_now.cohesion,
                "dispersion": weights_now.dispersion,
                "alignment": weights_now.alignment,
            },
            "tick_ms": _summary_stats(tick_ms_series),
            "avg_speed": _summary_stats(speed_series),
            "spread": _summary_stats(spread_series),
            "neighbor_checks": _summary_stats([float(v) for v in neighbor_checks_series]),
            "degenerate_rules": _summary_stats([float(v) for v in degenerate_series]),
            "correlations": {
                "tick_ms_vs_neighbor_checks": _correlation(
                    tick_ms_series, [float(v) for v in neighbor_checks_series]
                ),
                "spread_vs_neighbor_checks": _correlation(spread_series, [float(v) for v in neighbor_checks_series]),
            },
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "spread": {"value": float(max_spread[0]), "tick": max_spread[1]},
                "degenerate_rules": {"value": max_degenerate[0], "tick": max_degenerate[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "avg_speed": _summary_stats(speed_series[tail_slice]),
                "spread": _summary_stats(spread_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return flock


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless boids flock simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--cohesion", type=float, default=None, help="Override the cohesion weight")
    parser.add_argument("--dispersion", type=float, default=None, help="Override the dispersion weight")
    parser.add_argument("--alignment", type=float, default=None, help="Override the alignment weight")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=5000,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    weights = None
    if args.cohesion is not None or args.dispersion is not None or args.alignment is not None:
        base = SimulationConfig.from_yaml(args.config).flock if args.config else SimulationConfig().flock
        weights = FlockWeights(
            cohesion=base.cohesion_weight if args.cohesion is None else args.cohesion,
            dispersion=base.dispersion_weight if args.dispersion is None else args.dispersion,
            alignment=base.alignment_weight if args.alignment is None else args.alignment,
        )

    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
        weights=weights,
    )


if __name__ == "__main__":
    main()
