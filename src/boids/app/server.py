from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from ..sim.core.config import SimulationConfig
from ..sim.core.errors import WeightOutOfRangeError
from ..sim.core.flock import Flock

logger = logging.getLogger(__name__)

_WEIGHT_NAMES = ("cohesion", "dispersion", "alignment")


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


def _validate_weight(name: str, value: object) -> float:
    if name not in _WEIGHT_NAMES or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise WeightOutOfRangeError(name, value)
    weight = float(value)
    if not math.isfinite(weight) or weight < 0.0 or weight > 1.0:
        raise WeightOutOfRangeError(name, value)
    return weight


class SimulationController:
    """Host loop for a flock: ticks it, broadcasts snapshots and applies slider writes.

    Ticks and weight writes both take ``_lock`` so a write never lands in the
    middle of a tick.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1):
        self.config = config
        self.flock = Flock.from_simulation_config(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True
        logger.info("Simulation started at tick %d", self.tick)

    async def stop(self) -> None:
        self.running = False
        logger.info("Simulation stopped at tick %d", self.tick)

    async def shutdown(self) -> None:
        self.running = False
        if self._broadcast_task is not None:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass
            self._broadcast_task = None

    async def reset(self) -> None:
        async with self._lock:
            self.flock = Flock.from_simulation_config(self.config)
            self.tick = 0
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        logger.info("Simulation reset")
        await self._broadcast_snapshot()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                self.flock.step(self.tick)
                self.tick += 1
            if self.tick % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    def get_weights(self) -> Dict[str, float]:
        return asdict(self.flock.weights)

    async def set_weights(self, **values: object) -> Dict[str, float]:
        try:
            validated = {name: _validate_weight(name, value) for name, value in values.items()}
        except WeightOutOfRangeError as exc:
            logger.warning("Rejected weight update: %s", exc)
            raise
        async with self._lock:
            weights = self.flock.set_weights(**validated)
        return asdict(weights)

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.flock.snapshot(self.tick)
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "metrics": asdict(snapshot.metrics) if snapshot.metrics is not None else None,
                "agents": snapshot.agents,
                "metadata": asdict(snapshot.metadata),
                "weights": asdict(snapshot.weights),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


controller = SimulationController(SimulationConfig())
static_dir = Path(__file__).parent / "static"


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    await controller.start()
    yield
    await controller.shutdown()


app = FastAPI(title="Boids Flock Simulation", lifespan=_lifespan)
app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.get("/")
async def index() -> FileResponse:
    return FileResponse(static_dir / "index.html")


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = controller.flock.metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": controller.flock.population,
            "metrics": asdict(metrics) if metrics is not None else None,
            "weights": controller.get_weights(),
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.get("/api/weights")
async def get_weights() -> JSONResponse:
    return JSONResponse(controller.get_weights())


@app.post("/api/weights")
async def update_weights(payload: dict) -> JSONResponse:
    try:
        weights = await controller.set_weights(**payload)
    except WeightOutOfRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return JSONResponse(weights)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]
