"""HTTP/WebSocket front end for a gesture session.

Sensor readings arrive over REST or WebSocket, mode control is REST, and
recognitions, phase prompts and status messages are pushed to every
connected WebSocket client.

Features:
- Sensor input: POST /api/samples or {"type": "sample"} WebSocket messages
- Mode control: /api/record, /api/listen, /api/stop, /api/action/{name}
- Gesture catalog: /api/catalog
- Recognition sinks: WebSocket + plugins (broadcast), optional webhook (forward)
- Prometheus metrics endpoint

Usage:
    imu-gestures serve --model model.pt
    # or
    uvicorn imu_gestures.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from imu_gestures.classifier import LSTMSequenceClassifier, SequenceClassifier
from imu_gestures.config import EngineConfig
from imu_gestures.errors import ImuGestureError
from imu_gestures.plugins import PluginManager
from imu_gestures.session import GestureEvent, GestureSession

logger = logging.getLogger("imu_gestures.server")

PLUGIN_DIR = Path(__file__).parent.parent.parent / "plugins"


# --- State ---

class ServerState:
    def __init__(self):
        self.clients: set[WebSocket] = set()
        self.session: Optional[GestureSession] = None
        self.plugin_manager: Optional[PluginManager] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.forward_url: Optional[str] = None
        self.last_status: dict = {"header": "", "text": ""}
        self.last_recognition: Optional[dict] = None
        self.total_recognitions = 0


state = ServerState()


def configure(
    config: Optional[EngineConfig] = None,
    model_path: Optional[str] = None,
    forward_url: Optional[str] = None,
    plugin_dir: Optional[str | Path] = None,
    classifier: Optional[SequenceClassifier] = None,
    scheduler=None,
) -> GestureSession:
    """Build the session and plugins the server will use."""
    config = config or EngineConfig()
    state.plugin_manager = PluginManager()
    loaded = state.plugin_manager.load_directory(plugin_dir or PLUGIN_DIR)
    logger.info("Loaded %d plugins", loaded)

    if classifier is None:
        classifier = LSTMSequenceClassifier(hidden_size=config.hidden_size, model_path=model_path)
    state.forward_url = forward_url
    state.last_status = {"header": "", "text": ""}
    state.last_recognition = None
    state.total_recognitions = 0
    state.session = GestureSession(
        classifier=classifier,
        config=config,
        scheduler=scheduler,
        broadcast=_broadcast_sink,
        forward=_forward_sink,
    )
    state.session.catalog.add("gesture")
    state.session.on_status(_on_status)
    state.plugin_manager.attach(state.session)
    return state.session


# --- Session callbacks (may run on timer or training threads) ---

def _schedule(coro_factory):
    loop = state.loop
    if loop is None or loop.is_closed():
        return
    loop.call_soon_threadsafe(lambda: asyncio.ensure_future(coro_factory()))


def _broadcast_sink(payload: dict):
    state.total_recognitions += 1
    state.last_recognition = {"payload": payload, "timestamp": time.time()}
    if state.plugin_manager:
        state.plugin_manager.broadcast_sink(payload)
    _schedule(lambda: broadcast({"type": "recognized", "payload": payload, "timestamp": time.time()}))


def _forward_sink(payload: dict):
    if not state.forward_url:
        logger.debug("No forward URL configured, dropping %s", payload)
        return
    _schedule(lambda: _post_forward(payload))


async def _post_forward(payload: dict):
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.post(state.forward_url, json=payload)
            if resp.status_code >= 300:
                logger.warning("Forward sink got HTTP %d", resp.status_code)
    except httpx.HTTPError as e:
        logger.warning("Forward sink failed: %s", e)


def _on_status(header: str, text: str):
    state.last_status = {"header": header, "text": text}
    _schedule(lambda: broadcast({"type": "status", "header": header, "text": text}))


# --- App ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    state.loop = asyncio.get_running_loop()
    if state.session is None:
        configure()
    if state.plugin_manager:
        state.plugin_manager.startup({"session": state.session})
    try:
        yield
    finally:
        if state.plugin_manager:
            state.plugin_manager.shutdown()
        if state.session:
            state.session.stop()
        state.loop = None


app = FastAPI(title="imu-gestures", version="0.1.0", lifespan=lifespan)


def _session() -> GestureSession:
    if state.session is None:
        raise HTTPException(status_code=503, detail="Session not configured")
    return state.session


class SampleIn(BaseModel):
    axis: str
    value: float
    timestamp: Optional[float] = None


class SampleBatch(BaseModel):
    samples: list[SampleIn]


class SlotIn(BaseModel):
    name: str = ""


def _event_dict(event: GestureEvent) -> dict:
    return {
        "gesture_id": event.gesture_id,
        "mode": event.mode.value,
        "phase": event.phase,
        "duration_ms": round(event.duration_ms, 1),
        "samples": len(event.features) // 3,
        "recognized": event.recognition.label if event.recognition else None,
    }


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    session = _session()
    phase = session.phase
    return {
        "mode": session.mode.value,
        "phase": phase.number if phase else None,
        "prompt": phase.prompt if phase else None,
        "trained": session.is_trained,
        "training_examples": len(session.training_set),
        "clients": len(state.clients),
        "status": state.last_status,
        "total_recognitions": state.total_recognitions,
        "last_recognition": state.last_recognition,
        "profiler": session.profiler.summary(),
        "plugins": state.plugin_manager.plugin_names if state.plugin_manager else [],
    }


@app.post("/api/samples")
async def post_samples(batch: SampleBatch):
    session = _session()
    events = []
    for s in batch.samples:
        event = session.on_axis(s.axis, s.value, timestamp=s.timestamp)
        if event is not None:
            events.append(_event_dict(event))
    return {"accepted": len(batch.samples), "gestures": events}


@app.post("/api/record")
async def start_recording():
    session = _session()
    try:
        session.start_recording()
    except ImuGestureError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"mode": session.mode.value, "phase": session.phase.number if session.phase else None}


@app.post("/api/listen")
async def start_listening():
    session = _session()
    try:
        session.start_listening()
    except ImuGestureError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"mode": session.mode.value}


@app.post("/api/stop")
async def stop():
    session = _session()
    session.stop()
    return {"mode": session.mode.value}


@app.post("/api/action/{name}")
async def execute_action(name: str):
    session = _session()
    try:
        session.execute(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ImuGestureError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"mode": session.mode.value}


@app.get("/api/catalog")
async def get_catalog():
    session = _session()
    return {
        "gestures": [s.to_dict() for s in session.catalog],
        "active": session.catalog.active_index,
    }


@app.post("/api/catalog")
async def add_slot(slot: SlotIn):
    created = _session().catalog.add(slot.name)
    return created.to_dict()


@app.put("/api/catalog/{index}")
async def rename_slot(index: int, slot: SlotIn):
    catalog = _session().catalog
    if catalog.get(index) is None:
        raise HTTPException(status_code=404, detail="No such gesture slot")
    catalog.rename(index, slot.name)
    return catalog.get(index).to_dict()


@app.delete("/api/catalog/{index}")
async def delete_slot(index: int):
    catalog = _session().catalog
    if catalog.get(index) is None:
        raise HTTPException(status_code=404, detail="No such gesture slot")
    catalog.remove(index)
    return {"status": "deleted"}


@app.get("/api/training-set")
async def training_set():
    store = _session().training_set
    return {
        "count": len(store),
        "mean_input_length": store.mean_input_length,
        "labels": [list(e.output) for e in store],
    }


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    session = _session()
    session.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        session.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        session = _session()
        await ws.send_json({
            "type": "connected",
            "mode": session.mode.value,
            "gestures": session.catalog.names,
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue

            data = json.loads(msg)
            kind = data.get("type")
            if kind == "ping":
                await ws.send_json({"type": "pong", "server_time": time.time()})
            elif kind in ("sample", "data"):
                try:
                    if kind == "sample":
                        event = session.on_axis(data["axis"], data["value"], timestamp=data.get("timestamp"))
                        events = [event] if event is not None else []
                    else:
                        events = session.on_data(data.get("data", {}), timestamp=data.get("timestamp"))
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    logger.warning("Rejected %s message: %s", kind, e)
                    await ws.send_json({"type": "error", "message": f"Invalid {kind}: {e}"})
                    continue
                for event in events:
                    await ws.send_json({"type": "gesture", **_event_dict(event)})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all WebSocket clients."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in list(state.clients):
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="imu-gestures server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8765, help="Port")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args()

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
