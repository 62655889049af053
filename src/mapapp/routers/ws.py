"""WebSocket bridge between the map engine and browser map clients.

Server -> client:
    {"type": "map.command", "command": {...}}   one per map capability call
    {"type": "view.state", "state": {...}}      after parameter/fetch/session changes

Client -> server:
    {"type": "map.event", "event": "load" | "style.load", "map": <map id>}
    {"type": "view", "visible": true | false}   true restarts a live session
    {"type": "ping"}
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from mapengine.session.capability import LIFECYCLE_EVENTS
from mapengine.session.controller import SESSION_STATE
from mapengine.session.fetcher import FETCH_STATUS
from mapengine.session.params import PARAMS_CHANGED
from mapengine.view import MapView

router = APIRouter(prefix="/ws", tags=["websocket"])


class ConnectionManager:
    """Manages WebSocket connections and the outgoing message queue.

    ``enqueue`` is synchronous so it can serve as the map command sink; the
    ``pump`` task drains the queue and broadcasts in order.
    """

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self.outbox: asyncio.Queue = asyncio.Queue()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_str = json.dumps(message)
        disconnected = set()

        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message_str)
                except Exception as e:
                    logger.warning(f"Failed to send to websocket: {e}")
                    disconnected.add(connection)

            self.active_connections -= disconnected

    async def send_to(self, websocket: WebSocket, message: dict):
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")

    def enqueue(self, command: dict) -> None:
        """Queue a map command for broadcast."""
        self.outbox.put_nowait({"type": "map.command", "command": command})

    def enqueue_message(self, message: dict) -> None:
        self.outbox.put_nowait(message)

    async def pump(self):
        """Broadcast queued messages forever (run as a background task)."""
        while True:
            message = await self.outbox.get()
            await self.broadcast(message)
            self.outbox.task_done()


# Fallback when the app lifespan has not installed its own manager
manager = ConnectionManager()


def get_manager(websocket: WebSocket) -> ConnectionManager:
    return getattr(websocket.app.state, "connections", None) or manager


def start_view_state_bridge(view: MapView, conn: ConnectionManager) -> None:
    """Push a fresh view snapshot to clients whenever the view changes."""

    def _push(_msg: dict) -> None:
        conn.enqueue_message({"type": "view.state", "state": view.snapshot()})

    for event_type in (PARAMS_CHANGED, FETCH_STATUS, SESSION_STATE):
        view.bus.subscribe(event_type, _push)


@router.websocket("/map")
async def websocket_map(websocket: WebSocket):
    """Map client channel: commands out, lifecycle signals in."""
    manager = get_manager(websocket)
    await manager.connect(websocket)
    await manager.send_to(
        websocket,
        {
            "type": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to(
                    websocket, {"type": "error", "message": "Invalid JSON"}
                )
                continue
            await handle_client_message(websocket, message)
    except WebSocketDisconnect:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict):
    """Handle messages from map clients."""
    manager = get_manager(websocket)
    msg_type = message.get("type") if isinstance(message, dict) else None
    view: MapView | None = getattr(websocket.app.state, "view", None)

    if msg_type == "ping":
        await manager.send_to(
            websocket,
            {"type": "pong", "timestamp": datetime.now(timezone.utc).isoformat()},
        )
    elif view is None:
        await manager.send_to(
            websocket, {"type": "error", "message": "Map view not available"}
        )
    elif msg_type == "map.event":
        event = message.get("event")
        if event not in LIFECYCLE_EVENTS:
            await manager.send_to(
                websocket, {"type": "error", "message": f"Unknown map event: {event}"}
            )
            return
        map_id = message.get("map")
        if not isinstance(map_id, str):
            await manager.send_to(
                websocket, {"type": "error", "message": "map.event requires a map id"}
            )
            return
        delivered = view.map_event(event, map_id)
        if not delivered:
            logger.debug(f"Map event {event} from {map_id} not delivered")
    elif msg_type == "view":
        if message.get("visible"):
            # A client joining a live session needs the full command stream.
            if view.controller.instance is not None:
                view.hide()
            view.show()
        else:
            view.hide()
        await manager.send_to(websocket, {"type": "view.state", "state": view.snapshot()})
    else:
        await manager.send_to(
            websocket,
            {"type": "error", "message": f"Unknown message type: {msg_type}"},
        )
