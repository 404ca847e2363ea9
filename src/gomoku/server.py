"""FastAPI transport: the game WebSocket and a read-only room inspection route."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect, status

from . import protocol
from .coordinator import SessionCoordinator
from .game import BLACK, COLOR_NAMES, WHITE
from .registry import RoomRegistry
from .scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)

AI_MOVE_DELAY = float(os.environ.get("GOMOKU_AI_DELAY", "0.2"))
ROOM_TTL_SECONDS = float(os.environ.get("GOMOKU_ROOM_TTL", str(60 * 30)))

# Browser pages only; other origins (extensions, file://) are turned away
ALLOWED_ORIGIN_SCHEMES = ("http://", "https://")


class WebSocketConnection:
    """One-way push channel for a socket.

    ``deliver`` may be called from any thread; payloads are queued on the
    socket's own loop and written by ``pump`` in the order they were handed in.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self.websocket = websocket
        self._loop = loop
        self._queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def deliver(self, payload: Dict[str, Any]) -> None:
        if self._open:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)

    def close(self) -> None:
        self._open = False

    async def pump(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_json(payload)
            except (RuntimeError, WebSocketDisconnect):
                self._open = False
                return


def create_app(coordinator: Optional[SessionCoordinator] = None) -> FastAPI:
    """Build the app around one coordinator and the registry it owns."""

    if coordinator is None:
        coordinator = SessionCoordinator(
            RoomRegistry(ttl_seconds=ROOM_TTL_SECONDS),
            AsyncioScheduler(),
            ai_delay=AI_MOVE_DELAY,
        )

    app = FastAPI(title="Gomoku", description="Five-in-a-row rooms over WebSockets")
    app.state.coordinator = coordinator

    @app.get("/api/room/{room_id}")
    async def inspect_room(room_id: str) -> Dict[str, object]:
        room = coordinator.registry.get(room_id)
        if room is None:
            raise HTTPException(status_code=404, detail="Room not found")
        snapshot = protocol.state_snapshot(room)
        del snapshot["type"], snapshot["youAre"]
        snapshot["state"] = room.state
        snapshot["availableSeats"] = [
            COLOR_NAMES[color] for color in (BLACK, WHITE) if room.seats[color] is None
        ]
        return snapshot

    @app.websocket("/ws")
    async def game_socket(websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin", "")
        if origin and not origin.startswith(ALLOWED_ORIGIN_SCHEMES):
            logger.info("Rejected connection from origin %s", origin)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await websocket.accept()
        logger.info("Connection opened from %s", websocket.client)
        connection = WebSocketConnection(websocket, asyncio.get_running_loop())
        writer = asyncio.create_task(connection.pump())
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                coordinator.handle(connection, raw)
        except WebSocketDisconnect:
            pass
        finally:
            connection.close()
            coordinator.disconnect(connection)
            writer.cancel()
            logger.info("Connection closed from %s", websocket.client)

    return app


app = create_app()
