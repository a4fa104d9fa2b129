"""Pumps live snapshots to a WebSocket until the client goes away."""
import asyncio
import logging
from typing import Any, Callable

from fastapi import WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from app.api.deps import user_from_token
from app.core.errors import AuthenticationError
from app.db.subscriptions import snapshot_stream

logger = logging.getLogger("darbar.ws")

# Pushed by a watcher to end the stream with a policy-violation close
CLOSE = object()


async def authenticate_socket(websocket: WebSocket, token: str):
    """Returns the CurrentUser for `token`, or closes the socket and returns None."""
    try:
        return user_from_token(token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None


async def stream_to_socket(websocket: WebSocket, start: Callable[[Callable[[Any], None]], Any], name: str):
    """
    Sends every item pushed by the watcher built by `start` as JSON, until the
    client disconnects or the watcher pushes CLOSE. Listeners are torn down
    either way.
    """
    stream = snapshot_stream(start)

    async def pump():
        async for item in stream:
            if item is CLOSE:
                logger.info(f"Closing {name}: access revoked")
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                return
            await websocket.send_json(jsonable_encoder(item))

    async def drain():
        # Inbound messages are ignored; receiving is how a disconnect is noticed
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"Client disconnected from {name}")

    tasks = [asyncio.create_task(pump()), asyncio.create_task(drain())]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"{name} stream failed: {e}")
        await stream.aclose()
