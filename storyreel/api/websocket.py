"""WebSocket render endpoint.

The client sends one render payload as JSON and receives render events until
the terminal one, after which the server closes the socket. Closing the
socket early, or sending ``{"action": "cancel"}``, cancels the render.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from storyreel.api.render import get_render_pipeline
from storyreel.exceptions import InputError, RenderInProgressError
from storyreel.render.pipeline import RenderPipeline
from storyreel.render.supervisor import CancellationToken
from storyreel.schemas.render import RenderEvent
from storyreel.schemas.timeline import RenderPayload

router = APIRouter()
logger = logging.getLogger(__name__)


def create_error_message(error: str) -> dict[str, Any]:
    return RenderEvent(error=error).to_wire()


def parse_payload(data: Any) -> RenderPayload:
    """Validate an incoming payload.

    Raises:
        InputError: if the payload does not match the timeline schema.
    """
    try:
        return RenderPayload.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = " -> ".join(str(x) for x in first.get("loc", []))
        msg = first.get("msg", "Validation error")
        raise InputError(f"Invalid render payload: {loc}: {msg}" if loc else msg) from e


async def _watch_client(websocket: WebSocket, cancel: CancellationToken) -> None:
    """Cancel the render when the client disconnects or asks to cancel."""
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.warning("[WS] Ignoring non-JSON message during render")
                continue
            if isinstance(message, dict) and message.get("action") == "cancel":
                logger.info("[WS] Client requested cancel")
                cancel.cancel()
                return
    except WebSocketDisconnect:
        logger.info("[WS] Client disconnected, cancelling render")
        cancel.cancel()


@router.websocket("/render/ws")
async def render_websocket(
    websocket: WebSocket,
    pipeline: RenderPipeline = Depends(get_render_pipeline),
) -> None:
    await websocket.accept()

    try:
        payload = parse_payload(await websocket.receive_json())
    except WebSocketDisconnect:
        return
    except (InputError, ValueError) as e:
        message = e.message if isinstance(e, InputError) else f"Invalid render payload: {e}"
        logger.warning(f"[WS] {message}")
        await websocket.send_json(create_error_message(message))
        await websocket.close()
        return

    if pipeline.gate.busy:
        await websocket.send_json(create_error_message(RenderInProgressError().message))
        await websocket.close()
        return

    cancel = CancellationToken()
    watcher = asyncio.create_task(_watch_client(websocket, cancel))
    connected = True
    events = pipeline.render(payload, cancel=cancel)
    try:
        async for event in events:
            if connected:
                try:
                    await websocket.send_json(event.to_wire())
                except (WebSocketDisconnect, RuntimeError):
                    logger.info("[WS] Send failed, cancelling render")
                    connected = False
                    cancel.cancel()
            if event.is_terminal:
                break
    finally:
        await events.aclose()
        watcher.cancel()

    if connected and websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
