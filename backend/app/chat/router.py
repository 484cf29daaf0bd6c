"""Chat router providing the realtime WebSocket endpoint.

This module provides:
    - WebSocket /ws/chat: presence and message relay

Protocol Flow:
    1. Client connects → server assigns a connection id (not yet on the roster)
    2. Client sends: {type: "identify", nickname, avatarRef}
       → Server broadcasts: {type: "roster_updated", users: [...]}
       → Server broadcasts: {type: "message", kind: "system", content: "... joined"}
       → Server sends:      {type: "connected", connectionId} (sender only)
    3. Client sends: {type: "message", kind: "text" | "file", content, fileName?}
       → Server broadcasts: {type: "message", ..., sender: {...}}
    4. Client sends: {type: "heartbeat"}
       → Server sends: {type: "heartbeat_ack"} (sender only)
    5. On disconnect → Server broadcasts the leave notice and the new roster

Malformed events get {type: "error", error} on the offending connection only.
Any other fault while handling one event is logged and the connection stays
open.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .manager import manager, relay
from .schemas import ClientInputError, decode_event, error_frame

logger = logging.getLogger(__name__)

router = APIRouter()


async def _receive_text(websocket: WebSocket) -> str:
    """Wait for the next data frame, decoding binary frames as UTF-8."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chatroom.

    This endpoint handles the complete lifecycle of a single client. The
    connection id is assigned by the backend; clients never choose it.

    Args:
        websocket: The WebSocket connection.
    """
    connection_id = await manager.connect(websocket)
    logger.info(
        f"[WS] Connection accepted: {connection_id}. "
        f"{manager.get_connection_count()} open connections"
    )

    try:
        while True:
            raw = await _receive_text(websocket)

            try:
                event = decode_event(raw)
                logger.debug("[WS] %s received: type=%s", connection_id, event["type"])
                outbound = relay.handle(connection_id, event)
            except ClientInputError as e:
                logger.info(f"[WS] Rejected event from {connection_id}: {e}")
                await manager.send_to(connection_id, error_frame(str(e)))
                continue
            except Exception:
                logger.exception(f"[WS] Failed to handle event from {connection_id}")
                continue

            await manager.deliver(connection_id, outbound)

    except WebSocketDisconnect as e:
        logger.info(f"[WS] {connection_id} disconnected (code={e.code})")
    finally:
        manager.disconnect(connection_id)
        await manager.deliver(connection_id, relay.on_disconnect(connection_id))
