"""WebSocket connection manager for the chatroom.

This module owns the live WebSocket connections and delivers the frames the
broadcast relay produces. Presence (who is identified) lives in the
PresenceRegistry; this module only knows which sockets are open.

Key features:
    - Server-assigned connection ids (never client-provided)
    - Broadcast to every open connection, including the sender
    - Concurrent fan-out with asyncio.gather()
    - Automatic dead connection cleanup
    - Total ordering of delivered batches across connections

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    Delivery batches are serialized by an asyncio.Lock, so every connection
    observes broadcast frames in the order the relay emitted them.
"""
import asyncio
import logging
import uuid
from typing import Dict, Iterable, List, Optional

from fastapi import WebSocket

from .registry import PresenceRegistry
from .relay import BroadcastRelay, Outbound, Target

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and fan-out for the chatroom.

    Note:
        This is a singleton-style global instance. All WebSocket handlers
        share the same ConnectionManager to maintain consistent state.
    """

    def __init__(self) -> None:
        """Initialize empty connection manager."""
        # connection_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}
        self._delivery_lock: Optional[asyncio.Lock] = None

    @property
    def delivery_lock(self) -> asyncio.Lock:
        # Created on first use so it binds to the running loop
        if self._delivery_lock is None:
            self._delivery_lock = asyncio.Lock()
        return self._delivery_lock

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket connection and assign its connection id.

        Returns:
            Backend-generated unique connection id.
        """
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        self.active_connections[connection_id] = websocket
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection's socket. Presence is removed by the relay."""
        self.active_connections.pop(connection_id, None)

    async def deliver(self, connection_id: str, outbound: Iterable[Outbound]) -> None:
        """Deliver a relay batch in order.

        Args:
            connection_id: The connection whose event produced the batch;
                receives SENDER frames.
            outbound: Frames in emission order.
        """
        outbound = list(outbound)
        if not outbound:
            return

        async with self.delivery_lock:
            for item in outbound:
                if item.target == Target.ALL:
                    await self.broadcast(item.payload)
                else:
                    await self.send_to(connection_id, item.payload)

    async def send_to(self, connection_id: str, message: dict) -> bool:
        """Send a message to a single connection, if it is still open."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        if not await self._safe_send(websocket, message):
            self._cleanup_connections([connection_id])
            return False
        return True

    async def broadcast(self, message: dict) -> None:
        """Broadcast a message to all open connections concurrently.

        Uses asyncio.gather() for concurrent message delivery. Connections
        whose send fails are removed from the fan-out set; their presence
        entries are cleared by their own disconnect handling.

        Args:
            message: JSON-serializable message to broadcast.
        """
        targets = list(self.active_connections.items())
        if not targets:
            return

        results = await asyncio.gather(
            *[self._safe_send(ws, message) for _, ws in targets],
            return_exceptions=True
        )

        failed = [
            connection_id for (connection_id, _), success in zip(targets, results)
            if success is not True
        ]
        self._cleanup_connections(failed)

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, failed_connections: List[str]) -> None:
        for connection_id in failed_connections:
            if self.active_connections.pop(connection_id, None) is not None:
                logger.debug(f"Removed dead connection {connection_id}")

    def get_connection_count(self) -> int:
        """Get the number of open connections."""
        return len(self.active_connections)

    def clear(self) -> None:
        """Forget all connections (used by tests)."""
        self.active_connections.clear()
        self._delivery_lock = None


# Global singleton instances used by all WebSocket handlers
registry = PresenceRegistry()
relay = BroadcastRelay(registry)
manager = ConnectionManager()
