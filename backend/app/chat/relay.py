"""Broadcast relay: the per-connection event state machine.

Each connection moves through ``Open -> Identified -> Closed``. One handler
per transition takes the event, updates the presence registry and returns
the frames to deliver, tagged with their audience. Handlers never touch the
transport, so they can be exercised without sockets; the connection manager
performs delivery in the order returned.

Transitions:
    - identify:   roster_updated (all), join notice (all), connected (sender)
    - message:    message with frozen sender snapshot (all), or silently
                  dropped when the connection never identified
    - heartbeat:  heartbeat_ack (sender) if identified, else nothing
    - disconnect: leave notice (all), roster_updated (all) if identified
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from app.config import ChatConfig, get_config

from .registry import PresenceRegistry
from .schemas import (
    ChatPayload,
    ClientInputError,
    EventType,
    IdentifyPayload,
    Message,
    MessageKind,
    connected_frame,
    heartbeat_ack_frame,
    message_frame,
    parse_payload,
    roster_frame,
)

logger = logging.getLogger(__name__)


class Target(str, Enum):
    """Audience of an outbound frame."""
    ALL = "all"
    SENDER = "sender"


@dataclass(frozen=True)
class Outbound:
    target: Target
    payload: Dict[str, Any]


class BroadcastRelay:
    """Turns inbound connection events into outbound deliveries.

    Args:
        registry: Presence registry this relay owns the mutation of.
        chat_config: Relay policy; read from the app config when omitted.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        chat_config: Optional[ChatConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.registry = registry
        self._chat_config = chat_config
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def chat_config(self) -> ChatConfig:
        return self._chat_config or get_config().chat

    def handle(self, connection_id: str, event: Dict[str, Any]) -> List[Outbound]:
        """Dispatch one decoded event to its transition handler.

        Raises:
            ClientInputError: If the event type is unknown or its payload
                is malformed.
        """
        event_type = event.get("type")
        if event_type == EventType.IDENTIFY.value:
            return self.on_identify(connection_id, event)
        if event_type == EventType.MESSAGE.value:
            return self.on_message(connection_id, event)
        if event_type == EventType.HEARTBEAT.value:
            return self.on_heartbeat(connection_id)
        raise ClientInputError(f"Unknown event type: {event_type!r}")

    # =========================================================================
    # Transitions
    # =========================================================================

    def on_identify(self, connection_id: str, event: Dict[str, Any]) -> List[Outbound]:
        payload = parse_payload(IdentifyPayload, event)
        self._check_nickname(payload.nickname)

        now = self._clock()
        self.registry.identify(connection_id, payload.nickname, payload.avatarRef, now=now)

        notice = self._system_message(
            self.chat_config.join_template.format(nickname=payload.nickname), now
        )
        return [
            Outbound(Target.ALL, roster_frame(self.registry.snapshot_all())),
            Outbound(Target.ALL, message_frame(notice)),
            Outbound(Target.SENDER, connected_frame(connection_id)),
        ]

    def on_message(self, connection_id: str, event: Dict[str, Any]) -> List[Outbound]:
        payload = parse_payload(ChatPayload, event)

        now = self._clock()
        sender = self.registry.touch(connection_id, now=now)
        if sender is None:
            logger.debug(f"[Relay] Dropped message from unidentified connection {connection_id}")
            return []

        message = Message(
            kind=MessageKind(payload.kind),
            content=payload.content,
            fileName=payload.fileName,
            sender=sender,
            sentAt=now,
        )
        return [Outbound(Target.ALL, message_frame(message))]

    def on_heartbeat(self, connection_id: str) -> List[Outbound]:
        if self.registry.touch(connection_id, now=self._clock()) is None:
            return []
        return [Outbound(Target.SENDER, heartbeat_ack_frame())]

    def on_disconnect(self, connection_id: str) -> List[Outbound]:
        removed = self.registry.remove(connection_id)
        if removed is None:
            return []

        logger.info(f"[Relay] {removed.nickname!r} ({connection_id}) left")
        notice = self._system_message(
            self.chat_config.leave_template.format(nickname=removed.nickname), self._clock()
        )
        return [
            Outbound(Target.ALL, message_frame(notice)),
            Outbound(Target.ALL, roster_frame(self.registry.snapshot_all())),
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_nickname(self, nickname: str) -> None:
        config = self.chat_config
        if config.require_nickname and not nickname.strip():
            raise ClientInputError("Invalid identify event: nickname is required")
        if config.max_nickname_length and len(nickname) > config.max_nickname_length:
            raise ClientInputError(
                f"Invalid identify event: nickname exceeds "
                f"{config.max_nickname_length} characters"
            )

    @staticmethod
    def _system_message(text: str, now: datetime) -> Message:
        return Message(kind=MessageKind.SYSTEM, content=text, sentAt=now)
