"""Wire models for the chat relay.

Every WebSocket frame is a JSON object whose ``type`` field names the event.

Client → server:
    - identify:  {nickname, avatarRef}
    - message:   {kind: "text" | "file", content, fileName?}
    - heartbeat: {}

Server → client:
    - roster_updated: {users: ConnectionUser[]}  (full replacement, not a diff)
    - message:        Message fields, flattened
    - heartbeat_ack:  {}
    - connected:      {connectionId}  (sender only, after identify)
    - error:          {error}         (sender only)
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator


class ClientInputError(ValueError):
    """A malformed or unknown event from a client.

    Reported to the offending connection only; never changes presence.
    """


class EventType(str, Enum):
    """Value of the ``type`` field on every frame."""
    IDENTIFY = "identify"
    MESSAGE = "message"
    HEARTBEAT = "heartbeat"
    ROSTER_UPDATED = "roster_updated"
    HEARTBEAT_ACK = "heartbeat_ack"
    CONNECTED = "connected"
    ERROR = "error"


class MessageKind(str, Enum):
    """Kind of chat message.

    Attributes:
        TEXT: Plain text body.
        FILE: Link to an uploaded file; content is its public URL.
        SYSTEM: Server-generated notice (join/leave). Never sent by clients.
    """
    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionUser(BaseModel):
    """Presence entry for one live connection.

    Attributes:
        connectionId: Server-assigned id, unique per live connection.
        nickname: Display name; not guaranteed unique.
        avatarRef: Avatar URL or inline data URI.
        lastActiveAt: Time of the last inbound event from this connection.
    """
    connectionId: str = Field(..., description="Server-assigned connection id")
    nickname: str = Field(..., description="Display name shown in UI")
    avatarRef: str = Field(default="", description="Avatar URL or data URI")
    lastActiveAt: datetime = Field(default_factory=_utcnow)


class Message(BaseModel):
    """One chat or system event as delivered to clients.

    ``sender`` is a snapshot taken when the message was relayed; later
    presence changes never alter it. It is absent for system messages.
    ``fileName`` is present only for file messages.
    """
    kind: MessageKind = Field(default=MessageKind.TEXT)
    content: str = Field(..., description="Text body, file URL, or notice")
    fileName: Optional[str] = Field(default=None)
    sender: Optional[ConnectionUser] = Field(default=None)
    sentAt: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Inbound payloads
# =============================================================================


class IdentifyPayload(BaseModel):
    nickname: str
    avatarRef: str = ""


class ChatPayload(BaseModel):
    """A client chat message; system messages cannot be sent by clients."""
    kind: Literal["text", "file"] = "text"
    content: str
    fileName: Optional[str] = None

    @model_validator(mode="after")
    def _file_name_matches_kind(self) -> "ChatPayload":
        if self.kind == "file" and not self.fileName:
            raise ValueError("fileName is required for file messages")
        if self.kind == "text" and self.fileName is not None:
            raise ValueError("fileName is only allowed on file messages")
        return self


def decode_event(raw: str) -> Dict[str, Any]:
    """Parse one text frame into an event dict.

    Raises:
        ClientInputError: If the frame is not a JSON object with a string type.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ClientInputError(f"Invalid JSON: {e.msg}") from e
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ClientInputError("Invalid event format: type is required")
    return data


def parse_payload(model, data: Dict[str, Any]):
    """Validate an event dict against an inbound payload model."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "payload"
        raise ClientInputError(f"Invalid {data.get('type')} event: {field}: {first['msg']}") from e


# =============================================================================
# Outbound frames
# =============================================================================


def roster_frame(users) -> Dict[str, Any]:
    return {
        "type": EventType.ROSTER_UPDATED.value,
        "users": [u.model_dump(mode="json") for u in users],
    }


def message_frame(message: Message) -> Dict[str, Any]:
    return {"type": EventType.MESSAGE.value, **message.model_dump(mode="json", exclude_none=True)}


def heartbeat_ack_frame() -> Dict[str, Any]:
    return {"type": EventType.HEARTBEAT_ACK.value}


def connected_frame(connection_id: str) -> Dict[str, Any]:
    return {"type": EventType.CONNECTED.value, "connectionId": connection_id}


def error_frame(error: str) -> Dict[str, Any]:
    return {"type": EventType.ERROR.value, "error": error}
