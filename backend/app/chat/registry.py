"""Presence registry: who is online, keyed by connection id.

The registry is the single source of truth for presence. All mutation goes
through identify/touch/remove; every value handed out is a snapshot, so
callers can never alter registry state through a returned object.

Thread Safety:
    Each operation holds the registry's lock for its whole read-modify-write,
    so a connection's own event sequence is linearizable even if handlers
    run on worker threads.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .schemas import ConnectionUser

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PresenceRegistry:
    """Maps live connection ids to user profiles."""

    def __init__(self) -> None:
        # connection_id -> ConnectionUser (insertion ordered)
        self._users: Dict[str, ConnectionUser] = {}
        self._lock = threading.Lock()

    def identify(
        self,
        connection_id: str,
        nickname: str,
        avatar_ref: str = "",
        now: Optional[datetime] = None,
    ) -> ConnectionUser:
        """Insert or replace the entry for a connection.

        No validation of the profile is done here; policy lives in the relay.

        Returns:
            Snapshot of the stored entry.
        """
        user = ConnectionUser(
            connectionId=connection_id,
            nickname=nickname,
            avatarRef=avatar_ref,
            lastActiveAt=now or _now(),
        )
        with self._lock:
            replaced = connection_id in self._users
            self._users[connection_id] = user
            snapshot = user.model_copy(deep=True)

        logger.info(
            f"[Presence] {'Updated' if replaced else 'Registered'} "
            f"{connection_id} as {nickname!r}"
        )
        return snapshot

    def touch(
        self, connection_id: str, now: Optional[datetime] = None
    ) -> Optional[ConnectionUser]:
        """Refresh lastActiveAt for a connection.

        Returns:
            Snapshot of the refreshed entry, or None if the connection never
            identified (not an error).
        """
        with self._lock:
            user = self._users.get(connection_id)
            if user is None:
                return None
            user.lastActiveAt = now or _now()
            return user.model_copy(deep=True)

    def remove(self, connection_id: str) -> Optional[ConnectionUser]:
        """Delete the entry for a connection.

        Returns:
            The removed entry if one existed, None otherwise. Callers use the
            truthiness of the result to decide whether to announce a leave.
        """
        with self._lock:
            return self._users.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[ConnectionUser]:
        with self._lock:
            user = self._users.get(connection_id)
            return user.model_copy(deep=True) if user else None

    def snapshot_all(self) -> List[ConnectionUser]:
        """Return the current roster as independent copies."""
        with self._lock:
            return [u.model_copy(deep=True) for u in self._users.values()]

    def clear(self) -> None:
        """Drop all presence (used by tests)."""
        with self._lock:
            self._users.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._users
