"""
Live presence tracking for meeting rooms.

The tracker is the source of truth for "who is connected right now". It is
independent from a meeting's invited participants and from the durable
join/leave list stored on the meeting row. State lives in process memory:
one tracker per process, created at startup and cleared on shutdown.
"""
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Identity(Protocol):
    full_name: Optional[str]
    email: Optional[str]


@dataclass(frozen=True)
class PresenceRecord:
    """A user holding an open channel to a meeting."""

    user_id: str
    full_name: Optional[str]
    email: Optional[str]
    channel_id: str
    joined_at: datetime
    last_seen: datetime

    def to_event(self) -> dict:
        """Wire representation used in participants_updated events."""
        return {
            "userId": self.user_id,
            "fullName": self.full_name,
            "email": self.email,
            "channelId": self.channel_id,
            "joinedAt": self.joined_at,
            "lastSeen": self.last_seen,
        }


class PresenceTracker:
    """
    Registry of live participants keyed by (meeting_id, user_id).

    Mutations run under a single lock so that the "remove only if the channel
    still matches" check in deregister() cannot interleave with a register()
    for the same user. Broadcasts happen after the lock is released.

    Args:
        broadcaster: Object exposing an async ``emit_participants(meeting_id,
            participants)``; usually the ConnectionManager. Optional so the
            tracker can run standalone.
    """

    def __init__(self, broadcaster=None):
        self._broadcaster = broadcaster
        self._lock = threading.Lock()
        self._meetings: Dict[str, Dict[str, PresenceRecord]] = {}
        # channel_id -> (meeting_id, user_id), used on ungraceful disconnects
        self._channels: Dict[str, Tuple[str, str]] = {}

    async def register(
        self,
        meeting_id: str,
        user_id: str,
        identity: Identity,
        channel_id: str,
    ) -> List[PresenceRecord]:
        """Add or replace the user's record and broadcast the updated roster."""
        now = datetime.now(timezone.utc)
        with self._lock:
            roster = self._meetings.setdefault(meeting_id, {})
            existing = roster.get(user_id)
            if existing is not None:
                record = replace(
                    existing,
                    channel_id=channel_id,
                    full_name=identity.full_name or existing.full_name,
                    email=identity.email or existing.email,
                    last_seen=now,
                )
            else:
                record = PresenceRecord(
                    user_id=user_id,
                    full_name=identity.full_name,
                    email=identity.email,
                    channel_id=channel_id,
                    joined_at=now,
                    last_seen=now,
                )
            roster[user_id] = record
            self._channels[channel_id] = (meeting_id, user_id)
            snapshot = list(roster.values())

        logger.info(f"Presence: user {user_id} joined meeting {meeting_id} via {channel_id}")
        await self._broadcast(meeting_id, snapshot)
        return snapshot

    async def deregister(self, meeting_id: str, user_id: str, channel_id: str) -> bool:
        """
        Remove the user's record if it still belongs to ``channel_id``.

        A disconnect from an old channel must not remove the record created by
        a newer connection of the same user.

        Returns:
            True if a record was removed
        """
        with self._lock:
            if self._channels.get(channel_id) == (meeting_id, user_id):
                del self._channels[channel_id]

            roster = self._meetings.get(meeting_id)
            if roster is None:
                return False

            removed = False
            record = roster.get(user_id)
            if record is not None and record.channel_id == channel_id:
                del roster[user_id]
                removed = True

            snapshot = list(roster.values())
            if not roster:
                del self._meetings[meeting_id]

        if removed:
            logger.info(f"Presence: user {user_id} left meeting {meeting_id}")
            await self._broadcast(meeting_id, snapshot)
        return removed

    async def disconnect(self, channel_id: str) -> bool:
        """Deregister whatever the channel last joined (connection lost)."""
        with self._lock:
            entry = self._channels.get(channel_id)
        if entry is None:
            return False
        meeting_id, user_id = entry
        return await self.deregister(meeting_id, user_id, channel_id)

    def list(self, meeting_id: str) -> List[PresenceRecord]:
        with self._lock:
            return list(self._meetings.get(meeting_id, {}).values())

    def channel_location(self, channel_id: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            return self._channels.get(channel_id)

    def meeting_count(self) -> int:
        with self._lock:
            return len(self._meetings)

    def clear(self) -> None:
        with self._lock:
            self._meetings.clear()
            self._channels.clear()

    async def _broadcast(self, meeting_id: str, roster: List[PresenceRecord]) -> None:
        if self._broadcaster is None:
            return
        try:
            await self._broadcaster.emit_participants(
                meeting_id, [record.to_event() for record in roster]
            )
        except Exception as e:
            logger.warning(f"Roster broadcast for meeting {meeting_id} failed: {e}")
