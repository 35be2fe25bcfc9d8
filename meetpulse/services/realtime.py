"""
Realtime fan-out over WebSockets.

Channels are grouped into rooms, one room per meeting. Every outgoing frame is
a JSON envelope ``{"event": <name>, "data": {...}}``. Delivery is best effort:
a failing socket is logged and skipped, never reported to the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class ChannelEvent:
    """Names of server -> client events."""

    PARTICIPANTS_UPDATED = "participants_updated"
    PHASE_CHANGED = "phaseChanged"
    MEETING_UPDATED = "meetingUpdated"
    AUTH_ERROR = "auth_error"


class ConnectionManager:
    """Tracks open channels per meeting room and broadcasts events to them."""

    def __init__(self):
        self._rooms: Dict[str, Dict[str, WebSocket]] = {}

    def join(self, meeting_id: str, channel_id: str, websocket: WebSocket) -> None:
        self._rooms.setdefault(meeting_id, {})[channel_id] = websocket

    def leave(self, meeting_id: str, channel_id: str) -> None:
        room = self._rooms.get(meeting_id)
        if room is None:
            return
        room.pop(channel_id, None)
        if not room:
            del self._rooms[meeting_id]

    def drop(self, channel_id: str) -> None:
        """Remove a channel from every room (connection closed)."""
        for meeting_id in list(self._rooms):
            self.leave(meeting_id, channel_id)

    def clear(self) -> None:
        self._rooms.clear()

    @staticmethod
    async def send(websocket: WebSocket, event: str, data: Dict[str, Any]) -> None:
        """Send a single event to one channel."""
        await websocket.send_json({"event": event, "data": jsonable_encoder(data)})

    async def emit(self, meeting_id: str, event: str, data: Dict[str, Any]) -> int:
        """
        Broadcast an event to every channel in a meeting room.

        Returns:
            Number of channels the event was delivered to
        """
        sockets = list(self._rooms.get(meeting_id, {}).items())
        delivered = 0
        for channel_id, websocket in sockets:
            try:
                await self.send(websocket, event, data)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Broadcast of {event} to channel {channel_id} "
                    f"in meeting {meeting_id} failed: {e}"
                )
        return delivered

    async def emit_participants(self, meeting_id: str, participants: Iterable[Dict[str, Any]]) -> int:
        participants = list(participants)
        return await self.emit(
            meeting_id,
            ChannelEvent.PARTICIPANTS_UPDATED,
            {
                "meetingId": meeting_id,
                "participants": participants,
                "totalParticipants": len(participants),
            },
        )

    async def emit_phase_change(self, meeting_id: str, phase: str, status: str) -> int:
        return await self.emit(
            meeting_id,
            ChannelEvent.PHASE_CHANGED,
            {"meetingId": meeting_id, "phase": phase, "status": status},
        )

    async def emit_meeting_updated(
        self,
        meeting_id: str,
        update_type: str,
        user_id: str,
        timestamp: Optional[datetime] = None,
    ) -> int:
        return await self.emit(
            meeting_id,
            ChannelEvent.MEETING_UPDATED,
            {
                "meetingId": meeting_id,
                "type": update_type,
                "userId": user_id,
                "timestamp": timestamp or datetime.now(timezone.utc),
            },
        )
