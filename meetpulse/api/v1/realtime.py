"""
Realtime meeting channel.

A client opens one WebSocket, authenticates with its access token and then
joins a meeting room by sending::

    {"event": "join_meeting", "data": {"meetingId": "<uuid>"}}

While joined, the user is listed by the presence tracker and receives the
room's events (``participants_updated``, ``phaseChanged``, ``meetingUpdated``).
Each client frame is answered with ``<event>_ack``.
"""
import json
import logging
from typing import Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from meetpulse.schemas.auth import TokenData
from meetpulse.services.auth import decode_access_token
from meetpulse.services.presence import PresenceTracker
from meetpulse.services.realtime import ChannelEvent, ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

JOIN_MEETING = "join_meeting"
LEAVE_MEETING = "leave_meeting"


def extract_token(websocket: WebSocket) -> Optional[str]:
    """
    Find the access token of a connecting client.

    Looked up in the ``auth`` query parameter, then the Authorization header,
    then the ``token`` query parameter. A ``Bearer`` prefix is ignored.
    """
    raw = (
        websocket.query_params.get("auth")
        or websocket.headers.get("authorization")
        or websocket.query_params.get("token")
    )
    if not raw:
        return None
    token = raw.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token or None


def normalize_meeting_id(value) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return str(UUID(str(value)))
    except ValueError:
        return str(value)


class MeetingChannel:
    """One authenticated client connection."""

    def __init__(
        self,
        websocket: WebSocket,
        identity: TokenData,
        connections: ConnectionManager,
        presence: PresenceTracker,
    ):
        self.websocket = websocket
        self.identity = identity
        self.user_id = identity.user_id
        self.channel_id = uuid4().hex
        self.connections = connections
        self.presence = presence

    @property
    def meeting_id(self) -> Optional[str]:
        location = self.presence.channel_location(self.channel_id)
        return location[0] if location else None

    async def ack(self, event: str, data: dict) -> None:
        await self.connections.send(self.websocket, f"{event}_ack", data)

    async def join(self, meeting_id: Optional[str]) -> None:
        if meeting_id is None:
            await self.ack(JOIN_MEETING, {"success": False, "error": "Meeting ID required"})
            return

        previous = self.meeting_id
        if previous is not None and previous != meeting_id:
            await self._leave_room(previous)

        self.connections.join(meeting_id, self.channel_id, self.websocket)
        roster = await self.presence.register(
            meeting_id, self.user_id, self.identity, self.channel_id
        )
        participants = [record.to_event() for record in roster]
        await self.ack(
            JOIN_MEETING,
            {
                "success": True,
                "meetingId": meeting_id,
                "participants": participants,
                "totalParticipants": len(participants),
            },
        )

    async def leave(self, meeting_id: Optional[str]) -> None:
        meeting_id = meeting_id or self.meeting_id
        if meeting_id is None:
            await self.ack(LEAVE_MEETING, {"success": False, "error": "Meeting ID required"})
            return
        await self._leave_room(meeting_id)
        await self.ack(LEAVE_MEETING, {"success": True, "meetingId": meeting_id})

    async def close(self) -> None:
        """Connection is gone: drop it from every room and from the roster."""
        self.connections.drop(self.channel_id)
        await self.presence.disconnect(self.channel_id)

    async def _leave_room(self, meeting_id: str) -> None:
        self.connections.leave(meeting_id, self.channel_id)
        await self.presence.deregister(meeting_id, self.user_id, self.channel_id)

    async def handle(self, frame: dict) -> None:
        event = frame.get("event")
        data = frame.get("data") or {}
        meeting_id = normalize_meeting_id(data.get("meetingId")) if isinstance(data, dict) else None

        if event == JOIN_MEETING:
            await self.join(meeting_id)
        elif event == LEAVE_MEETING:
            await self.leave(meeting_id)
        else:
            await self.connections.send(
                self.websocket, "error", {"message": f"Unknown event: {event}"}
            )


async def _reject(websocket: WebSocket, message: str, code: str) -> None:
    await ConnectionManager.send(
        websocket, ChannelEvent.AUTH_ERROR, {"message": message, "code": code}
    )
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


@router.websocket("/ws/meetings")
async def meetings_channel(websocket: WebSocket):
    """Authenticated realtime channel for meeting rooms."""
    await websocket.accept()

    token = extract_token(websocket)
    if token is None:
        logger.warning("Realtime connection without token rejected")
        await _reject(websocket, "Authentication token missing", "TokenMissing")
        return

    identity = decode_access_token(token)
    if identity is None or identity.user_id is None:
        logger.warning("Realtime connection with invalid token rejected")
        await _reject(websocket, "Authentication failed", "InvalidToken")
        return

    channel = MeetingChannel(
        websocket,
        identity,
        websocket.app.state.connections,
        websocket.app.state.presence,
    )
    logger.info(f"Realtime channel {channel.channel_id} opened for user {channel.user_id}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            try:
                frame = json.loads(message["text"]) if message.get("text") else None
            except json.JSONDecodeError:
                frame = None
            if not isinstance(frame, dict):
                await channel.connections.send(websocket, "error", {"message": "Malformed frame"})
                continue
            await channel.handle(frame)
    except WebSocketDisconnect:
        logger.info(f"Realtime channel {channel.channel_id} closed by client")
    finally:
        await channel.close()
