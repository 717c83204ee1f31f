"""
galley/realtime/hub.py
In-memory room hub for call signaling.

One process-wide instance maps call rooms to their participants. Relay
messages go to one peer or to everyone else in the room; sockets that fail
on send are pruned.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import WebSocket

from galley.core.config import settings
from galley.core.metrics import (
    signaling_active_connections,
    signaling_active_rooms,
    signaling_connections_total,
    signaling_messages_relayed_total,
)

logger = logging.getLogger("galley")


class RoomFullError(Exception):
    """Raised by join() when the room is at its participant cap."""


@dataclass
class Participant:
    user_id: str
    websocket: WebSocket
    joined_at: float = field(default_factory=time.monotonic)

    def elapsed_seconds(self) -> float:
        return max(0.0, time.monotonic() - self.joined_at)


class CallHub:
    """
    Room-per-call relay hub.

    Maps room_id -> {user_id: Participant}. A user id appears at most once
    per room; re-joining replaces the previous socket.
    """

    def __init__(self, max_participants: int = 0):
        self.max_participants = max_participants
        self._rooms: Dict[str, Dict[str, Participant]] = {}
        # websocket -> (room_id, user_id)
        self._connections: Dict[WebSocket, Tuple[str, str]] = {}
        self._lock = asyncio.Lock()

    def _update_gauges(self) -> None:
        signaling_active_connections.set(len(self._connections))
        signaling_active_rooms.set(len(self._rooms))

    async def join(self, room_id: str, user_id: str, websocket: WebSocket) -> List[str]:
        """
        Register user_id in room_id.

        Returns:
            user ids already in the room, excluding the joiner
        """
        async with self._lock:
            room = self._rooms.setdefault(room_id, {})
            if user_id not in room and self.max_participants and len(room) >= self.max_participants:
                if not room:
                    del self._rooms[room_id]
                raise RoomFullError(f"Room {room_id} is full")

            previous = room.get(user_id)
            if previous is not None:
                self._connections.pop(previous.websocket, None)
            room[user_id] = Participant(user_id=user_id, websocket=websocket)
            self._connections[websocket] = (room_id, user_id)

            signaling_connections_total.inc()
            self._update_gauges()
            logger.debug(f"[HUB] {user_id} joined {room_id}. Size: {len(room)}")
            return [uid for uid in room if uid != user_id]

    async def leave(self, room_id: str, user_id: str) -> Optional[Participant]:
        """Remove a participant. Empty rooms are dropped."""
        async with self._lock:
            room = self._rooms.get(room_id)
            if not room or user_id not in room:
                return None
            participant = room.pop(user_id)
            self._connections.pop(participant.websocket, None)
            if not room:
                del self._rooms[room_id]
                logger.debug(f"[HUB] Cleaned up empty room {room_id}")
            self._update_gauges()
            return participant

    async def close_room(self, room_id: str) -> List[Participant]:
        async with self._lock:
            room = self._rooms.pop(room_id, {})
            for participant in room.values():
                self._connections.pop(participant.websocket, None)
            self._update_gauges()
            return list(room.values())

    def membership(self, websocket: WebSocket) -> Optional[Tuple[str, str]]:
        """(room_id, user_id) for a registered socket."""
        return self._connections.get(websocket)

    async def participants(self, room_id: str) -> List[str]:
        async with self._lock:
            return list(self._rooms.get(room_id, {}))

    async def send_to(self, room_id: str, user_id: str, message: dict) -> bool:
        async with self._lock:
            participant = self._rooms.get(room_id, {}).get(user_id)
        if participant is None:
            return False
        delivered = await self._deliver(room_id, [participant], message)
        return delivered == 1

    async def broadcast(self, room_id: str, message: dict, *, exclude: Optional[str] = None) -> int:
        """Send to everyone in the room except `exclude`. Returns deliveries."""
        async with self._lock:
            targets = [p for uid, p in self._rooms.get(room_id, {}).items() if uid != exclude]
        return await self._deliver(room_id, targets, message)

    async def _deliver(self, room_id: str, targets: List[Participant], message: dict) -> int:
        message_type = str(message.get("type") or "unknown")
        dead = []
        delivered = 0
        for participant in targets:
            try:
                await participant.websocket.send_json(message)
                delivered += 1
                signaling_messages_relayed_total.inc(labels={"type": message_type})
            except Exception as e:
                logger.debug(f"[HUB] Failed to send to {participant.user_id}: {e}")
                dead.append(participant)

        if dead:
            async with self._lock:
                room = self._rooms.get(room_id, {})
                for participant in dead:
                    if room.get(participant.user_id) is participant:
                        del room[participant.user_id]
                    self._connections.pop(participant.websocket, None)
                if room_id in self._rooms and not room:
                    del self._rooms[room_id]
                self._update_gauges()
            logger.debug(f"[HUB] Pruned {len(dead)} dead sockets from {room_id}")
        return delivered

    def reset(self) -> None:
        """Drop every room (tests)."""
        self._rooms.clear()
        self._connections.clear()
        self._update_gauges()


# Global singleton hub instance
hub = CallHub(max_participants=settings.SIGNALING_MAX_PARTICIPANTS)
