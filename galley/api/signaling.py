"""
galley/api/signaling.py
WebSocket relay for peer-to-peer call setup.

Clients send {type, roomId|callId, userId, data?, targetUserId?}. The relay
never inspects SDP or ICE payloads; it only routes them between the
participants of a room. Peers are identified by the userId they supply.
"""

import json
import math
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from galley.core.auth import resolve_user_id
from galley.core.errors import UnauthorizedError
from galley.core.logging import log_event
from galley.features.entitlements.service import consume, evaluate_gate
from galley.models.usage import Feature
from galley.realtime.hub import Participant, RoomFullError, hub

router = APIRouter()

RELAY_TYPES = ("offer", "answer", "ice-candidate")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def billable_minutes(seconds: float) -> int:
    """Whole minutes, rounded up."""
    return math.ceil(seconds / 60) if seconds > 0 else 0


def bill_call_minutes(user_id: str, participant: Participant) -> int:
    """Consume video_call_minutes for a finished participation.

    When the full amount no longer fits, the remaining allowance is taken so
    the counter lands on the limit.
    """
    minutes = billable_minutes(participant.elapsed_seconds())
    if not minutes:
        return 0
    decision = consume(user_id, Feature.VIDEO_CALL_MINUTES, minutes)
    if decision.allowed:
        return minutes
    leftover = decision.limit - decision.usage
    if leftover > 0:
        consume(user_id, Feature.VIDEO_CALL_MINUTES, leftover)
        return leftover
    return 0


class SignalingSession:
    """Per-socket state: which room and user this connection joined as."""

    def __init__(self, websocket: WebSocket, request_id: str):
        self.websocket = websocket
        self.request_id = request_id
        self.room_id: Optional[str] = None
        self.user_id: Optional[str] = None

    async def send_error(self, message: str, code: Optional[str] = None) -> None:
        payload = {"type": "error", "message": message}
        if code:
            payload["code"] = code
        await self.websocket.send_json(payload)

    async def handle(self, message: dict) -> None:
        message_type = message.get("type")
        room_id = message.get("roomId") or message.get("callId") or self.room_id
        user_id = message.get("userId") or self.user_id

        if message_type == "join":
            await self.join(room_id, user_id)
        elif message_type == "leave":
            await self.leave(room_id, user_id)
        elif message_type in RELAY_TYPES:
            await self.relay(message_type, room_id, user_id, message)
        elif message_type == "call-ended":
            await self.end_call(room_id, user_id, message.get("data") or {})
        else:
            log_event(
                "info",
                "signaling.unknown_type",
                request_id=self.request_id,
                user_id=user_id,
                call_id=room_id,
                event_type="signaling.unknown_type",
                extra={"type": message_type},
            )

    async def join(self, room_id: Optional[str], user_id: Optional[str]) -> None:
        if not room_id or not user_id:
            await self.send_error("roomId and userId are required", code="validation_error")
            return

        gate = evaluate_gate(user_id, Feature.VIDEO_CALL_MINUTES)
        if not gate.allowed:
            log_event(
                "info",
                "signaling.join_blocked",
                request_id=self.request_id,
                user_id=user_id,
                call_id=room_id,
                event_type="signaling.join_blocked",
            )
            await self.websocket.send_json(
                {
                    "type": "error",
                    "code": "quota_exceeded",
                    "message": gate.upgrade.message if gate.upgrade else "Usage limit reached",
                    "upgrade": gate.upgrade.model_dump() if gate.upgrade else None,
                }
            )
            return

        # a socket that switches rooms leaves the old one first
        if self.room_id and self.user_id and (self.room_id, self.user_id) != (room_id, user_id):
            await self.leave(self.room_id, self.user_id)

        try:
            existing = await hub.join(room_id, user_id, self.websocket)
        except RoomFullError:
            await self.send_error("Room is full", code="room_full")
            return

        self.room_id, self.user_id = room_id, user_id
        log_event(
            "info",
            "signaling.joined",
            request_id=self.request_id,
            user_id=user_id,
            call_id=room_id,
            event_type="signaling.joined",
            extra={"participants": len(existing) + 1},
        )
        await self.websocket.send_json({"type": "joined", "roomId": room_id, "userId": user_id, "timestamp": _now()})
        await self.websocket.send_json({"type": "existing-participants", "roomId": room_id, "participants": existing})
        await hub.broadcast(room_id, {"type": "user-joined", "roomId": room_id, "userId": user_id}, exclude=user_id)

    async def leave(self, room_id: Optional[str], user_id: Optional[str]) -> None:
        if not room_id or not user_id:
            return
        participant = await hub.leave(room_id, user_id)
        if (room_id, user_id) == (self.room_id, self.user_id):
            self.room_id = self.user_id = None
        if participant is None:
            return

        await hub.broadcast(room_id, {"type": "user-left", "roomId": room_id, "userId": user_id})
        minutes = bill_call_minutes(user_id, participant)
        log_event(
            "info",
            "signaling.left",
            request_id=self.request_id,
            user_id=user_id,
            call_id=room_id,
            event_type="signaling.left",
            extra={"minutes": minutes},
        )

    async def relay(self, message_type: str, room_id: Optional[str], user_id: Optional[str], message: dict) -> None:
        if not room_id:
            await self.send_error("roomId is required", code="validation_error")
            return
        outgoing = {"type": message_type, "roomId": room_id, "userId": user_id, "data": message.get("data")}
        target = message.get("targetUserId")
        if target:
            outgoing["targetUserId"] = target
            delivered = await hub.send_to(room_id, target, outgoing)
            if not delivered:
                log_event(
                    "debug",
                    "signaling.target_missing",
                    request_id=self.request_id,
                    user_id=user_id,
                    call_id=room_id,
                    event_type="signaling.target_missing",
                    extra={"target": target, "type": message_type},
                )
            return
        await hub.broadcast(room_id, outgoing, exclude=user_id)

    async def end_call(self, room_id: Optional[str], user_id: Optional[str], data: dict) -> None:
        if not room_id:
            return
        reason = data.get("reason") if isinstance(data, dict) else None
        await hub.broadcast(
            room_id,
            {
                "type": "call-ended",
                "roomId": room_id,
                "endedBy": user_id,
                "reason": reason or "ended",
                "timestamp": _now(),
            },
        )
        for participant in await hub.close_room(room_id):
            bill_call_minutes(participant.user_id, participant)
        if room_id == self.room_id:
            self.room_id = self.user_id = None
        log_event(
            "info",
            "signaling.call_ended",
            request_id=self.request_id,
            user_id=user_id,
            call_id=room_id,
            event_type="signaling.call_ended",
        )


def _header_identity(websocket: WebSocket) -> Optional[str]:
    """Default identity from headers; messages still carry their own userId."""
    try:
        return resolve_user_id(websocket.headers.get("Authorization", ""), websocket.headers.get("X-User-Id"))
    except UnauthorizedError:
        return None


@router.websocket("/functions/v1/video-call-signaling")
@router.websocket("/v1/ws/calls")
async def signaling_endpoint(websocket: WebSocket):
    """
    Call signaling socket.

    Message types:
    - join / leave
    - offer, answer, ice-candidate (to targetUserId or everyone else)
    - call-ended (broadcast, then the room is closed)
    """
    await websocket.accept()
    request_id = websocket.headers.get("X-Request-Id") or str(uuid4())
    session = SignalingSession(websocket, request_id)
    session.user_id = _header_identity(websocket)

    try:
        while True:
            raw_message = await websocket.receive_text()
            try:
                message = json.loads(raw_message)
            except ValueError:
                await session.send_error("Invalid message format")
                continue
            if not isinstance(message, dict):
                await session.send_error("Invalid message format")
                continue
            await session.handle(message)
    except WebSocketDisconnect:
        log_event(
            "info",
            "signaling.disconnected",
            request_id=request_id,
            user_id=session.user_id,
            call_id=session.room_id,
            event_type="signaling.disconnected",
        )
    finally:
        if session.room_id and session.user_id:
            await session.leave(session.room_id, session.user_id)
