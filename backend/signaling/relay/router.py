"""Relay router providing the signaling WebSocket endpoint.

This module provides:
    - WebSocket /{path}: signaling connection (any path is accepted)

Protocol Flow:
    1. Client connects -> server resolves identity from the ``uid`` cookie
       -> Server sends: {type: "init", yourPeerId}
    2. Client sends: {type: "join", room}
       -> Server broadcasts: {type: "joined", otherPeerIds: [...]} to the room
    3. Client sends: {type: "signal", room, senderPeerId, receiverPeerId, data}
       -> Server forwards the frame unchanged to receiverPeerId
    4. Client sends: {type: "handshake-begin"}
       -> Server sends: {type: "handshake-response", yourId, code}
    5. Client sends: {type: "handshake-join", code}
       -> Server sends both peers: {type: "handshake-complete", yourId, otherId}
    6. Client sends: {type: "ping"} -> activity timestamp only, no reply
    7. On disconnect -> peer is removed from rooms, pairing table and registry

Errors close only the offending connection:
    - undecodable frame       -> 1007 "Malformed message"
    - non-UUID room on join   -> 1008 "Invalid ID"
    - pairing codes exhausted -> 1013 "No pairing code available"
"""
import logging
from typing import Union

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .exceptions import MalformedFrame, RelayError
from .identity import build_identity_cookie
from .manager import Peer, RelayManager
from .schemas import (
    HandshakeBeginMessage,
    HandshakeCompleteMessage,
    HandshakeJoinMessage,
    HandshakeResponseMessage,
    InitMessage,
    JoinedMessage,
    JoinMessage,
    PingMessage,
    SignalMessage,
    decode_message,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay(websocket: WebSocket) -> RelayManager:
    """Relay state owned by the application serving this connection."""
    return websocket.app.state.relay


async def _receive_frame(websocket: WebSocket) -> Union[str, bytes]:
    """Wait for the next text or binary frame."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    if message.get("text") is not None:
        return message["text"]
    return message.get("bytes") or b""


async def dispatch(relay: RelayManager, peer: Peer, raw: Union[str, bytes]) -> None:
    """Route one inbound frame.

    Raises:
        RelayError: The frame requires closing this connection.
    """
    peer.touch()
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrame("Binary frame is not UTF-8") from exc

    message = decode_message(raw)
    logger.debug(
        "Peer %s sent %s", peer.id, message.type if message is not None else "unknown type"
    )

    if isinstance(message, JoinMessage):
        roster = relay.join(peer, message.room)
        await relay.broadcast(
            JoinedMessage(otherPeerIds=roster).to_frame(), message.room
        )

    elif isinstance(message, SignalMessage):
        receiver = relay.signal_target(peer, message)
        if receiver is not None:
            # Forward the frame exactly as received
            await relay.send(receiver.websocket, raw)

    elif isinstance(message, PingMessage):
        pass

    elif isinstance(message, HandshakeBeginMessage):
        code = relay.begin_handshake(peer)
        await relay.send(
            peer.websocket,
            HandshakeResponseMessage(yourId=peer.id, code=code).to_frame(),
        )

    elif isinstance(message, HandshakeJoinMessage):
        owner = relay.complete_handshake(peer, message.code)
        if owner is not None:
            await relay.send(
                peer.websocket,
                HandshakeCompleteMessage(yourId=peer.id, otherId=owner.id).to_frame(),
            )
            await relay.send(
                owner.websocket,
                HandshakeCompleteMessage(yourId=owner.id, otherId=peer.id).to_frame(),
            )

    # Unknown message types decode to None and are ignored.


@router.websocket("/{path:path}")
async def websocket_signaling_endpoint(websocket: WebSocket, path: str) -> None:
    """WebSocket endpoint for one signaling peer.

    Handles the complete lifecycle for a single client: identity resolution,
    the ``init`` frame, the message loop and the disconnect cascade.

    Args:
        websocket: The WebSocket connection.
        path: Request path; ignored, every path serves the same relay.
    """
    relay = get_relay(websocket)
    identity_settings = relay.settings.identity

    identity = relay.resolve_identity(websocket.cookies.get(identity_settings.cookie_name))
    headers = []
    if identity.issued:
        cookie = build_identity_cookie(identity.peer_id, identity_settings)
        headers.append((b"set-cookie", cookie.encode("latin-1")))

    # Reserve the id before the first await so no other connection can take it
    peer = relay.register(identity.peer_id, websocket)

    close_code, close_reason = 1000, ""
    try:
        await websocket.accept(headers=headers)
        await relay.send(websocket, InitMessage(yourPeerId=peer.id).to_frame())
        relay.mark_ready(peer)

        while True:
            raw = await _receive_frame(websocket)
            try:
                await dispatch(relay, peer, raw)
            except RelayError as exc:
                logger.warning("Closing peer %s: %s", peer.id, exc)
                close_code, close_reason = exc.close_code, exc.close_reason
                try:
                    await websocket.close(code=exc.close_code, reason=exc.close_reason)
                except RuntimeError:
                    # Already closed underneath us
                    pass
                break

    except WebSocketDisconnect as exc:
        close_code, close_reason = exc.code, exc.reason or ""

    finally:
        relay.disconnect(peer)
        logger.info(
            "# disconnect peer %s code: %s reason: %s", peer.id, close_code, close_reason
        )
