"""Relay state and connection lifecycle.

This module owns every piece of shared relay state in one object:

    - Connection registry: peer id -> live peer (and its WebSocket)
    - Room index: room id -> member peer ids
    - Pairing table: pending code -> issuing peer id

Key features:
    - Identity assignment on connect, with soft-token resumption
    - Full-roster broadcast to every room member on each join
    - Best-effort signal forwarding with a sender anti-spoofing check
    - One-shot pairing codes with bounded allocation
    - Disconnect cascade that clears a peer from every index in one step

Thread Safety:
    All state mutations are synchronous methods and never await, so on a
    single event loop each one runs to completion before any other
    connection's callback is scheduled.  It is NOT thread-safe for access
    from multiple threads or event loops.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent message delivery
    - A failed send to one subscriber never aborts delivery to the others
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fastapi import WebSocket

from signaling.config import AppSettings

from .identity import Identity, resolve_identity
from .pairing import PairingTable
from .rooms import RoomIndex
from .schemas import SignalMessage

logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================


@dataclass(eq=False)
class Peer:
    """One live connection.

    Attributes:
        id: Peer id, unique among registered peers.
        websocket: The peer's connection.
        rooms: Joined room ids (dict keys as an ordered set).
        last_activity: Monotonic time of the last inbound frame.
        pending_code: Pairing code this peer currently owns, if any.
        ready: Set once the ``init`` frame has been sent; until then the
            peer holds its id but receives no relayed frames.
    """
    id: str
    websocket: WebSocket
    rooms: Dict[str, None] = field(default_factory=dict)
    last_activity: float = field(default_factory=time.monotonic)
    pending_code: Optional[int] = None
    ready: bool = False

    def touch(self) -> None:
        self.last_activity = time.monotonic()


# =============================================================================
# Relay Manager
# =============================================================================


class RelayManager:
    """Registry, room index and pairing table for all connected peers.

    Methods that change state return what the caller needs to send, and the
    async helpers (:meth:`send`, :meth:`broadcast`) do the delivery.  State
    is never touched across an ``await``.
    """

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        """Initialize empty relay state."""
        settings = settings or AppSettings()
        self.settings = settings

        # peer id -> Peer
        self.peers: Dict[str, Peer] = {}

        # room id -> member peer ids
        self.rooms = RoomIndex()

        # code -> issuing peer id
        self.pairing = PairingTable(
            code_space=settings.pairing.code_space,
            max_attempts=settings.pairing.max_attempts,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def resolve_identity(self, token: Optional[str]) -> Identity:
        """Choose the id for a new connection from an optional soft token."""
        return resolve_identity(token, self.is_connected)

    def register(self, peer_id: str, websocket: WebSocket) -> Peer:
        """Add a newly opened connection to the registry.

        Raises:
            ValueError: ``peer_id`` is already registered.
        """
        if peer_id in self.peers:
            raise ValueError(f"Peer {peer_id} is already connected")
        peer = Peer(id=peer_id, websocket=websocket)
        self.peers[peer_id] = peer
        logger.info("# connected peer %s", peer_id)
        return peer

    def mark_ready(self, peer: Peer) -> None:
        """Allow frames to be relayed to ``peer`` (after its ``init`` frame)."""
        peer.ready = True

    def disconnect(self, peer: Peer) -> None:
        """Remove a peer from rooms, pairing table and registry.

        Rooms left empty are deleted.  Safe to call more than once.
        """
        for room_id in peer.rooms:
            self.rooms.discard(room_id, peer.id)
        peer.rooms.clear()

        if peer.pending_code is not None:
            self.pairing.revoke(peer.pending_code, peer.id)
            peer.pending_code = None

        if self.peers.get(peer.id) is peer:
            del self.peers[peer.id]

    def is_connected(self, peer_id: str) -> bool:
        return peer_id in self.peers

    def get_peer(self, peer_id: str) -> Optional[Peer]:
        return self.peers.get(peer_id)

    # =========================================================================
    # Rooms
    # =========================================================================

    def join(self, peer: Peer, room_id: str) -> List[str]:
        """Add a peer to a room.

        Returns:
            The room's full roster, joiner included.

        Raises:
            InvalidRoomId: ``room_id`` is not a UUID; nothing is changed.
        """
        roster = self.rooms.add(room_id, peer.id)
        peer.rooms[room_id] = None
        logger.debug("Peer %s joined room %s (%d members)", peer.id, room_id, len(roster))
        return roster

    def room_connections(self, room_id: str) -> List[WebSocket]:
        """WebSockets of every member currently subscribed to a room."""
        return [
            self.peers[peer_id].websocket
            for peer_id in self.rooms.members(room_id)
            if peer_id in self.peers
        ]

    # =========================================================================
    # Signal relay
    # =========================================================================

    def signal_target(self, peer: Peer, message: SignalMessage) -> Optional[Peer]:
        """Resolve the receiver of a signal sent by ``peer``.

        Returns:
            The receiving peer, or None when the sender id is spoofed or the
            receiver is not connected.
        """
        if message.senderPeerId != peer.id:
            logger.warning(
                "Dropping signal from %s claiming sender %s",
                peer.id, message.senderPeerId,
            )
            return None
        receiver = self.peers.get(message.receiverPeerId)
        if receiver is None or not receiver.ready:
            logger.debug("Dropping signal for peer %s: unknown or not ready", message.receiverPeerId)
            return None
        return receiver

    # =========================================================================
    # Pairing
    # =========================================================================

    def begin_handshake(self, peer: Peer) -> int:
        """Issue a fresh pairing code owned by ``peer``.

        A code the peer still holds from an earlier call is revoked first, so
        a peer owns at most one pending code.

        Raises:
            PairingCodesExhausted: No free code was found.
        """
        if peer.pending_code is not None:
            self.pairing.revoke(peer.pending_code, peer.id)
            peer.pending_code = None

        code = self.pairing.issue(peer.id)
        peer.pending_code = code
        logger.debug("Peer %s holds pairing code %04d", peer.id, code)
        return code

    def complete_handshake(self, peer: Peer, code: int) -> Optional[Peer]:
        """Redeem a pairing code on behalf of ``peer``.

        Returns:
            The code's owner, or None when the code is not pending.
        """
        owner_id = self.pairing.redeem(code)
        if owner_id is None:
            logger.debug("Peer %s tried unknown pairing code %s", peer.id, code)
            return None

        owner = self.peers.get(owner_id)
        if owner is None:
            # disconnect() revokes pending codes, so this is unreachable
            # unless state was edited by hand.
            logger.warning("Pairing code %s owned by disconnected peer %s", code, owner_id)
            return None

        if owner.pending_code == code:
            owner.pending_code = None
        logger.info("Paired peers %s and %s", owner.id, peer.id)
        return owner

    # =========================================================================
    # Delivery
    # =========================================================================

    async def send(self, websocket: WebSocket, frame: str) -> bool:
        """Send one text frame; returns False instead of raising on failure."""
        try:
            await websocket.send_text(frame)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    async def broadcast(self, frame: str, room_id: str) -> None:
        """Send a frame to every member of a room concurrently.

        Each send is independent: a dead subscriber is skipped and its own
        disconnect handler cleans it up.
        """
        connections = self.room_connections(room_id)
        if not connections:
            return

        await asyncio.gather(
            *[self.send(conn, frame) for conn in connections],
            return_exceptions=True
        )

    # =========================================================================
    # Introspection
    # =========================================================================

    def stats(self) -> dict:
        return {
            "peers": len(self.peers),
            "rooms": len(self.rooms),
            "pendingCodes": len(self.pairing),
        }

