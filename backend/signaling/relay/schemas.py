"""Wire protocol for the signaling relay.

Every frame is a UTF-8 JSON object whose ``type`` field selects one of a
closed set of messages.  Field names are camelCase on the wire so they stay
compatible with WebRTC replication clients that speak this protocol.

Inbound frames are decoded with :func:`decode_message`:
    - unknown ``type`` values decode to ``None`` (ignored by the dispatcher)
    - anything else that does not fit the schema raises :class:`MalformedFrame`
"""
import json
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .exceptions import MalformedFrame


class MessageType(str, Enum):
    """Discriminator values for the ``type`` field.

    Attributes:
        INIT: Server tells a fresh connection its peer id.
        JOIN: Client enters a room.
        JOINED: Server broadcasts a room's full roster.
        SIGNAL: Opaque negotiation payload relayed between two peers.
        PING: Client keepalive.
        HANDSHAKE_BEGIN: Client asks for a pairing code.
        HANDSHAKE_RESPONSE: Server hands out a pairing code.
        HANDSHAKE_JOIN: Client redeems a pairing code.
        HANDSHAKE_COMPLETE: Server introduces the two paired peers.
    """
    INIT = "init"
    JOIN = "join"
    JOINED = "joined"
    SIGNAL = "signal"
    PING = "ping"
    HANDSHAKE_BEGIN = "handshake-begin"
    HANDSHAKE_RESPONSE = "handshake-response"
    HANDSHAKE_JOIN = "handshake-join"
    HANDSHAKE_COMPLETE = "handshake-complete"


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_frame(self) -> str:
        """Serialize to the JSON text sent over the socket."""
        return self.model_dump_json()


# =============================================================================
# Client -> server
# =============================================================================


class JoinMessage(_Message):
    type: Literal["join"] = "join"
    # Validated as a UUID by the room index so a bad id closes the
    # connection as a protocol violation rather than a malformed frame.
    room: Any


class SignalMessage(_Message):
    """Negotiation payload; ``data`` is never inspected by the server."""

    type: Literal["signal"] = "signal"
    room: str
    senderPeerId: str
    receiverPeerId: str
    data: str


class PingMessage(_Message):
    type: Literal["ping"] = "ping"


class HandshakeBeginMessage(_Message):
    type: Literal["handshake-begin"] = "handshake-begin"


class HandshakeJoinMessage(_Message):
    type: Literal["handshake-join"] = "handshake-join"
    code: int


InboundMessage = Annotated[
    Union[
        JoinMessage,
        SignalMessage,
        PingMessage,
        HandshakeBeginMessage,
        HandshakeJoinMessage,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)

INBOUND_TYPES = frozenset(
    t.value for t in (
        MessageType.JOIN,
        MessageType.SIGNAL,
        MessageType.PING,
        MessageType.HANDSHAKE_BEGIN,
        MessageType.HANDSHAKE_JOIN,
    )
)


# =============================================================================
# Server -> client
# =============================================================================


class InitMessage(_Message):
    type: Literal["init"] = "init"
    yourPeerId: str


class JoinedMessage(_Message):
    type: Literal["joined"] = "joined"
    otherPeerIds: List[str]


class HandshakeResponseMessage(_Message):
    type: Literal["handshake-response"] = "handshake-response"
    yourId: str
    code: int


class HandshakeCompleteMessage(_Message):
    type: Literal["handshake-complete"] = "handshake-complete"
    yourId: str
    otherId: str


# =============================================================================
# Decoding
# =============================================================================


def decode_message(raw: Union[str, bytes]) -> Optional[BaseModel]:
    """Decode one inbound frame.

    Args:
        raw: Frame body as received (binary frames are read as UTF-8).

    Returns:
        The typed message, or None when ``type`` is not a client->server tag.

    Raises:
        MalformedFrame: The frame is not a JSON object with a string ``type``
            or does not match the message's fields.
    """
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedFrame(f"Frame is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise MalformedFrame("Frame is not an object with a string 'type'")

    if payload["type"] not in INBOUND_TYPES:
        return None

    try:
        return _inbound_adapter.validate_python(payload)
    except ValidationError as exc:
        raise MalformedFrame(
            f"Invalid '{payload['type']}' message: {exc.error_count()} error(s)"
        ) from exc
