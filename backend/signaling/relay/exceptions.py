"""Relay error taxonomy.

Each error that ends a connection carries the WebSocket close code and
reason the dispatcher uses when closing the offending peer.
"""


class RelayError(Exception):
    """Base class for relay failures that close the offending connection."""

    close_code: int = 1011
    close_reason: str = "Internal error"


class MalformedFrame(RelayError):
    """Frame could not be decoded into a known message shape."""

    close_code = 1007  # Invalid frame payload data
    close_reason = "Malformed message"


class InvalidRoomId(RelayError):
    """Room identifier on ``join`` is not a UUID string."""

    close_code = 1008  # Policy violation
    close_reason = "Invalid ID"

    def __init__(self, room_id: object) -> None:
        super().__init__(f"Invalid room id: {room_id!r}")
        self.room_id = room_id


class PairingCodesExhausted(RelayError):
    """No free pairing code was found within the attempt budget."""

    close_code = 1013  # Try again later
    close_reason = "No pairing code available"

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No free pairing code after {attempts} attempts")
        self.attempts = attempts
