"""Room index: room id -> ordered set of member peer ids.

A room exists only while it has members.  It is created by the first join
and removed the moment its last member leaves.  Member order is join order,
which is the order rosters are broadcast in.
"""
import logging
import re
from typing import Dict, List

from .exceptions import InvalidRoomId

logger = logging.getLogger(__name__)

# Canonical hyphenated UUID (versions 1-8) plus the nil and max UUIDs.
# Clients generate room ids with a UUID library, so other spellings
# (braces, urn: prefix, no hyphens) are rejected.
_UUID_RE = re.compile(
    r"(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
    r"|00000000-0000-0000-0000-000000000000"
    r"|ffffffff-ffff-ffff-ffff-ffffffffffff)",
    re.IGNORECASE,
)


def is_valid_room_id(room_id: object) -> bool:
    """Check that a room id is a UUID string."""
    return isinstance(room_id, str) and _UUID_RE.fullmatch(room_id) is not None


class RoomIndex:
    """Maps room ids to their members.

    Invariant: ``room_id in self`` if and only if the room has at least one
    member.  Dict keys are used as an insertion-ordered set.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, None]] = {}

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def add(self, room_id: str, peer_id: str) -> List[str]:
        """Add a peer to a room, creating the room if needed.

        Args:
            room_id: Room to join; must be a UUID string.
            peer_id: Joining peer.

        Returns:
            The room's full roster after the join.

        Raises:
            InvalidRoomId: ``room_id`` is not a UUID string. The index is
                left untouched.
        """
        if not is_valid_room_id(room_id):
            raise InvalidRoomId(room_id)

        members = self._rooms.get(room_id)
        if members is None:
            members = self._rooms[room_id] = {}
            logger.debug("Room %s created", room_id)
        members[peer_id] = None
        return list(members)

    def discard(self, room_id: str, peer_id: str) -> bool:
        """Remove a peer from a room, deleting the room once it is empty.

        Returns:
            True if the room was deleted by this call.
        """
        members = self._rooms.get(room_id)
        if members is None:
            return False
        members.pop(peer_id, None)
        if members:
            return False
        del self._rooms[room_id]
        logger.debug("Room %s removed (empty)", room_id)
        return True

    def members(self, room_id: str) -> List[str]:
        """Roster of a room in join order (empty if the room does not exist)."""
        return list(self._rooms.get(room_id, ()))
