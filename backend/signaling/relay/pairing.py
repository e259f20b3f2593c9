"""Pairing table for out-of-band rendezvous by short numeric code.

A code is either pending (present here, owner still connected) or absent.
Codes are single-use: a successful redeem removes the entry, and so does
the owner disconnecting first.
"""
import logging
import random
from typing import Dict, Optional

from .exceptions import PairingCodesExhausted

logger = logging.getLogger(__name__)

DEFAULT_CODE_SPACE = 9999
DEFAULT_MAX_ATTEMPTS = 64


class PairingTable:
    """Maps pending pairing codes to the id of the peer that issued them."""

    def __init__(
        self,
        code_space: int = DEFAULT_CODE_SPACE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.code_space = code_space
        self.max_attempts = max_attempts
        self._rng = rng or random.SystemRandom()
        self._owners: Dict[int, str] = {}

    def __contains__(self, code: int) -> bool:
        return code in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def issue(self, peer_id: str) -> int:
        """Allocate a free code for ``peer_id`` by bounded rejection sampling.

        Raises:
            PairingCodesExhausted: Every sampled code was already pending.
        """
        for _ in range(self.max_attempts):
            code = self._rng.randrange(self.code_space)
            if code not in self._owners:
                self._owners[code] = peer_id
                return code

        logger.warning(
            "Pairing code allocation failed: %d pending codes, %d attempts",
            len(self._owners), self.max_attempts,
        )
        raise PairingCodesExhausted(self.max_attempts)

    def redeem(self, code: int) -> Optional[str]:
        """Consume a pending code, returning its owner (None if absent)."""
        return self._owners.pop(code, None)

    def owner(self, code: int) -> Optional[str]:
        return self._owners.get(code)

    def revoke(self, code: int, peer_id: str) -> bool:
        """Drop ``code`` if it is still pending for ``peer_id``.

        Returns:
            True if an entry was removed.
        """
        if self.owner(code) != peer_id:
            return False
        del self._owners[code]
        return True
