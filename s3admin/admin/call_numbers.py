"""
Call numbers: the anti-replay identifiers of cosigned administrative calls.

The Administration contract records the highest call number it has seen
claimed. A fresh number is one above that, or one above the last number this
process handed out for the same contract if that is higher (a submitted call
may not be mined yet).
"""

import logging
from typing import Dict, Optional

from ..errors import BindingError, ResolutionError

log = logging.getLogger(__name__)


class CallNumberProtocol:
    """Hands out strictly increasing call numbers per administration contract."""

    def __init__(self, chain):
        self.chain = chain
        self._issued: Dict[str, int] = {}

    @staticmethod
    def _key(admin_address: str) -> str:
        return admin_address.lower()

    def next_call_number(self, admin_address: Optional[str]) -> int:
        """Reserve and return the next unused call number for `admin_address`."""
        if admin_address is None:
            raise BindingError("no administration contract is bound")

        claimed = self.chain.read_max_claimed_call_number(admin_address)
        if isinstance(claimed, bool) or not isinstance(claimed, int) or claimed < 0:
            raise ResolutionError(f"maximumClaimedCallNumber returned {claimed!r}")

        key = self._key(admin_address)
        number = max(claimed, self._issued.get(key, 0)) + 1
        self._issued[key] = number
        log.debug("call number %d reserved for %s (on-chain max %d)", number, admin_address, claimed)
        return number

    def consume(self, admin_address: str, call_number: int):
        """Record that `call_number` was submitted and can never be handed out again."""
        key = self._key(admin_address)
        self._issued[key] = max(self._issued.get(key, 0), call_number)

    def release(self, admin_address: str, call_number: int):
        """Give back an unsubmitted reservation, if it is still the latest one."""
        key = self._key(admin_address)
        if self._issued.get(key) == call_number:
            self._issued[key] = call_number - 1
            log.debug("call number %d released for %s", call_number, admin_address)
