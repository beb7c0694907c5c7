"""
The chain capability: everything the engine needs from a live network.

Implementations must treat every read as fallible and slow; callers get
ResolutionError when a read fails and BroadcastRejected when the network
refuses a signed payload.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from ..errors import ResolutionError
from .abi import ADMINISTRATION, TOKEN_FRONT, Function

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0


@dataclass(frozen=True)
class Receipt:
    """Inclusion record for a mined transaction."""
    tx_hash: str
    block_number: int
    status: int = 1
    gas_price: Optional[int] = None
    payload_index: Optional[int] = None  # Rung of the ladder, set by the publisher

    @property
    def succeeded(self) -> bool:
        """True unless the transaction reverted."""
        return self.status == 1

    def to_dict(self) -> dict:
        """JSON form printed by the publish command."""
        return {
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
            "status": self.status,
            "gasPrice": self.gas_price,
            "payloadIndex": self.payload_index,
        }


class ChainCapability:
    """Base class for chain backends.

    Subclasses provide `call`, `submit_call`, `broadcast` and `get_receipt`;
    the typed reads and the bounded receipt poll are built on those.
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def call(self, address: str, function: Function, *args) -> Tuple[Any, ...]:
        """Read-only contract call."""
        raise NotImplementedError

    def submit_call(self, admin_address: str, call) -> str:
        """Send a cosigned call to an Administration contract; returns the tx hash once broadcast."""
        raise NotImplementedError

    def broadcast(self, signed_payload: str) -> str:
        """Broadcast a raw signed transaction; returns its hash."""
        raise NotImplementedError

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """Receipt if the transaction is mined, else None. Never blocks."""
        raise NotImplementedError

    def clock(self) -> float:
        """Seconds on a monotonic clock."""
        return time.monotonic()

    def sleep(self, seconds: float):
        """Block for `seconds`."""
        time.sleep(seconds)

    # -------------------------------------------------------------------------
    # Derived reads
    # -------------------------------------------------------------------------

    def read_max_claimed_call_number(self, admin_address: str) -> int:
        """Highest call number claimed on an Administration contract."""
        (value,) = self.call(admin_address, ADMINISTRATION["maximumClaimedCallNumber"])
        return value

    def read_token_logic_address(self, front_address: str) -> str:
        """Logic address a TokenFront currently delegates to."""
        (logic,) = self.call(front_address, TOKEN_FRONT["tokenLogic"])
        return logic

    def poll_receipts(self, tx_hashes: Sequence[str], timeout: float) -> Optional[Tuple[int, Receipt]]:
        """Wait up to `timeout` seconds for any of `tx_hashes` to be mined.

        Returns the index and receipt of the first one found; a timeout of 0
        checks once. A failed lookup counts as not mined yet.
        """
        deadline = self.clock() + timeout
        while True:
            for index, tx_hash in enumerate(tx_hashes):
                try:
                    receipt = self.get_receipt(tx_hash)
                except ResolutionError as exc:
                    log.debug("receipt lookup for %s failed: %s", tx_hash, exc)
                    continue
                if receipt is not None:
                    return index, receipt
            remaining = deadline - self.clock()
            if remaining <= 0:
                return None
            self.sleep(min(self.poll_interval, remaining))
