"""
Publishing an authored transcript.

Payloads are broadcast cheapest first. After each broadcast the publisher
waits (bounded) for any payload broadcast so far to be mined; an earlier,
cheaper rung may still clear while a later one is pending. The first receipt
wins; the shared nonce voids every other rung. A rung that is refused or does
not clear in time moves the publisher up the ladder. Running out of rungs, or
of overall time, raises PublishExhausted.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from ..chain.capability import Receipt
from ..errors import BroadcastRejected, PublishExhausted, ResolutionError
from .transcript import TranscriptEntry

log = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TIMEOUT = 60.0
DEFAULT_OVERALL_TIMEOUT = 900.0


class Publisher:
    """Realizes transcripts on a chain capability."""

    def __init__(self, chain, attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
                 overall_timeout: float = DEFAULT_OVERALL_TIMEOUT):
        if attempt_timeout <= 0 or overall_timeout <= 0:
            raise ValueError("publish timeouts must be positive")
        self.chain = chain
        self.attempt_timeout = attempt_timeout
        self.overall_timeout = overall_timeout

    def publish(self, entry: TranscriptEntry) -> Receipt:
        """Publish `entry` and return the receipt of the rung that was mined."""
        hashes = entry.tx_hashes

        # Already mined: hand back the original receipt, broadcast nothing
        receipt = self._find_mined(entry, hashes, range(len(entry)))
        if receipt is not None:
            log.info("transcript already published in block %d (rung %d)",
                     receipt.block_number, receipt.payload_index)
            return receipt

        deadline = self.chain.clock() + self.overall_timeout
        broadcast: List[int] = []
        attempts = 0

        for index, (price, payload) in enumerate(zip(entry.gas_prices, entry.signed_payloads)):
            remaining = deadline - self.chain.clock()
            if remaining <= 0:
                log.warning("overall publish timeout reached before rung %d", index)
                break

            attempts += 1
            try:
                tx_hash = self.chain.broadcast(payload)
            except (BroadcastRejected, ResolutionError) as exc:
                log.warning("rung %d (%d wei) not accepted: %s", index, price, exc)
                # "nonce too low" and friends: an earlier rung may just have been mined
                receipt = self._find_mined(entry, hashes, broadcast)
                if receipt is not None:
                    return receipt
                continue

            if tx_hash.lower() != hashes[index].lower():
                log.warning("node reported hash %s for rung %d, expected %s", tx_hash, index, hashes[index])
            broadcast.append(index)
            log.info("rung %d broadcast at %d wei as %s", index, price, hashes[index])

            receipt = self._find_mined(entry, hashes, broadcast, min(self.attempt_timeout, remaining))
            if receipt is not None:
                return receipt
            log.warning("rung %d not mined within %.0fs, moving up the ladder", index, self.attempt_timeout)

        raise PublishExhausted(entry.gas_prices, attempts)

    def _find_mined(self, entry: TranscriptEntry, hashes: Sequence[str],
                    indices: Sequence[int], timeout: float = 0) -> Optional[Receipt]:
        """First receipt among the rungs in `indices`, waiting up to `timeout`."""
        indices = list(indices)
        found = self.chain.poll_receipts([hashes[i] for i in indices], timeout)
        if found is None:
            return None
        position, receipt = found
        return self._attribute(entry, receipt, indices[position])

    @staticmethod
    def _attribute(entry: TranscriptEntry, receipt: Receipt, index: int) -> Receipt:
        """Tag `receipt` with its rung and price."""
        receipt = replace(
            receipt,
            payload_index=index,
            gas_price=receipt.gas_price if receipt.gas_price is not None else entry.gas_prices[index],
        )
        if not receipt.succeeded:
            log.warning("rung %d was mined in block %d but the call reverted", index, receipt.block_number)
        return receipt


def publish(entry: TranscriptEntry, chain, attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
            overall_timeout: float = DEFAULT_OVERALL_TIMEOUT) -> Receipt:
    """Broadcast `entry` up its ladder until one payload is mined."""
    return Publisher(chain, attempt_timeout, overall_timeout).publish(entry)
