"""
Block and ledger primitives backing the simulated network.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


GENESIS_PARENT = "0x" + "0" * 64


def hash_data(data: dict) -> str:
    """Deterministic 32-byte hash of a JSON-able dictionary."""
    canonical = json.dumps(data, sort_keys=True, separators=(',', ':'))
    return "0x" + hashlib.sha256(canonical.encode()).hexdigest()


# =============================================================================
# Block Structure
# =============================================================================

@dataclass
class Block:
    """A mined block: an ordered list of transaction records."""
    number: int
    parent_hash: str
    timestamp: float
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    block_hash: str = ""

    def __post_init__(self):
        if not self.block_hash:
            self.block_hash = self.compute_hash()

    def compute_hash(self) -> str:
        """Hash over number, parent, timestamp and transaction hashes."""
        return hash_data({
            "number": self.number,
            "parent_hash": self.parent_hash,
            "timestamp": self.timestamp,
            "transactions": [tx["hash"] for tx in self.transactions],
        })


# =============================================================================
# Ledger
# =============================================================================

class Ledger:
    """Append-only sequence of blocks, starting from an empty genesis."""

    def __init__(self, current_time: float = 0.0):
        self.blocks: List[Block] = [
            Block(number=0, parent_hash=GENESIS_PARENT, timestamp=current_time)
        ]
        self._tx_index: Dict[str, Tuple[int, int]] = {}

    @property
    def head(self) -> Block:
        """The latest block."""
        return self.blocks[-1]

    @property
    def head_hash(self) -> str:
        """Hash of the latest block."""
        return self.head.block_hash

    def append(self, transactions: List[Dict[str, Any]], timestamp: float) -> Block:
        """Seal `transactions` into a new block."""
        block = Block(
            number=len(self.blocks),
            parent_hash=self.head_hash,
            timestamp=timestamp,
            transactions=list(transactions),
        )
        for i, tx in enumerate(block.transactions):
            self._tx_index[tx["hash"]] = (block.number, i)
        self.blocks.append(block)
        return block

    def find_transaction(self, tx_hash: str) -> Optional[Tuple[Block, Dict[str, Any]]]:
        """Block and record of a mined transaction, if any."""
        location = self._tx_index.get(tx_hash)
        if location is None:
            return None
        number, i = location
        block = self.blocks[number]
        return block, block.transactions[i]
