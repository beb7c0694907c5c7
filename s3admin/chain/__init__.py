"""
Chain access for the administration tooling.

This package provides:
- abi: function descriptors and encoding for the S3 contracts
- capability: the interface the engine calls through, and Receipt
- rpc: JSON-RPC backend
- simulated: in-memory network for tests and dry runs
"""

from .abi import (
    normalize_address,
    same_address,
    Function,
    ADMINISTRATION,
    TOKEN_FRONT,
    SIMPLIFIED_TOKEN_LOGIC,
)

from .capability import ChainCapability, Receipt

from .rawtx import raw_tx_hash, decode_legacy_transaction, DecodedTransaction

from .rpc import RpcChain

from .simulated import SimulatedNetwork

__all__ = [
    # ABI
    "normalize_address",
    "same_address",
    "Function",
    "ADMINISTRATION",
    "TOKEN_FRONT",
    "SIMPLIFIED_TOKEN_LOGIC",
    # Capability
    "ChainCapability",
    "Receipt",
    # Raw transactions
    "raw_tx_hash",
    "decode_legacy_transaction",
    "DecodedTransaction",
    # Backends
    "RpcChain",
    "SimulatedNetwork",
]
