"""
JSON-RPC backend for the chain capability.
"""

import logging
from typing import Any, Optional, Tuple

import requests

from ..errors import BroadcastRejected, ResolutionError, ValidationError
from .abi import Function
from .capability import ChainCapability, Receipt
from .rawtx import raw_tx_hash

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0

# Error fragments nodes use when they refuse a raw transaction
KNOWN_TX_MARKERS = ("already known", "known transaction")


def parse_quantity(value: Any, field: str) -> int:
    """Decode a JSON-RPC quantity (0x-prefixed hex, or a plain int)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.startswith(("0x", "0X")):
                return int(text, 16)
            return int(text)
        except ValueError:
            pass
    raise ResolutionError(f"RPC field '{field}' was not numeric: {value!r}")


class RpcChain(ChainCapability):
    """Chain capability over an Ethereum JSON-RPC endpoint."""

    def __init__(self, url: str, controller: Optional[str] = None,
                 submit_gas: int = 300_000, session: Optional[requests.Session] = None,
                 poll_interval: float = 2.0):
        self.url = url
        self.controller = controller
        self.submit_gas = submit_gas
        self.session = session or requests.Session()
        self.poll_interval = poll_interval
        self._next_id = 1

    def _rpc(self, method: str, params: list) -> Any:
        """One JSON-RPC request; transport and node errors become ResolutionError."""
        body = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        self._next_id += 1
        try:
            response = self.session.post(self.url, json=body, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise ResolutionError(f"{method} to {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise ResolutionError(f"{method} returned a non-JSON body") from exc

        if not isinstance(payload, dict):
            raise ResolutionError(f"{method} returned a non-object payload")
        if payload.get("error") not in (None, {}):
            error = payload["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RpcError(method, message)
        if "result" not in payload:
            raise ResolutionError(f"{method} response is missing 'result'")
        return payload["result"]

    def call(self, address: str, function: Function, *args) -> Tuple[Any, ...]:
        """eth_call against the latest block."""
        data = "0x" + function.encode(*args).hex()
        result = self._rpc("eth_call", [{"to": address, "data": data}, "latest"])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise ResolutionError(f"{function.signature} at {address} returned {result!r}")
        if result == "0x" and function.outputs:
            raise ResolutionError(f"{function.signature} at {address} returned no data; is it the right contract?")
        return function.decode_output(bytes.fromhex(result[2:]))

    def submit_call(self, admin_address: str, call) -> str:
        """eth_sendTransaction from the controller account, signed by the node."""
        if self.controller is None:
            raise ValidationError("no controller account configured to submit from", field="controller")
        tx = {
            "from": self.controller,
            "to": admin_address,
            "gas": hex(self.submit_gas),
            "data": "0x" + call.encode().hex(),
        }
        tx_hash = self._rpc("eth_sendTransaction", [tx])
        log.info("%s call #%d submitted to %s as %s", call.method, call.call_number, admin_address, tx_hash)
        return tx_hash

    def broadcast(self, signed_payload: str) -> str:
        """eth_sendRawTransaction; "already known" counts as success."""
        try:
            return self._rpc("eth_sendRawTransaction", [signed_payload])
        except RpcError as exc:
            if any(marker in exc.message.lower() for marker in KNOWN_TX_MARKERS):
                return raw_tx_hash(signed_payload)
            raise BroadcastRejected(exc.message) from exc

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """eth_getTransactionReceipt; None while pending."""
        result = self._rpc("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        if not isinstance(result, dict) or result.get("blockNumber") is None:
            return None
        gas_price = result.get("effectiveGasPrice")
        return Receipt(
            tx_hash=result.get("transactionHash", tx_hash),
            block_number=parse_quantity(result["blockNumber"], "blockNumber"),
            status=parse_quantity(result.get("status", "0x1"), "status"),
            gas_price=parse_quantity(gas_price, "effectiveGasPrice") if gas_price is not None else None,
        )


class RpcError(ResolutionError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, message: str):
        self.method = method
        self.message = message
        super().__init__(f"{method} failed: {message}")
