"""
In-memory network simulation.

Models just enough of an Ethereum-like network to exercise the engine
deterministically: per-sender nonces, a mempool keyed by (sender, nonce)
with a minimum inclusion price and replacement rules, block production on
simulated time, and the three contracts the administration tooling talks to.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from ..errors import BroadcastRejected, ResolutionError, ValidationError
from .abi import ADMINISTRATION, SIMPLIFIED_TOKEN_LOGIC, TOKEN_FRONT, Function
from .capability import ChainCapability, Receipt
from .primitives import Ledger, hash_data
from .rawtx import decode_legacy_transaction

log = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 4
DEFAULT_BLOCK_TIME = 15.0
REPLACEMENT_BUMP = 1.10  # Minimum price increase to replace a pending tx
COSIGN_THRESHOLD = 2


class Revert(Exception):
    """A simulated contract refused a call."""


def derive_address(*parts) -> str:
    """Deterministic pseudo-address for simulated deployments."""
    return to_checksum_address("0x" + hash_data({"parts": [str(p) for p in parts]})[-40:])


# =============================================================================
# Simulated Contracts
# =============================================================================

class SimContract:
    """Base class: `view_<name>` answers reads, `call_<name>` handles transactions."""
    abi: Dict[str, Function] = {}

    def __init__(self, address: str):
        self.address = address

    def read(self, function: Function, args: Sequence[Any]) -> Tuple[Any, ...]:
        """Answer a read-only call from the matching `view_` method."""
        known = self.abi.get(function.name)
        if known is None or known.signature != function.signature:
            raise ResolutionError(f"{type(self).__name__} at {self.address} has no {function.signature}")
        view = getattr(self, f"view_{function.name}", None)
        if view is None:
            raise ResolutionError(f"{function.signature} is not a view function")
        return view(*args)

    def execute(self, network: 'SimulatedNetwork', sender: str, data: bytes):
        """Decode `data` and dispatch to the matching `call_` method."""
        selector, body = data[:4], data[4:]
        for function in self.abi.values():
            if function.selector == selector:
                break
        else:
            raise Revert("unknown function selector")
        handler = getattr(self, f"call_{function.name}", None)
        if handler is None:
            raise Revert(f"{function.name} is not callable")
        try:
            args = abi_decode(list(function.inputs), body)
        except DecodingError as exc:
            raise Revert(f"malformed arguments: {exc}")
        args = [
            to_checksum_address(a) if t == "address" else a
            for t, a in zip(function.inputs, args)
        ]
        handler(network, sender, *args)


class TokenFrontContract(SimContract):
    """Holds balances and delegates to a token logic."""
    abi = TOKEN_FRONT

    def __init__(self, address: str, owner: str, token_logic: Optional[str] = None,
                 balances: Optional[Dict[str, int]] = None):
        super().__init__(address)
        self.owner = owner
        self.token_logic = token_logic or derive_address("unbound-logic", address)
        self.balances: Dict[str, int] = {
            to_checksum_address(holder): amount for holder, amount in (balances or {}).items()
        }

    def view_tokenLogic(self):
        """Current logic address."""
        return (self.token_logic,)

    def view_owner(self):
        """Owner address."""
        return (self.owner,)

    def view_balanceOf(self, holder: str):
        """Balance of `holder`."""
        return (self.balances.get(to_checksum_address(holder), 0),)

    def move(self, src: str, dst: str, amount: int):
        """Move `amount` from `src` to `dst`; reverts if `src` is short."""
        if self.balances.get(src, 0) < amount:
            raise Revert("insufficient balance")
        self.balances[src] -= amount
        self.balances[dst] = self.balances.get(dst, 0) + amount


class SimplifiedTokenLogicContract(SimContract):
    """Owner-controlled logic with a resolver."""
    abi = SIMPLIFIED_TOKEN_LOGIC

    def __init__(self, address: str, owner: str, resolver: str, front: str):
        super().__init__(address)
        self.owner = owner
        self.resolver = resolver
        self.front = front

    def view_owner(self):
        """Owner address."""
        return (self.owner,)

    def view_resolver(self):
        return (self.resolver,)

    def view_front(self):
        return (self.front,)

    def call_setResolver(self, network, sender: str, resolver: str):
        """Owner-only resolver change."""
        if sender != self.owner:
            raise Revert("only the owner may set the resolver")
        self.resolver = resolver


class AdministrationContract(SimContract):
    """Two-of-three cosigned administration of one token."""
    abi = ADMINISTRATION

    def __init__(self, address: str, cosigners: Sequence[str],
                 target_front: Optional[str] = None, target_logic: Optional[str] = None):
        super().__init__(address)
        if len(cosigners) != 3:
            raise ValueError("an administration has exactly three cosigners")
        self.cosigners = [to_checksum_address(c) for c in cosigners]
        self.target_front = target_front
        self.target_logic = target_logic
        self.maximum_claimed = 0
        self.pending_calls: Dict[int, Dict[str, Any]] = {}
        self.executed: Dict[int, Tuple] = {}

    def view_maximumClaimedCallNumber(self):
        """Highest call number claimed so far."""
        return (self.maximum_claimed,)

    def view_targetLogic(self):
        return (self.target_logic or derive_address("none"),)

    def view_targetFront(self):
        return (self.target_front or derive_address("none"),)

    def view_cosignerA(self):
        return (self.cosigners[0],)

    def view_cosignerB(self):
        return (self.cosigners[1],)

    def view_cosignerC(self):
        return (self.cosigners[2],)

    def _cosign(self, sender: str, call_number: int, key: Tuple, effect):
        """Record `sender`'s signature on a call; run `effect` at the second signature."""
        if sender not in self.cosigners:
            raise Revert("sender is not a cosigner")
        if call_number in self.executed:
            raise Revert(f"call #{call_number} already executed")

        pending = self.pending_calls.get(call_number)
        if pending is None:
            if call_number <= self.maximum_claimed:
                raise Revert(f"call number {call_number} already claimed")
            self.pending_calls[call_number] = {"key": key, "signers": {sender}}
            self.maximum_claimed = call_number
            return
        if pending["key"] != key:
            raise Revert(f"call #{call_number} does not match the claimed call")
        if sender in pending["signers"]:
            raise Revert(f"{sender} already signed call #{call_number}")

        if len(pending["signers"]) + 1 >= COSIGN_THRESHOLD:
            effect()
            self.executed[call_number] = key
            del self.pending_calls[call_number]
        else:
            pending["signers"].add(sender)

    def call_bind(self, network, sender: str, call_number: int, logic: str, front: str):
        """Cosigned Bind of a front and logic."""
        def effect():
            self.target_logic = logic
            self.target_front = front
            front_contract = network.contracts.get(front)
            if isinstance(front_contract, TokenFrontContract):
                front_contract.token_logic = logic
            logic_contract = network.contracts.get(logic)
            if isinstance(logic_contract, SimplifiedTokenLogicContract):
                logic_contract.front = front

        self._cosign(sender, call_number, ("bind", logic, front), effect)

    def call_clawback(self, network, sender: str, call_number: int, src: str, dst: str, amount: int):
        """Cosigned transfer between two holders."""
        front = network.contracts.get(self.target_front) if self.target_front else None

        def effect():
            if not isinstance(front, TokenFrontContract):
                raise Revert("administration is not bound to a token")
            front.move(src, dst, amount)

        self._cosign(sender, call_number, ("clawback", src, dst, amount), effect)


# =============================================================================
# Network
# =============================================================================

class SimulatedNetwork(ChainCapability):
    """A single-node network with deterministic, simulated time."""

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, min_gas_price: int = 0,
                 underpriced_below: int = 0, block_time: float = DEFAULT_BLOCK_TIME,
                 controller: Optional[str] = None, current_time: float = 0.0,
                 poll_interval: float = 1.0):
        self.chain_id = chain_id
        self.min_gas_price = min_gas_price          # Pending txs below this never get mined
        self.underpriced_below = underpriced_below  # Broadcasts below this are refused outright
        self.block_time = block_time
        self.controller = controller
        self.current_time = current_time
        self.poll_interval = poll_interval

        self.ledger = Ledger(current_time)
        self.contracts: Dict[str, SimContract] = {}
        self.nonces: Dict[str, int] = {}
        self.pending: Dict[Tuple[str, int], Dict[str, Any]] = {}

        # Observation logs for tests
        self.broadcasts: List[str] = []
        self.submissions: List[Tuple[str, Any]] = []
        self.reads: List[Tuple[str, str]] = []
        self.failing_reads: Dict[Tuple[str, str], str] = {}

        self._deployments = 0
        self._next_block_at = current_time + block_time

    # -------------------------------------------------------------------------
    # Deployment
    # -------------------------------------------------------------------------

    def _new_address(self, kind: str) -> str:
        """Fresh deterministic contract address."""
        self._deployments += 1
        return derive_address(kind, self.chain_id, self._deployments)

    def deploy_token(self, owner: str, resolver: Optional[str] = None,
                     balances: Optional[Dict[str, int]] = None) -> Tuple[str, str]:
        """Deploy a TokenFront bound to a SimplifiedTokenLogic; returns (front, logic)."""
        owner = to_checksum_address(owner)
        front = self._new_address("front")
        logic = self._new_address("logic")
        self.contracts[front] = TokenFrontContract(front, owner, logic, balances)
        self.contracts[logic] = SimplifiedTokenLogicContract(
            logic, owner, resolver or derive_address("resolver", logic), front)
        return front, logic

    def deploy_administration(self, cosigners: Sequence[str], front: Optional[str] = None,
                              logic: Optional[str] = None) -> str:
        """Deploy an Administration contract with three cosigners; returns its address."""
        address = self._new_address("administration")
        self.contracts[address] = AdministrationContract(address, cosigners, front, logic)
        return address

    def contract(self, address: str) -> SimContract:
        """Contract deployed at `address`; ResolutionError if there is none."""
        contract = self.contracts.get(to_checksum_address(address))
        if contract is None:
            raise ResolutionError(f"no contract at {address}")
        return contract

    # -------------------------------------------------------------------------
    # Capability
    # -------------------------------------------------------------------------

    def call(self, address: str, function: Function, *args) -> Tuple[Any, ...]:
        """Read from a contract, honouring `failing_reads`."""
        self.reads.append((address, function.name))
        failure = self.failing_reads.get((address, function.name))
        if failure is not None:
            raise ResolutionError(failure)
        return self.contract(address).read(function, args)

    def submit_call(self, admin_address: str, call) -> str:
        """Queue a node-signed submission from the controller."""
        if self.controller is None:
            raise ValidationError("no controller account configured to submit from", field="controller")
        sender = to_checksum_address(self.controller)
        nonce = self._next_nonce(sender)
        record = {
            "sender": sender,
            "nonce": nonce,
            "to": to_checksum_address(admin_address),
            "data": call.encode().hex(),
            "gas_price": self.min_gas_price,
        }
        record["hash"] = hash_data(record)
        self.pending[(sender, nonce)] = record
        self.submissions.append((admin_address, call))
        return record["hash"]

    def send_as(self, sender: str, to: str, data: bytes) -> str:
        """Node-signed transaction from an arbitrary account (cosigners, owners)."""
        sender = to_checksum_address(sender)
        nonce = self._next_nonce(sender)
        record = {"sender": sender, "nonce": nonce, "to": to_checksum_address(to),
                  "data": data.hex(), "gas_price": self.min_gas_price}
        record["hash"] = hash_data(record)
        self.pending[(sender, nonce)] = record
        return record["hash"]

    def broadcast(self, signed_payload: str) -> str:
        """Accept a raw payload into the mempool or raise BroadcastRejected."""
        tx = decode_legacy_transaction(signed_payload)
        if tx.chain_id != self.chain_id:
            raise BroadcastRejected(f"invalid chain id {tx.chain_id}")
        if self.ledger.find_transaction(tx.tx_hash) is not None:
            return tx.tx_hash

        account_nonce = self.nonces.get(tx.sender, 0)
        if tx.nonce < account_nonce:
            raise BroadcastRejected("nonce too low")
        if tx.gas_price < self.underpriced_below:
            raise BroadcastRejected("transaction underpriced")

        existing = self.pending.get((tx.sender, tx.nonce))
        if existing is not None:
            if existing["hash"] == tx.tx_hash:
                return tx.tx_hash
            if tx.gas_price < existing["gas_price"] * REPLACEMENT_BUMP:
                raise BroadcastRejected("replacement transaction underpriced")
            log.debug("replacing %s with %s", existing["hash"], tx.tx_hash)

        self.pending[(tx.sender, tx.nonce)] = {
            "hash": tx.tx_hash,
            "sender": tx.sender,
            "nonce": tx.nonce,
            "to": tx.to,
            "data": tx.data.hex(),
            "gas_price": tx.gas_price,
        }
        self.broadcasts.append(tx.tx_hash)
        return tx.tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """Receipt built from the block that included `tx_hash`."""
        found = self.ledger.find_transaction(tx_hash)
        if found is None:
            return None
        block, record = found
        return Receipt(
            tx_hash=record["hash"],
            block_number=block.number,
            status=record["status"],
            gas_price=record["gas_price"],
        )

    def clock(self) -> float:
        """Simulated time."""
        return self.current_time

    def sleep(self, seconds: float):
        """Advance simulated time, mining any blocks due."""
        self.advance_time(seconds)

    # -------------------------------------------------------------------------
    # Block production
    # -------------------------------------------------------------------------

    def _next_nonce(self, sender: str) -> int:
        """First nonce of `sender` without a pending transaction."""
        nonce = self.nonces.get(sender, 0)
        while (sender, nonce) in self.pending:
            nonce += 1
        return nonce

    def advance_time(self, seconds: float) -> int:
        """Move simulated time forward, producing a block at every boundary crossed."""
        target = self.current_time + seconds
        mined = 0
        while self._next_block_at <= target:
            self.current_time = self._next_block_at
            self.mine()
            mined += 1
            self._next_block_at += self.block_time
        self.current_time = target
        return mined

    def mine(self):
        """Include every executable pending transaction in a new block."""
        included = []
        progressed = True
        while progressed:
            progressed = False
            for (sender, nonce), record in sorted(self.pending.items(), key=lambda kv: -kv[1]["gas_price"]):
                if nonce != self.nonces.get(sender, 0) or record["gas_price"] < self.min_gas_price:
                    continue
                del self.pending[(sender, nonce)]
                self.nonces[sender] = nonce + 1
                record = dict(record, status=self._execute(record))
                included.append(record)
                progressed = True
                break

        return self.ledger.append(included, self.current_time)

    def _execute(self, record: Dict[str, Any]) -> int:
        """Run a mined transaction against its contract; 1 on success, 0 on revert."""
        contract = self.contracts.get(record["to"]) if record["to"] else None
        if contract is None:
            return 1
        try:
            contract.execute(self, record["sender"], bytes.fromhex(record["data"]))
        except Revert as exc:
            log.debug("tx %s reverted: %s", record["hash"], exc)
            return 0
        return 1
