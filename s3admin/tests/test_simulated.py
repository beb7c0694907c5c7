"""
Tests for the simulated network and its contracts.
"""

import pytest
from eth_account import Account

from s3admin.admin import BindCall, ClawbackCall
from s3admin.chain import ADMINISTRATION, TOKEN_FRONT, SimulatedNetwork
from s3admin.errors import BroadcastRejected, ResolutionError
from s3admin.transactions import Action, author

from conftest import TOKEN_ADMIN_KEY

GWEI = 10 ** 9
TARGET = "0x" + "12" * 20


def signed(prices, nonce=0, chain_id=4):
    """A ladder from the token admin to a plain address."""
    return author(Action(to=TARGET), TOKEN_ADMIN_KEY, prices, nonce=nonce, chain_id=chain_id)


class TestMempool:
    """Broadcast acceptance rules."""

    def test_accepted_then_mined_on_block_boundary(self, network):
        """A broadcast is mined at the next 15 second boundary."""
        entry = signed([GWEI])
        tx_hash = network.broadcast(entry.signed_payloads[0])
        network.advance_time(14)
        assert network.get_receipt(tx_hash) is None
        network.advance_time(1)
        assert network.get_receipt(tx_hash).block_number == 1

        block, record = network.ledger.find_transaction(tx_hash)
        assert block.number == 1
        assert block.timestamp == 15
        assert record["gas_price"] == GWEI

    def test_wrong_chain(self, network):
        """A payload for another chain is refused."""
        with pytest.raises(BroadcastRejected, match="chain id"):
            network.broadcast(signed([GWEI], chain_id=1).signed_payloads[0])

    def test_underpriced(self):
        """A payload below the floor is refused."""
        network = SimulatedNetwork(underpriced_below=2 * GWEI)
        with pytest.raises(BroadcastRejected, match="underpriced"):
            network.broadcast(signed([GWEI]).signed_payloads[0])

    def test_replacement_needs_price_bump(self, network):
        """Replacing a pending tx needs a 10% higher price."""
        entry = signed([100 * GWEI, 105 * GWEI, 120 * GWEI])
        network.broadcast(entry.signed_payloads[0])
        with pytest.raises(BroadcastRejected, match="replacement"):
            network.broadcast(entry.signed_payloads[1])
        network.broadcast(entry.signed_payloads[2])
        network.mine()
        assert network.get_receipt(entry.tx_hashes[2]) is not None
        assert network.get_receipt(entry.tx_hashes[0]) is None

    def test_nonce_too_low_after_mining(self, network):
        """A rung for a spent nonce is refused."""
        entry = signed([GWEI, 2 * GWEI])
        network.broadcast(entry.signed_payloads[0])
        network.mine()
        with pytest.raises(BroadcastRejected, match="nonce too low"):
            network.broadcast(entry.signed_payloads[1])

    def test_rebroadcast_of_mined_tx_returns_hash(self, network):
        """Re-broadcasting a mined payload returns its hash."""
        entry = signed([GWEI])
        tx_hash = network.broadcast(entry.signed_payloads[0])
        network.mine()
        assert network.broadcast(entry.signed_payloads[0]) == tx_hash

    def test_min_price_holds_back_inclusion(self):
        """A pending tx below the minimum price is never mined."""
        network = SimulatedNetwork(min_gas_price=2 * GWEI)
        entry = signed([GWEI])
        network.broadcast(entry.signed_payloads[0])
        network.advance_time(600)
        assert network.get_receipt(entry.tx_hashes[0]) is None

    def test_future_nonce_waits_for_gap(self, network):
        """A tx with a future nonce waits for the gap to fill."""
        later = signed([GWEI], nonce=1)
        network.broadcast(later.signed_payloads[0])
        network.mine()
        assert network.get_receipt(later.tx_hashes[0]) is None
        network.broadcast(signed([GWEI], nonce=0).signed_payloads[0])
        network.mine()
        assert network.get_receipt(later.tx_hashes[0]) is not None

    def test_ledger_stays_linked(self, network):
        """Each block links to its parent."""
        network.advance_time(100)
        assert len(network.ledger.blocks) == 7
        blocks = network.ledger.blocks
        assert all(b.parent_hash == a.block_hash for a, b in zip(blocks, blocks[1:]))


class TestContracts:
    """The simulated Administration, TokenFront and SimplifiedTokenLogic."""

    def test_reads(self, network, admin_address, cosigners, token):
        """Contract views return the deployed values."""
        front, logic = token
        assert network.call(admin_address, ADMINISTRATION["cosignerB"]) == (cosigners[1].address,)
        assert network.read_token_logic_address(front) == logic
        assert network.read_max_claimed_call_number(admin_address) == 0

    def test_unknown_contract(self, network):
        """Reading an undeployed address fails."""
        with pytest.raises(ResolutionError):
            network.call(TARGET, TOKEN_FRONT["owner"])

    def test_wrong_function_for_contract(self, network, admin_address):
        """Calling a function the contract lacks fails."""
        with pytest.raises(ResolutionError):
            network.call(admin_address, TOKEN_FRONT["balanceOf"], TARGET)

    def test_clawback_needs_two_cosigners(self, network, admin_address, cosigners, token, investors):
        """A Clawback moves funds only after a second cosigner."""
        front, _ = token
        call = ClawbackCall(call_number=1, src=investors[0], dst=investors[1], amount=400)

        network.send_as(cosigners[0].address, admin_address, call.encode())
        network.mine()
        assert network.call(front, TOKEN_FRONT["balanceOf"], investors[0]) == (1000,)

        network.send_as(cosigners[2].address, admin_address, call.encode())
        network.mine()
        assert network.call(front, TOKEN_FRONT["balanceOf"], investors[0]) == (600,)
        assert network.call(front, TOKEN_FRONT["balanceOf"], investors[1]) == (450,)

    def test_same_signer_twice_does_not_execute(self, network, admin_address, cosigners, token, investors):
        """One cosigner signing twice does not reach the threshold."""
        front, _ = token
        call = ClawbackCall(call_number=1, src=investors[0], dst=investors[1], amount=400)
        network.send_as(cosigners[0].address, admin_address, call.encode())
        network.send_as(cosigners[0].address, admin_address, call.encode())
        network.mine()
        assert network.call(front, TOKEN_FRONT["balanceOf"], investors[0]) == (1000,)

    def test_stale_call_number_reverts(self, network, admin_address, cosigners, token):
        """A call number below the claimed maximum reverts."""
        front, logic = token
        network.send_as(cosigners[0].address, admin_address, BindCall(5, logic, front).encode())
        tx_hash = network.send_as(cosigners[1].address, admin_address, BindCall(3, logic, front).encode())
        network.mine()
        assert network.get_receipt(tx_hash).status == 0
        assert network.read_max_claimed_call_number(admin_address) == 5

    def test_outsider_cannot_cosign(self, network, admin_address, token):
        """A non-cosigner's call reverts."""
        front, logic = token
        outsider = Account.from_key(TOKEN_ADMIN_KEY).address
        tx_hash = network.send_as(outsider, admin_address, BindCall(1, logic, front).encode())
        network.mine()
        assert network.get_receipt(tx_hash).status == 0
        assert network.read_max_claimed_call_number(admin_address) == 0

    def test_overdrawn_clawback_leaves_call_pending(self, network, admin_address, cosigners, investors, token):
        """An overdrawing Clawback reverts and moves nothing."""
        front, _ = token
        call = ClawbackCall(call_number=1, src=investors[1], dst=investors[0], amount=51)
        network.send_as(cosigners[0].address, admin_address, call.encode())
        second = network.send_as(cosigners[1].address, admin_address, call.encode())
        network.mine()
        assert network.get_receipt(second).status == 0
        assert network.call(front, TOKEN_FRONT["balanceOf"], investors[1]) == (50,)
