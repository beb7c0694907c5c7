"""
Tests for the transcript publisher against the simulated network.
"""

import pytest

from s3admin.chain import SIMPLIFIED_TOKEN_LOGIC
from s3admin.errors import PublishExhausted
from s3admin.transactions import Publisher, linear_ladder, new_resolver, publish

from conftest import TOKEN_ADMIN_KEY

GWEI = 10 ** 9


def resolver_of(network, logic):
    """Resolver currently installed in the token logic."""
    (resolver,) = network.call(logic, SIMPLIFIED_TOKEN_LOGIC["resolver"])
    return resolver


@pytest.fixture
def authored(token):
    """A setResolver ladder at 5, 7, 9, 11 gwei signed by the token admin."""
    _, logic = token
    ladder = linear_ladder(5, 2, ceiling_multiple="2.4")
    assert ladder == [5 * GWEI, 7 * GWEI, 9 * GWEI, 11 * GWEI]
    return new_resolver(logic, TOKEN_ADMIN_KEY, ladder, nonce=0, chain_id=4)


class TestPublishRoundTrip:
    """A network that takes the cheapest price."""

    def test_first_payload_mined(self, network, token, authored):
        """The cheapest payload is broadcast alone and mined."""
        _, logic = token
        entry = authored.transcript
        receipt = publish(entry, network)

        assert receipt.payload_index == 0
        assert receipt.tx_hash == entry.tx_hashes[0]
        assert receipt.gas_price == entry.gas_prices[0]
        assert receipt.succeeded
        assert network.broadcasts == [entry.tx_hashes[0]]
        assert resolver_of(network, logic) == authored.resolver_address

    def test_republish_is_noop(self, network, authored):
        """Publishing a mined transcript again returns the same receipt."""
        entry = authored.transcript
        first = publish(entry, network)
        broadcasts = list(network.broadcasts)

        second = publish(entry, network)
        assert second == first
        assert network.broadcasts == broadcasts

    def test_reverted_call_is_still_a_receipt(self, network, token, cosigners):
        """A mined but reverted payload is returned, not retried."""
        _, logic = token
        # Cosigner A does not own the token logic
        entry = new_resolver(logic, "0x" + "11" * 32, [GWEI], nonce=0, chain_id=4).transcript
        receipt = publish(entry, network)
        assert not receipt.succeeded
        assert receipt.payload_index == 0


class TestPublishFallback:
    """Climbing the ladder."""

    def test_underpriced_rungs_are_skipped(self, network, authored):
        """Refused rungs are skipped without a broadcast."""
        entry = authored.transcript
        network.underpriced_below = entry.gas_prices[2]

        receipt = publish(entry, network)
        assert receipt.payload_index == 2
        assert network.broadcasts == [entry.tx_hashes[2]]

    def test_pending_rung_is_replaced(self, network, authored):
        """A rung stuck in the mempool is replaced by the next one."""
        entry = authored.transcript
        network.min_gas_price = entry.gas_prices[1]

        receipt = Publisher(network, attempt_timeout=30).publish(entry)
        assert receipt.payload_index == 1
        assert network.broadcasts == entry.tx_hashes[:2]
        assert network.get_receipt(entry.tx_hashes[0]) is None

    def test_every_rung_refused(self, network, authored):
        """A ladder refused at every rung raises PublishExhausted."""
        entry = authored.transcript
        network.underpriced_below = entry.gas_prices[-1] + 1

        with pytest.raises(PublishExhausted) as excinfo:
            publish(entry, network)
        assert excinfo.value.attempts == len(entry)
        assert excinfo.value.gas_prices == list(entry.gas_prices)
        assert network.broadcasts == []

    def test_every_rung_pending(self, network, authored):
        """A ladder never mined raises PublishExhausted after all broadcasts."""
        entry = authored.transcript
        network.min_gas_price = entry.gas_prices[-1] + 1

        with pytest.raises(PublishExhausted):
            Publisher(network, attempt_timeout=20).publish(entry)
        assert len(network.broadcasts) == len(entry)
        assert all(network.get_receipt(h) is None for h in entry.tx_hashes)

    def test_overall_timeout_bounds_the_ladder(self, network, authored):
        """The overall timeout stops the climb early."""
        entry = authored.transcript
        network.min_gas_price = entry.gas_prices[-1] + 1

        start = network.clock()
        with pytest.raises(PublishExhausted) as excinfo:
            Publisher(network, attempt_timeout=60, overall_timeout=100).publish(entry)
        assert excinfo.value.attempts == 2
        assert network.clock() - start <= 100

    def test_wrong_chain_exhausts(self, network, token):
        """Payloads for another chain are never accepted."""
        _, logic = token
        entry = new_resolver(logic, TOKEN_ADMIN_KEY, [GWEI, 2 * GWEI], nonce=0, chain_id=1).transcript
        with pytest.raises(PublishExhausted):
            publish(entry, network)
        assert network.broadcasts == []

    def test_exhaustion_message_names_ladder(self, network, authored):
        """The exhaustion error names the price range."""
        entry = authored.transcript
        network.underpriced_below = entry.gas_prices[-1] + 1
        with pytest.raises(PublishExhausted, match=f"{entry.gas_prices[0]}..{entry.gas_prices[-1]} wei"):
            publish(entry, network)

    def test_timeouts_must_be_positive(self, network):
        """A zero attempt timeout is rejected."""
        with pytest.raises(ValueError):
            Publisher(network, attempt_timeout=0)
