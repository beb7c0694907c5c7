"""
Shared fixtures: a simulated network with one token and one administration.
"""

import pytest
from eth_account import Account

from s3admin.admin import AdminSession, Interpreter
from s3admin.chain import SimulatedNetwork


# Fixed keys so addresses are stable across runs
COSIGNER_KEYS = [
    "0x" + "11" * 32,
    "0x" + "22" * 32,
    "0x" + "33" * 32,
]
TOKEN_ADMIN_KEY = "0x" + "44" * 32
INVESTOR_KEYS = ["0x" + "55" * 32, "0x" + "66" * 32]


@pytest.fixture
def cosigners():
    """The three cosigner accounts of the administration contract."""
    return [Account.from_key(k) for k in COSIGNER_KEYS]


@pytest.fixture
def token_admin():
    """Owner of the token front and logic."""
    return Account.from_key(TOKEN_ADMIN_KEY)


@pytest.fixture
def investors():
    """Addresses of two funded token holders."""
    return [Account.from_key(k).address for k in INVESTOR_KEYS]


@pytest.fixture
def network(cosigners):
    """Network whose controller (node-signed submitter) is cosigner A."""
    return SimulatedNetwork(chain_id=4, controller=cosigners[0].address)


@pytest.fixture
def token(network, token_admin, investors):
    """(front, logic) deployed with two funded investors."""
    return network.deploy_token(
        token_admin.address,
        balances={investors[0]: 1000, investors[1]: 50},
    )


@pytest.fixture
def admin_address(network, cosigners, token):
    """Administration contract over the token, cosigned by all three."""
    front, logic = token
    return network.deploy_administration([c.address for c in cosigners], front=front, logic=logic)


@pytest.fixture
def interpreter(network):
    """Interpreter on the simulated network."""
    return Interpreter(network)


@pytest.fixture
def session(interpreter):
    """Event queue over the interpreter."""
    return AdminSession(interpreter)
