"""
Offline rotation of a SimplifiedTokenLogic resolver.
"""

from dataclasses import dataclass
from typing import Sequence, Union

from eth_account import Account

from ..chain.abi import SIMPLIFIED_TOKEN_LOGIC, normalize_address
from .gas_ladder import DEFAULT_GAS_LIMIT, Action, author
from .transcript import TranscriptEntry


@dataclass(frozen=True)
class NewResolverResult:
    """The fresh resolver and the ladder that installs it."""
    resolver_address: str
    resolver_key: bytes
    transcript: TranscriptEntry


def set_resolver_action(logic_address: str, resolver_address: str,
                        gas: int = DEFAULT_GAS_LIMIT) -> Action:
    """setResolver(resolver_address) against a SimplifiedTokenLogic."""
    return Action(
        to=normalize_address(logic_address, "simplifiedTokenLogic"),
        data=SIMPLIFIED_TOKEN_LOGIC["setResolver"].encode(normalize_address(resolver_address, "resolver")),
        gas=gas,
    )


def new_resolver(logic_address: str, admin_key: Union[str, bytes], gas_prices: Sequence[int],
                 nonce: int, chain_id: int, gas: int = DEFAULT_GAS_LIMIT) -> NewResolverResult:
    """Create a fresh resolver key and sign the setResolver ladder that installs it."""
    resolver = Account.create()
    transcript = author(
        set_resolver_action(logic_address, resolver.address, gas),
        admin_key,
        gas_prices,
        nonce,
        chain_id,
    )
    return NewResolverResult(
        resolver_address=resolver.address,
        resolver_key=bytes(resolver.key),
        transcript=transcript,
    )
