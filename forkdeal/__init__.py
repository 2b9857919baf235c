import contextlib
import logging
import os

from eth_utils import setup_DEBUG2_logging

from forkdeal.dealer import BalanceOverrideRequest, Dealer
from forkdeal.errors import (
    BalanceVerificationFailed,
    RPCError,
    SlotNotFound,
    TransportError,
)
from forkdeal.forking import ForkSettings, ForkSpec, most_recent_forkable_block, reset_fork
from forkdeal.node import ChainNode, ForkNode
from forkdeal.slots import KeyOrder, ProbeSettings, find_balance_slot, mapping_key
from forkdeal.storage import explore_storage, to_fixed_hex
from forkdeal.util.abi import ZERO_ADDRESS, Address
from forkdeal.util.open_ctx import Open

DEFAULT_NODE_URL = "http://127.0.0.1:8545"

# the node everything below operates on. nothing is sent to it on import.
node: ChainNode = ForkNode.from_url(
    os.getenv("FORKDEAL_NODE_URL", DEFAULT_NODE_URL),
    os.getenv("FORKDEAL_NODE_DIALECT", "hardhat"),
)

_dealer = None


def get_dealer() -> Dealer:
    global _dealer
    if _dealer is None:
        _dealer = Dealer(node)
    return _dealer


def _set_node(new):
    global node, _dealer
    node = new
    # learned slots belong to the chain they were learned on
    _dealer = None


def set_node(new_node: ChainNode):
    get_node = lambda: node  # noqa: E731
    return Open(get_node, _set_node, new_node)


@contextlib.contextmanager
def swap_node(new_node: ChainNode):
    with set_node(new_node):
        yield


def fork(rpc_url: str = None, block_number: int = None, settings: ForkSettings = None):
    """
    Reset the current node to a fork of `rpc_url`.
    `block_number=None` forks at the most recent safe block, `0` follows
    the chain head.
    """
    settings = settings or ForkSettings()
    spec = ForkSpec(rpc_url or settings.default_rpc_url, block_number)
    return reset_fork(node, spec, settings)


def deal(
    token,
    holder,
    new_value: int,
    key_order: KeyOrder = KeyOrder.SOLIDITY,
    slot: int = None,
    verbose: bool = False,
) -> int:
    """
    Set `holder`'s balance of `token` to `new_value` on the current node.
    Inspired by https://github.com/foundry-rs/forge-std/blob/07263d193d/src/StdCheats.sol#L728
    """
    request = BalanceOverrideRequest(token, holder, new_value, known_slot=slot)
    return get_dealer().deal(request, key_order=key_order, verbose=verbose)


def enable_verbose_logging(level="INFO"):
    logging.basicConfig()
    setup_DEBUG2_logging()
    logging.getLogger("forkdeal").setLevel(level)
