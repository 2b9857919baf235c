"""
Choosing the block a development node forks from.

Forking at the literal chain head risks pinning a block which gets
reorganized away between the query and the reset, so by default the fork
point lags the upstream head by a network-dependent margin.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from forkdeal.node import ChainNode, ForkNode

logger = logging.getLogger(__name__)


def _default_rpc_url() -> str:
    return os.getenv("FORK_RPC_URL") or os.getenv(
        "MAINNET_ENDPOINT", "https://eth.drpc.org"
    )


@dataclass
class ForkSettings:
    # used by `forkdeal.fork()` when no url is given
    default_rpc_url: str = field(default_factory=_default_rpc_url)

    # blocks to stay behind the upstream head. networks matched by
    # `deep_reorg_networks` (a substring of the rpc url) get the larger one.
    default_margin: int = 10
    deep_reorg_margin: int = 30
    deep_reorg_networks: tuple[str, ...] = ("arbitrum", "arb-", "arb1")

    # hardhat only: accept blocks containing transaction types it does
    # not know, which L2 chains are full of
    ignore_unknown_tx_type: bool = True

    def reorg_margin(self, rpc_url: str) -> int:
        url = rpc_url.lower()
        if any(network in url for network in self.deep_reorg_networks):
            return self.deep_reorg_margin
        return self.default_margin


@dataclass
class ForkSpec:
    rpc_url: str
    # None: most recent safe block. 0: no pinned block, follow the head.
    block_number: Optional[int] = None

    def __post_init__(self):
        if self.block_number is not None and self.block_number < 0:
            raise ValueError(f"block number must be >= 0, got {self.block_number}")


def most_recent_forkable_block(
    upstream: ChainNode, rpc_url: str, settings: Optional[ForkSettings] = None
) -> int:
    settings = settings or ForkSettings()
    head = upstream.get_block_number()
    # block 0 would read as "unpinned" further down
    return max(head - settings.reorg_margin(rpc_url), 1)


def reset_fork(
    node: ChainNode,
    spec: ForkSpec,
    settings: Optional[ForkSettings] = None,
    upstream: Optional[ChainNode] = None,
) -> Optional[int]:
    """
    Reset `node` to a fork of `spec.rpc_url`.

    `upstream` is only queried when `spec.block_number` is None; by
    default it is the chain behind `spec.rpc_url` itself.

    :return: the pinned block number, or None if the fork follows the head
    """
    settings = settings or ForkSettings()

    block_number = spec.block_number
    if block_number is None:
        if upstream is not None:
            block_number = most_recent_forkable_block(upstream, spec.rpc_url, settings)
        else:
            upstream = ForkNode.from_url(spec.rpc_url)
            try:
                block_number = most_recent_forkable_block(
                    upstream, spec.rpc_url, settings
                )
            finally:
                upstream.close()
    elif block_number == 0:
        block_number = None

    node.reset_fork(
        spec.rpc_url,
        block_number,
        ignore_unknown_tx_type=settings.ignore_unknown_tx_type,
    )

    if block_number is None:
        logger.info("forked %s at the chain head (unpinned)", node)
    else:
        logger.info("forked %s at block %d", node, block_number)
    return block_number
