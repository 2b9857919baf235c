"""
Locating the storage slot which backs a token's `balanceOf` mapping.

The prober never looks at source code or a storage layout. It writes a
sentinel value at the storage key the zero address would have for every
candidate slot index, and checks whether `balanceOf(0x0)` reports it.
Every cell it touches is written back before moving on.
"""
import enum
import logging
from dataclasses import dataclass

from eth_utils import keccak

from forkdeal.errors import SlotNotFound, TransportError
from forkdeal.util.abi import ZERO_ADDRESS, Address, abi_encode

logger = logging.getLogger(__name__)

MAX_SLOT = 750


class KeyOrder(enum.Enum):
    """
    The order in which a compiler feeds (key, slot) into keccak256 to
    locate a mapping entry.
    """

    SOLIDITY = "solidity"  # keccak256(key . slot)
    VYPER = "vyper"  # keccak256(slot . key)

    def __str__(self):
        return self.value


def mapping_key(slot: int, account, key_order: KeyOrder = KeyOrder.SOLIDITY) -> bytes:
    """
    Compute the storage key of `mapping[account]` for a mapping declared
    at `slot`. Both items are left-padded to 32 bytes before hashing.
    """
    if not 0 <= slot < 2**256:
        raise ValueError(f"slot index out of range: {slot}")

    if key_order is KeyOrder.SOLIDITY:
        preimage = abi_encode("(address,uint256)", (Address(account), slot))
    elif key_order is KeyOrder.VYPER:
        preimage = abi_encode("(uint256,address)", (slot, Address(account)))
    else:
        raise TypeError(f"expected a KeyOrder, got {key_order!r}")

    return keccak(preimage)


def to_word(value: int | bytes) -> bytes:
    if isinstance(value, bytes):
        if len(value) > 32:
            raise ValueError(f"word longer than 32 bytes: 0x{value.hex()}")
        return value.rjust(32, b"\x00")
    if not 0 <= value < 2**256:
        raise ValueError(f"value does not fit in a uint256: {value}")
    return value.to_bytes(32, "big")


@dataclass
class ProbeSettings:
    # slots [0, max_slot) are tried, in ascending order
    max_slot: int = MAX_SLOT

    # sentinels written into candidate cells. whichever one is not already
    # stored in the cell gets written, so the pair must differ.
    probe_values: tuple[int, int] = (1, 2)

    def __post_init__(self):
        if self.max_slot <= 0:
            raise ValueError(f"max_slot must be positive, got {self.max_slot}")
        a, b = self.probe_values
        if a == b:
            raise ValueError(f"probe values must differ, got {a} twice")
        for value in self.probe_values:
            to_word(value)

    @property
    def probe_words(self) -> tuple[bytes, bytes]:
        a, b = self.probe_values
        return to_word(a), to_word(b)


def _restore(node, token, key, prev):
    # called while another exception is propagating. that exception is
    # the one the caller gets to see, so a failing restore is only logged.
    try:
        node.set_storage_at(token, key, prev)
    except TransportError as e:
        logger.warning(
            "could not restore storage key 0x%s of %s: %s", key.hex(), token, e
        )


def probe_slot(node, token, slot: int, key_order: KeyOrder, settings=None) -> bool:
    """
    Check whether `slot` backs the balances mapping of `token`.
    The storage cell is always restored, whatever the outcome.
    """
    settings = settings or ProbeSettings()
    probe_a, probe_b = settings.probe_words

    key = mapping_key(slot, ZERO_ADDRESS, key_order)
    prev = node.get_storage_at(token, key)

    # make sure the probe changes the cell, even if a real balance
    # happens to equal one of the sentinels
    probe = probe_b if prev == probe_a else probe_a

    ok = False
    try:
        node.set_storage_at(token, key, probe)
        balance = node.balance_of(token, ZERO_ADDRESS)
        ok = True
    finally:
        if ok:
            node.set_storage_at(token, key, prev)
        else:
            # interrupts included
            _restore(node, token, key, prev)

    logger.debug("slot %d (%s): balanceOf(0x0) = %d", slot, key_order, balance)
    return balance == int.from_bytes(probe, "big")


def find_balance_slot(
    node, token, key_order: KeyOrder = KeyOrder.SOLIDITY, settings=None
) -> int:
    """
    Find the index of the `mapping(address => uint256)` which backs
    `token.balanceOf`, assuming the compiler hashes keys per `key_order`.

    The key order is never guessed: a token laid out with the other
    order is reported as not found.

    :raises SlotNotFound: if no slot in `[0, settings.max_slot)` matched
    """
    settings = settings or ProbeSettings()
    token = Address(token)

    for slot in range(settings.max_slot):
        if probe_slot(node, token, slot, key_order, settings):
            logger.info("found balances slot of %s at %d (%s)", token, slot, key_order)
            return slot

    raise SlotNotFound(token, key_order, settings.max_slot)
