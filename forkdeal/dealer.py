import logging
from dataclasses import dataclass
from typing import Optional

from forkdeal.errors import BalanceVerificationFailed
from forkdeal.slots import KeyOrder, ProbeSettings, find_balance_slot, mapping_key, to_word
from forkdeal.util.abi import Address
from forkdeal.util.lrudict import lrudict

logger = logging.getLogger(__name__)


@dataclass
class BalanceOverrideRequest:
    token: Address
    holder: Address
    new_value: int
    # index of the balances mapping, if already known. 0 is a valid slot.
    known_slot: Optional[int] = None

    def __post_init__(self):
        self.token = Address(self.token)
        self.holder = Address(self.holder)
        if not 0 <= self.new_value < 2**256:
            raise ValueError(f"balance does not fit in a uint256: {self.new_value}")
        if self.known_slot is not None and self.known_slot < 0:
            raise ValueError(f"slot index must be non-negative: {self.known_slot}")


class Dealer:
    """
    Overwrites token balances on a node by writing straight into the
    token's balances mapping. Slots discovered by probing are remembered
    per (token, key order) for the lifetime of the dealer.
    """

    def __init__(
        self,
        node,
        key_order: KeyOrder = KeyOrder.SOLIDITY,
        verbose: bool = False,
        probe_settings: Optional[ProbeSettings] = None,
        cache_size: int = 1024,
    ):
        self.node = node
        self.key_order = key_order
        self.verbose = verbose
        self.probe_settings = probe_settings or ProbeSettings()
        self._slots = lrudict(cache_size)

    @property
    def known_slots(self) -> dict[tuple[Address, KeyOrder], int]:
        return dict(self._slots)

    def _log(self, msg, *args, verbose=None):
        verbose = self.verbose if verbose is None else verbose
        logger.log(logging.INFO if verbose else logging.DEBUG, msg, *args)

    def balance_slot(self, token, key_order: Optional[KeyOrder] = None) -> int:
        """
        The balances slot of `token`, probing the node on first use.
        """
        key_order = key_order or self.key_order
        token = Address(token)

        def _probe(k):
            return find_balance_slot(self.node, token, key_order, self.probe_settings)

        return self._slots.get_or_set((token, key_order), _probe)

    def deal(
        self,
        request: BalanceOverrideRequest,
        key_order: Optional[KeyOrder] = None,
        verbose: Optional[bool] = None,
    ) -> int:
        """
        Set `request.holder`'s balance of `request.token` to
        `request.new_value`.

        The new balance is read back through `balanceOf`. Anything at or
        above the requested value is accepted, since rebasing and
        fee-adjusting tokens report a different amount than what is stored.

        :return: the balance observed after the write
        :raises BalanceVerificationFailed: if the observed balance is lower
        """
        key_order = key_order or self.key_order
        verbose = self.verbose if verbose is None else verbose
        token, holder = request.token, request.holder

        slot = request.known_slot
        if slot is None:
            slot = self.balance_slot(token, key_order)
            self._log("Slot %d", slot, verbose=verbose)

        key = mapping_key(slot, holder, key_order)
        if verbose:
            prev = self.node.get_storage_at(token, key)
            self._log("Token %s, storage key 0x%s", token, key.hex(), verbose=verbose)
            self._log("Previous value 0x%s", prev.hex(), verbose=verbose)

        self.node.set_storage_at(token, key, to_word(request.new_value))

        actual = self.node.balance_of(token, holder)
        self._log("New value %d", actual, verbose=verbose)

        if actual < request.new_value:
            raise BalanceVerificationFailed(token, holder, request.new_value, actual)
        return actual
