# the chain node the prober and the dealer operate on. a node is always
# injected, never looked up, so tests can swap in an in-memory one.
import logging
import warnings

from eth_utils import keccak

from forkdeal.rpc import RPC, EthereumRPC, to_bytes, to_hex, to_int, to_quantity, trim_dict
from forkdeal.slots import to_word
from forkdeal.util.abi import Address, abi_decode, abi_encode

logger = logging.getLogger(__name__)

BALANCE_OF_SELECTOR = keccak(text="balanceOf(address)")[:4]

ONE_HUNDRED_ETHER = 100 * 10**18


class ChainNode:
    """
    Base class for chain nodes.
    This abstract class does not use ABC, like `forkdeal.rpc.RPC`.

    Storage keys may be given as 32-byte words or as integers; storage
    values are always returned as 32-byte words.
    """

    def get_storage_at(
        self, address, key: int | bytes, block_tag="latest"
    ) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def set_storage_at(
        self, address, key: int | bytes, value: int | bytes
    ) -> None:  # pragma: no cover
        raise NotImplementedError

    def call(
        self, address, selector: bytes, args: bytes = b""
    ) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def get_block_number(self) -> int:  # pragma: no cover
        raise NotImplementedError

    def reset_fork(
        self, rpc_url: str, block_number=None, ignore_unknown_tx_type=True
    ) -> None:  # pragma: no cover
        raise NotImplementedError

    def get_storage_many(self, address, keys, block_tag="latest") -> list[bytes]:
        return [self.get_storage_at(address, key, block_tag) for key in keys]

    def balance_of(self, token, holder) -> int:
        token = Address(token)
        args = abi_encode("(address)", (Address(holder),))
        output = self.call(token, BALANCE_OF_SELECTOR, args)
        if len(output) < 32:
            raise ValueError(
                f"balanceOf({holder}) on {token} returned {len(output)} bytes,"
                " is it a token contract?"
            )
        return abi_decode("uint256", output[:32])


class ForkNode(ChainNode):
    """
    A hardhat or anvil node, usually running as a fork of a live chain.
    Development-only methods are sent with the dialect's prefix, e.g.
    `hardhat_setStorageAt` or `anvil_setStorageAt`.
    """

    DIALECTS = ("hardhat", "anvil")

    def __init__(self, rpc: RPC, dialect: str = "hardhat"):
        if dialect not in self.DIALECTS:
            raise ValueError(f"unknown node dialect {dialect!r}, expected one of {self.DIALECTS}")
        self._rpc = rpc
        self.dialect = dialect

    @classmethod
    def from_url(cls, url: str, dialect: str = "hardhat") -> "ForkNode":
        return cls(EthereumRPC(url), dialect)

    def __repr__(self):
        return f"<ForkNode {self.dialect} {self._rpc.name}>"

    def close(self) -> None:
        self._rpc.close()

    def _method(self, name: str) -> str:
        return f"{self.dialect}_{name}"

    def get_storage_at(self, address, key, block_tag="latest"):
        args = [Address(address), to_quantity(key), block_tag]
        return to_word(to_bytes(self._rpc.fetch("eth_getStorageAt", args)))

    def get_storage_many(self, address, keys, block_tag="latest"):
        address = Address(address)
        reqs = [
            ("eth_getStorageAt", [address, to_quantity(key), block_tag]) for key in keys
        ]
        return [to_word(to_bytes(res)) for res in self._rpc.fetch_multi(reqs)]

    def set_storage_at(self, address, key, value):
        # hardhat rejects zero-padded storage positions, so the key is sent
        # as a quantity. the value must be a full 32-byte word.
        args = [Address(address), to_quantity(key), to_hex(to_word(value))]
        self._rpc.fetch(self._method("setStorageAt"), args)

    def call(self, address, selector, args=b""):
        tx = {"to": Address(address), "data": to_hex(selector + args)}
        return to_bytes(self._rpc.fetch("eth_call", [tx, "latest"]))

    def get_block_number(self):
        return to_int(self._rpc.fetch("eth_blockNumber", []))

    def reset_fork(self, rpc_url, block_number=None, ignore_unknown_tx_type=True):
        forking = {"jsonRpcUrl": rpc_url, "blockNumber": block_number}
        if self.dialect == "hardhat":
            forking["ignoreUnknownTxType"] = ignore_unknown_tx_type
        elif not ignore_unknown_tx_type:
            warnings.warn("anvil has no ignoreUnknownTxType setting", stacklevel=2)
        self._rpc.fetch(self._method("reset"), [{"forking": trim_dict(forking)}])

    # development helpers, not needed by the prober or the dealer

    def set_code(self, address, code: bytes) -> None:
        self._rpc.fetch(self._method("setCode"), [Address(address), to_hex(code)])

    def impersonate_account(self, address) -> Address:
        address = Address(address)
        self._rpc.fetch(self._method("impersonateAccount"), [address])
        return address

    def set_native_balance(self, address, value: int) -> None:
        self._rpc.fetch(self._method("setBalance"), [Address(address), to_hex(value)])

    def mine(self, blocks: int = 1) -> None:
        self._rpc.fetch(self._method("mine"), [to_hex(blocks)])

    def increase_time(self, seconds: int) -> None:
        # the new timestamp only becomes visible once a block is mined
        self._rpc.fetch("evm_increaseTime", [seconds])
        self.mine()

    def unlock_accounts(self, addresses, fill_eth: bool = False) -> list[Address]:
        """
        Impersonate `addresses` so transactions can be sent from them,
        optionally topping each up with 100 ether for gas.
        """
        unlocked = []
        for address in addresses:
            address = self.impersonate_account(address)
            if fill_eth:
                self.set_native_balance(address, ONE_HUNDRED_ETHER)
            logger.debug("unlocked %s", address)
            unlocked.append(address)
        return unlocked
