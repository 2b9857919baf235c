# an in-memory stand-in for a development node. "contracts" are python
# callables which read the node's storage the way a compiled token would.
from forkdeal.errors import RPCError
from forkdeal.node import BALANCE_OF_SELECTOR, ChainNode
from forkdeal.slots import KeyOrder, mapping_key, to_word
from forkdeal.util.abi import Address, abi_decode

EMPTY_WORD = b"\x00" * 32


def _to_key(key: int | bytes) -> int:
    if isinstance(key, bytes):
        return int.from_bytes(key, "big")
    return key


class MemoryNode(ChainNode):
    def __init__(self, block_number: int = 0):
        # zero words are never stored, like on a real chain
        self.storage: dict[tuple[Address, int], bytes] = {}
        self.contracts: dict[Address, object] = {}
        self.block_number = block_number
        self.forking = None
        # (operation, address, key) of every storage access, in order
        self.journal: list[tuple[str, Address, int]] = []

    def deploy(self, address, contract) -> Address:
        address = Address(address)
        self.contracts[address] = contract
        return address

    def get_storage_at(self, address, key, block_tag="latest"):
        address, key = Address(address), _to_key(key)
        self.journal.append(("get", address, key))
        return self.storage.get((address, key), EMPTY_WORD)

    def set_storage_at(self, address, key, value):
        address, key = Address(address), _to_key(key)
        self.journal.append(("set", address, key))
        word = to_word(value)
        if word == EMPTY_WORD:
            self.storage.pop((address, key), None)
        else:
            self.storage[(address, key)] = word

    def call(self, address, selector, args=b""):
        address = Address(address)
        try:
            contract = self.contracts[address]
        except KeyError:
            # calling an account without code returns nothing
            return b""
        return contract(self, address, selector, args)

    def get_block_number(self):
        return self.block_number

    def reset_fork(self, rpc_url, block_number=None, ignore_unknown_tx_type=True):
        self.storage.clear()
        self.journal.clear()
        self.forking = {
            "jsonRpcUrl": rpc_url,
            "blockNumber": block_number,
            "ignoreUnknownTxType": ignore_unknown_tx_type,
        }


class MappingToken:
    """
    A token keeping balances in a `mapping(address => uint256)` declared
    at `balance_slot`.
    """

    def __init__(self, balance_slot: int, key_order: KeyOrder = KeyOrder.SOLIDITY):
        self.balance_slot = balance_slot
        self.key_order = key_order

    def stored_balance(self, node, address, holder) -> int:
        key = mapping_key(self.balance_slot, holder, self.key_order)
        return int.from_bytes(node.get_storage_at(address, key), "big")

    def balance_of(self, node, address, holder) -> int:
        return self.stored_balance(node, address, holder)

    def __call__(self, node, address, selector, args):
        if selector != BALANCE_OF_SELECTOR:
            raise RPCError("execution reverted", 3)
        holder = abi_decode("address", args[:32])
        return to_word(self.balance_of(node, address, holder))


class RebasingToken(MappingToken):
    # reports balances grown by `bps` basis points over what is stored
    def __init__(self, balance_slot, key_order=KeyOrder.SOLIDITY, bps=100):
        super().__init__(balance_slot, key_order)
        self.bps = bps

    def balance_of(self, node, address, holder):
        stored = self.stored_balance(node, address, holder)
        return stored * (10_000 + self.bps) // 10_000


class SkimmingToken(MappingToken):
    # reports one unit less than what is stored
    def balance_of(self, node, address, holder):
        return max(self.stored_balance(node, address, holder) - 1, 0)


class ConstantToken:
    # balanceOf computed on the fly, not backed by storage at all
    def __init__(self, value: int = 0):
        self.value = value

    def __call__(self, node, address, selector, args):
        return to_word(self.value)
