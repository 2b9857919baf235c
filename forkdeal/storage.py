# helpers for eyeballing raw contract storage on a node
import logging

from forkdeal.util.abi import Address

logger = logging.getLogger(__name__)


def to_fixed_hex(value: int | bytes, length: int = 32) -> str:
    """
    Hex string of `value`, zero-padded to `length` bytes.
    Negative integers keep their sign in front of the `0x`.
    """
    if isinstance(value, bytes):
        body = value.hex()
    elif value < 0:
        return "-" + to_fixed_hex(-value, length)
    else:
        body = f"{value:x}"
    return "0x" + body.rjust(length * 2, "0")


def serialize_hex_list(items: list[str]) -> str:
    # ["0xab", "0xcd"] -> "0xabcd"
    if not items:
        return ""
    return items[0] + "".join(item.removeprefix("0x") for item in items[1:])


def render_word(word: bytes) -> str:
    stripped = word.lstrip(b"\x00")
    if len(stripped) == 20:
        return Address(stripped)
    return str(int.from_bytes(word, "big"))


def explore_storage(node, address, runs: int, start: int = 0) -> list[tuple[int, str]]:
    """
    Dump the raw slots `[start, runs)` of `address`. Values which look like
    an address are shown checksummed, everything else as a decimal number.
    """
    slots = list(range(start, runs))
    words = node.get_storage_many(address, slots)
    rows = []
    for slot, word in zip(slots, words):
        rendered = render_word(word)
        logger.info("%d %s", slot, rendered)
        rows.append((slot, rendered))
    return rows
