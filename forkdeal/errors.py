from dataclasses import dataclass
from typing import Any


class TransportError(Exception):
    """
    Raised when the node could not be reached or did not answer.
    Never retried: the caller decides whether the node is worth talking to.
    """


class RPCError(TransportError):
    def __init__(self, message: str, code: int):
        super().__init__(f"{code}: {message}")
        self.code = code

    @classmethod
    def from_json(cls, data):
        return cls(message=data["message"], code=data["code"])


@dataclass
class SlotNotFound(ValueError):
    address: str
    key_order: Any
    slots_tried: int

    def __str__(self):
        msg = f"Could not find the balances slot of {self.address}"
        msg += f" in slots [0, {self.slots_tried}) using {self.key_order} key order"
        msg += ", this is expected if the token packs storage slots, computes"
        msg += " the balance on the fly or uses the other key order"
        return msg


@dataclass
class BalanceVerificationFailed(RuntimeError):
    token: str
    holder: str
    expected: int
    actual: int

    def __str__(self):
        return (
            f"New balance of {self.holder} on {self.token} less than intended: "
            f"{self.actual} < {self.expected}"
        )
