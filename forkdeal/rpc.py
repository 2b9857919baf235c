import json
from typing import Any
from urllib.parse import urlparse

import requests

from forkdeal.errors import RPCError, TransportError

TIMEOUT = 60  # default timeout for http requests in seconds


# some utility functions


def trim_dict(kv):
    return {k: v for (k, v) in kv.items() if v is not None}


def to_hex(s: int | bytes | str) -> str:
    if isinstance(s, int):
        return hex(s)
    if isinstance(s, bytes):
        return "0x" + s.hex()
    if isinstance(s, str):
        assert s.startswith("0x")
        return s
    raise TypeError(
        f"to_hex expects bytes, int or (hex) string, but got {type(s)}: {s}"
    )


def to_quantity(s: int | bytes) -> str:
    # JSON-RPC QUANTITY: hex without leading zeros. hardhat refuses
    # storage positions which are zero-padded, so keys go through here.
    if isinstance(s, bytes):
        s = int.from_bytes(s, "big")
    if s < 0:
        raise ValueError(f"quantity must be non-negative: {s}")
    return hex(s)


def to_int(hex_str: str) -> int:
    if hex_str == "0x":
        return 0
    return int(hex_str, 16)


def to_bytes(hex_str: str) -> bytes:
    hex_str = hex_str.removeprefix("0x")
    if len(hex_str) % 2:
        hex_str = "0" + hex_str
    return bytes.fromhex(hex_str)


class RPC:
    """
    Base class for RPC implementations.
    This abstract class does not use ABC, like the node classes built on it.
    """

    @property
    def identifier(self) -> str:  # pragma: no cover
        raise NotImplementedError

    @property
    def name(self) -> str:  # pragma: no cover
        raise NotImplementedError

    def fetch(self, method: str, params: Any) -> Any:  # pragma: no cover
        raise NotImplementedError

    def fetch_multi(
        self, payloads: list[tuple[str, Any]]
    ) -> list[Any]:  # pragma: no cover
        raise NotImplementedError

    def close(self) -> None:
        pass


class EthereumRPC(RPC):
    def __init__(self, url: str, timeout: float = TIMEOUT):
        self._rpc_url = url
        self._timeout = timeout
        self._session = requests.Session()

    @property
    def identifier(self):
        return self._rpc_url

    @property
    def name(self):
        # return a version of the URL which has everything past the "base"
        # url stripped out (content which you might not want to end up
        # in logs)
        parse_result = urlparse(self._rpc_url)
        return f"{parse_result.scheme}://{parse_result.netloc} (URL partially masked for privacy)"

    def _post(self, payload):
        try:
            res = self._session.post(self._rpc_url, json=payload, timeout=self._timeout)
            res.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"request to <{self.name}> failed: {e}") from e
        try:
            return json.loads(res.text)
        except ValueError as e:
            raise TransportError(f"invalid JSON from <{self.name}>: {e}") from e

    def close(self):
        self._session.close()

    def fetch(self, method, params):
        # not dispatched into fetch_multi: some providers can't handle
        # batched requests for every endpoint.
        req = {"jsonrpc": "2.0", "method": method, "params": params, "id": 0}
        res = self._post(req)
        if "error" in res:
            raise RPCError.from_json(res["error"])
        return res["result"]

    def fetch_multi(self, payloads):
        request = [
            {"jsonrpc": "2.0", "method": method, "params": params, "id": i}
            for i, (method, params) in enumerate(payloads)
        ]
        response = self._post(request)

        results = {}  # keep results in a dict to preserve order
        for item in response:
            if "error" in item:
                raise RPCError.from_json(item["error"])
            results[item["id"]] = item["result"]

        return [results[i] for i in range(len(payloads))]
