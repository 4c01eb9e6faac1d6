from __future__ import annotations

import re
from enum import Enum


class Network(str, Enum):
    BITCOIN = "bitcoin"
    TESTNET = "testnet"
    TESTNET4 = "testnet4"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def magic(self) -> bytes:
        return NETWORK_MAGICS[self]


# P2P message start bytes, in wire order.
NETWORK_MAGICS: dict[Network, bytes] = {
    Network.BITCOIN: bytes.fromhex("f9beb4d9"),
    Network.TESTNET: bytes.fromhex("0b110907"),
    Network.TESTNET4: bytes.fromhex("1c163f28"),
    Network.SIGNET: bytes.fromhex("0a03cf40"),
    Network.REGTEST: bytes.fromhex("fabfb5da"),
}

MAGIC_SIZE = 4

_MAGIC_RE = re.compile(r"[0-9a-fA-F]{8}")


def parse_network(name: str) -> Network:
    try:
        return Network(name.strip().lower())
    except ValueError:
        known = ", ".join(n.value for n in Network)
        raise ValueError(f"unknown network: {name!r} (expected one of: {known})") from None


def parse_magic(value: str) -> bytes:
    """Parse a magic written as exactly 8 hex digits (e.g. "f9beb4d9")."""

    if not _MAGIC_RE.fullmatch(value):
        raise ValueError(f"magic must be {MAGIC_SIZE * 2} hex digits: {value!r}")
    return bytes.fromhex(value)
