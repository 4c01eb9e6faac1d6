"""Bitcoin transaction consensus decoding.

Parses the wire serialization used by `sendrawtransaction` (legacy and BIP-144
segwit forms) into immutable dataclasses. Decoding is strict: truncated input,
non-canonical CompactSize integers, unknown segwit flags, a segwit marker with
no witness data, and trailing bytes after the lock time are all rejected with
`TransactionDecodeError`.

The transaction id is the double SHA-256 of the non-witness serialization,
displayed byte-reversed (the convention used by Bitcoin Core RPC).
"""

from __future__ import annotations

import hashlib
import re
import struct
from dataclasses import dataclass, replace
from typing import Tuple

from nostr_tx_broadcast.core.errors import TransactionDecodeError

_HEX_RE = re.compile(r"[0-9a-fA-F]*")

SEGWIT_FLAG = 0x01


def _sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_compact_size(n: int) -> bytes:
    if n < 0xFD:
        return struct.pack("<B", n)
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def _encode_bytes(b: bytes) -> bytes:
    return encode_compact_size(len(b)) + b


@dataclass(frozen=True)
class OutPoint:
    txid: bytes  # internal byte order
    vout: int

    @property
    def txid_hex(self) -> str:
        return self.txid[::-1].hex()


@dataclass(frozen=True)
class TxIn:
    previous_output: OutPoint
    script_sig: bytes
    sequence: int
    witness: Tuple[bytes, ...] = ()


@dataclass(frozen=True)
class TxOut:
    value: int  # satoshis
    script_pubkey: bytes


@dataclass(frozen=True)
class Transaction:
    version: int
    inputs: Tuple[TxIn, ...]
    outputs: Tuple[TxOut, ...]
    lock_time: int

    @property
    def has_witness(self) -> bool:
        return any(txin.witness for txin in self.inputs)

    def serialize(self, *, include_witness: bool = True) -> bytes:
        segwit = include_witness and self.has_witness
        parts = [struct.pack("<i", self.version)]
        if segwit:
            parts.append(bytes([0x00, SEGWIT_FLAG]))
        parts.append(encode_compact_size(len(self.inputs)))
        for txin in self.inputs:
            parts.append(txin.previous_output.txid)
            parts.append(struct.pack("<I", txin.previous_output.vout))
            parts.append(_encode_bytes(txin.script_sig))
            parts.append(struct.pack("<I", txin.sequence))
        parts.append(encode_compact_size(len(self.outputs)))
        for txout in self.outputs:
            parts.append(struct.pack("<q", txout.value))
            parts.append(_encode_bytes(txout.script_pubkey))
        if segwit:
            for txin in self.inputs:
                parts.append(encode_compact_size(len(txin.witness)))
                for item in txin.witness:
                    parts.append(_encode_bytes(item))
        parts.append(struct.pack("<I", self.lock_time))
        return b"".join(parts)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        return _sha256d(self.serialize(include_witness=False))[::-1].hex()

    @property
    def wtxid(self) -> str:
        return _sha256d(self.serialize())[::-1].hex()


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, n: int) -> bytes:
        if n > self.remaining:
            raise TransactionDecodeError(
                f"unexpected end of data at offset {self._pos} (wanted {n} bytes, have {self.remaining})"
            )
        out = self._data[self._pos : self._pos + n]
        self._pos += n
        return out

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def u8(self) -> int:
        return self._unpack("<B")

    def u32(self) -> int:
        return self._unpack("<I")

    def i32(self) -> int:
        return self._unpack("<i")

    def i64(self) -> int:
        return self._unpack("<q")

    def compact_size(self) -> int:
        first = self.u8()
        if first < 0xFD:
            return first
        if first == 0xFD:
            n, minimum = self._unpack("<H"), 0xFD
        elif first == 0xFE:
            n, minimum = self._unpack("<I"), 0x10000
        else:
            n, minimum = self._unpack("<Q"), 0x100000000
        if n < minimum:
            raise TransactionDecodeError("non-minimal CompactSize encoding")
        return n

    def count(self, what: str) -> int:
        # Every element takes at least one byte; anything larger cannot fit.
        n = self.compact_size()
        if n > self.remaining:
            raise TransactionDecodeError(f"{what} count {n} exceeds remaining data")
        return n

    def var_bytes(self) -> bytes:
        return self.read(self.count("byte"))


def _read_inputs(r: _Reader) -> list[TxIn]:
    inputs = []
    for _ in range(r.count("input")):
        prev = OutPoint(txid=r.read(32), vout=r.u32())
        inputs.append(TxIn(previous_output=prev, script_sig=r.var_bytes(), sequence=r.u32()))
    return inputs


def _read_outputs(r: _Reader) -> list[TxOut]:
    outputs = []
    for _ in range(r.count("output")):
        outputs.append(TxOut(value=r.i64(), script_pubkey=r.var_bytes()))
    return outputs


def decode_transaction(data: bytes) -> Transaction:
    """Decode one consensus-serialized transaction; the whole buffer must be consumed."""

    r = _Reader(data)
    version = r.i32()
    inputs = _read_inputs(r)
    if not inputs:
        # Zero inputs is the BIP-144 marker; the next byte is the flag.
        flag = r.u8()
        if flag != SEGWIT_FLAG:
            raise TransactionDecodeError(f"unsupported segwit flag: {flag}")
        inputs = _read_inputs(r)
        outputs = _read_outputs(r)
        inputs = [
            replace(txin, witness=tuple(r.var_bytes() for _ in range(r.count("witness item"))))
            for txin in inputs
        ]
        if not any(txin.witness for txin in inputs):
            raise TransactionDecodeError("witness flag set but no witnesses present")
    else:
        outputs = _read_outputs(r)
    lock_time = r.u32()

    if r.remaining:
        raise TransactionDecodeError(f"{r.remaining} trailing bytes after transaction")

    return Transaction(version=version, inputs=tuple(inputs), outputs=tuple(outputs), lock_time=lock_time)


def decode_hex(value: str) -> bytes:
    if len(value) % 2 or not _HEX_RE.fullmatch(value):
        raise TransactionDecodeError("payload is not valid hex")
    return bytes.fromhex(value)


def decode_transaction_hex(value: str) -> Transaction:
    return decode_transaction(decode_hex(value))
