"""Canonical call encoding (minimal subset).

The encoding is only used to derive call hashes, which tag every emitted
event so that downstream indexers can upsert idempotently.
"""

from __future__ import annotations

from dataclasses import dataclass

from blake3 import blake3

from .config import ADDRESS_SIZE, MAX_UINT256, PROOF_HASH_SIZE
from .errors import ErrorCode, SpecError
from .types import Call, CallType


CALL_TYPE_IDS = {
    CallType.RECEIVE: 0,
    CallType.CREATE_LISTING: 1,
    CallType.PURCHASE_LISTING: 2,
    CallType.PURCHASE_LISTING_WITH_AGENT: 3,
    CallType.UPDATE_FEE: 4,
    CallType.WITHDRAW: 5,
    CallType.PAUSE: 6,
    CallType.UNPAUSE: 7,
    CallType.TRANSFER_OWNERSHIP: 8,
    CallType.REGISTER_AGENT: 9,
    CallType.DEACTIVATE_AGENT: 10,
}


@dataclass
class Writer:
    buf: bytearray

    def write_u8(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(1, "big", signed=False))

    def write_u16(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(2, "big", signed=False))

    def write_u64(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(8, "big", signed=False))

    def write_u256(self, v: int) -> None:
        if not 0 <= int(v) <= MAX_UINT256:
            raise SpecError(ErrorCode.INVALID_FORMAT, "value does not fit uint256")
        self.buf.extend(int(v).to_bytes(32, "big", signed=False))

    def write_bytes(self, b: bytes) -> None:
        self.buf.extend(b)


def _write_fixed_bytes(w: Writer, name: str, value: object, size: int) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, f"{name} must be bytes")
    if len(value) != size:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"{name} must be {size} bytes")
    w.write_bytes(bytes(value))


def _write_address(w: Writer, name: str, value: object) -> None:
    _write_fixed_bytes(w, name, value, ADDRESS_SIZE)


def utf8_bytes(value: str, name: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, f"{name} is not valid UTF-8") from exc


def _write_string_u16(w: Writer, value: object) -> None:
    if not isinstance(value, str):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "string expected")
    data = utf8_bytes(value, "string")
    if len(data) > 0xFFFF:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "string too long")
    w.write_u16(len(data))
    w.write_bytes(data)


def _encode_payload(w: Writer, call: Call) -> None:
    p = call.payload
    ct = call.call_type
    if ct == CallType.CREATE_LISTING:
        _write_string_u16(w, p.get("listing_id"))
        w.write_u256(p.get("price", 0))
        _write_fixed_bytes(w, "proof_hash", p.get("proof_hash"), PROOF_HASH_SIZE)
    elif ct == CallType.PURCHASE_LISTING:
        _write_string_u16(w, p.get("listing_id"))
    elif ct == CallType.PURCHASE_LISTING_WITH_AGENT:
        _write_string_u16(w, p.get("listing_id"))
        _write_address(w, "agent", p.get("agent"))
    elif ct == CallType.UPDATE_FEE:
        w.write_u16(p.get("fee_bps", 0))
    elif ct == CallType.TRANSFER_OWNERSHIP:
        _write_address(w, "new_owner", p.get("new_owner"))
    elif ct == CallType.REGISTER_AGENT:
        _write_string_u16(w, p.get("metadata_uri"))
        w.write_u16(p.get("fee_bps", 0))
    elif ct in (CallType.WITHDRAW, CallType.PAUSE, CallType.UNPAUSE,
                CallType.DEACTIVATE_AGENT, CallType.RECEIVE):
        return
    else:
        raise SpecError(ErrorCode.NOT_IMPLEMENTED, f"encoding not implemented for {ct}")


def encode_call(call: Call) -> bytes:
    """Encode a call as chain_id | caller | type | nonce | value | payload."""
    w = Writer(bytearray())
    w.write_u64(call.chain_id)
    _write_address(w, "caller", call.caller)
    w.write_u8(CALL_TYPE_IDS[call.call_type])
    w.write_u64(call.nonce)
    w.write_u256(call.value)
    _encode_payload(w, call)
    return bytes(w.buf)


def call_hash(call: Call) -> bytes:
    return blake3(encode_call(call)).digest()
