"""Canonical state digest implementation (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

from .config import ADDRESS_SIZE, PROOF_HASH_SIZE


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _u256_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u256 must be non-negative")
    return int(value).to_bytes(32, "big", signed=False)


def _address(value: str) -> bytes:
    addr = _hex_to_bytes(value)
    if len(addr) != ADDRESS_SIZE:
        raise ValueError(f"address must be {ADDRESS_SIZE} bytes, got {len(addr)}")
    return addr


def _string(value: str) -> bytes:
    data = value.encode()
    return _u64_be(len(data)) + data


def compute_state_digest(post_state: dict[str, Any]) -> str:
    """Compute state digest v1 from post_state.

    Fields are encoded in canonical order, collections sorted by key, and
    hashed with BLAKE3-256. The event log is not part of the digest.
    """
    buf = bytearray()
    buf += _address(post_state["owner"])
    buf += _u64_be(int(post_state.get("platform_fee_bps", 0)))
    buf += b"\x01" if post_state.get("paused") else b"\x00"
    buf += _u64_be(int(post_state.get("total_listings", 0)))
    buf += _u256_be(int(post_state.get("contract_balance", 0)))

    gs = post_state.get("global_state", {})
    for field in ("block_height", "timestamp"):
        buf += _u64_be(int(gs.get(field, 0)))

    listings = sorted(post_state.get("listings", []), key=lambda x: x["listing_id"].encode())
    buf += _u64_be(len(listings))
    for lst in listings:
        buf += _string(lst["listing_id"])
        buf += _address(lst["seller"])
        buf += _u256_be(int(lst["price"]))
        buf += b"\x01" if lst.get("sold") else b"\x00"
        proof = _hex_to_bytes(lst.get("proof_hash", ""))
        if len(proof) != PROOF_HASH_SIZE:
            raise ValueError(f"proof_hash must be {PROOF_HASH_SIZE} bytes, got {len(proof)}")
        buf += proof
        buf += _u64_be(int(lst.get("created_at", 0)))

    # A zero entry is indistinguishable from an absent one.
    balances = sorted(
        ((_address(b["address"]), int(b["amount"])) for b in post_state.get("balances", [])
         if int(b["amount"])),
        key=lambda x: x[0],
    )
    buf += _u64_be(len(balances))
    for addr, amount in balances:
        buf += addr
        buf += _u256_be(amount)

    agents = sorted(
        ((_address(a["address"]), a) for a in post_state.get("agents", [])),
        key=lambda x: x[0],
    )
    buf += _u64_be(len(agents))
    for addr, agent in agents:
        buf += addr
        buf += _string(agent.get("metadata_uri", ""))
        buf += _u64_be(int(agent.get("fee_bps", 0)))
        buf += b"\x01" if agent.get("active") else b"\x00"
        buf += _u64_be(int(agent.get("registered_at", 0)))

    accounts = sorted(
        ((_address(a["address"]), a) for a in post_state.get("accounts", [])),
        key=lambda x: x[0],
    )
    buf += _u64_be(len(accounts))
    for addr, acc in accounts:
        buf += addr
        buf += _u256_be(int(acc.get("balance", 0)))
        buf += _u64_be(int(acc.get("nonce", 0)))
        buf += b"\x01" if acc.get("accepts_value", True) else b"\x00"

    return blake3(buf).hexdigest()
