"""Helpers to serialize/deserialize fixtures for the marketplace specs."""

from __future__ import annotations

from typing import Any

from market_spec.types import (
    AccountState,
    AgentProfile,
    Call,
    CallType,
    Event,
    Listing,
    MarketState,
)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v[2:] if v.startswith(("0x", "0X")) else v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def state_to_json(state: MarketState) -> dict[str, Any]:
    # Collections are emitted in key order so fixtures are stable regardless
    # of the order entries were created in.
    result: dict[str, Any] = {
        "network_chain_id": state.network_chain_id,
        "owner": _bytes_to_hex(state.owner),
        "platform_fee_bps": state.platform_fee_bps,
        "paused": state.paused,
        "total_listings": state.total_listings,
        "contract_balance": state.contract_balance,
        "global_state": {
            "block_height": state.global_state.block_height,
            "timestamp": state.global_state.timestamp,
        },
        "listings": [
            {
                "listing_id": lst.listing_id,
                "seller": _bytes_to_hex(lst.seller),
                "price": lst.price,
                "sold": lst.sold,
                "proof_hash": _bytes_to_hex(lst.proof_hash),
                "created_at": lst.created_at,
            }
            for _, lst in sorted(state.listings.items())
        ],
        "balances": [
            {"address": _bytes_to_hex(addr), "amount": amount}
            for addr, amount in sorted(state.balances.items())
        ],
        "accounts": [_account_to_json(a) for _, a in sorted(state.accounts.items())],
    }

    if state.agents:
        result["agents"] = [
            {
                "address": _bytes_to_hex(addr),
                "metadata_uri": a.metadata_uri,
                "fee_bps": a.fee_bps,
                "active": a.active,
                "registered_at": a.registered_at,
            }
            for addr, a in sorted(state.agents.items())
        ]

    return result


def _account_to_json(a: AccountState) -> dict[str, Any]:
    out: dict[str, Any] = {
        "address": _bytes_to_hex(a.address),
        "balance": a.balance,
        "nonce": a.nonce,
        "accepts_value": a.accepts_value,
    }
    if a.on_receive is not None:
        out["on_receive"] = call_to_json(a.on_receive)
    return out


def state_from_json(data: dict[str, Any]) -> MarketState:
    state = MarketState(
        owner=_hex_to_bytes(data["owner"]),
        platform_fee_bps=data.get("platform_fee_bps", 0),
        paused=data.get("paused", False),
        total_listings=data.get("total_listings", 0),
        contract_balance=data.get("contract_balance", 0),
        network_chain_id=data["network_chain_id"],
    )
    gs = data.get("global_state", {})
    state.global_state.block_height = gs.get("block_height", 0)
    state.global_state.timestamp = gs.get("timestamp", 0)

    for lst in data.get("listings", []):
        listing = Listing(
            listing_id=lst["listing_id"],
            seller=_hex_to_bytes(lst["seller"]),
            price=lst["price"],
            sold=lst.get("sold", False),
            proof_hash=_hex_to_bytes(lst.get("proof_hash", "00" * 32)),
            created_at=lst.get("created_at", 0),
        )
        state.listings[listing.listing_id] = listing

    for b in data.get("balances", []):
        state.balances[_hex_to_bytes(b["address"])] = b["amount"]

    for a in data.get("agents", []):
        addr = _hex_to_bytes(a["address"])
        state.agents[addr] = AgentProfile(
            address=addr,
            metadata_uri=a["metadata_uri"],
            fee_bps=a["fee_bps"],
            active=a.get("active", True),
            registered_at=a.get("registered_at", 0),
        )

    for a in data.get("accounts", []):
        acct = AccountState(
            address=_hex_to_bytes(a["address"]),
            balance=a.get("balance", 0),
            nonce=a.get("nonce", 0),
            accepts_value=a.get("accepts_value", True),
            on_receive=call_from_json(a["on_receive"]) if a.get("on_receive") else None,
        )
        state.accounts[acct.address] = acct

    return state


_BYTES_FIELDS: set[str] = {"proof_hash", "agent", "new_owner"}


def _payload_to_json(payload: Any) -> Any:
    """Recursively convert a payload value, turning bytes into hex strings."""
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        return _bytes_to_hex(bytes(payload))
    if isinstance(payload, dict):
        return {k: _payload_to_json(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_payload_to_json(item) for item in payload]
    return payload


def _json_to_bytes_payload(payload: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _BYTES_FIELDS and isinstance(value, str):
            result[key] = _hex_to_bytes(value)
        else:
            result[key] = value
    return result


def call_to_json(call: Call) -> dict[str, Any]:
    return {
        "chain_id": call.chain_id,
        "caller": _bytes_to_hex(call.caller),
        "call_type": call.call_type.value,
        "payload": _payload_to_json(call.payload),
        "value": call.value,
        "nonce": call.nonce,
    }


def call_from_json(data: dict[str, Any]) -> Call:
    return Call(
        caller=_hex_to_bytes(data["caller"]),
        call_type=CallType(data["call_type"]),
        payload=_json_to_bytes_payload(data.get("payload") or {}),
        value=data.get("value", 0),
        nonce=data.get("nonce", 0),
        chain_id=data["chain_id"],
    )


def event_to_json(event: Event) -> dict[str, Any]:
    return {
        "name": event.name,
        "args": _payload_to_json(event.args),
        "call_hash": _bytes_to_hex(event.call_hash),
        "block_height": event.block_height,
        "log_index": event.log_index,
        "timestamp": event.timestamp,
    }


_EVENT_BYTES_ARGS: set[str] = {
    "seller", "buyer", "agent", "recipient", "account",
    "previous_owner", "new_owner", "proof_hash",
}


def event_from_json(data: dict[str, Any]) -> Event:
    args = {
        k: _hex_to_bytes(v) if k in _EVENT_BYTES_ARGS and isinstance(v, str) else v
        for k, v in data["args"].items()
    }
    return Event(
        name=data["name"],
        args=args,
        call_hash=_hex_to_bytes(data.get("call_hash", "")),
        block_height=data.get("block_height", 0),
        log_index=data.get("log_index", 0),
        timestamp=data.get("timestamp", 0),
    )
