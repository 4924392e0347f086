"""Listing transaction specs (create / purchase)."""

from __future__ import annotations

from typing import Optional

from ..account_model import credit_ledger, fee_share, send_value
from ..config import ADDRESS_SIZE, MAX_LISTING_ID_BYTES, MAX_UINT256, PROOF_HASH_SIZE, ZERO_ADDRESS
from ..encoding import utf8_bytes
from ..errors import ErrorCode, SpecError
from ..events import AGENT_COMMISSION_CREDITED, LISTING_CREATED, PURCHASE_COMPLETED, emit
from ..guards import require_not_paused
from ..types import AgentProfile, Call, CallType, Listing, MarketState


def _listing_id(p: dict) -> str:
    listing_id = p.get("listing_id")
    if not isinstance(listing_id, str):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "listing_id must be a string")
    if len(utf8_bytes(listing_id, "listing_id")) > MAX_LISTING_ID_BYTES:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "listing_id too long")
    return listing_id


def _proof_hash(p: dict) -> bytes:
    v = p.get("proof_hash")
    if not isinstance(v, (bytes, bytearray)) or len(v) != PROOF_HASH_SIZE:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "proof_hash must be 32 bytes")
    return bytes(v)


def _agent_address(p: dict) -> bytes:
    v = p.get("agent")
    if not isinstance(v, (bytes, bytearray)) or len(v) != ADDRESS_SIZE:
        raise SpecError(ErrorCode.INVALID_ADDRESS, "agent must be a 20-byte address")
    if bytes(v) == ZERO_ADDRESS:
        raise SpecError(ErrorCode.INVALID_ADDRESS, "agent is the zero address")
    return bytes(v)


def verify(state: MarketState, call: Call) -> None:
    p = call.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "listing payload must be dict")

    ct = call.call_type
    if ct == CallType.CREATE_LISTING:
        _verify_create(state, call, p)
    elif ct == CallType.PURCHASE_LISTING:
        _verify_purchase(state, call, p)
    elif ct == CallType.PURCHASE_LISTING_WITH_AGENT:
        _verify_purchase(state, call, p)
        _active_agent(state, _agent_address(p))
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported listing call type: {ct}")


def apply(state: MarketState, call: Call) -> None:
    p = call.payload
    ct = call.call_type
    if ct == CallType.CREATE_LISTING:
        _apply_create(state, call, p)
    elif ct == CallType.PURCHASE_LISTING:
        _apply_purchase(state, call, p, None)
    elif ct == CallType.PURCHASE_LISTING_WITH_AGENT:
        _apply_purchase(state, call, p, state.agents[_agent_address(p)])
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported listing call type: {ct}")


# --- CREATE_LISTING ---

def _verify_create(state: MarketState, call: Call, p: dict) -> None:
    require_not_paused(state)

    listing_id = _listing_id(p)
    _proof_hash(p)

    price = p.get("price", 0)
    if not isinstance(price, int) or isinstance(price, bool) or price <= 0:
        raise SpecError(ErrorCode.INVALID_PRICE, "price must be greater than 0")
    if price > MAX_UINT256:
        raise SpecError(ErrorCode.INVALID_PRICE, "price exceeds uint256")

    if listing_id in state.listings:
        raise SpecError(ErrorCode.LISTING_ALREADY_EXISTS, "listing already exists")


def _apply_create(state: MarketState, call: Call, p: dict) -> None:
    listing = Listing(
        listing_id=_listing_id(p),
        seller=call.caller,
        price=p["price"],
        sold=False,
        proof_hash=_proof_hash(p),
        created_at=state.global_state.timestamp,
    )
    state.listings[listing.listing_id] = listing
    state.total_listings += 1

    emit(
        state,
        LISTING_CREATED,
        listing_id=listing.listing_id,
        seller=listing.seller,
        price=listing.price,
        proof_hash=listing.proof_hash,
    )


# --- PURCHASE_LISTING / PURCHASE_LISTING_WITH_AGENT ---

def _active_agent(state: MarketState, agent: bytes) -> AgentProfile:
    profile = state.agents.get(agent)
    if profile is None or not profile.active:
        raise SpecError(ErrorCode.AGENT_NOT_ACTIVE, "agent not registered or inactive")
    return profile


def _verify_purchase(state: MarketState, call: Call, p: dict) -> None:
    require_not_paused(state)

    listing = state.listings.get(_listing_id(p))
    if listing is None:
        raise SpecError(ErrorCode.LISTING_NOT_FOUND, "listing not found")
    if listing.sold:
        raise SpecError(ErrorCode.LISTING_ALREADY_SOLD, "listing already sold")
    if call.value < listing.price:
        raise SpecError(ErrorCode.INSUFFICIENT_PAYMENT, "insufficient payment")


def _apply_purchase(
    state: MarketState, call: Call, p: dict, agent: Optional[AgentProfile]
) -> None:
    listing = state.listings[_listing_id(p)]
    price = listing.price

    # Mark sold before any value leaves the ledger.
    listing.sold = True

    platform_fee = fee_share(price, state.platform_fee_bps)
    agent_fee = fee_share(price, agent.fee_bps) if agent is not None else 0
    seller_amount = price - platform_fee - agent_fee

    send_value(state, listing.seller, seller_amount)

    credit_ledger(state, state.owner, platform_fee)
    if agent is not None:
        credit_ledger(state, agent.address, agent_fee)

    excess = call.value - price
    if excess > 0:
        send_value(state, call.caller, excess)

    emit(
        state,
        PURCHASE_COMPLETED,
        listing_id=listing.listing_id,
        buyer=call.caller,
        seller=listing.seller,
        price=price,
    )
    if agent is not None:
        emit(
            state,
            AGENT_COMMISSION_CREDITED,
            listing_id=listing.listing_id,
            agent=agent.address,
            amount=agent_fee,
        )
