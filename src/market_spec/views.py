"""Read-only accessors over the ledger state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .account_model import fee_share
from .errors import ErrorCode, SpecError
from .types import AgentProfile, Listing, MarketState


def get_listing(state: MarketState, listing_id: str) -> Optional[Listing]:
    return state.listings.get(listing_id)


def is_paused(state: MarketState) -> bool:
    return state.paused


def balance_of(state: MarketState, address: bytes) -> int:
    return state.balances.get(address, 0)


def platform_fee(state: MarketState) -> int:
    return state.platform_fee_bps


def owner_of(state: MarketState) -> bytes:
    return state.owner


def total_listings(state: MarketState) -> int:
    return state.total_listings


def get_agent(state: MarketState, address: bytes) -> Optional[AgentProfile]:
    return state.agents.get(address)


def ledger_total(state: MarketState) -> int:
    """Sum of every withdrawable entry in the balance book."""
    return sum(state.balances.values())


def unclaimed_value(state: MarketState) -> int:
    """Value held by the ledger that no balance entry can claim."""
    return state.contract_balance - ledger_total(state)


@dataclass(frozen=True)
class PurchaseQuote:
    price: int
    platform_fee: int
    agent_fee: int
    seller_amount: int


def quote_purchase(
    state: MarketState, listing_id: str, agent: Optional[bytes] = None
) -> PurchaseQuote:
    """Preview how a purchase of `listing_id` would be split."""
    listing = state.listings.get(listing_id)
    if listing is None:
        raise SpecError(ErrorCode.LISTING_NOT_FOUND, "listing not found")

    agent_bps = 0
    if agent is not None:
        profile = state.agents.get(agent)
        if profile is None or not profile.active:
            raise SpecError(ErrorCode.AGENT_NOT_ACTIVE, "agent not registered or inactive")
        agent_bps = profile.fee_bps

    platform = fee_share(listing.price, state.platform_fee_bps)
    agent_fee = fee_share(listing.price, agent_bps)
    return PurchaseQuote(
        price=listing.price,
        platform_fee=platform,
        agent_fee=agent_fee,
        seller_amount=listing.price - platform - agent_fee,
    )
