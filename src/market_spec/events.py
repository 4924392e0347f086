"""Event emission for the marketplace ledger."""

from __future__ import annotations

from typing import Any

from .types import Event, MarketState

LISTING_CREATED = "ListingCreated"
PURCHASE_COMPLETED = "PurchaseCompleted"
AGENT_COMMISSION_CREDITED = "AgentCommissionCredited"
FEE_UPDATED = "FeeUpdated"
FUNDS_WITHDRAWN = "FundsWithdrawn"
PAUSED = "Paused"
UNPAUSED = "Unpaused"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
AGENT_REGISTERED = "AgentRegistered"
AGENT_DEACTIVATED = "AgentDeactivated"


def emit(state: MarketState, name: str, **args: Any) -> Event:
    """Append an event to the log; keyword order is the event's field order."""
    # Position within the current call; one call's events are contiguous.
    log_index = 0
    for prior in reversed(state.events):
        if prior.call_hash != state.current_call_hash:
            break
        log_index += 1

    event = Event(
        name=name,
        args=dict(args),
        call_hash=state.current_call_hash,
        block_height=state.global_state.block_height,
        log_index=log_index,
        timestamp=state.global_state.timestamp,
    )
    state.events.append(event)
    return event
