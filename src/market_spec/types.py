"""Core types for the marketplace ledger spec.

The ledger tracks the `VerifiableMarketplace` surface: listings, the
pull-payment balance book, platform fee, pause flag, ownership and the
agent registry. External accounts are modelled only as far as value
transfers need them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .config import CHAIN_ID_LOCAL, DEFAULT_PLATFORM_FEE_BPS, ZERO_ADDRESS


class CallType(Enum):
    CREATE_LISTING = "create_listing"
    PURCHASE_LISTING = "purchase_listing"
    PURCHASE_LISTING_WITH_AGENT = "purchase_listing_with_agent"
    UPDATE_FEE = "update_fee"
    WITHDRAW = "withdraw"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    REGISTER_AGENT = "register_agent"
    DEACTIVATE_AGENT = "deactivate_agent"
    RECEIVE = "receive"


@dataclass
class Call:
    """One host-level invocation of a ledger operation."""

    caller: bytes
    call_type: CallType
    payload: dict[str, Any] = field(default_factory=dict)
    value: int = 0
    nonce: int = 0
    chain_id: int = CHAIN_ID_LOCAL


@dataclass
class AccountState:
    address: bytes
    balance: int = 0
    nonce: int = 0
    accepts_value: bool = True
    # Executed as a nested call whenever the account receives value.
    on_receive: Optional[Call] = None


@dataclass
class Listing:
    listing_id: str
    seller: bytes
    price: int
    sold: bool = False
    proof_hash: bytes = bytes(32)
    created_at: int = 0


@dataclass
class AgentProfile:
    address: bytes
    metadata_uri: str
    fee_bps: int
    active: bool = True
    registered_at: int = 0


@dataclass
class Event:
    name: str
    args: dict[str, Any]
    call_hash: bytes = b""
    block_height: int = 0
    log_index: int = 0
    timestamp: int = 0


@dataclass
class GlobalState:
    block_height: int = 0
    timestamp: int = 0


@dataclass
class MarketState:
    owner: bytes = ZERO_ADDRESS
    platform_fee_bps: int = DEFAULT_PLATFORM_FEE_BPS
    paused: bool = False
    total_listings: int = 0
    # Native value held by the ledger; always >= sum(balances).
    contract_balance: int = 0
    listings: dict[str, Listing] = field(default_factory=dict)
    balances: dict[bytes, int] = field(default_factory=dict)
    agents: dict[bytes, AgentProfile] = field(default_factory=dict)
    accounts: dict[bytes, AccountState] = field(default_factory=dict)
    global_state: GlobalState = field(default_factory=GlobalState)
    network_chain_id: int = CHAIN_ID_LOCAL
    # Internal execution state. Not part of conformance post_state.
    events: list[Event] = field(default_factory=list)
    locked: bool = False
    current_call_hash: bytes = b""
