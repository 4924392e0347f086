"""Event-log indexer for the marketplace ledger.

Replays emitted events in order into query-friendly aggregates: listing
projections, per-participant activity and global market metrics. Every
event is keyed by ``(call_hash, log_index)`` so replaying an overlapping
log is harmless.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from . import events as ev
from .types import Event

logger = logging.getLogger(__name__)


@dataclass
class ListingRecord:
    listing_id: str
    seller: bytes
    price: int
    proof_hash: bytes
    created_at: int = 0
    sold: bool = False
    buyer: Optional[bytes] = None
    sold_at: Optional[int] = None


@dataclass
class ParticipantStats:
    address: bytes
    listings_created: int = 0
    sales: int = 0
    purchases: int = 0
    volume_sold: int = 0
    volume_bought: int = 0
    commission_earned: int = 0
    withdrawn: int = 0
    last_active: int = 0


@dataclass
class MarketMetrics:
    total_listings: int = 0
    total_transactions: int = 0
    total_volume: int = 0
    platform_fee_bps: Optional[int] = None
    paused: bool = False
    last_updated: int = 0

    @property
    def average_price(self) -> int:
        if self.total_transactions == 0:
            return 0
        return self.total_volume // self.total_transactions


@dataclass
class MarketIndex:
    listings: dict[str, ListingRecord] = field(default_factory=dict)
    participants: dict[bytes, ParticipantStats] = field(default_factory=dict)
    metrics: MarketMetrics = field(default_factory=MarketMetrics)
    _seen: set[tuple[bytes, int]] = field(default_factory=set)

    def apply(self, event: Event) -> bool:
        """Index one event; returns False when it was already indexed."""
        key = (event.call_hash, event.log_index)
        if key in self._seen:
            logger.debug("skipping already indexed event %s #%d", event.name, event.log_index)
            return False

        handler = _HANDLERS.get(event.name)
        if handler is None:
            logger.debug("no handler for event %s", event.name)
        else:
            handler(self, event)
        self._seen.add(key)
        self.metrics.last_updated = max(self.metrics.last_updated, event.timestamp)
        return True

    def replay(self, events: Iterable[Event]) -> int:
        """Index events in emission order; returns how many were new."""
        applied = 0
        for event in events:
            if self.apply(event):
                applied += 1
        logger.debug("indexed %d new events", applied)
        return applied

    def participant(self, address: bytes) -> ParticipantStats:
        stats = self.participants.get(address)
        if stats is None:
            stats = ParticipantStats(address=address)
            self.participants[address] = stats
        return stats


def _on_listing_created(index: MarketIndex, event: Event) -> None:
    a = event.args
    index.listings[a["listing_id"]] = ListingRecord(
        listing_id=a["listing_id"],
        seller=a["seller"],
        price=a["price"],
        proof_hash=a["proof_hash"],
        created_at=event.timestamp,
    )
    seller = index.participant(a["seller"])
    seller.listings_created += 1
    seller.last_active = event.timestamp
    index.metrics.total_listings += 1


def _on_purchase_completed(index: MarketIndex, event: Event) -> None:
    a = event.args
    record = index.listings.get(a["listing_id"])
    if record is None:
        # Log started after the listing was created.
        logger.warning("purchase of unindexed listing %s", a["listing_id"])
        record = ListingRecord(
            listing_id=a["listing_id"],
            seller=a["seller"],
            price=a["price"],
            proof_hash=bytes(32),
        )
        index.listings[record.listing_id] = record
    record.sold = True
    record.buyer = a["buyer"]
    record.sold_at = event.timestamp

    seller = index.participant(a["seller"])
    seller.sales += 1
    seller.volume_sold += a["price"]
    seller.last_active = event.timestamp

    buyer = index.participant(a["buyer"])
    buyer.purchases += 1
    buyer.volume_bought += a["price"]
    buyer.last_active = event.timestamp

    index.metrics.total_transactions += 1
    index.metrics.total_volume += a["price"]


def _on_agent_commission(index: MarketIndex, event: Event) -> None:
    agent = index.participant(event.args["agent"])
    agent.commission_earned += event.args["amount"]
    agent.last_active = event.timestamp


def _on_funds_withdrawn(index: MarketIndex, event: Event) -> None:
    index.participant(event.args["recipient"]).withdrawn += event.args["amount"]


def _on_fee_updated(index: MarketIndex, event: Event) -> None:
    index.metrics.platform_fee_bps = event.args["new_fee_bps"]


def _on_paused(index: MarketIndex, event: Event) -> None:
    index.metrics.paused = True


def _on_unpaused(index: MarketIndex, event: Event) -> None:
    index.metrics.paused = False


_HANDLERS: dict[str, Callable[[MarketIndex, Event], None]] = {
    ev.LISTING_CREATED: _on_listing_created,
    ev.PURCHASE_COMPLETED: _on_purchase_completed,
    ev.AGENT_COMMISSION_CREDITED: _on_agent_commission,
    ev.FUNDS_WITHDRAWN: _on_funds_withdrawn,
    ev.FEE_UPDATED: _on_fee_updated,
    ev.PAUSED: _on_paused,
    ev.UNPAUSED: _on_unpaused,
}
