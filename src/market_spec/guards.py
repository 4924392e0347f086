"""Access, pause and re-entrancy guards shared by the ledger operations."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from .errors import ErrorCode, SpecError
from .types import MarketState


def require_owner(state: MarketState, caller: bytes) -> None:
    if caller != state.owner:
        raise SpecError(ErrorCode.UNAUTHORIZED, "caller is not the owner")


def require_not_paused(state: MarketState) -> None:
    if state.paused:
        raise SpecError(ErrorCode.ENFORCED_PAUSE, "ledger is paused")


def require_paused(state: MarketState) -> None:
    if not state.paused:
        raise SpecError(ErrorCode.EXPECTED_PAUSE, "ledger is not paused")


@contextmanager
def non_reentrant(state: MarketState) -> Iterator[None]:
    """Hold the ledger lock for the duration of a value-moving operation."""
    if state.locked:
        raise SpecError(ErrorCode.REENTRANT_CALL, "reentrant call")
    state.locked = True
    try:
        yield
    finally:
        state.locked = False
