"""State transition entrypoints for the marketplace ledger spec."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import replace
from typing import Optional

from .account_model import collect_value
from .config import ADDRESS_SIZE, CHAIN_ID_LOCAL, MAX_UINT256, ZERO_ADDRESS
from .encoding import call_hash
from .errors import ErrorCode, SpecError
from .guards import non_reentrant
from .types import AccountState, Call, CallType, Event, GlobalState, MarketState
from .tx import admin as tx_admin
from .tx import agents as tx_agents
from .tx import funds as tx_funds
from .tx import listings as tx_listings

_LISTING_TYPES = frozenset({
    CallType.CREATE_LISTING,
    CallType.PURCHASE_LISTING,
    CallType.PURCHASE_LISTING_WITH_AGENT,
})

_ADMIN_TYPES = frozenset({
    CallType.UPDATE_FEE,
    CallType.PAUSE,
    CallType.UNPAUSE,
    CallType.TRANSFER_OWNERSHIP,
})

_FUNDS_TYPES = frozenset({
    CallType.WITHDRAW,
    CallType.RECEIVE,
})

_AGENT_TYPES = frozenset({
    CallType.REGISTER_AGENT,
    CallType.DEACTIVATE_AGENT,
})

_PAYABLE_TYPES = frozenset({
    CallType.PURCHASE_LISTING,
    CallType.PURCHASE_LISTING_WITH_AGENT,
    CallType.RECEIVE,
})

# Every operation that pushes value out of the ledger.
_GUARDED_TYPES = frozenset({
    CallType.PURCHASE_LISTING,
    CallType.PURCHASE_LISTING_WITH_AGENT,
    CallType.WITHDRAW,
})


class TransitionResult:
    """Thin wrapper for verify/apply results."""

    def __init__(
        self,
        ok: bool,
        error: Optional[SpecError] = None,
        events: Optional[list[Event]] = None,
    ):
        self.ok = ok
        self.error = error
        self.events = events or []

    @classmethod
    def success(cls, events: Optional[list[Event]] = None) -> "TransitionResult":
        return cls(True, None, events)

    @classmethod
    def failure(cls, error: SpecError) -> "TransitionResult":
        return cls(False, error)

    def __repr__(self) -> str:
        if self.ok:
            return f"TransitionResult(ok, events={len(self.events)})"
        return f"TransitionResult(failed, {self.error})"


def deploy(
    owner: bytes,
    *,
    timestamp: int = 0,
    chain_id: int = CHAIN_ID_LOCAL,
    accounts: Optional[list[AccountState]] = None,
) -> MarketState:
    """Genesis state: the deployer owns the ledger at the default fee."""
    if len(owner) != ADDRESS_SIZE or owner == ZERO_ADDRESS:
        raise SpecError(ErrorCode.INVALID_ADDRESS, "owner must be a non-zero 20-byte address")
    state = MarketState(
        owner=owner,
        global_state=GlobalState(timestamp=timestamp),
        network_chain_id=chain_id,
    )
    for acct in accounts or []:
        state.accounts[acct.address] = acct
    return state


def _dispatch_verify(state: MarketState, call: Call) -> None:
    ct = call.call_type
    if ct in _LISTING_TYPES:
        return tx_listings.verify(state, call)
    if ct in _ADMIN_TYPES:
        return tx_admin.verify(state, call)
    if ct in _FUNDS_TYPES:
        return tx_funds.verify(state, call)
    if ct in _AGENT_TYPES:
        return tx_agents.verify(state, call)

    raise SpecError(ErrorCode.NOT_IMPLEMENTED, f"verify not implemented for {call.call_type}")


def _dispatch_apply(state: MarketState, call: Call) -> None:
    ct = call.call_type
    if ct in _LISTING_TYPES:
        return tx_listings.apply(state, call)
    if ct in _ADMIN_TYPES:
        return tx_admin.apply(state, call)
    if ct in _FUNDS_TYPES:
        return tx_funds.apply(state, call)
    if ct in _AGENT_TYPES:
        return tx_agents.apply(state, call)

    raise SpecError(ErrorCode.NOT_IMPLEMENTED, f"apply not implemented for {call.call_type}")


def _is_uint(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _verify_common(state: MarketState, call: Call) -> None:
    for name in ("chain_id", "nonce", "value"):
        if not _is_uint(getattr(call, name)):
            raise SpecError(ErrorCode.INVALID_FORMAT, f"{name} must be an integer")

    if call.chain_id != state.network_chain_id:
        raise SpecError(ErrorCode.INVALID_FORMAT, "chain_id mismatch")

    caller = call.caller
    if not isinstance(caller, (bytes, bytearray)) or len(caller) != ADDRESS_SIZE or caller == ZERO_ADDRESS:
        raise SpecError(ErrorCode.INVALID_ADDRESS, "invalid caller address")

    if call.value < 0 or call.value > MAX_UINT256:
        raise SpecError(ErrorCode.INVALID_FORMAT, "value out of uint256 range")

    if call.value and call.call_type not in _PAYABLE_TYPES:
        raise SpecError(ErrorCode.NON_PAYABLE, f"{call.call_type.value} is not payable")


def _check_value_availability(state: MarketState, call: Call) -> None:
    """Check the caller holds the value it attaches."""
    sender = state.accounts.get(call.caller)
    if sender is None:
        return
    if sender.balance < call.value:
        raise SpecError(ErrorCode.INSUFFICIENT_BALANCE, "caller cannot fund attached value")


def _require_strict_nonce(sender_nonce: int, call_nonce: int) -> None:
    if call_nonce < sender_nonce:
        raise SpecError(ErrorCode.NONCE_TOO_LOW, "nonce too low")
    if call_nonce > sender_nonce:
        raise SpecError(ErrorCode.NONCE_TOO_HIGH, "nonce too high")


def _fork(state: MarketState) -> MarketState:
    """Deep copy of the ledger that shares the committed event records."""
    working = deepcopy(replace(state, events=[]))
    working.events = list(state.events)
    return working


def _run(state: MarketState, call: Call) -> None:
    collect_value(state, call)
    _dispatch_verify(state, call)
    _dispatch_apply(state, call)


def execute(state: MarketState, call: Call) -> None:
    """Execute a call in place on a working state.

    Used for top-level calls (after pre-validation, on a private copy) and for
    nested calls issued by value recipients. Raises `SpecError` on failure;
    the caller owns the rollback.
    """
    _verify_common(state, call)
    if call.call_type in _GUARDED_TYPES:
        with non_reentrant(state):
            _run(state, call)
    else:
        _run(state, call)


def verify_call(state: MarketState, call: Call) -> TransitionResult:
    """Stateless + stateful verification for a single call."""
    try:
        _verify_common(state, call)
        if call.caller not in state.accounts:
            raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "caller account not found")
        _check_value_availability(state, call)
        _dispatch_verify(state, call)
        return TransitionResult.success()
    except SpecError as exc:
        return TransitionResult.failure(exc)


def apply_call(state: MarketState, call: Call) -> tuple[MarketState, TransitionResult]:
    """Apply a call after verification.

    Failed-call semantics: state unchanged, no nonce advance, no events.
    """
    # Pre-validation
    try:
        _verify_common(state, call)
        sender = state.accounts.get(call.caller)
        if sender is None:
            raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "caller account not found")
        _require_strict_nonce(sender.nonce, call.nonce)
        _check_value_availability(state, call)
        _dispatch_verify(state, call)
    except SpecError as exc:
        return state, TransitionResult.failure(exc)

    working = _fork(state)
    try:
        working.current_call_hash = call_hash(call)
        execute(working, call)
    except SpecError as exc:
        # Execution failure: every effect, including nested calls, is discarded.
        return state, TransitionResult.failure(exc)

    working.current_call_hash = b""
    working.accounts[call.caller].nonce += 1
    return working, TransitionResult.success(working.events[len(state.events):])


def apply_block(
    state: MarketState, calls: list[Call], timestamp: Optional[int] = None
) -> tuple[MarketState, list[TransitionResult]]:
    """Apply a block worth of calls in order.

    Each call is atomic on its own: a failed call is reported and skipped,
    later calls still run against the state left by earlier successes.
    """
    gs = state.global_state
    working = _fork(state)
    working.global_state = replace(
        gs,
        block_height=gs.block_height + 1,
        timestamp=gs.timestamp if timestamp is None else timestamp,
    )
    if working.global_state.timestamp < gs.timestamp:
        raise SpecError(ErrorCode.INVALID_FORMAT, "block timestamp goes backwards")

    results: list[TransitionResult] = []
    for call in calls:
        working, result = apply_call(working, call)
        results.append(result)
    return working, results
