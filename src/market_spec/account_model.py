"""Value accounting for the marketplace ledger.

Two books are kept apart: native holdings of external accounts
(`AccountState.balance`) and the ledger's own pull-payment book
(`MarketState.balances`), backed by `MarketState.contract_balance`.
"""

from __future__ import annotations

from dataclasses import replace

from .config import BPS_DENOMINATOR, MAX_UINT256
from .errors import ErrorCode, SpecError
from .types import AccountState, Call, MarketState


def apply_balance_change(balance: int, delta: int) -> int:
    """Apply +/- balance with uint256 bounds."""
    new_balance = balance + delta
    if new_balance < 0:
        raise SpecError(ErrorCode.INSUFFICIENT_BALANCE, "negative balance")
    if new_balance > MAX_UINT256:
        raise SpecError(ErrorCode.OVERFLOW, "balance overflow")
    return new_balance


def fee_share(price: int, fee_bps: int) -> int:
    """floor(price * fee_bps / 10000), rejecting uint256 overflow of the product."""
    product = price * fee_bps
    if product > MAX_UINT256:
        raise SpecError(ErrorCode.OVERFLOW, "fee computation overflow")
    return product // BPS_DENOMINATOR


def ensure_account(state: MarketState, address: bytes) -> AccountState:
    """Implicit account creation on first incoming value."""
    acct = state.accounts.get(address)
    if acct is None:
        acct = AccountState(address=address)
        state.accounts[address] = acct
    return acct


def credit_ledger(state: MarketState, address: bytes, amount: int) -> None:
    if amount == 0:
        return
    state.balances[address] = apply_balance_change(state.balances.get(address, 0), amount)


def collect_value(state: MarketState, call: Call) -> None:
    """Move the value attached to `call` from the caller into the ledger."""
    if call.value == 0:
        return
    acct = state.accounts.get(call.caller)
    if acct is None or acct.balance < call.value:
        raise SpecError(ErrorCode.INSUFFICIENT_BALANCE, "caller cannot fund attached value")
    acct.balance -= call.value
    state.contract_balance = apply_balance_change(state.contract_balance, call.value)


def send_value(state: MarketState, recipient: bytes, amount: int) -> None:
    """Push `amount` out of the ledger to `recipient`.

    A recipient with an `on_receive` callback runs it as a nested call on the
    same working state; if the recipient rejects value or the callback fails,
    the transfer fails and the caller must abort the whole operation.
    """
    if amount == 0:
        return
    if state.contract_balance < amount:
        raise SpecError(ErrorCode.INTERNAL_ERROR, "ledger holdings below outgoing transfer")

    acct = ensure_account(state, recipient)
    if not acct.accepts_value:
        raise SpecError(ErrorCode.TRANSFER_FAILED, "recipient rejected value")

    state.contract_balance -= amount
    acct.balance = apply_balance_change(acct.balance, amount)

    if acct.on_receive is None:
        return

    from .state_transition import execute

    hook = replace(acct.on_receive, caller=recipient)
    try:
        execute(state, hook)
    except SpecError as exc:
        raise SpecError(
            ErrorCode.TRANSFER_FAILED, f"recipient callback reverted: {exc.code.name}"
        ) from exc
