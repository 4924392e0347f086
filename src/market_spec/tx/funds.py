"""Withdrawal and passive receipt specs."""

from __future__ import annotations

from ..account_model import send_value
from ..errors import ErrorCode, SpecError
from ..events import FUNDS_WITHDRAWN, emit
from ..types import Call, CallType, MarketState


def verify(state: MarketState, call: Call) -> None:
    ct = call.call_type
    if ct == CallType.WITHDRAW:
        if state.balances.get(call.caller, 0) <= 0:
            raise SpecError(ErrorCode.NO_BALANCE_TO_WITHDRAW, "no balance to withdraw")
    elif ct == CallType.RECEIVE:
        # Attached value is collected by the host before dispatch.
        return
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported funds call type: {ct}")


def apply(state: MarketState, call: Call) -> None:
    ct = call.call_type
    if ct == CallType.WITHDRAW:
        amount = state.balances[call.caller]
        state.balances[call.caller] = 0
        send_value(state, call.caller, amount)
        emit(state, FUNDS_WITHDRAWN, recipient=call.caller, amount=amount)
    elif ct == CallType.RECEIVE:
        return
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported funds call type: {ct}")
