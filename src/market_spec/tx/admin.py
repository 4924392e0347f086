"""Owner-only administration specs (fee, pause, ownership)."""

from __future__ import annotations

from ..account_model import apply_balance_change
from ..config import ADDRESS_SIZE, MAX_FEE_BPS, ZERO_ADDRESS
from ..errors import ErrorCode, SpecError
from ..events import FEE_UPDATED, OWNERSHIP_TRANSFERRED, PAUSED, UNPAUSED, emit
from ..guards import require_not_paused, require_owner, require_paused
from ..types import Call, CallType, MarketState


def verify(state: MarketState, call: Call) -> None:
    p = call.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "admin payload must be dict")

    require_owner(state, call.caller)

    ct = call.call_type
    if ct == CallType.UPDATE_FEE:
        fee = p.get("fee_bps")
        if not isinstance(fee, int) or isinstance(fee, bool) or fee < 0 or fee > MAX_FEE_BPS:
            raise SpecError(ErrorCode.INVALID_FEE, "fee too high")
    elif ct == CallType.PAUSE:
        require_not_paused(state)
    elif ct == CallType.UNPAUSE:
        require_paused(state)
    elif ct == CallType.TRANSFER_OWNERSHIP:
        new_owner = p.get("new_owner")
        if not isinstance(new_owner, (bytes, bytearray)) or len(new_owner) != ADDRESS_SIZE:
            raise SpecError(ErrorCode.INVALID_ADDRESS, "new_owner must be a 20-byte address")
        if bytes(new_owner) == ZERO_ADDRESS:
            raise SpecError(ErrorCode.INVALID_ADDRESS, "new owner is the zero address")
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported admin call type: {ct}")


def apply(state: MarketState, call: Call) -> None:
    p = call.payload
    ct = call.call_type
    if ct == CallType.UPDATE_FEE:
        old_fee = state.platform_fee_bps
        state.platform_fee_bps = p["fee_bps"]
        emit(state, FEE_UPDATED, old_fee_bps=old_fee, new_fee_bps=state.platform_fee_bps)
    elif ct == CallType.PAUSE:
        state.paused = True
        emit(state, PAUSED, account=call.caller)
    elif ct == CallType.UNPAUSE:
        state.paused = False
        emit(state, UNPAUSED, account=call.caller)
    elif ct == CallType.TRANSFER_OWNERSHIP:
        _apply_transfer_ownership(state, bytes(p["new_owner"]))
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported admin call type: {ct}")


def _apply_transfer_ownership(state: MarketState, new_owner: bytes) -> None:
    previous = state.owner

    # Carry accrued fees over so they are not orphaned on the old owner.
    carried = state.balances.get(previous, 0)
    state.balances[previous] = 0
    state.balances[new_owner] = apply_balance_change(state.balances.get(new_owner, 0), carried)

    state.owner = new_owner
    emit(state, OWNERSHIP_TRANSFERRED, previous_owner=previous, new_owner=new_owner)
