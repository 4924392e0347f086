"""Agent registry specs."""

from __future__ import annotations

from ..config import MAX_AGENT_FEE_BPS, MAX_METADATA_URI_BYTES
from ..encoding import utf8_bytes
from ..errors import ErrorCode, SpecError
from ..events import AGENT_DEACTIVATED, AGENT_REGISTERED, emit
from ..guards import require_not_paused
from ..types import AgentProfile, Call, CallType, MarketState


def verify(state: MarketState, call: Call) -> None:
    p = call.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "agent payload must be dict")

    ct = call.call_type
    if ct == CallType.REGISTER_AGENT:
        _verify_register(state, call, p)
    elif ct == CallType.DEACTIVATE_AGENT:
        profile = state.agents.get(call.caller)
        if profile is None or not profile.active:
            raise SpecError(ErrorCode.AGENT_NOT_ACTIVE, "agent not registered or inactive")
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported agent call type: {ct}")


def apply(state: MarketState, call: Call) -> None:
    p = call.payload
    ct = call.call_type
    if ct == CallType.REGISTER_AGENT:
        profile = AgentProfile(
            address=call.caller,
            metadata_uri=p["metadata_uri"],
            fee_bps=p["fee_bps"],
            active=True,
            registered_at=state.global_state.timestamp,
        )
        state.agents[call.caller] = profile
        emit(
            state,
            AGENT_REGISTERED,
            agent=profile.address,
            metadata_uri=profile.metadata_uri,
            fee_bps=profile.fee_bps,
        )
    elif ct == CallType.DEACTIVATE_AGENT:
        state.agents[call.caller].active = False
        emit(state, AGENT_DEACTIVATED, agent=call.caller)
    else:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unsupported agent call type: {ct}")


# --- REGISTER_AGENT ---

def _verify_register(state: MarketState, call: Call, p: dict) -> None:
    require_not_paused(state)

    uri = p.get("metadata_uri", "")
    if not isinstance(uri, str) or not uri:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "metadata_uri required")
    if len(utf8_bytes(uri, "metadata_uri")) > MAX_METADATA_URI_BYTES:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "metadata_uri too long")

    fee = p.get("fee_bps")
    if not isinstance(fee, int) or isinstance(fee, bool) or fee < 0 or fee > MAX_AGENT_FEE_BPS:
        raise SpecError(ErrorCode.INVALID_FEE, "agent fee too high")

    existing = state.agents.get(call.caller)
    if existing is not None and existing.active:
        raise SpecError(ErrorCode.AGENT_ALREADY_REGISTERED, "agent already registered")
