"""Pytest hooks to generate fixtures (EEST-style)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from market_spec.state_transition import TransitionResult, apply_block, apply_call
from market_spec.types import Call, MarketState
from tools.fixtures_io import call_to_json, event_to_json, state_to_json

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}
_VECTOR_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def _new_events(pre_state: MarketState, post_state: MarketState) -> list[dict[str, Any]]:
    return [event_to_json(e) for e in post_state.events[len(pre_state.events):]]


@pytest.fixture
def state_test_group() -> Callable[
    [str, str, MarketState, Call], tuple[MarketState, TransitionResult]
]:
    """Run a single call, record it under a fixture path and hand back the outcome."""

    def _state_test_group(
        rel_path: str, name: str, pre_state: MarketState, call: Call
    ) -> tuple[MarketState, TransitionResult]:
        pre_json = state_to_json(pre_state)
        post_state, result = apply_call(pre_state, call)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "pre_state": pre_json,
                "call": call_to_json(call),
                "expected": {
                    "ok": result.ok,
                    "error": result.error.code.name if result.error else None,
                    "post_state": state_to_json(post_state),
                    "events": _new_events(pre_state, post_state),
                },
            }
        )
        return post_state, result

    return _state_test_group


@pytest.fixture
def block_test_group() -> Callable[
    [str, str, MarketState, list[Call], Optional[int]],
    tuple[MarketState, list[TransitionResult]],
]:
    """Run a block of calls and record it under a fixture path."""

    def _block_test_group(
        rel_path: str,
        name: str,
        pre_state: MarketState,
        calls: list[Call],
        timestamp: Optional[int] = None,
    ) -> tuple[MarketState, list[TransitionResult]]:
        pre_json = state_to_json(pre_state)
        post_state, results = apply_block(pre_state, calls, timestamp)
        case: dict[str, Any] = {
            "name": name,
            "pre_state": pre_json,
            "calls": [call_to_json(c) for c in calls],
            "expected": {
                "ok": [r.ok for r in results],
                "error": [r.error.code.name if r.error else None for r in results],
                "post_state": state_to_json(post_state),
                "events": _new_events(pre_state, post_state),
            },
        }
        if timestamp is not None:
            case["timestamp"] = timestamp
        _STATE_CASES.setdefault(rel_path, []).append(case)
        return post_state, results

    return _block_test_group


@pytest.fixture
def vector_test_group() -> Callable[[str, dict[str, Any]], None]:
    """Collect pre-built test_vectors under a specific fixture path."""

    def _vector_test_group(rel_path: str, vector: dict[str, Any]) -> None:
        _VECTOR_CASES.setdefault(rel_path, []).append(vector)

    return _vector_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _STATE_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))

    for rel_path, vectors in _VECTOR_CASES.items():
        if not vectors:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"test_vectors": vectors}, indent=2))
