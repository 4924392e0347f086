"""Consume fixtures and validate them against the Python specs."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from market_spec.state_digest import compute_state_digest  # noqa: E402
from market_spec.state_transition import apply_block, apply_call  # noqa: E402
from fixtures_io import (  # noqa: E402
    call_from_json,
    event_to_json,
    state_from_json,
    state_to_json,
)


def _check_case(case: dict) -> str | None:
    pre_state = state_from_json(case["pre_state"])
    expected = case["expected"]

    if "calls" in case:
        post_state, results = apply_block(
            pre_state, [call_from_json(c) for c in case["calls"]], case.get("timestamp")
        )
        actual_ok = [r.ok for r in results]
        actual_err = [r.error.code.name if r.error else None for r in results]
    else:
        post_state, result = apply_call(pre_state, call_from_json(case["call"]))
        actual_ok = result.ok
        actual_err = result.error.code.name if result.error else None

    if actual_ok != expected["ok"]:
        return "ok_mismatch"
    if actual_err != expected["error"]:
        return "error_mismatch"

    actual_digest = compute_state_digest(state_to_json(post_state))
    if actual_digest != compute_state_digest(expected["post_state"]):
        return "state_mismatch"

    new_events = [event_to_json(e) for e in post_state.events[len(pre_state.events):]]
    if new_events != expected.get("events", []):
        return "events_mismatch"
    return None


def _check_state_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for case in data.get("cases", []):
        reason = _check_case(case)
        if reason:
            failures.append(f"{path.name}:{case['name']}: {reason}")
    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"
    if not fixtures.exists():
        raise SystemExit(f"fixtures dir not found: {fixtures} (run tools/fill.py first)")

    failures: list[str] = []
    checked = 0
    for path in sorted(fixtures.rglob("*.json")):
        failures.extend(_check_state_cases(path))
        checked += 1

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print(f"All fixtures passed ({checked} files)")


if __name__ == "__main__":
    main()
