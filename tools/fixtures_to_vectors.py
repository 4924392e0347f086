#!/usr/bin/env python3
"""Convert spec fixtures into host-consumable YAML vectors.

Single-call cases become runnable vectors for the conformance harness.
Block cases are mirrored with ``runnable: false``: hosts execute one call
at a time.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from market_spec.errors import ErrorCode  # noqa: E402
from market_spec.state_digest import compute_state_digest  # noqa: E402
from yaml_dump import write_yaml  # noqa: E402


def _map_error_code(name: str | None) -> int:
    if not name:
        return int(ErrorCode.SUCCESS)
    try:
        return int(ErrorCode[name])
    except KeyError:
        return int(ErrorCode.UNKNOWN)


def case_to_vector(case: dict[str, Any]) -> dict[str, Any]:
    expected = case.get("expected", {})
    post_state = expected.get("post_state")
    vec: dict[str, Any] = {
        "name": case.get("name", ""),
        "pre_state": case.get("pre_state"),
    }
    if "calls" in case:
        vec["runnable"] = False
        vec["calls"] = case["calls"]
        vec["expected"] = {
            "success": expected.get("ok"),
            "error_code": [_map_error_code(e) for e in expected.get("error", [])],
            "state_digest": compute_state_digest(post_state) if post_state else "",
        }
        return vec

    vec["call"] = case.get("call")
    vec["expected"] = {
        "success": bool(expected.get("ok", False)),
        "error_code": _map_error_code(expected.get("error")),
        "state_digest": compute_state_digest(post_state) if post_state else "",
        "events": expected.get("events", []),
    }
    return vec


def convert_fixtures(fixtures: Path, vectors: Path) -> int:
    """Write one YAML suite per state/block fixture file; returns the file count."""
    count = 0
    for path in sorted(fixtures.rglob("*.json")):
        data = json.loads(path.read_text())
        cases = data.get("cases") if isinstance(data, dict) else None
        if not isinstance(cases, list):
            continue
        dest = (vectors / path.relative_to(fixtures)).with_suffix(".yaml")
        dest.parent.mkdir(parents=True, exist_ok=True)
        write_yaml(dest, {"test_vectors": [case_to_vector(c) for c in cases]})
        count += 1
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert fixtures to vectors")
    parser.add_argument("--fixtures", default=str(ROOT / "fixtures"))
    parser.add_argument("--vectors", default=str(ROOT / "vectors"))
    args = parser.parse_args()

    fixtures = Path(args.fixtures).resolve()
    vectors = Path(args.vectors).resolve()
    if not fixtures.exists():
        raise SystemExit(f"fixtures dir not found: {fixtures}")

    count = convert_fixtures(fixtures, vectors)
    print(f"Written {count} vector files into {vectors}")


if __name__ == "__main__":
    main()
