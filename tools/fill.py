"""Fill ledger fixtures from the pytest specs, optionally emitting YAML vectors.

    python tools/fill.py                      # every spec into fixtures/
    python tools/fill.py --family listings    # only tests/test_tx_listings.py
    python tools/fill.py --vectors vectors/   # fill, then convert for the harness
"""

from __future__ import annotations

import argparse
import os
import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from fixtures_to_vectors import convert_fixtures  # noqa: E402

# Call families with their own spec module; the rest run with "all".
FAMILIES = ("listings", "agents", "admin", "funds")


def _spec_targets(family: str) -> list[str]:
    if family == "all":
        return [str(ROOT / "tests")]
    return [str(ROOT / "tests" / f"test_tx_{family}.py")]


def main() -> int:
    parser = argparse.ArgumentParser(description="Fill marketplace ledger fixtures")
    parser.add_argument("--output", default=str(ROOT / "fixtures"))
    parser.add_argument("--family", choices=("all",) + FAMILIES, default="all")
    parser.add_argument("--clean", action="store_true", help="remove the output dir first")
    parser.add_argument("--vectors", help="also write YAML vectors into this dir")
    args = parser.parse_args()

    out = Path(args.output).resolve()
    if args.clean and out.exists():
        shutil.rmtree(out)

    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        [str(ROOT / "src"), str(ROOT), str(ROOT / "conformance" / "harness")]
    )
    cmd = [sys.executable, "-m", "pytest", *_spec_targets(args.family), "-q", "--output", str(out)]
    print("Running:", " ".join(cmd))
    rc = subprocess.call(cmd, env=env, cwd=str(ROOT))
    if rc != 0 or not args.vectors:
        return rc

    vectors = Path(args.vectors).resolve()
    count = convert_fixtures(out, vectors)
    print(f"Written {count} vector files into {vectors}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
