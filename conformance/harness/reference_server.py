#!/usr/bin/env python3
"""
Reference ledger host.

Serves the Python marketplace model over the host HTTP protocol so the
conformance runner can compare other implementations against it.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict

import click
from aiohttp import web

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from market_spec.errors import ErrorCode  # noqa: E402
from market_spec.state_digest import compute_state_digest  # noqa: E402
from market_spec.state_transition import apply_call  # noqa: E402
from market_spec.types import MarketState  # noqa: E402
from fixtures_io import (  # noqa: E402
    call_from_json,
    event_to_json,
    state_from_json,
    state_to_json,
)

logger = logging.getLogger(__name__)


class ReferenceHost:
    """Holds one ledger state and executes calls against it."""

    def __init__(self) -> None:
        self.state = MarketState()

    def digest(self) -> str:
        return compute_state_digest(state_to_json(self.state))

    def reset(self) -> Dict[str, Any]:
        self.state = MarketState()
        logger.debug("state reset")
        return {"success": True}

    def load(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.state = state_from_json(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"rejected state: {e!r}")
            return {"success": False, "error": f"invalid state: {e!r}"}
        return {"success": True, "state_digest": self.digest()}

    def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            call = call_from_json(data["call"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"rejected call: {e!r}")
            return {
                "success": False,
                "error_code": int(ErrorCode.INVALID_FORMAT),
                "error": f"invalid call: {e!r}",
                "state_digest": self.digest(),
                "events": [],
            }

        self.state, result = apply_call(self.state, call)
        response: Dict[str, Any] = {
            "success": result.ok,
            "error_code": int(result.error.code) if result.error else int(ErrorCode.SUCCESS),
            "state_digest": self.digest(),
            "events": [event_to_json(e) for e in result.events],
        }
        if result.error:
            response["error"] = result.error.message
        logger.debug(f"{call.call_type.value}: {result}")
        return response


def create_app(host: ReferenceHost) -> web.Application:
    async def handle_reset(request: web.Request) -> web.Response:
        return web.json_response(host.reset())

    async def handle_load(request: web.Request) -> web.Response:
        return web.json_response(host.load(await request.json()))

    async def handle_digest(request: web.Request) -> web.Response:
        return web.json_response({"state_digest": host.digest()})

    async def handle_execute(request: web.Request) -> web.Response:
        return web.json_response(host.execute(await request.json()))

    app = web.Application()
    app.router.add_post("/state/reset", handle_reset)
    app.router.add_post("/state/load", handle_load)
    app.router.add_get("/state/digest", handle_digest)
    app.router.add_post("/call/execute", handle_execute)
    return app


@click.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", default=8081, type=int, help="Listen port")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
def main(host: str, port: int, verbose: bool) -> None:
    """Serve the Python reference ledger."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    logger.info(f"Reference host listening on {host}:{port}")
    web.run_app(create_app(ReferenceHost()), host=host, port=port, print=None)


if __name__ == "__main__":
    main()
