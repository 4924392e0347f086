"""Conformance harness specs (vectors, comparison, reporting, reference host)."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import aiohttp.test_utils
import comparator
import reporter
import runner
from config import ClientConfig, HarnessConfig
from reference_server import ReferenceHost, create_app

from market_spec.errors import ErrorCode
from market_spec.state_digest import compute_state_digest
from market_spec.state_transition import apply_call, deploy
from market_spec.test_accounts import BUYER, OWNER, SELLER
from market_spec.types import AccountState, Call, CallType, Listing, MarketState
from tools.fixtures_io import call_to_json, event_to_json, state_to_json
from tools.fixtures_to_vectors import case_to_vector
from tools.yaml_dump import dump_yaml, load_yaml, write_yaml

PRICE = 1_000_000


def _listed_state() -> MarketState:
    state = deploy(
        OWNER,
        accounts=[
            AccountState(address=OWNER),
            AccountState(address=SELLER),
            AccountState(address=BUYER, balance=2 * PRICE),
        ],
    )
    state.listings["l1"] = Listing(listing_id="l1", seller=SELLER, price=PRICE, proof_hash=bytes(32))
    state.total_listings = 1
    return state


def _case(name: str, call: Call) -> dict[str, Any]:
    pre = _listed_state()
    post, result = apply_call(pre, call)
    return {
        "name": name,
        "pre_state": state_to_json(pre),
        "call": call_to_json(call),
        "expected": {
            "ok": result.ok,
            "error": result.error.code.name if result.error else None,
            "post_state": state_to_json(post),
            "events": [event_to_json(e) for e in result.events],
        },
    }


def _purchase(value: int) -> Call:
    return Call(
        caller=BUYER,
        call_type=CallType.PURCHASE_LISTING,
        payload={"listing_id": "l1"},
        value=value,
    )


class InProcessClient:
    """Stands in for a ConformanceClient by calling a ReferenceHost directly."""

    def __init__(self, host: ReferenceHost):
        self.host = host

    async def reset_state(self) -> bool:
        return self.host.reset()["success"]

    async def load_state(self, state: dict[str, Any]) -> str | None:
        return self.host.load(state).get("state_digest")

    async def execute_call(self, call: dict[str, Any]) -> dict[str, Any]:
        return self.host.execute({"call": call})

    async def close(self) -> None:
        return None


def _harness(tmp_path: Path, clients: dict[str, Any]) -> runner.ConformanceHarness:
    config = HarnessConfig(result_dir=str(tmp_path / "results"))
    harness = runner.ConformanceHarness(config)
    harness.clients = clients
    return harness


# --- vectors ---


def test_case_to_vector_success() -> None:
    vec = case_to_vector(_case("purchase_ok", _purchase(PRICE)))
    assert vec["name"] == "purchase_ok"
    assert vec["expected"]["success"] is True
    assert vec["expected"]["error_code"] == 0
    assert len(vec["expected"]["state_digest"]) == 64
    assert [e["name"] for e in vec["expected"]["events"]] == ["PurchaseCompleted"]


def test_case_to_vector_failure() -> None:
    vec = case_to_vector(_case("purchase_short", _purchase(PRICE - 1)))
    assert vec["expected"]["success"] is False
    assert vec["expected"]["error_code"] == int(ErrorCode.INSUFFICIENT_PAYMENT)


def test_yaml_vectors_keep_large_integers(tmp_path: Path) -> None:
    vec = case_to_vector(_case("purchase_ok", _purchase(PRICE)))
    vec["pre_state"]["contract_balance"] = 2**200
    path = tmp_path / "listings.yaml"
    write_yaml(path, {"test_vectors": [vec]})
    loaded = load_yaml(path)
    assert loaded["test_vectors"][0]["pre_state"]["contract_balance"] == 2**200
    assert "test_vectors:" in dump_yaml({"test_vectors": []})


# --- reference host ---


def test_reference_host_executes_vector_call() -> None:
    case = _case("purchase_ok", _purchase(PRICE))
    host = ReferenceHost()
    loaded = host.load(case["pre_state"])
    assert loaded["success"]
    assert loaded["state_digest"] == compute_state_digest(case["pre_state"])

    response = host.execute({"call": case["call"]})
    assert response["success"]
    assert response["error_code"] == 0
    assert response["state_digest"] == compute_state_digest(case["expected"]["post_state"])
    assert response["events"] == case["expected"]["events"]


def test_reference_host_rejects_malformed_input() -> None:
    host = ReferenceHost()
    assert not host.load({"listings": []})["success"]
    response = host.execute({"call": {"call_type": "nope"}})
    assert not response["success"]
    assert response["error_code"] == int(ErrorCode.INVALID_FORMAT)


def test_reference_host_reports_ledger_errors() -> None:
    case = _case("purchase_short", _purchase(PRICE - 1))
    host = ReferenceHost()
    host.load(case["pre_state"])
    before = host.digest()
    response = host.execute({"call": case["call"]})
    assert not response["success"]
    assert response["error_code"] == int(ErrorCode.INSUFFICIENT_PAYMENT)
    assert response["state_digest"] == before
    assert response["events"] == []


def test_http_client_against_reference_server() -> None:
    case = _case("purchase_ok", _purchase(PRICE))
    bad_call = {**case["call"], "value": "100"}

    async def scenario() -> tuple:
        server = aiohttp.test_utils.TestServer(create_app(ReferenceHost()))
        await server.start_server()
        client = runner.ConformanceClient(
            ClientConfig(name="ref", endpoint=f"http://{server.host}:{server.port}", timeout=5.0)
        )
        await client.connect()
        try:
            reset = await client.reset_state()
            loaded = await client.load_state(case["pre_state"])
            response = await client.execute_call(case["call"])
            digest = await client.get_state_digest()
            rejected = await client.execute_call(bad_call)
        finally:
            await client.close()
            await server.close()
        return reset, loaded, response, digest, rejected

    reset, loaded, response, digest, rejected = asyncio.run(scenario())
    assert reset
    assert loaded == compute_state_digest(case["pre_state"])
    assert response["success"]
    assert response["events"] == case["expected"]["events"]
    assert digest == response["state_digest"] == compute_state_digest(case["expected"]["post_state"])
    assert not rejected["success"]
    assert rejected["error_code"] == int(ErrorCode.INVALID_FORMAT)
    assert rejected["state_digest"] == digest


# --- comparison ---


def test_comparator_flags_divergent_host() -> None:
    cmp = comparator.ResultComparator()
    results = {
        "python-ref": {"success": True, "error_code": 0, "state_digest": "aa", "events": []},
        "evm-contract": {
            "success": False,
            "error_code": int(ErrorCode.TRANSFER_FAILED),
            "state_digest": "bb",
            "events": [],
        },
    }
    outcome = cmp.compare_results(results, "v1")
    assert {d.field for d in outcome.divergences} == {"success", "error_code", "state_digest"}
    assert all(d.client == "evm-contract" for d in outcome.divergences)


def test_comparator_against_vector_expectation() -> None:
    cmp = comparator.ResultComparator()
    expected = {"success": True, "error_code": 0, "events": [{"name": "Paused", "args": {}}]}
    outcome = cmp.compare_expected(
        {"python-ref": {"success": True, "error_code": 0, "events": []}}, expected, "v2"
    )
    [div] = outcome.divergences
    assert div.field == "events"
    assert div.reference_client == comparator.VECTOR_REFERENCE


def test_comparator_single_host_has_nothing_to_compare() -> None:
    outcome = comparator.ResultComparator().compare_state_digests({"python-ref": "aa"}, "v3")
    assert outcome.success


# --- harness run ---


def test_harness_runs_vectors_in_process(tmp_path: Path) -> None:
    vectors = [
        case_to_vector(_case("purchase_ok", _purchase(PRICE))),
        case_to_vector(_case("purchase_short", _purchase(PRICE - 1))),
        {"name": "block_case", "runnable": False},
    ]
    suite = tmp_path / "vectors" / "purchase.yaml"
    suite.parent.mkdir()
    write_yaml(suite, {"test_vectors": vectors})

    harness = _harness(
        tmp_path,
        {
            "python-ref": InProcessClient(ReferenceHost()),
            "second-ref": InProcessClient(ReferenceHost()),
        },
    )
    files = runner.find_vector_files(str(tmp_path / "vectors"))
    assert files == [str(suite)]

    report = asyncio.run(harness.run_all(files))
    assert report.total_tests == 2
    assert report.total_passed == 2
    assert report.total_skipped == 1
    assert report.total_divergences == 0


def test_harness_reports_wrong_expectation(tmp_path: Path) -> None:
    vec = case_to_vector(_case("purchase_ok", _purchase(PRICE)))
    vec["expected"]["state_digest"] = "00" * 32
    harness = _harness(tmp_path, {"python-ref": InProcessClient(ReferenceHost())})

    result = asyncio.run(harness.run_vector(vec))
    assert not result.passed
    assert [d.field for d in result.comparison.divergences] == ["state_digest"]


def test_report_files_written(tmp_path: Path) -> None:
    gen = reporter.ReportGenerator(str(tmp_path))
    failing = reporter.TestResult(
        vector_name="v1",
        suite_name="s",
        passed=False,
        execution_time_ms=1.0,
        comparison=comparator.ComparisonResult(
            success=False,
            divergences=[
                comparator.Divergence(
                    field="error_code",
                    expected=0,
                    actual=0x0500,
                    client="evm-contract",
                    reference_client="python-ref",
                    vector_name="v1",
                )
            ],
            clients_compared=["python-ref", "evm-contract"],
        ),
    )
    suite = reporter.SuiteResult(
        suite_name="s",
        total_tests=1,
        passed_tests=0,
        failed_tests=1,
        skipped_tests=0,
        execution_time_ms=1.0,
        test_results=[failing],
    )
    report = gen.generate_report([suite], ["python-ref", "evm-contract"], "python-ref", 2.0)
    assert report.divergences_by_field == {"error_code": 1}

    json_path = Path(gen.write_json_report(report))
    summary_path = Path(gen.write_summary(report))
    assert '"total_failed": 1' in json_path.read_text()
    assert "[FAIL] s: 0/1" in summary_path.read_text()


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("REFERENCE_ENDPOINT", "http://ref:9000")
    monkeypatch.setenv("SKIP_CONTRACT", "1")
    monkeypatch.setenv("REQUEST_TIMEOUT", "5")
    config = HarnessConfig.from_env()
    enabled = config.get_enabled_clients()
    assert list(enabled) == ["python-ref"]
    assert enabled["python-ref"] == ClientConfig(
        name="Python reference", endpoint="http://ref:9000", timeout=5.0
    )
