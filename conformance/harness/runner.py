#!/usr/bin/env python3
"""
Marketplace Ledger Conformance Runner

Replays YAML vectors against every configured ledger host and compares the
results with the vector expectations and with the reference host.
"""

import asyncio
import glob
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import click
import yaml

from comparator import ComparisonResult, Divergence, ResultComparator
from config import ClientConfig, HarnessConfig
from reporter import ConformanceReport, ReportGenerator, SuiteResult, TestResult

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


class ConformanceClient:
    """HTTP client for a single ledger host."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()

    async def reset_state(self) -> bool:
        """Reset host to an empty ledger."""
        try:
            async with self.session.post(
                f"{self.config.endpoint}/state/reset"
            ) as resp:
                data = await resp.json()
                return data.get("success", False)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.config.name}] Reset failed: {e}")
            return False

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        """
        Load state from JSON.

        Returns state digest on success, None on failure.
        """
        try:
            async with self.session.post(
                f"{self.config.endpoint}/state/load",
                json=state,
            ) as resp:
                data = await resp.json()
                if data.get("success"):
                    return data.get("state_digest")
                logger.warning(f"[{self.config.name}] Load state rejected: {data.get('error')}")
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.config.name}] Load state failed: {e}")
            return None

    async def get_state_digest(self) -> Optional[str]:
        """Get current state digest."""
        try:
            async with self.session.get(
                f"{self.config.endpoint}/state/digest"
            ) as resp:
                data = await resp.json()
                return data.get("state_digest")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.config.name}] Get digest failed: {e}")
            return None

    async def execute_call(self, call: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a single ledger call."""
        try:
            async with self.session.post(
                f"{self.config.endpoint}/call/execute",
                json={"call": call},
            ) as resp:
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.config.name}] Execute call failed: {e}")
            return {"success": False, "error": str(e)}


class ConformanceHarness:
    """Main test harness for conformance testing."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        self.clients: Dict[str, ConformanceClient] = {}
        self.comparator = ResultComparator(reference_client=config.reference_client)
        self.reporter = ReportGenerator(config.result_dir)

    async def setup(self) -> None:
        """Initialize all clients."""
        for name, client_config in self.config.get_enabled_clients().items():
            client = ConformanceClient(client_config)
            await client.connect()
            self.clients[name] = client
            logger.info(f"Connected to {client_config.name} at {client_config.endpoint}")

    async def teardown(self) -> None:
        """Close all client connections."""
        for client in self.clients.values():
            await client.close()

    async def reset_all(self) -> bool:
        """Reset all hosts."""
        results = await asyncio.gather(*[
            client.reset_state()
            for client in self.clients.values()
        ])
        return all(results)

    async def load_state_all(self, state: Dict[str, Any], vector_name: str) -> ComparisonResult:
        """Load identical state into all hosts and verify digests match."""
        digests = {}
        for name, client in self.clients.items():
            digest = await client.load_state(state)
            if digest:
                digests[name] = digest
            else:
                logger.error(f"Failed to load state in {name}")

        if len(digests) != len(self.clients):
            missing = sorted(set(self.clients) - set(digests))
            return ComparisonResult(
                success=False,
                divergences=[
                    Divergence(
                        field="state_load",
                        expected="loaded",
                        actual="failed",
                        client=name,
                        reference_client=self.comparator.reference_client,
                        vector_name=vector_name,
                    )
                    for name in missing
                ],
                clients_compared=list(self.clients.keys()),
            )
        return self.comparator.compare_state_digests(digests, vector_name)

    async def execute_call_all(self, call: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Execute a call on every host, one host at a time."""
        results = {}
        for name, client in self.clients.items():
            results[name] = await client.execute_call(call)
        return results

    def _result(self, vector_name: str, start_time: float, **kwargs: Any) -> TestResult:
        return TestResult(
            vector_name=vector_name,
            suite_name="",
            execution_time_ms=(time.time() - start_time) * 1000,
            **kwargs,
        )

    async def run_vector(self, vector: Dict[str, Any]) -> TestResult:
        """Run a single test vector."""
        vector_name = vector.get("name", "unknown")
        start_time = time.time()

        if vector.get("runnable") is False or "call" not in vector:
            return self._result(vector_name, start_time, passed=True, skipped=True)

        try:
            if not await self.reset_all():
                return self._result(
                    vector_name, start_time, passed=False, error="Failed to reset hosts"
                )

            if "pre_state" in vector:
                loaded = await self.load_state_all(vector["pre_state"], vector_name)
                if loaded.has_divergences:
                    return self._result(
                        vector_name,
                        start_time,
                        passed=False,
                        comparison=loaded,
                        error="State load divergence",
                    )

            results = await self.execute_call_all(vector["call"])
            comparison = self.comparator.compare_results(results, vector_name)
            against_vector = self.comparator.compare_expected(
                results, vector.get("expected", {}), vector_name
            )
            comparison.divergences.extend(against_vector.divergences)
            comparison.success = not comparison.divergences

            return self._result(
                vector_name,
                start_time,
                passed=not comparison.has_divergences,
                comparison=comparison,
            )

        except Exception as e:
            logger.exception(f"Error running vector {vector_name}")
            return self._result(vector_name, start_time, passed=False, error=str(e))

    async def run_suite(self, suite_path: str) -> SuiteResult:
        """Run a test suite from a YAML file."""
        suite_name = Path(suite_path).stem
        logger.info(f"Running suite: {suite_name}")

        start_time = time.time()

        with open(suite_path) as f:
            suite = yaml.safe_load(f) or {}

        vectors = suite.get("test_vectors", [])
        test_results = []

        for vector in vectors:
            result = await self.run_vector(vector)
            result.suite_name = suite_name
            test_results.append(result)

            status = "SKIP" if result.skipped else ("PASS" if result.passed else "FAIL")
            logger.info(f"  [{status}] {result.vector_name}")
            if not result.passed and result.comparison:
                for div in result.comparison.divergences:
                    logger.debug(
                        f"      {div.client} {div.field}: expected {div.expected}, got {div.actual}"
                    )

            if not result.passed and self.config.stop_on_first_failure:
                break

        ran = [r for r in test_results if not r.skipped]
        passed = sum(1 for r in ran if r.passed)
        failed = sum(1 for r in ran if not r.passed)

        return SuiteResult(
            suite_name=suite_name,
            total_tests=len(ran),
            passed_tests=passed,
            failed_tests=failed,
            skipped_tests=len(vectors) - len(ran),
            execution_time_ms=(time.time() - start_time) * 1000,
            test_results=test_results,
        )

    async def run_all(self, vector_paths: List[str]) -> ConformanceReport:
        """Run all test suites."""
        start_time = time.time()

        suite_results = []
        for path in vector_paths:
            result = await self.run_suite(path)
            suite_results.append(result)
            if result.failed_tests and self.config.stop_on_first_failure:
                break

        return self.reporter.generate_report(
            suite_results=suite_results,
            clients=list(self.clients.keys()),
            reference_client=self.comparator.reference_client,
            execution_time_ms=(time.time() - start_time) * 1000,
        )


def find_vector_files(vector_dir: str) -> List[str]:
    """Find all vector YAML files in directory."""
    patterns = [
        os.path.join(vector_dir, "**", "*.yaml"),
        os.path.join(vector_dir, "**", "*.yml"),
    ]

    files = []
    for pattern in patterns:
        files.extend(glob.glob(pattern, recursive=True))

    return sorted(files)


@click.command()
@click.option(
    "--vectors",
    default=None,
    help="Path to vectors directory or specific YAML file",
)
@click.option(
    "--reference-endpoint",
    default=None,
    help="Python reference host URL",
)
@click.option(
    "--contract-endpoint",
    default=None,
    help="EVM contract adapter URL",
)
@click.option(
    "--skip-contract",
    is_flag=True,
    help="Only run against the reference host",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write results",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first test failure",
)
def main(
    vectors: Optional[str],
    reference_endpoint: Optional[str],
    contract_endpoint: Optional[str],
    skip_contract: bool,
    result_dir: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run marketplace ledger conformance tests."""

    # Load config from environment, then override with CLI args
    config = HarnessConfig.from_env()

    if reference_endpoint:
        config.clients["python-ref"].endpoint = reference_endpoint
    if contract_endpoint:
        config.clients["evm-contract"].endpoint = contract_endpoint
    if skip_contract:
        config.clients["evm-contract"].enabled = False
    if result_dir:
        config.result_dir = result_dir
    if verbose:
        config.verbose = True
        logging.getLogger().setLevel(logging.DEBUG)
    if stop_on_failure:
        config.stop_on_first_failure = True

    vector_dir = vectors or config.vector_dir
    if os.path.isfile(vector_dir):
        vector_files = [vector_dir]
    else:
        vector_files = find_vector_files(vector_dir)

    if not vector_files:
        logger.error(f"No vector files found in {vector_dir}")
        sys.exit(1)

    logger.info(f"Found {len(vector_files)} vector files")

    async def run() -> int:
        harness = ConformanceHarness(config)

        try:
            await harness.setup()
            report = await harness.run_all(vector_files)

            harness.reporter.write_json_report(report)
            harness.reporter.write_summary(report)
            harness.reporter.print_summary(report)

            return 0 if report.total_failed == 0 else 1

        finally:
            await harness.teardown()

    exit_code = asyncio.run(run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
