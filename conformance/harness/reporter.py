"""
Report generation for conformance test results.
"""

import json
import os
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from comparator import ComparisonResult, Divergence

TITLE = "Marketplace Ledger Conformance Report"


@dataclass
class TestResult:
    """Result of a single test vector."""
    vector_name: str
    suite_name: str
    passed: bool
    execution_time_ms: float
    comparison: Optional[ComparisonResult] = None
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class SuiteResult:
    """Result of a test suite (one vector file)."""
    suite_name: str
    total_tests: int
    passed_tests: int
    failed_tests: int
    skipped_tests: int
    execution_time_ms: float
    test_results: List[TestResult]

    @property
    def pass_rate(self) -> float:
        if self.total_tests == 0:
            return 0.0
        return self.passed_tests / self.total_tests * 100


@dataclass
class ConformanceReport:
    """Complete conformance test report."""
    timestamp: str
    clients: List[str]
    reference_client: str
    total_suites: int
    total_tests: int
    total_passed: int
    total_failed: int
    total_skipped: int
    total_divergences: int
    execution_time_ms: float
    suite_results: List[SuiteResult]
    divergences: List[Divergence]

    @property
    def divergences_by_field(self) -> Dict[str, int]:
        return dict(Counter(d.field for d in self.divergences))


class ReportGenerator:
    """Generates conformance test reports."""

    def __init__(self, result_dir: str):
        """
        Initialize report generator.

        Args:
            result_dir: Directory to write reports to
        """
        self.result_dir = result_dir
        os.makedirs(result_dir, exist_ok=True)

    def generate_report(
        self,
        suite_results: List[SuiteResult],
        clients: List[str],
        reference_client: str,
        execution_time_ms: float,
    ) -> ConformanceReport:
        """
        Aggregate suite results into a single report.

        Args:
            suite_results: Results from all test suites
            clients: List of host names tested
            reference_client: Name of reference host
            execution_time_ms: Total execution time
        """
        divergences = []
        for suite in suite_results:
            for test in suite.test_results:
                if test.comparison and test.comparison.divergences:
                    divergences.extend(test.comparison.divergences)

        return ConformanceReport(
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            clients=clients,
            reference_client=reference_client,
            total_suites=len(suite_results),
            total_tests=sum(s.total_tests for s in suite_results),
            total_passed=sum(s.passed_tests for s in suite_results),
            total_failed=sum(s.failed_tests for s in suite_results),
            total_skipped=sum(s.skipped_tests for s in suite_results),
            total_divergences=len(divergences),
            execution_time_ms=execution_time_ms,
            suite_results=suite_results,
            divergences=divergences,
        )

    def write_json_report(
        self,
        report: ConformanceReport,
        filename: str = "conformance-report.json",
    ) -> str:
        """Write report as JSON file and return its path."""
        path = os.path.join(self.result_dir, filename)
        with open(path, "w") as f:
            json.dump(self._report_to_dict(report), f, indent=2)
        return path

    def summary_lines(self, report: ConformanceReport) -> List[str]:
        pass_rate = report.total_passed / max(report.total_tests, 1) * 100
        lines = [
            "=" * 60,
            TITLE,
            "=" * 60,
            f"Timestamp: {report.timestamp}",
            f"Hosts: {', '.join(report.clients)}",
            f"Reference: {report.reference_client}",
            "",
            "Results:",
            f"  Total Tests:  {report.total_tests}",
            f"  Passed:       {report.total_passed}",
            f"  Failed:       {report.total_failed}",
            f"  Skipped:      {report.total_skipped}",
            f"  Divergences:  {report.total_divergences}",
            f"  Pass Rate:    {pass_rate:.1f}%",
            f"  Duration:     {report.execution_time_ms:.2f}ms",
            "",
            "Suite Results:",
        ]
        for suite in report.suite_results:
            status = "PASS" if suite.failed_tests == 0 else "FAIL"
            lines.append(
                f"  [{status}] {suite.suite_name}: "
                f"{suite.passed_tests}/{suite.total_tests} "
                f"({suite.pass_rate:.1f}%)"
            )

        if report.divergences:
            lines.append("")
            lines.append("Divergences by field:")
            for field, count in sorted(report.divergences_by_field.items()):
                lines.append(f"  {field}: {count}")
            lines.append("")
            lines.append("Divergences:")
            for div in report.divergences:
                lines.append(f"  - {div.vector_name} ({div.field}):")
                lines.append(f"      {div.reference_client}: {div.expected}")
                lines.append(f"      {div.client}: {div.actual}")
                if div.details:
                    lines.append(f"      Details: {div.details}")

        lines.append("")
        lines.append("=" * 60)
        return lines

    def write_summary(
        self,
        report: ConformanceReport,
        filename: str = "conformance-summary.txt",
    ) -> str:
        """Write human-readable summary and return its path."""
        path = os.path.join(self.result_dir, filename)
        with open(path, "w") as f:
            f.write("\n".join(self.summary_lines(report)))
        return path

    def print_summary(self, report: ConformanceReport) -> None:
        """Print summary to console."""
        print()
        print("\n".join(self.summary_lines(report)[:16]))
        status = "PASSED" if report.total_failed == 0 else "FAILED"
        print(f"Overall: {status}")
        print("=" * 60)

    def _report_to_dict(self, report: ConformanceReport) -> Dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "timestamp": report.timestamp,
            "clients": report.clients,
            "reference_client": report.reference_client,
            "total_suites": report.total_suites,
            "total_tests": report.total_tests,
            "total_passed": report.total_passed,
            "total_failed": report.total_failed,
            "total_skipped": report.total_skipped,
            "total_divergences": report.total_divergences,
            "divergences_by_field": report.divergences_by_field,
            "execution_time_ms": report.execution_time_ms,
            "suite_results": [
                {
                    "suite_name": s.suite_name,
                    "total_tests": s.total_tests,
                    "passed_tests": s.passed_tests,
                    "failed_tests": s.failed_tests,
                    "skipped_tests": s.skipped_tests,
                    "execution_time_ms": s.execution_time_ms,
                    "pass_rate": s.pass_rate,
                    "failures": [
                        {"vector_name": t.vector_name, "error": t.error}
                        for t in s.test_results
                        if not t.passed and not t.skipped
                    ],
                }
                for s in report.suite_results
            ],
            "divergences": [
                {
                    "field": d.field,
                    "expected": str(d.expected),
                    "actual": str(d.actual),
                    "client": d.client,
                    "reference_client": d.reference_client,
                    "vector_name": d.vector_name,
                    "details": d.details,
                }
                for d in report.divergences
            ],
        }
