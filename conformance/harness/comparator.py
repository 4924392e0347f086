"""
Result comparison logic for conformance testing.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class Divergence:
    """Represents a divergence between a host and its reference."""
    field: str
    expected: Any
    actual: Any
    client: str
    reference_client: str
    vector_name: str
    details: Optional[str] = None


@dataclass
class ComparisonResult:
    """Result of comparing outputs from multiple hosts."""
    success: bool
    divergences: List[Divergence]
    clients_compared: List[str]

    @property
    def has_divergences(self) -> bool:
        return len(self.divergences) > 0


# Reference label used when a host is checked against the vector itself.
VECTOR_REFERENCE = "vector"


class ResultComparator:
    """Compares results from multiple ledger hosts."""

    def __init__(self, reference_client: str = "python-ref"):
        """
        Initialize comparator.

        Args:
            reference_client: The host to use as reference (default: python-ref)
        """
        self.reference_client = reference_client

    def compare_results(
        self,
        results: Dict[str, Dict[str, Any]],
        vector_name: str,
    ) -> ComparisonResult:
        """
        Compare results from all hosts against the reference host.

        Args:
            results: Dict mapping host name to its execute response
            vector_name: Name of the test vector

        Returns:
            ComparisonResult with any divergences found
        """
        clients = list(results.keys())
        if len(clients) < 2:
            return ComparisonResult(success=True, divergences=[], clients_compared=clients)

        if self.reference_client not in results:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in results"
            )
        reference = results[self.reference_client]

        divergences = []
        for client, result in results.items():
            if client == self.reference_client:
                continue
            divergences.extend(self._compare_single(
                reference=reference,
                actual=result,
                client=client,
                reference_client=self.reference_client,
                vector_name=vector_name,
            ))

        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=clients,
        )

    def compare_expected(
        self,
        results: Dict[str, Dict[str, Any]],
        expected: Dict[str, Any],
        vector_name: str,
    ) -> ComparisonResult:
        """Check every host's response against the expectation stored in the vector."""
        divergences = []
        for client, result in results.items():
            divergences.extend(self._compare_single(
                reference=expected,
                actual=result,
                client=client,
                reference_client=VECTOR_REFERENCE,
                vector_name=vector_name,
            ))
        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=list(results.keys()),
        )

    def _compare_single(
        self,
        reference: Dict[str, Any],
        actual: Dict[str, Any],
        client: str,
        reference_client: str,
        vector_name: str,
    ) -> List[Divergence]:
        """Compare a single host result against a reference result."""
        divergences = []

        def add(field: str, expected: Any, got: Any, details: Optional[str] = None) -> None:
            divergences.append(Divergence(
                field=field,
                expected=expected,
                actual=got,
                client=client,
                reference_client=reference_client,
                vector_name=vector_name,
                details=details,
            ))

        # Compare success status
        ref_success = reference.get("success", True)
        act_success = actual.get("success", True)
        if ref_success != act_success:
            add("success", ref_success, act_success)

        # Compare error codes
        ref_error = reference.get("error_code", 0)
        act_error = actual.get("error_code", 0)
        if ref_error != act_error:
            add(
                "error_code",
                ref_error,
                act_error,
                f"Error code mismatch: expected 0x{ref_error:04x}, got 0x{act_error:04x}",
            )

        # Compare state digests
        ref_digest = reference.get("state_digest")
        act_digest = actual.get("state_digest")
        if ref_digest and act_digest and ref_digest != act_digest:
            add("state_digest", ref_digest, act_digest, "State digest mismatch after execution")

        # Compare emitted events by name and arguments, in order
        ref_events = reference.get("events")
        act_events = actual.get("events")
        if ref_events is not None and act_events is not None:
            ref_sig = [(e.get("name"), e.get("args")) for e in ref_events]
            act_sig = [(e.get("name"), e.get("args")) for e in act_events]
            if ref_sig != act_sig:
                add(
                    "events",
                    [name for name, _ in ref_sig],
                    [name for name, _ in act_sig],
                    "Emitted events differ",
                )

        return divergences

    def compare_state_digests(
        self,
        digests: Dict[str, str],
        vector_name: str,
    ) -> ComparisonResult:
        """
        Compare state digests from all hosts.

        Args:
            digests: Dict mapping host name to state digest hex string
            vector_name: Name of the test vector

        Returns:
            ComparisonResult with any divergences found
        """
        divergences = []
        clients = list(digests.keys())

        if len(clients) < 2:
            return ComparisonResult(
                success=True,
                divergences=[],
                clients_compared=clients,
            )

        reference_digest = digests.get(self.reference_client)
        if not reference_digest:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in digests"
            )

        for client, digest in digests.items():
            if client == self.reference_client:
                continue

            if digest != reference_digest:
                divergences.append(Divergence(
                    field="state_digest",
                    expected=reference_digest,
                    actual=digest,
                    client=client,
                    reference_client=self.reference_client,
                    vector_name=vector_name,
                    details="State digest mismatch",
                ))

        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=clients,
        )
