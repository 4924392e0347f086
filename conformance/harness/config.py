"""
Configuration management for the conformance test harness.
"""

import os
from dataclasses import dataclass, field
from typing import Dict


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class ClientConfig:
    """Configuration for a single ledger host endpoint."""
    name: str
    endpoint: str
    enabled: bool = True
    timeout: float = 30.0


@dataclass
class HarnessConfig:
    """Main configuration for the test harness."""
    # Host endpoints
    clients: Dict[str, ClientConfig] = field(default_factory=dict)
    reference_client: str = "python-ref"

    # Paths
    vector_dir: str = "/vectors"
    result_dir: str = "/results"

    # Execution settings
    stop_on_first_failure: bool = False
    verbose: bool = False

    # Timeouts
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load configuration from environment variables."""
        config = cls()
        config.request_timeout = float(os.environ.get("REQUEST_TIMEOUT", "30"))

        reference_endpoint = os.environ.get("REFERENCE_ENDPOINT", "http://localhost:8081")
        contract_endpoint = os.environ.get("CONTRACT_ENDPOINT", "http://localhost:8082")

        config.clients = {
            "python-ref": ClientConfig(
                name="Python reference",
                endpoint=reference_endpoint,
                timeout=config.request_timeout,
            ),
            "evm-contract": ClientConfig(
                name="VerifiableMarketplace (EVM adapter)",
                endpoint=contract_endpoint,
                enabled=not _env_flag("SKIP_CONTRACT"),
                timeout=config.request_timeout,
            ),
        }

        # Load paths
        config.vector_dir = os.environ.get("VECTOR_DIR", "/vectors")
        config.result_dir = os.environ.get("RESULT_DIR", "/results")

        # Load settings
        config.verbose = _env_flag("VERBOSE")
        config.stop_on_first_failure = _env_flag("STOP_ON_FIRST_FAILURE")

        return config

    def get_enabled_clients(self) -> Dict[str, ClientConfig]:
        """Get only enabled client configurations."""
        return {
            name: client
            for name, client in self.clients.items()
            if client.enabled
        }
