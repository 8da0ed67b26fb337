"""
E2E Test Framework

Provides infrastructure for running cross-implementation scenarios:
- Process management (ServerProxy, ClientProxy)
- Implementation discovery
- Scenario generation and filtering
- Scenario lifecycle (ScenarioRunner)
- Environment validation
"""

from .proxy import BaseProxy, ClientProxy, ProcessState, ServerProxy, parse_client_output
from .discovery import (
    ClientImplementation,
    EndpointDescriptor,
    ImplementationConfig,
    ImplementationRegistry,
    ServerImplementation,
    discover,
    print_discovery_summary,
)
from .manager import RunnerState, ScenarioRunner
from .scenarios import (
    FACILITATOR_NETWORK_COMBOS,
    FacilitatorNetworkCombo,
    ScenarioFilter,
    TestScenario,
    filter_scenarios,
    generate_test_scenarios,
    is_testnet_only,
)
from .env import (
    EnvConfig,
    load_env_config,
    validate_env_config,
    print_env_status,
)
from .exceptions import (
    CallError,
    CleanupError,
    ConfigError,
    DiscoveryError,
    E2EError,
    HealthCheckTimeout,
    StartError,
)
from .report import RunSummary
from .types import ClientConfig, ClientResult, ScenarioResult, ServerConfig

__all__ = [
    # Proxy
    "BaseProxy",
    "ClientProxy",
    "ProcessState",
    "ServerProxy",
    "parse_client_output",
    # Discovery
    "ClientImplementation",
    "EndpointDescriptor",
    "ImplementationConfig",
    "ImplementationRegistry",
    "ServerImplementation",
    "discover",
    "print_discovery_summary",
    # Runner
    "RunnerState",
    "ScenarioRunner",
    # Scenarios
    "FACILITATOR_NETWORK_COMBOS",
    "FacilitatorNetworkCombo",
    "ScenarioFilter",
    "TestScenario",
    "filter_scenarios",
    "generate_test_scenarios",
    "is_testnet_only",
    # Environment
    "EnvConfig",
    "load_env_config",
    "validate_env_config",
    "print_env_status",
    # Errors
    "CallError",
    "CleanupError",
    "ConfigError",
    "DiscoveryError",
    "E2EError",
    "HealthCheckTimeout",
    "StartError",
    # Results
    "RunSummary",
    "ClientConfig",
    "ClientResult",
    "ScenarioResult",
    "ServerConfig",
]
