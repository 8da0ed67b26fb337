"""
Test Scenario Generation

Generates test scenarios from discovered implementations and narrows them
with run filters.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .discovery import (
    ClientImplementation,
    EndpointDescriptor,
    ImplementationRegistry,
    ServerImplementation,
)


@dataclass(frozen=True)
class FacilitatorNetworkCombo:
    """Payment facilitator choice paired with a blockchain network"""

    use_cdp_facilitator: bool
    network: str

    @property
    def label(self) -> str:
        return f"useCdpFacilitator={str(self.use_cdp_facilitator).lower()}, network={self.network}"


# Generation order depends on this order
FACILITATOR_NETWORK_COMBOS: tuple[FacilitatorNetworkCombo, ...] = (
    FacilitatorNetworkCombo(use_cdp_facilitator=False, network="base-sepolia"),
    FacilitatorNetworkCombo(use_cdp_facilitator=False, network="base"),
    FacilitatorNetworkCombo(use_cdp_facilitator=True, network="base-sepolia"),
    FacilitatorNetworkCombo(use_cdp_facilitator=True, network="base"),
)

TESTNET_NETWORK = "base-sepolia"


def is_testnet_only(combo: FacilitatorNetworkCombo) -> bool:
    """A combo is testnet-only when it uses the default facilitator on base-sepolia"""
    return not combo.use_cdp_facilitator and combo.network == TESTNET_NETWORK


@dataclass(frozen=True)
class TestScenario:
    """One client calling one server endpoint under one facilitator/network combo"""

    __test__ = False

    client: ClientImplementation
    server: ServerImplementation
    endpoint: EndpointDescriptor
    combo: FacilitatorNetworkCombo

    @property
    def name(self) -> str:
        return f"{self.client.name} → {self.server.name} → {self.endpoint.path} [{self.combo.label}]"

    @property
    def id(self) -> str:
        """Unique scenario identifier"""
        cdp = "cdp" if self.combo.use_cdp_facilitator else "default"
        return f"{self.client.name}_{self.server.name}_{self.endpoint.path.strip('/')}_{cdp}_{self.combo.network}"


def generate_test_scenarios(
    servers: Sequence[ServerImplementation],
    clients: Sequence[ClientImplementation],
    combos: Sequence[FacilitatorNetworkCombo] = FACILITATOR_NETWORK_COMBOS,
) -> list[TestScenario]:
    """
    Generate all valid test scenarios.

    Order: servers × clients × combos × endpoints, each in the given order,
    so repeated runs number scenarios identically.

    Args:
        servers: Discovered servers
        clients: Discovered clients
        combos: Facilitator/network combinations to cover

    Returns:
        List of test scenarios
    """
    scenarios = []

    for server in servers:
        server_config = server.describe()
        for client in clients:
            client_config = client.describe()
            shared = server_config.supported_networks & client_config.supported_networks
            if not shared:
                continue

            for combo in combos:
                if combo.network not in shared:
                    continue

                for endpoint in server_config.endpoints:
                    scenarios.append(
                        TestScenario(
                            client=client,
                            server=server,
                            endpoint=endpoint,
                            combo=combo,
                        )
                    )

    return scenarios


def generate_registry_scenarios(registry: ImplementationRegistry) -> list[TestScenario]:
    return generate_test_scenarios(registry.servers, registry.clients)


@dataclass(frozen=True)
class ScenarioFilter:
    """Run filters; unset criteria impose no constraint"""

    languages: tuple[str, ...] = ()
    client: Optional[str] = None
    server: Optional[str] = None
    network: Optional[str] = None
    prod: Optional[bool] = None

    def matches(self, scenario: TestScenario) -> bool:
        if self.languages:
            client_languages = scenario.client.describe().language
            server_languages = scenario.server.describe().language
            if not any(
                lang in client_languages and lang in server_languages
                for lang in self.languages
            ):
                return False

        if self.client is not None and scenario.client.name != self.client:
            return False

        if self.server is not None and scenario.server.name != self.server:
            return False

        if self.network is not None and scenario.combo.network != self.network:
            return False

        if self.prod is not None and self.prod == is_testnet_only(scenario.combo):
            return False

        return True

    def describe(self) -> list[tuple[str, str]]:
        """Active filters as (name, value) pairs"""
        active = []
        if self.languages:
            active.append(("Languages", ", ".join(self.languages)))
        if self.client is not None:
            active.append(("Client", self.client))
        if self.server is not None:
            active.append(("Server", self.server))
        if self.network is not None:
            active.append(("Network", self.network))
        if self.prod is not None:
            active.append(("Production", str(self.prod).lower()))
        return active


def filter_scenarios(
    scenarios: Iterable[TestScenario],
    criteria: Optional[ScenarioFilter] = None,
) -> list[TestScenario]:
    """Keep the scenarios matching every active criterion, preserving order"""
    if criteria is None:
        return list(scenarios)
    return [s for s in scenarios if criteria.matches(s)]
