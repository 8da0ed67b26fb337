"""
Scenario generation and filter tests
"""

import pytest

from e2e.framework.discovery import discover
from e2e.framework.scenarios import (
    FACILITATOR_NETWORK_COMBOS,
    FacilitatorNetworkCombo,
    ScenarioFilter,
    filter_scenarios,
    generate_registry_scenarios,
    generate_test_scenarios,
    is_testnet_only,
)


@pytest.fixture
def registry(make_implementation, impl_root):
    make_implementation("server", "express", language="typescript")
    make_implementation(
        "server",
        "fastapi",
        language="python",
        endpoints=[{"path": "/protected"}, {"path": "/premium"}],
    )
    make_implementation("client", "axios", language="typescript")
    make_implementation("client", "httpx", language="python")
    make_implementation("client", "nethttp", language="go", networks=["base"])
    return discover(impl_root)


def test_combo_enumeration_order():
    assert FACILITATOR_NETWORK_COMBOS == (
        FacilitatorNetworkCombo(False, "base-sepolia"),
        FacilitatorNetworkCombo(False, "base"),
        FacilitatorNetworkCombo(True, "base-sepolia"),
        FacilitatorNetworkCombo(True, "base"),
    )


def test_scenario_count_matches_cross_product(registry):
    scenarios = generate_registry_scenarios(registry)

    # express: 1 endpoint, fastapi: 2 endpoints
    # axios/httpx support 4 combos, nethttp supports the 2 base combos
    expected = (1 + 2) * (4 + 4 + 2)
    assert len(scenarios) == expected


def test_every_pairing_is_covered(registry):
    scenarios = generate_registry_scenarios(registry)
    keys = {(s.server.name, s.client.name, s.combo, s.endpoint.path) for s in scenarios}

    for server in registry.servers:
        for client in registry.clients:
            shared = server.config.supported_networks & client.config.supported_networks
            for combo in FACILITATOR_NETWORK_COMBOS:
                if combo.network not in shared:
                    continue
                for endpoint in server.config.endpoints:
                    assert (server.name, client.name, combo, endpoint.path) in keys


def test_generation_order_is_deterministic(registry):
    first = [s.name for s in generate_registry_scenarios(registry)]
    second = [s.name for s in generate_registry_scenarios(registry)]
    assert first == second

    scenarios = generate_registry_scenarios(registry)
    assert scenarios[0].server.name == "express"
    assert scenarios[0].client.name == "axios"
    assert scenarios[0].combo == FACILITATOR_NETWORK_COMBOS[0]
    assert [s.endpoint.path for s in scenarios if s.server.name == "fastapi"][:2] == [
        "/protected",
        "/premium",
    ]


def test_disjoint_networks_produce_no_scenarios(make_implementation, impl_root):
    make_implementation("server", "sepolia-only", networks=["base-sepolia"])
    make_implementation("client", "mainnet-only", networks=["base"])
    registry = discover(impl_root)

    assert generate_test_scenarios(registry.servers, registry.clients) == []


def test_unknown_networks_do_not_add_combos(make_implementation, impl_root):
    make_implementation("server", "s", networks=["base", "polygon"])
    make_implementation("client", "c", networks=["polygon"])
    registry = discover(impl_root)

    assert generate_test_scenarios(registry.servers, registry.clients) == []


def test_scenario_name_and_id(registry):
    scenario = generate_registry_scenarios(registry)[0]

    assert scenario.name == (
        "axios → express → /protected [useCdpFacilitator=false, network=base-sepolia]"
    )
    assert scenario.id == "axios_express_protected_default_base-sepolia"


@pytest.mark.parametrize(
    "combo, expected",
    [
        (FacilitatorNetworkCombo(False, "base-sepolia"), True),
        (FacilitatorNetworkCombo(False, "base"), False),
        (FacilitatorNetworkCombo(True, "base-sepolia"), False),
        (FacilitatorNetworkCombo(True, "base"), False),
    ],
)
def test_testnet_only_classification(combo, expected):
    assert is_testnet_only(combo) is expected


def test_no_criteria_keeps_everything(registry):
    scenarios = generate_registry_scenarios(registry)

    assert filter_scenarios(scenarios) == scenarios
    assert filter_scenarios(scenarios, ScenarioFilter()) == scenarios


def test_language_filter_requires_both_sides(registry):
    scenarios = generate_registry_scenarios(registry)

    python_only = filter_scenarios(scenarios, ScenarioFilter(languages=("python",)))

    assert python_only
    assert {(s.server.name, s.client.name) for s in python_only} == {("fastapi", "httpx")}


def test_multiple_languages_are_alternatives(registry):
    scenarios = generate_registry_scenarios(registry)

    selected = filter_scenarios(scenarios, ScenarioFilter(languages=("python", "typescript")))

    assert {(s.server.name, s.client.name) for s in selected} == {
        ("fastapi", "httpx"),
        ("express", "axios"),
    }


def test_name_and_network_filters(registry):
    scenarios = generate_registry_scenarios(registry)

    selected = filter_scenarios(
        scenarios, ScenarioFilter(client="httpx", server="fastapi", network="base")
    )

    assert len(selected) == 2 * 2  # two base combos × two endpoints
    assert all(s.client.name == "httpx" for s in selected)
    assert all(s.server.name == "fastapi" for s in selected)
    assert all(s.combo.network == "base" for s in selected)


def test_non_overlapping_filters_yield_empty_list(registry):
    scenarios = generate_registry_scenarios(registry)

    selected = filter_scenarios(
        scenarios, ScenarioFilter(client="nethttp", network="base-sepolia")
    )

    assert selected == []


def test_prod_filter(registry):
    scenarios = generate_registry_scenarios(registry)

    prod = filter_scenarios(scenarios, ScenarioFilter(prod=True))
    testnet = filter_scenarios(scenarios, ScenarioFilter(prod=False))

    assert all(not is_testnet_only(s.combo) for s in prod)
    assert all(is_testnet_only(s.combo) for s in testnet)
    assert len(prod) + len(testnet) == len(scenarios)


def test_filters_never_add_scenarios(registry):
    scenarios = generate_registry_scenarios(registry)
    criteria = [
        ScenarioFilter(languages=("go",)),
        ScenarioFilter(server="express"),
        ScenarioFilter(network="base", prod=True),
        ScenarioFilter(client="unknown"),
    ]

    for criterion in criteria:
        selected = filter_scenarios(scenarios, criterion)
        assert len(selected) <= len(scenarios)
        assert all(s in scenarios for s in selected)


def test_describe_active_filters():
    criteria = ScenarioFilter(languages=("python", "go"), server="fastapi", prod=False)

    assert criteria.describe() == [
        ("Languages", "python, go"),
        ("Server", "fastapi"),
        ("Production", "false"),
    ]
    assert ScenarioFilter().describe() == []
