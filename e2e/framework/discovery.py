"""
Implementation Discovery

Discovers server and client implementations from the implementations root:

    <root>/servers/<name>/test.config.json
    <root>/clients/<name>/test.config.json

Manifests are read statically; nothing is executed. Directories that do not
match the layout are skipped with a warning.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .exceptions import DiscoveryError
from .logger import log
from .proxy import DEFAULT_CALL_TIMEOUT, ClientProxy, ServerProxy
from .types import (
    DEFAULT_HEALTH_PATH,
    DEFAULT_LAUNCH_COMMAND,
    ImplementationKind,
    ImplementationManifest,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "test.config.json"

CATEGORY_DIRS: dict[str, ImplementationKind] = {
    "servers": "server",
    "clients": "client",
}


@dataclass(frozen=True)
class EndpointDescriptor:
    """Protected route exposed by a server"""

    path: str
    expected_status: int = 200
    price_hint: Optional[str] = None
    method: str = "GET"
    description: str = ""


@dataclass(frozen=True)
class ImplementationConfig:
    """Static metadata of a discovered implementation"""

    name: str
    kind: ImplementationKind
    path: Path
    language: frozenset[str]
    launch_command: tuple[str, ...]
    supported_networks: frozenset[str]
    endpoints: tuple[EndpointDescriptor, ...] = ()
    health_path: str = DEFAULT_HEALTH_PATH


class Implementation:
    """A discovered implementation that can describe itself and launch proxies"""

    def __init__(self, config: ImplementationConfig):
        self._config = config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> ImplementationConfig:
        return self._config

    def describe(self) -> ImplementationConfig:
        return self._config

    def launch(self):
        """Create a fresh, unstarted proxy bound to this implementation"""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._config.name!r})"


class ServerImplementation(Implementation):
    def launch(self, **kwargs) -> ServerProxy:
        return ServerProxy(
            self._config.name,
            self._config.path,
            self._config.launch_command,
            health_path=self._config.health_path,
            **kwargs,
        )


class ClientImplementation(Implementation):
    def launch(self, call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT, **kwargs) -> ClientProxy:
        return ClientProxy(
            self._config.name,
            self._config.path,
            self._config.launch_command,
            call_timeout=call_timeout,
            **kwargs,
        )


@dataclass(frozen=True)
class ImplementationRegistry:
    """Immutable set of implementations available for testing"""

    root: Path
    servers: tuple[ServerImplementation, ...] = ()
    clients: tuple[ClientImplementation, ...] = ()
    skipped: tuple[DiscoveryError, ...] = field(default=(), compare=False)

    def get_server(self, name: str) -> Optional[ServerImplementation]:
        return next((s for s in self.servers if s.name == name), None)

    def get_client(self, name: str) -> Optional[ClientImplementation]:
        return next((c for c in self.clients if c.name == name), None)


def load_implementation(directory: Path, kind: ImplementationKind) -> ImplementationConfig:
    """
    Build an implementation config from a directory's manifest.

    Args:
        directory: Implementation directory
        kind: Category implied by the parent directory

    Returns:
        ImplementationConfig

    Raises:
        DiscoveryError: If the directory does not match the expected shape
    """
    manifest_path = directory / MANIFEST_FILE
    if not manifest_path.is_file():
        raise DiscoveryError(directory, f"{MANIFEST_FILE} not found")

    try:
        raw = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DiscoveryError(directory, f"unreadable {MANIFEST_FILE}: {e}") from e

    try:
        manifest = ImplementationManifest.model_validate(raw)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise DiscoveryError(directory, f"invalid {MANIFEST_FILE}: {errors}") from e

    if manifest.type != kind:
        raise DiscoveryError(
            directory, f"declares type '{manifest.type}' but is listed as a {kind}"
        )

    if manifest.command is None:
        command = DEFAULT_LAUNCH_COMMAND
        if not (directory / command[-1]).is_file():
            raise DiscoveryError(directory, f"{command[-1]} not found")
    else:
        command = tuple(manifest.command)

    endpoints = tuple(
        EndpointDescriptor(
            path=e.path,
            expected_status=e.expected_status,
            price_hint=e.price,
            method=e.method.upper(),
            description=e.description,
        )
        for e in manifest.endpoints
    )
    if kind == "server" and not endpoints:
        raise DiscoveryError(directory, "server declares no endpoints")

    return ImplementationConfig(
        name=manifest.name or directory.name,
        kind=kind,
        path=directory,
        language=manifest.languages,
        launch_command=command,
        supported_networks=frozenset(manifest.networks),
        endpoints=endpoints,
        health_path=manifest.health_path,
    )


def _discover_category(
    root: Path,
    category: str,
    skipped: list[DiscoveryError],
) -> list[ImplementationConfig]:
    kind = CATEGORY_DIRS[category]
    category_dir = root / category
    if not category_dir.is_dir():
        logger.debug("No %s directory under %s", category, root)
        return []

    configs: list[ImplementationConfig] = []
    seen: set[str] = set()
    for directory in sorted(p for p in category_dir.iterdir() if p.is_dir()):
        if directory.name.startswith((".", "_")):
            continue
        try:
            config = load_implementation(directory, kind)
            if config.name in seen:
                raise DiscoveryError(directory, f"duplicate {kind} name '{config.name}'")
        except DiscoveryError as e:
            logger.warning("⚠️  Skipping %s: %s", kind, e)
            skipped.append(e)
            continue
        seen.add(config.name)
        configs.append(config)

    return configs


def discover(root: Union[str, Path]) -> ImplementationRegistry:
    """
    Discover all server and client implementations under root.

    Returns:
        ImplementationRegistry in sorted directory order
    """
    root = Path(root)
    skipped: list[DiscoveryError] = []

    servers = tuple(
        ServerImplementation(c) for c in _discover_category(root, "servers", skipped)
    )
    clients = tuple(
        ClientImplementation(c) for c in _discover_category(root, "clients", skipped)
    )

    return ImplementationRegistry(
        root=root,
        servers=servers,
        clients=clients,
        skipped=tuple(skipped),
    )


def print_discovery_summary(registry: ImplementationRegistry) -> None:
    """Print discovered implementations per category"""
    log("🔍 Test Discovery Summary")
    log("========================")
    log(f"📡 Servers found: {len(registry.servers)}")
    for server in registry.servers:
        config = server.describe()
        log(
            f"   - {config.name} ({', '.join(sorted(config.language))})"
            f" networks: {', '.join(sorted(config.supported_networks))}"
            f" endpoints: {', '.join(e.path for e in config.endpoints)}"
        )
    log(f"📱 Clients found: {len(registry.clients)}")
    for client in registry.clients:
        config = client.describe()
        log(
            f"   - {config.name} ({', '.join(sorted(config.language))})"
            f" networks: {', '.join(sorted(config.supported_networks))}"
        )
    if registry.skipped:
        log(f"⚠️  Skipped: {len(registry.skipped)}")
        for error in registry.skipped:
            log(f"   - {error}")
    log("")
