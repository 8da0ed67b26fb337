"""
Environment Variable Validation

Loads and validates the environment a harness run needs.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigError
from .logger import log
from .types import DEFAULT_SERVER_PORT


@dataclass
class EnvConfig:
    """Environment configuration for e2e runs"""

    # Payment recipient passed to every server
    server_address: Optional[str] = None

    # Key every client pays with
    client_private_key: Optional[str] = None

    server_port: int = DEFAULT_SERVER_PORT

    def require(self) -> "EnvConfig":
        """
        Raises:
            ConfigError: If a required variable is missing or invalid
        """
        missing = []
        if not self.server_address:
            missing.append("SERVER_ADDRESS")
        if not self.client_private_key:
            missing.append("CLIENT_PRIVATE_KEY")
        if missing:
            raise ConfigError(missing)

        is_valid, issues = validate_env_config(self)
        if not is_valid:
            raise ConfigError([], "; ".join(issues))
        return self

    def to_env_dict(self) -> dict[str, str]:
        """Convert to environment variable dict"""
        env = {"SERVER_PORT": str(self.server_port)}

        if self.server_address:
            env["SERVER_ADDRESS"] = self.server_address
        if self.client_private_key:
            env["CLIENT_PRIVATE_KEY"] = self.client_private_key

        return env


def load_env_config(env_paths: Optional[list[Path]] = None) -> EnvConfig:
    """
    Load environment configuration from .env files and the process environment.

    Args:
        env_paths: List of .env file paths to load (in order); variables
            already set are never overridden

    Returns:
        EnvConfig with loaded values
    """
    if env_paths is None:
        e2e_dir = Path(__file__).parent.parent
        env_paths = [
            Path.cwd() / ".env",
            e2e_dir / ".env",
        ]

    for path in env_paths:
        if path.exists():
            load_dotenv(path)

    port = os.getenv("SERVER_PORT") or str(DEFAULT_SERVER_PORT)
    try:
        server_port = int(port)
    except ValueError:
        raise ConfigError(["SERVER_PORT"], f"SERVER_PORT must be an integer, got {port!r}")

    return EnvConfig(
        server_address=os.getenv("SERVER_ADDRESS"),
        client_private_key=os.getenv("CLIENT_PRIVATE_KEY"),
        server_port=server_port,
    )


def validate_env_config(config: EnvConfig) -> tuple[bool, list[str]]:
    """
    Validate environment configuration.

    Args:
        config: Environment configuration

    Returns:
        Tuple of (is_valid, list of missing/invalid items)
    """
    issues = []

    if not config.server_address:
        issues.append("SERVER_ADDRESS is not set")
    if not config.client_private_key:
        issues.append("CLIENT_PRIVATE_KEY is not set")

    if not 0 < config.server_port < 65536:
        issues.append(f"SERVER_PORT {config.server_port} is out of range")

    return len(issues) == 0, issues


def print_env_status(config: EnvConfig) -> None:
    """Log environment configuration status with secrets masked"""
    log("=" * 60)
    log("E2E Environment Configuration")
    log("=" * 60)
    log(
        f"  Server Address: {'✓ ' + config.server_address if config.server_address else '✗ Missing'}"
    )
    log(f"  Client Private Key: {'✓ Set' if config.client_private_key else '✗ Missing'}")
    log(f"  Server Port: {config.server_port}")
    log("=" * 60)
